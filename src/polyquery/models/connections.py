"""Connection records and the operator metadata overlay."""

from enum import StrEnum
from typing import Any

from pydantic import Field

from polyquery.models.schema import CamelModel


class SourceType(StrEnum):
    """Closed set of supported source kinds."""

    MONGODB = "mongodb"
    EXCEL = "excel"
    SQL = "sql"


class Connection(CamelModel):
    """A configured data source.

    Attributes:
        id: Caller-generated unique identifier.
        name: Display name.
        type: Source kind, selects the adapter.
        config: Source-specific parameters (``uri``, ``path``, ``database`` ...).
    """

    id: str = Field(..., min_length=1, description="Unique connection id")
    name: str = Field(default="", description="Display name")
    type: SourceType = Field(..., description="Source kind")
    config: dict[str, Any] = Field(default_factory=dict, description="Source parameters")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "id": "1718000000000",
                    "name": "Shop",
                    "type": "mongodb",
                    "config": {"uri": "mongodb://localhost:27017"},
                },
                {
                    "id": "1718000000001",
                    "name": "Products sheet",
                    "type": "excel",
                    "config": {"path": "./data/products.xlsx"},
                },
                {
                    "id": "1718000000002",
                    "name": "Warehouse",
                    "type": "sql",
                    "config": {"database": "./data/warehouse.duckdb"},
                },
            ]
        }
    }


class FieldAnnotation(CamelModel):
    """Operator-authored notes layered onto one inferred field."""

    description: str | None = None
    tips: str | None = None


# connectionId -> collectionName -> fieldName -> annotation
MetadataOverlay = dict[str, dict[str, dict[str, FieldAnnotation]]]
