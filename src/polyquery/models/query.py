"""Validated query descriptor and result envelope."""

from enum import StrEnum
from typing import Any

from pydantic import Field, model_validator

from polyquery.models.schema import CamelModel

DEFAULT_LIMIT = 50


class ChartType(StrEnum):
    """Chart suggestions understood by the presentation layer."""

    BAR = "bar"
    LINE = "line"
    PIE = "pie"
    AREA = "area"
    TABLE = "table"


class QueryDescriptor(CamelModel):
    """Normalized description of what to fetch.

    Only ever built by :func:`polyquery.engine.descriptor.repair_descriptor`,
    which defaults and coerces the untrusted generator output first.
    """

    db_name: str = Field(..., description="Target database (or workbook)")
    collection_name: str = Field(..., description="Target collection, sheet or table")
    query: dict[str, Any] = Field(default_factory=dict, description="Equality/substring filter")
    projection: list[str] | None = Field(default=None, description="Fields to return")
    sort: dict[str, Any] | None = Field(default=None, description="Field to sort direction")
    limit: int = Field(default=DEFAULT_LIMIT, ge=1, description="Maximum records")
    explanation: str = Field(default="", description="What the query does")
    chart_type: ChartType = Field(default=ChartType.TABLE, description="Suggested chart")


class ResultEnvelope(CamelModel):
    """Uniform answer returned for every source type."""

    query: QueryDescriptor
    data: list[dict[str, Any]] = Field(default_factory=list)
    count: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _sync_count(self) -> "ResultEnvelope":
        self.count = len(self.data)
        return self
