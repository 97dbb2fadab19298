"""Schema models shared by every source adapter.

Field paths use ``.`` for nested objects and a trailing ``[]`` for the
elements of an array, so ``tags[]`` describes what is inside ``tags``.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

MAX_EXAMPLES = 3


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys on the wire and on disk."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FieldInfo(CamelModel):
    """Inferred structure of one field path.

    Attributes:
        types: Distinct type tags observed, in first-seen order.
        examples: Up to three sampled values.
        description: Operator-supplied description (metadata overlay only).
        tips: Operator-supplied query tips (metadata overlay only).
    """

    types: list[str] = Field(default_factory=list, description="Observed type tags")
    examples: list[Any] = Field(
        default_factory=list,
        max_length=MAX_EXAMPLES,
        description="Sampled example values",
    )
    description: str | None = Field(default=None, description="Operator description")
    tips: str | None = Field(default=None, description="Operator query tips")

    def record(self, type_tag: str, example: Any = None) -> None:
        """Merge one observation into this field (types union, bounded examples)."""
        if type_tag not in self.types:
            self.types.append(type_tag)
        if len(self.examples) < MAX_EXAMPLES:
            self.examples.append(example)


class CollectionSchema(CamelModel):
    """Inferred schema of one sub-collection (collection, sheet or table)."""

    db_name: str = Field(..., description="Database, workbook or catalog name")
    collection_name: str = Field(..., description="Collection, sheet or table name")
    sample_count: int = Field(default=0, ge=0, description="Number of records sampled or counted")
    fields: dict[str, FieldInfo] = Field(
        default_factory=dict,
        description="Field path to inferred field info",
    )

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "dbName": "shop",
                "collectionName": "orders",
                "sampleCount": 100,
                "fields": {
                    "status": {"types": ["string"], "examples": ["paid", "shipped"]},
                    "items[]": {"types": ["object"], "examples": [{"sku": "A1"}]},
                    "items[].sku": {"types": ["string"], "examples": ["A1"]},
                },
            }
        },
    )

    def field(self, path: str) -> FieldInfo:
        """Return the FieldInfo for ``path``, creating it on first sight."""
        info = self.fields.get(path)
        if info is None:
            info = FieldInfo()
            self.fields[path] = info
        return info


class SchemaSnapshot(CamelModel):
    """A timestamped inference result persisted for one connection."""

    generated_at: datetime = Field(..., description="When the schemas were inferred")
    schemas: list[CollectionSchema] = Field(default_factory=list)
