"""API response models."""

from typing import Any

from pydantic import Field

from polyquery.models.connections import Connection
from polyquery.models.schema import CamelModel, CollectionSchema


class OkResponse(CamelModel):
    """Acknowledgement for write operations."""

    ok: bool = True


class ErrorResponse(CamelModel):
    """Structured error body returned by every failing route."""

    error: str = Field(..., description="Human-readable error message")
    code: str = Field(default="UNKNOWN_ERROR", description="Machine-readable error code")
    raw_response: str | None = Field(
        default=None,
        description="Raw text from the generation step, for diagnostics",
    )
    request_id: str | None = Field(default=None, alias="request_id")


class CatalogEntry(Connection):
    """A connection together with its (possibly failed) schema."""

    schemas: list[CollectionSchema] = Field(default_factory=list)
    error: str | None = None


class DataResponse(CamelModel):
    """Raw unfiltered records from a document-store collection."""

    count: int = Field(..., ge=0)
    docs: list[dict[str, Any]] = Field(default_factory=list)
