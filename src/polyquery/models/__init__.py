"""Pydantic models for schemas, connections, queries and API payloads."""

from polyquery.models.connections import (
    Connection,
    FieldAnnotation,
    MetadataOverlay,
    SourceType,
)
from polyquery.models.query import ChartType, QueryDescriptor, ResultEnvelope
from polyquery.models.requests import AskRequest, MetadataRequest
from polyquery.models.responses import CatalogEntry, DataResponse, ErrorResponse, OkResponse
from polyquery.models.schema import CollectionSchema, FieldInfo, SchemaSnapshot

__all__ = [
    # Schema models
    "FieldInfo",
    "CollectionSchema",
    "SchemaSnapshot",
    # Connections
    "Connection",
    "SourceType",
    "FieldAnnotation",
    "MetadataOverlay",
    # Queries
    "ChartType",
    "QueryDescriptor",
    "ResultEnvelope",
    # Request/Response models
    "AskRequest",
    "MetadataRequest",
    "OkResponse",
    "ErrorResponse",
    "CatalogEntry",
    "DataResponse",
]
