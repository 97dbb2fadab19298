"""Connection, schema and metadata routes.

Most handlers are plain ``def`` functions: registry, snapshot and driver calls
block, so FastAPI runs them in its threadpool. Schema refresh also clears the
async result cache and offloads the blocking part itself.
"""

from __future__ import annotations

import asyncio
from typing import Annotated

from fastapi import APIRouter, Query

from polyquery.api.dependencies import MetadataDep, RegistryDep, ResultCacheDep, SchemaCacheDep
from polyquery.core.exceptions import PolyQueryError
from polyquery.core.logging import get_logger
from polyquery.models.connections import Connection
from polyquery.models.requests import MetadataRequest
from polyquery.models.responses import CatalogEntry, ErrorResponse, OkResponse
from polyquery.models.schema import SchemaSnapshot

logger = get_logger(__name__)

router = APIRouter(tags=["sources"])

ConnectionIdQuery = Annotated[
    str | None,
    Query(alias="connectionId", description="Connection id; unknown ids use the first connection"),
]

SCHEMA_ERRORS = {
    400: {"model": ErrorResponse, "description": "Connection config is incomplete"},
    404: {"model": ErrorResponse, "description": "No connections are registered"},
    502: {"model": ErrorResponse, "description": "Source could not be contacted"},
}


@router.get(
    "/schema",
    response_model=SchemaSnapshot,
    response_model_exclude_none=True,
    responses=SCHEMA_ERRORS,
)
def get_schema(schema_cache: SchemaCacheDep, connection_id: ConnectionIdQuery = None) -> SchemaSnapshot:
    """Get the schema snapshot of a connection, regenerating it when stale.

    Returns:
        ``{generatedAt, schemas}`` with operator metadata merged in.
    """
    _, snapshot = schema_cache.get_snapshot(connection_id)
    return snapshot


@router.post(
    "/schema/refresh",
    response_model=SchemaSnapshot,
    response_model_exclude_none=True,
    responses=SCHEMA_ERRORS,
)
async def refresh_schema(
    schema_cache: SchemaCacheDep,
    result_cache: ResultCacheDep,
    connection_id: ConnectionIdQuery = None,
) -> SchemaSnapshot:
    """Force regeneration of a connection's schema snapshot.

    Cached answers are dropped as well, since they were computed against the
    old schema.
    """
    connection, snapshot = await asyncio.to_thread(schema_cache.refresh, connection_id)
    dropped = await result_cache.invalidate()
    logger.info(
        "schema_refreshed",
        connection_id=connection.id,
        collections=len(snapshot.schemas),
        cached_answers_dropped=dropped,
    )
    return snapshot


@router.get("/connections", response_model=list[Connection])
def list_connections(registry: RegistryDep) -> list[Connection]:
    """List every registered connection."""
    return registry.list_connections()


@router.post(
    "/connect",
    response_model=OkResponse,
    responses={409: {"model": ErrorResponse, "description": "Connection id already registered"}},
)
def connect(body: Connection, registry: RegistryDep) -> OkResponse:
    """Register a new connection."""
    registry.add(body)
    return OkResponse()


@router.get("/catalog", response_model=list[CatalogEntry], response_model_exclude_none=True)
def get_catalog(registry: RegistryDep, schema_cache: SchemaCacheDep) -> list[CatalogEntry]:
    """Every connection with its schemas.

    A connection whose schema cannot be produced is reported with empty
    ``schemas`` and an ``error`` instead of failing the whole catalog.
    """
    entries: list[CatalogEntry] = []
    for connection in registry.list_connections():
        base = connection.model_dump()
        try:
            _, snapshot = schema_cache.get_snapshot(connection.id)
        except PolyQueryError as e:
            logger.warning("catalog_schema_failed", connection_id=connection.id, error=e.message)
            entries.append(CatalogEntry(**base, schemas=[], error=e.message))
            continue
        entries.append(CatalogEntry(**base, schemas=snapshot.schemas))
    return entries


@router.post("/metadata", response_model=OkResponse)
def save_metadata(body: MetadataRequest, metadata: MetadataDep) -> OkResponse:
    """Persist an operator description and tips for one field."""
    metadata.save_field(
        connection_id=body.connection_id,
        collection_name=body.collection_name,
        field_name=body.field_name,
        description=body.description,
        tips=body.tips,
    )
    return OkResponse()
