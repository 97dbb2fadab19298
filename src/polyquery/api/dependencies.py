"""FastAPI dependency injection for services held on application state."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from polyquery.engine.cache import ResultCache
from polyquery.engine.executor import QueryExecutor
from polyquery.engine.metadata import MetadataStore
from polyquery.engine.registry import ConnectionRegistry
from polyquery.engine.schema_cache import SchemaCache


def _state_attr(request: Request, name: str, label: str):
    if not hasattr(request.app.state, name):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{label} not initialized",
        )
    return getattr(request.app.state, name)


def get_registry(request: Request) -> ConnectionRegistry:
    return _state_attr(request, "registry", "Connection registry")


def get_metadata_store(request: Request) -> MetadataStore:
    return _state_attr(request, "metadata", "Metadata store")


def get_schema_cache(request: Request) -> SchemaCache:
    """Retrieve the schema cache from application state.

    Raises:
        HTTPException: If the schema cache is not initialized.
    """
    return _state_attr(request, "schema_cache", "Schema cache")


def get_result_cache(request: Request) -> ResultCache:
    return _state_attr(request, "result_cache", "Result cache")


def get_executor(request: Request) -> QueryExecutor:
    """Retrieve the query executor from application state.

    The executor is built once during application startup together with the
    caches it owns.

    Raises:
        HTTPException: If the executor is not initialized.
    """
    return _state_attr(request, "executor", "Query executor")


# Type aliases for dependency injection
RegistryDep = Annotated[ConnectionRegistry, Depends(get_registry)]
MetadataDep = Annotated[MetadataStore, Depends(get_metadata_store)]
SchemaCacheDep = Annotated[SchemaCache, Depends(get_schema_cache)]
ExecutorDep = Annotated[QueryExecutor, Depends(get_executor)]
ResultCacheDep = Annotated[ResultCache, Depends(get_result_cache)]
