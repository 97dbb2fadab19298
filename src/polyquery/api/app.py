"""FastAPI application entry point."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from polyquery.api.middleware import RequestContextMiddleware, get_request_id
from polyquery.api.routes.query import router as query_router
from polyquery.api.routes.sources import router as sources_router
from polyquery.core.config import Settings, get_settings
from polyquery.core.exceptions import (
    ConfigInvalidError,
    ConfigurationError,
    ConnectionNotFoundError,
    DescriptorParseError,
    DuplicateConnectionError,
    ExecutionError,
    NoStructuredOutputError,
    PolyQueryError,
    SourceUnreachableError,
    SubCollectionNotFoundError,
)
from polyquery.core.logging import configure_logging, get_logger
from polyquery.engine.adapters import build_adapters
from polyquery.engine.cache import CacheConfig, ResultCache
from polyquery.engine.executor import QueryExecutor, TextGenerator
from polyquery.engine.metadata import MetadataStore
from polyquery.engine.registry import ConnectionRegistry
from polyquery.engine.schema_cache import SchemaCache
from polyquery.engine.workbook_cache import WorkbookCache
from polyquery.models.responses import ErrorResponse, OkResponse

logger = get_logger(__name__)

ERROR_STATUS: dict[type[PolyQueryError], int] = {
    ConfigInvalidError: status.HTTP_400_BAD_REQUEST,
    ConnectionNotFoundError: status.HTTP_404_NOT_FOUND,
    SubCollectionNotFoundError: status.HTTP_404_NOT_FOUND,
    DuplicateConnectionError: status.HTTP_409_CONFLICT,
    NoStructuredOutputError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    DescriptorParseError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    SourceUnreachableError: status.HTTP_502_BAD_GATEWAY,
    ExecutionError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ConfigurationError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_for(exc: PolyQueryError) -> int:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS:
            return ERROR_STATUS[cls]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def _llm_text_generator() -> TextGenerator:
    from polyquery.core.llm import get_llm_client

    client = get_llm_client()

    async def generate_text(user_prompt: str, system_prompt: str) -> str:
        return await client.ainvoke(user_prompt, system_prompt=system_prompt)

    return generate_text


def build_lifespan(
    settings: Settings | None = None,
    generate_text: TextGenerator | None = None,
) -> Callable[[FastAPI], Any]:
    """Build the lifespan handler that wires services into ``app.state``."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Application lifespan events.

        Initializes:
        - Connection registry and metadata overlay
        - Source adapters with the shared workbook cache
        - Schema cache and result cache (Redis when configured)
        - Query executor bound to the text generation step
        """
        resolved = settings or get_settings()
        app.state.settings = resolved

        registry = ConnectionRegistry(resolved.connections_path)
        seeded = registry.seed_default(resolved.MONGODB_URI)
        if seeded is not None:
            logger.info("default_connection_seeded", connection_id=seeded.id)

        metadata = MetadataStore(resolved.metadata_path)
        workbook_cache = WorkbookCache(resolved.WORKBOOK_CACHE_SIZE)
        adapters = build_adapters(resolved, workbook_cache)
        schema_cache = SchemaCache(
            registry=registry,
            adapters=adapters,
            metadata=metadata,
            schemas_dir=resolved.schemas_path,
            ttl_seconds=resolved.SCHEMA_CACHE_TTL_SECONDS,
        )

        result_cache = ResultCache(CacheConfig(resolved))
        await result_cache.connect_redis()

        app.state.registry = registry
        app.state.metadata = metadata
        app.state.workbook_cache = workbook_cache
        app.state.schema_cache = schema_cache
        app.state.result_cache = result_cache
        app.state.executor = QueryExecutor(
            registry=registry,
            schema_cache=schema_cache,
            adapters=adapters,
            result_cache=result_cache,
            generate_text=generate_text or _llm_text_generator(),
            default_limit=resolved.DEFAULT_QUERY_LIMIT,
        )
        logger.info(
            "application_started",
            connections=len(registry.list_connections()),
            data_dir=str(resolved.DATA_DIR),
        )

        yield

        # Shutdown
        await result_cache.close()
        logger.info("application_shutdown_complete")

    return lifespan


def _error_body(message: str, code: str, raw_response: str | None = None) -> dict[str, Any]:
    body = ErrorResponse(
        error=message,
        code=code,
        raw_response=raw_response,
        request_id=get_request_id() or None,
    )
    return body.model_dump(by_alias=True, exclude_none=True)


def register_exception_handlers(app: FastAPI) -> None:
    """Register custom exception handlers for application errors."""

    @app.exception_handler(PolyQueryError)
    async def polyquery_error_handler(request: Request, exc: PolyQueryError) -> JSONResponse:
        """Map domain errors to their HTTP status, attaching raw generator text when present."""
        status_code = status_for(exc)
        log = logger.error if status_code >= 500 else logger.warning
        log("request_error", error_code=exc.error_code, error=exc.message, status_code=status_code)
        return JSONResponse(
            status_code=status_code,
            content=_error_body(exc.message, exc.error_code, getattr(exc, "raw_response", None)),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle malformed request bodies and query parameters."""
        messages = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=_error_body(messages or "Invalid request", "REQUEST_INVALID"),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        """Last-resort handler: log and answer 500 without taking the process down."""
        logger.exception("unhandled_exception", error_type=type(exc).__name__)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body(str(exc) or type(exc).__name__, "INTERNAL_ERROR"),
        )


def create_app(
    settings: Settings | None = None,
    generate_text: TextGenerator | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional settings; loaded from the environment when omitted.
        generate_text: Optional text generation step; the configured LLM
            client is used when omitted.
    """
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Natural-language queries over MongoDB, Excel and SQL sources",
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        openapi_url="/openapi.json" if settings.DEBUG else None,
        lifespan=build_lifespan(settings, generate_text),
    )

    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(sources_router)
    app.include_router(query_router)

    @app.get("/health", tags=["health"], response_model=OkResponse)
    async def health_check() -> OkResponse:
        """Basic liveness check."""
        return OkResponse()

    @app.get("/ready", tags=["health"])
    async def readiness_check() -> Any:
        """Readiness check: services are wired into application state."""
        checks = {
            name: hasattr(app.state, name) for name in ("registry", "schema_cache", "executor")
        }
        if all(checks.values()):
            return {
                "status": "ready",
                "cache": app.state.result_cache.get_stats(),
                "request_id": get_request_id(),
            }

        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready", **checks, "request_id": get_request_id()},
        )

    return app


# Lazy-loaded app for uvicorn deployment
# Usage: uvicorn polyquery.api.app:app --host 0.0.0.0 --port 4000
# Or with factory: uvicorn polyquery.api.app:create_app --factory
def __getattr__(name: str):
    """Lazy load the app when accessed.

    This prevents settings validation from running at import time,
    allowing tests to mock environment variables before app creation.
    """
    if name == "app":
        return create_app()
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
