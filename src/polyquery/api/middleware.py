"""Request id propagation and access logging."""

from __future__ import annotations

import time
import uuid
from collections.abc import Awaitable, Callable
from contextvars import ContextVar

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from polyquery.core.logging import get_logger

logger = get_logger("polyquery.api.request")

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

# Probed by orchestrators; not worth an access log line each time
QUIET_PATHS = ("/health", "/ready")


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tag every request with an id and bind it to structlog's context.

    An incoming ``X-Request-ID`` is reused, otherwise one is generated. The id
    is echoed back along with the handling time. Failures are logged by the
    application's exception handlers, which read the id via
    :func:`get_request_id`.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request_id_var.set(request_id)

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        if request.url.path not in QUIET_PATHS:
            logger.info(
                "request_completed",
                status_code=response.status_code,
                duration_ms=round(duration_ms, 2),
            )

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time-MS"] = f"{duration_ms:.2f}"
        return response


def get_request_id() -> str:
    """Get the current request ID from context."""
    return request_id_var.get()
