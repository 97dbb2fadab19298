"""Structured logging configuration with structlog.

API and executor code log through structlog event names; the adapters and
stores use plain ``logging`` with ``extra=`` fields. Both end up rendered by
the same structlog renderer so the ``extra`` fields are not lost.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING, Any

import structlog
from structlog.types import Processor

if TYPE_CHECKING:
    from polyquery.core.config import Settings

# Driver loggers that are too chatty below WARNING
QUIET_LOGGERS = ("pymongo", "openpyxl", "httpx", "httpcore", "openai")


def add_service_context(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Add service metadata to all log entries."""
    event_dict.setdefault("service", "polyquery")
    return event_dict


def _stdlib_handler(renderer_chain: list[Processor]) -> logging.Handler:
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.ExtraAdder(),
            add_service_context,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
        ],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *renderer_chain,
        ],
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    return handler


def configure_logging(settings: Settings | None = None) -> None:
    """Configure structlog and route stdlib records through the same renderer.

    Args:
        settings: Application settings. If None, uses defaults.
    """
    if settings is None:
        from polyquery.core.config import get_settings

        settings = get_settings()

    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    is_development = settings.ENVIRONMENT == "development"
    is_tty = sys.stderr.isatty()

    common_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        add_service_context,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    renderer_chain: list[Processor]
    if is_development and is_tty:
        renderer_chain = [structlog.dev.ConsoleRenderer(colors=True)]
        log_factory = structlog.PrintLoggerFactory()
    else:
        renderer_chain = [
            structlog.processors.format_exc_info,
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]
        log_factory = structlog.WriteLoggerFactory()

    structlog.configure(
        processors=[*common_processors, *renderer_chain],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=log_factory,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(handlers=[_stdlib_handler(renderer_chain)], level=log_level, force=True)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a configured structlog logger.

    Args:
        name: Logger name. If None, uses caller's module name.

    Returns:
        Configured bound logger with context support.
    """
    return structlog.get_logger(name)
