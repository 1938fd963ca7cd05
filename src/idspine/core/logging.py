"""
idspine logging - structured logging for identity assignment runs.

Identifier assignment is an audit concern: when a pipeline later asks why a
record got a given identifier, the log line for the run must say which
policy kind, digest algorithm and dataset tag were in effect. This module
configures structlog so every event carries those keys as structured fields
rather than interpolated text.

Manifesto:
    - **Structured:** Key/value events, JSON for aggregation
    - **Correlated:** dataset_tag and run identifiers bound once per call
    - **Flexible:** Console output for development, JSON for production

Architecture:
    ::

        configure_logging(level="INFO", json_format=True, service="ingest")
            ↓
        structlog processor chain:
          1. merge_contextvars
          2. add_log_level
          3. TimeStamper (iso, utc)
          4. service metadata
          5. JSONRenderer (or ConsoleRenderer for dev)

        logger = get_logger(__name__)
        logger.info("identity_assignment_completed", records=1000, kind="composite")

Examples:
    >>> from idspine.core.logging import configure_logging, get_logger
    >>> configure_logging(level="INFO", json_format=True, service="ingest")
    >>> logger = get_logger(__name__)
    >>> logger.info("event_happened", dataset_tag="ds1", records=42)

Tags:
    logging, structlog, observability, json-logging, idspine

Doc-Types:
    - API Reference
    - Observability Guide
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

_SERVICE_NAME = "idspine"


def _add_service_metadata(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add service-level metadata to all logs."""
    event_dict.setdefault("service.name", _SERVICE_NAME)
    return event_dict


def _elasticsearch_compatible(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Make field names Elasticsearch/ECS compatible."""
    if "timestamp" in event_dict:
        event_dict["@timestamp"] = event_dict.pop("timestamp")

    if "level" in event_dict:
        event_dict["log.level"] = event_dict.pop("level")

    return event_dict


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "idspine",
) -> None:
    """Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: True for JSON, False for console, None for auto (JSON if not tty)
        service: Service name to include in logs
    """
    global _SERVICE_NAME
    _SERVICE_NAME = service

    if json_format is None:
        json_format = not sys.stdout.isatty()

    shared_processors: list[Processor] = [
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        _add_service_metadata,
    ]

    if json_format:
        shared_processors.append(_elasticsearch_compatible)
        shared_processors.append(structlog.processors.format_exc_info)
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        # Module-level loggers must follow later reconfiguration
        cache_logger_on_first_use=False,
    )


def configure_from_settings(settings: Any) -> None:
    """Configure logging from an ``IdentitySettings`` instance."""
    log_format = settings.log_format.lower()
    configure_logging(
        level=settings.log_level,
        json_format=None if log_format == "auto" else log_format == "json",
        service=settings.service_name,
    )


def get_logger(name: str | None = None) -> Any:
    """Get a structured logger.

    The name is bound lazily as the ``logger_name`` key of every event, so
    module-level loggers pick up configuration applied after import.

    Args:
        name: Logger name (usually __name__)
    """
    if name is None:
        return structlog.get_logger()
    return structlog.get_logger(name, logger_name=name)


def bind_context(**kwargs: Any) -> None:
    """Bind context to include in all subsequent logs.

    Example:
        bind_context(dataset_tag="ds1", run_id="abc123")
        logger.info("identity_assignment_started")  # Includes dataset_tag and run_id
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    """Remove specific keys from logging context."""
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    """Clear all bound context."""
    structlog.contextvars.clear_contextvars()


class LogContext:
    """Context manager for scoped logging context.

    Example:
        with LogContext(dataset_tag="ds1", policy_kind="composite"):
            logger.info("identity_assignment_started")
        # Context cleared here
    """

    def __init__(self, **kwargs: Any):
        self._context = kwargs

    def __enter__(self) -> LogContext:
        bind_context(**self._context)
        return self

    def __exit__(self, *args) -> None:
        unbind_context(*self._context.keys())


__all__ = [
    "configure_logging",
    "configure_from_settings",
    "get_logger",
    "bind_context",
    "unbind_context",
    "clear_context",
    "LogContext",
]
