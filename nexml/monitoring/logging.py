"""
NexML Marketplace - Structured Logging

structlog over the stdlib logging module.

- JSON lines in production, coloured console output otherwise
- Every entry carries the service name and version
- Registry operations bind ``operation``, ``operation_id`` and ``caller``
  so the component logs of one call can be grouped
- Credential-like keys (Redis password, id salt) are masked
"""

from __future__ import annotations

import logging
import re
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

import structlog
from structlog.typing import EventDict, Processor, WrappedLogger

from nexml import __version__

SERVICE_NAME = "nexml-marketplace"
REDACTED = "[REDACTED]"

SENSITIVE_KEYS = frozenset({
    "password",
    "secret",
    "token",
    "api_key",
    "authorization",
    "private_key",
    "id_salt",
})

_ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;]*m")
_MAX_DEPTH = 10


# =============================================================================
# Processors
# =============================================================================

def add_timestamp(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Stamp the entry with an ISO8601 UTC time."""
    event_dict["timestamp"] = datetime.now(UTC).isoformat()
    return event_dict


def add_service_info(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    event_dict["service"] = SERVICE_NAME
    event_dict["version"] = __version__
    return event_dict


def _is_sensitive(key: Any) -> bool:
    return isinstance(key, str) and any(s in key.lower() for s in SENSITIVE_KEYS)


def _redact(value: Any, depth: int = 0) -> Any:
    if depth > _MAX_DEPTH:
        return value
    if isinstance(value, dict):
        return {
            k: REDACTED if _is_sensitive(k) else _redact(v, depth + 1)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [_redact(item, depth + 1) for item in value]
    return value


def sanitize_sensitive_data(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Mask values stored under credential-like keys, at any nesting depth."""
    result: EventDict = _redact(event_dict)
    return result


def _strip_ansi(value: Any) -> Any:
    if isinstance(value, str):
        return _ANSI_ESCAPE.sub("", value)
    if isinstance(value, dict):
        return {k: _strip_ansi(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_strip_ansi(item) for item in value]
    return value


def drop_color_codes(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Remove ANSI colour codes before JSON rendering."""
    result: EventDict = _strip_ansi(event_dict)
    return result


# =============================================================================
# Configuration
# =============================================================================

def _build_processors(
    json_output: bool,
    include_timestamps: bool,
    include_service_info: bool,
    sanitize_logs: bool,
) -> list[Processor]:
    processors: list[Processor] = []
    if include_service_info:
        processors.append(add_service_info)
    if include_timestamps:
        processors.append(add_timestamp)

    processors += [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.contextvars.merge_contextvars,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if sanitize_logs:
        processors.append(sanitize_sensitive_data)

    if json_output:
        processors += [
            drop_color_codes,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=True,
                exception_formatter=structlog.dev.rich_traceback,
            )
        )
    return processors


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
    include_timestamps: bool = True,
    include_service_info: bool = True,
    sanitize_logs: bool = True,
) -> None:
    """
    Configure structured logging for the registry.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: Render JSON lines instead of console output
        include_timestamps: Add an ISO8601 ``timestamp`` field
        include_service_info: Add ``service`` and ``version`` fields
        sanitize_logs: Mask credential-like fields
    """
    structlog.configure(
        processors=_build_processors(
            json_output, include_timestamps, include_service_info, sanitize_logs
        ),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper()),
    )

    # redis-py logs every connection at DEBUG
    logging.getLogger("redis").setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """Get a structlog logger (``name`` defaults to the caller's module)."""
    bound_logger: structlog.BoundLogger = structlog.get_logger(name)
    return bound_logger


# =============================================================================
# Context
# =============================================================================

def bind_context(**kwargs: Any) -> None:
    """Bind fields that appear in every later entry of this context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


@contextmanager
def operation_context(operation: str, caller: str | None = None, **fields: Any) -> Iterator[str]:
    """
    Bind registry-call fields for the duration of one operation.

    Yields the generated ``operation_id``. Previously bound values are
    restored on exit.
    """
    operation_id = str(uuid4())
    bound: dict[str, Any] = {"operation": operation, "operation_id": operation_id, **fields}
    if caller is not None:
        bound["caller"] = caller

    with structlog.contextvars.bound_contextvars(**bound):
        yield operation_id


@contextmanager
def log_duration(
    logger: structlog.BoundLogger,
    operation: str,
    level: str = "info",
    **extra_context: Any,
) -> Iterator[None]:
    """
    Log how long a block took as ``<operation>_completed`` or
    ``<operation>_failed``; exceptions are re-raised.

    Usage:
        with log_duration(logger, "services_init", backend="redis"):
            init_marketplace_service(settings=settings)
    """
    started = time.monotonic()

    def elapsed_ms() -> float:
        return round((time.monotonic() - started) * 1000, 2)

    try:
        yield
    except Exception as e:
        logger.error(f"{operation}_failed", duration_ms=elapsed_ms(), error=str(e), **extra_context)
        raise
    getattr(logger, level)(f"{operation}_completed", duration_ms=elapsed_ms(), **extra_context)


__all__ = [
    "configure_logging",
    "get_logger",
    "bind_context",
    "unbind_context",
    "clear_context",
    "operation_context",
    "log_duration",
    "add_timestamp",
    "add_service_info",
    "sanitize_sensitive_data",
    "drop_color_codes",
]
