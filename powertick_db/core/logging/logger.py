#!/usr/bin/env python3
"""
Structured Logging Module using structlog

This module provides structured logging for the database core with:
- Correlation ID propagation across one logical operation
- Stage identifiers for execution flow
- JSON formatting (orjson) for log aggregation
- Automatic secret redaction (passwords, access tokens)

Every connection-manager event carries ``correlation_id``, ``duration_ms``
and ``outcome`` so downstream observability can rebuild each operation.
"""

import logging
import re
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone

import orjson
import structlog
from structlog.types import EventDict, WrappedLogger

from powertick_db.core.config.settings import get_settings

# Context variable for the correlation ID of the current operation
correlation_id_ctx: ContextVar[str | None] = ContextVar("correlation_id", default=None)

_SECRET_KEYS = frozenset({"password", "token", "access_token", "pgpassword", "dsn"})
_BEARER_PATTERN = re.compile(r"\beyJ[\w-]+\.[\w-]+\.[\w-]+\b")
_DSN_PASSWORD_PATTERN = re.compile(r"(postgres(?:ql)?://[^:/\s]+:)[^@\s]+@")


def add_correlation_id(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Add correlation ID to log event from context variable.

    STAGE-L.1: Correlation ID injection
    """
    correlation_id = correlation_id_ctx.get()
    if correlation_id and "correlation_id" not in event_dict:
        event_dict["correlation_id"] = correlation_id
    return event_dict


def add_timestamp(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Add ISO timestamp to log event.

    STAGE-L.2: Timestamp injection
    """
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    return event_dict


def redact_secrets(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Redact credentials from log events.

    STAGE-L.3: Secret redaction

    Redacted:
    - Values of keys named like passwords/tokens → [REDACTED]
    - JWT-looking access tokens inside messages → [TOKEN]
    - Passwords embedded in postgres:// DSNs → [REDACTED]
    """
    for key in list(event_dict):
        if key.lower() in _SECRET_KEYS and event_dict[key] is not None:
            event_dict[key] = "[REDACTED]"

    message = event_dict.get("event", "")
    if isinstance(message, str):
        message = _BEARER_PATTERN.sub("[TOKEN]", message)
        message = _DSN_PASSWORD_PATTERN.sub(r"\1[REDACTED]@", message)
        event_dict["event"] = message

    return event_dict


def add_log_level_name(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Upper-case the log level.

    STAGE-L.4: Log level injection
    """
    if "level" in event_dict:
        event_dict["level"] = event_dict["level"].upper()
    return event_dict


def _orjson_dumps(obj, **kwargs) -> str:
    return orjson.dumps(obj, default=str).decode("utf-8")


def setup_logging(log_level: str | None = None, log_format: str | None = None) -> None:
    """
    Setup structured logging with structlog.

    STAGE-L: Logging initialization

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Log format ('json' or 'console')
    """
    settings = get_settings()

    log_level = log_level or settings.logging.LOG_LEVEL
    log_format = log_format or settings.logging.LOG_FORMAT

    logging.basicConfig(
        format="%(message)s", stream=sys.stdout, level=getattr(logging, log_level.upper())
    )

    if log_format == "json":
        renderer = structlog.processors.JSONRenderer(serializer=_orjson_dumps)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_correlation_id,
            add_timestamp,
            structlog.stdlib.add_log_level,
            add_log_level_name,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            redact_secrets,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Usage:
        logger = get_logger(__name__)
        logger.info("message", key="value", stage="DB.1")
    """
    return structlog.get_logger(name)


def new_correlation_id() -> str:
    """Generate a fresh correlation ID."""
    return uuid.uuid4().hex


def set_correlation_id(correlation_id: str | None = None) -> str:
    """
    Set the correlation ID for the current context.

    Args:
        correlation_id: ID to use; a new one is generated when omitted

    Returns:
        The correlation ID now in effect
    """
    correlation_id = correlation_id or new_correlation_id()
    correlation_id_ctx.set(correlation_id)
    return correlation_id


def get_correlation_id() -> str | None:
    """Get the correlation ID of the current context, if any."""
    return correlation_id_ctx.get()


def ensure_correlation_id() -> str:
    """Return the current correlation ID, creating one if none is set."""
    return correlation_id_ctx.get() or set_correlation_id()


def clear_correlation_id() -> None:
    """Clear the correlation ID at the end of request processing."""
    correlation_id_ctx.set(None)


def log_stage(
    logger: structlog.stdlib.BoundLogger, stage: str, message: str, level: str = "info", **kwargs
) -> None:
    """
    Log a message with stage information.

    Usage:
        log_stage(logger, Stage.POOL_INIT, "Pool ready", max_size=5)
    """
    log_func = getattr(logger, level.lower())
    log_func(message, stage=stage, **kwargs)
