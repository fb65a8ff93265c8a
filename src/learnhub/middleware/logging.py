"""Structured logging configuration with structlog.

Application code logs through structlog; the few modules that use stdlib
``logging`` directly end up on the same root handler.
"""

from __future__ import annotations

import logging
from typing import Any

import structlog

from learnhub.config import Settings

# Event keys whose values must never reach a log sink
SECRET_KEYS = frozenset(
    {"password", "password_hash", "access_token", "refresh_token", "authorization", "jwt_secret"}
)
_REDACTED = "[redacted]"


def redact_secrets(_logger: Any, _method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:  # noqa: ANN401
    """Replace credential values with a marker."""
    for key in event_dict.keys() & SECRET_KEYS:
        event_dict[key] = _REDACTED
    return event_dict


def setup_logging(settings: Settings) -> None:
    """Configure structlog for JSON (deployed) or console (local, tests) output."""
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if settings.log_format == "json" else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            redact_secrets,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(message)s")
    logging.getLogger("learnhub").setLevel(level)

    # SQL echo only when debugging
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if settings.debug else logging.WARNING)
