"""Logging configuration for the auto-send service.

Events are rendered as JSON through stdlib logging. The root level comes from
``AUTOSEND_LOG_LEVEL`` and applies to structlog events as well, since
``filter_by_level`` drops them before rendering.
"""

from __future__ import annotations

import logging
from typing import Any

import structlog

_SECRET_KEYS = ("api_key", "token", "secret", "password", "authorization")


def resolve_level(level: int | str) -> int:
    """Map a level name such as ``"debug"`` to its numeric value."""

    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.strip().upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {level}")
    return value


def redact_secrets(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Mask values whose key names look like credentials."""

    for key in list(event_dict):
        if any(marker in key.lower() for marker in _SECRET_KEYS):
            event_dict[key] = "***REDACTED***"
    return event_dict


def configure_logging(level: int | str = logging.INFO) -> None:
    """Configure stdlib logging and route structlog through it as JSON."""
    numeric_level = resolve_level(level)
    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s %(levelname)s %(message)s",
    )
    # basicConfig is a no-op once handlers exist; the level still follows settings.
    logging.getLogger().setLevel(numeric_level)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            redact_secrets,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


__all__ = ["configure_logging", "redact_secrets", "resolve_level"]
