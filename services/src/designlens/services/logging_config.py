"""Structured logging helpers for DesignLens services."""

from __future__ import annotations

import json
import logging
import logging.config
import re
from datetime import datetime, timezone
from typing import Any, Dict, Mapping

_SENSITIVE_KEY_PATTERN = re.compile(r"(token|key|secret|authorization|password)", re.IGNORECASE)
_REDACTED = "[REDACTED]"


def _scrub_value(value: Any, *, key: str | None = None) -> Any:
    if key is not None and _SENSITIVE_KEY_PATTERN.search(key):
        return _REDACTED
    if isinstance(value, Mapping):
        return {str(k): _scrub_value(v, key=str(k)) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_scrub_value(item) for item in value]
    return value


def scrub_payload(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of ``payload`` with credential-like fields redacted."""

    return {str(key): _scrub_value(value, key=str(key)) for key, value in payload.items()}


class JsonFormatter(logging.Formatter):
    """Simple JSON formatter for structured logs."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        extra = getattr(record, "extra_payload", None)
        if isinstance(extra, Mapping):
            payload.update(scrub_payload(extra))
        return json.dumps(payload, ensure_ascii=False, default=str)


LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "json": {
            "()": "designlens.services.logging_config.JsonFormatter",
        }
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "json",
        }
    },
    "loggers": {
        "uvicorn.access": {"handlers": ["console"], "level": "INFO", "propagate": False},
        "uvicorn.error": {"handlers": ["console"], "level": "INFO", "propagate": False},
        "designlens.services": {"handlers": ["console"], "level": "INFO", "propagate": False},
    },
    "root": {
        "handlers": ["console"],
        "level": "WARNING",
    },
}


def configure_logging(level: str | None = None) -> None:
    """Apply the structured logging configuration."""

    logging.config.dictConfig(LOGGING_CONFIG)
    if level:
        logging.getLogger("designlens.services").setLevel(level.upper())


__all__ = ["JsonFormatter", "LOGGING_CONFIG", "configure_logging", "scrub_payload"]
