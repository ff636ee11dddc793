"""Logging configuration helpers."""

from __future__ import annotations

import json
import logging
import logging.config
from typing import Any

from .config import LoggingSettings

_PLAIN_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


class JsonLineFormatter(logging.Formatter):
    """Render each record as a single JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "time": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def _formatter_config(structured: bool) -> dict[str, Any]:
    """Return the dictConfig fragment for the selected formatter."""
    if structured:
        return {"()": JsonLineFormatter}
    return {"format": _PLAIN_FORMAT}


def configure_logging(settings: LoggingSettings) -> None:
    """Configure application logging according to provided settings."""
    dict_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": _formatter_config(settings.structured),
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "level": settings.level,
            },
        },
        "root": {
            "handlers": ["console"],
            "level": settings.level,
        },
        "loggers": {
            "httpx": {"level": "WARNING"},
        },
    }

    logging.config.dictConfig(dict_config)


__all__ = ["JsonLineFormatter", "configure_logging"]
