"""Tests for logging utilities."""

from __future__ import annotations

import json
import logging

from mail_agent.core.config import LoggingSettings
from mail_agent.core.logging import JsonLineFormatter, configure_logging


def test_configure_logging_sets_root_level() -> None:
    """configure_logging should set the root logger level according to settings."""

    settings = LoggingSettings(level="DEBUG", structured=False)
    configure_logging(settings)
    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("httpx").level == logging.WARNING


def test_structured_logging_uses_json_formatter() -> None:
    configure_logging(LoggingSettings(level="INFO", structured=True))

    handlers = logging.getLogger().handlers
    assert any(isinstance(handler.formatter, JsonLineFormatter) for handler in handlers)


def test_json_line_formatter_renders_one_object() -> None:
    record = logging.LogRecord(
        name="mail_agent.test",
        level=logging.WARNING,
        pathname=__file__,
        lineno=1,
        msg="폴백 사용: %s",
        args=("quota",),
        exc_info=None,
    )

    payload = json.loads(JsonLineFormatter().format(record))

    assert payload["level"] == "WARNING"
    assert payload["logger"] == "mail_agent.test"
    assert payload["message"] == "폴백 사용: quota"
    assert "exc_info" not in payload
