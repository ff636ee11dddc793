"""Persistence backends."""

from .response_log import SqliteResponseLog

__all__ = ["SqliteResponseLog"]
