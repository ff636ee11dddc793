"""SQLite-backed log of AI responses."""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from datetime import UTC, datetime
from pathlib import Path
from types import TracebackType

from ..core.config import StorageSettings
from ..core.datetime_utils import parse_datetime, serialize_datetime
from ..core.interfaces import ResponseLogRepository
from ..core.models import AiResponseRecord

LOGGER = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS ai_responses (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    subject TEXT NOT NULL DEFAULT '',
    sender TEXT NOT NULL DEFAULT '',
    original_content TEXT NOT NULL DEFAULT '',
    ai_response TEXT NOT NULL DEFAULT '',
    keywords TEXT NOT NULL DEFAULT '[]',
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_ai_responses_created_at
    ON ai_responses (created_at);
"""

_SEARCH_COLUMNS = ("subject", "sender", "original_content", "ai_response")


class SqliteResponseLog(ResponseLogRepository):
    """Append-only store for AI responses using SQLite."""

    def __init__(self, settings: StorageSettings) -> None:
        """Open the database and create the schema when missing."""
        db_path = Path(settings.response_log_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._connection = sqlite3.connect(db_path, check_same_thread=False)
        self._connection.row_factory = sqlite3.Row
        self._connection.create_function(
            "casefold_text", 1, _casefold, deterministic=True
        )
        with self._connection:
            self._connection.executescript(_SCHEMA)

    # Context manager helpers -------------------------------------------------
    def __enter__(self) -> SqliteResponseLog:
        """Enter context manager scope."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Ensure the connection is closed when exiting context manager."""
        self.close()

    # ResponseLogRepository API -----------------------------------------------
    def save(self, record: AiResponseRecord) -> AiResponseRecord:
        """Append ``record`` and return it with ``id`` and timestamp set."""
        created_at = record.created_at or datetime.now(tz=UTC)
        with self._lock, self._connection:
            cursor = self._connection.execute(
                """
                INSERT INTO ai_responses (
                    subject,
                    sender,
                    original_content,
                    ai_response,
                    keywords,
                    created_at
                ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    record.subject or "",
                    record.sender or "",
                    record.original_content or "",
                    record.ai_response or "",
                    json.dumps(list(record.keywords), ensure_ascii=False),
                    serialize_datetime(created_at),
                ),
            )
        LOGGER.debug("Stored AI response %s", cursor.lastrowid)
        return AiResponseRecord(
            id=cursor.lastrowid,
            subject=record.subject or "",
            sender=record.sender or "",
            original_content=record.original_content or "",
            ai_response=record.ai_response or "",
            keywords=tuple(record.keywords),
            created_at=created_at,
        )

    def list_recent(self, limit: int | None = None) -> list[AiResponseRecord]:
        """Return stored responses, newest first."""
        query = "SELECT * FROM ai_responses ORDER BY id DESC"
        params: tuple[int, ...] = ()
        if limit is not None:
            query += " LIMIT ?"
            params = (limit,)
        with self._lock:
            rows = self._connection.execute(query, params).fetchall()
        return [_row_to_record(row) for row in rows]

    def search(self, query: str) -> list[AiResponseRecord]:
        """Return responses whose text fields contain ``query`` (case-insensitive)."""
        term = query.strip().casefold()
        if not term:
            return self.list_recent()
        pattern = "%" + _escape_like(term) + "%"
        clause = " OR ".join(
            f"casefold_text({column}) LIKE ? ESCAPE '\\'"
            for column in _SEARCH_COLUMNS
        )
        with self._lock:
            rows = self._connection.execute(
                f"SELECT * FROM ai_responses WHERE {clause} ORDER BY id DESC",
                (pattern,) * len(_SEARCH_COLUMNS),
            ).fetchall()
        return [_row_to_record(row) for row in rows]

    def close(self) -> None:
        """Close the underlying SQLite connection."""
        self._connection.close()


def _casefold(value: object) -> object:
    return value.casefold() if isinstance(value, str) else value


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _row_to_record(row: sqlite3.Row) -> AiResponseRecord:
    try:
        keywords = tuple(str(item) for item in json.loads(row["keywords"]))
    except (json.JSONDecodeError, TypeError):
        LOGGER.warning("Ignoring malformed keywords for AI response %s", row["id"])
        keywords = ()
    return AiResponseRecord(
        id=row["id"],
        subject=row["subject"],
        sender=row["sender"],
        original_content=row["original_content"],
        ai_response=row["ai_response"],
        keywords=keywords,
        created_at=parse_datetime(row["created_at"], assume_utc=True),
    )


__all__ = ["SqliteResponseLog"]
