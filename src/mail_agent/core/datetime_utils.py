"""Datetime helpers shared across the application."""

from __future__ import annotations

from datetime import UTC, datetime
from email.utils import parsedate_to_datetime

__all__ = [
    "serialize_datetime",
    "parse_datetime",
    "parse_mail_date",
    "is_same_calendar_day",
]


def serialize_datetime(value: datetime | None) -> str | None:
    """Serialise ``value`` to ISO 8601, normalising timezone-aware values."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.isoformat()
    return value.astimezone(UTC).isoformat()


def parse_datetime(value: str | None, *, assume_utc: bool = False) -> datetime | None:
    """Parse an ISO 8601 string into a ``datetime`` instance."""
    if value is None:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None and assume_utc:
        return parsed.replace(tzinfo=UTC)
    return parsed


def parse_mail_date(value: object) -> datetime | None:
    """Interpret a mail ``Date`` value, returning ``None`` when unparsable.

    Accepts ``datetime`` instances, RFC 2822 header strings and ISO 8601
    strings.
    """
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    try:
        return parsedate_to_datetime(text)
    except (TypeError, ValueError, IndexError):
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None


def is_same_calendar_day(value: datetime, now: datetime) -> bool:
    """Return ``True`` when ``value`` falls on the calendar day of ``now``.

    Aware values are converted to the zone of ``now``; naive values are
    compared as wall-clock dates.
    """
    try:
        if value.tzinfo is not None and now.tzinfo is not None:
            value = value.astimezone(now.tzinfo)
        elif value.tzinfo is not None:
            value = value.astimezone().replace(tzinfo=None)
    except (OverflowError, ValueError):
        return False
    return value.date() == now.date()
