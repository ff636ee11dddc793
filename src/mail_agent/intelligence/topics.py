"""Rule-based topic bucketing and time-of-day statistics."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence

from mail_agent.core.config import DEFAULT_TOPIC_KEYWORDS
from mail_agent.core.datetime_utils import parse_mail_date
from mail_agent.core.models import MailMessage, TopicShare

from .text import percentage

DEFAULT_FALLBACK_TOPIC = "기타"
HOURS_PER_DAY = 24

TopicTable = Mapping[str, Sequence[str]]


def classify_topic(
    message: MailMessage,
    table: TopicTable = DEFAULT_TOPIC_KEYWORDS,
    *,
    fallback_topic: str = DEFAULT_FALLBACK_TOPIC,
) -> str:
    """Return the first topic in ``table`` with a keyword found in ``message``."""
    haystack = _build_haystack(message)
    for topic, keywords in table.items():
        if any(keyword.lower() in haystack for keyword in keywords if keyword):
            return topic
    return fallback_topic


def classify_topics_basic(
    messages: Sequence[MailMessage],
    table: TopicTable = DEFAULT_TOPIC_KEYWORDS,
    *,
    fallback_topic: str = DEFAULT_FALLBACK_TOPIC,
) -> list[TopicShare]:
    """Return the share of ``messages`` per topic, highest percentage first.

    Every topic of ``table`` is reported, so an empty batch yields all zeros.
    Percentages are rounded independently and may not sum to exactly 100.
    """
    counts: dict[str, int] = {topic: 0 for topic in table}
    counts.setdefault(fallback_topic, 0)

    for message in messages:
        counts[classify_topic(message, table, fallback_topic=fallback_topic)] += 1

    total = len(messages)
    shares = [
        TopicShare(name=topic, percentage=percentage(count, total))
        for topic, count in counts.items()
    ]
    shares.sort(key=lambda share: share.percentage, reverse=True)
    return shares


def hour_distribution(messages: Iterable[MailMessage]) -> list[int]:
    """Count messages per hour of day; undated messages are skipped."""
    buckets = [0] * HOURS_PER_DAY
    for message in messages:
        sent_at = parse_mail_date(message.date)
        if sent_at is None:
            continue
        if sent_at.tzinfo is not None:
            try:
                sent_at = sent_at.astimezone()
            except (OverflowError, ValueError):
                continue
        buckets[sent_at.hour] += 1
    return buckets


def _build_haystack(message: MailMessage) -> str:
    subject = message.subject if isinstance(message.subject, str) else ""
    body = message.body if isinstance(message.body, str) else ""
    return f"{subject} {body}".lower()


__all__ = [
    "DEFAULT_FALLBACK_TOPIC",
    "classify_topic",
    "classify_topics_basic",
    "hour_distribution",
]
