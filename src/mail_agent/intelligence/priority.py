"""Weighted multi-factor priority scoring for emails."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from mail_agent.core.datetime_utils import is_same_calendar_day, parse_mail_date
from mail_agent.core.models import MailMessage, PriorityResult, PriorityScores

KEYWORD_WEIGHT = 0.4
SENDER_WEIGHT = 0.3
SUBJECT_WEIGHT = 0.2
TIME_WEIGHT = 0.1
KEYWORD_SATURATION = 5
URGENT_SUBJECT_MARKERS: tuple[str, ...] = ("긴급", "요청")


def calculate_priority(
    message: MailMessage,
    vip_senders: Iterable[str],
    important_keywords: Iterable[str],
    *,
    now: datetime | None = None,
) -> PriorityResult:
    """Return a priority score from 0 (low) to 100 (high) for ``message``."""
    subject = _lowered(message.subject)
    body = _lowered(message.body)
    sender = _lowered(message.sender).strip()

    matches = 0
    for keyword in important_keywords:
        needle = keyword.lower()
        if needle and (needle in subject or needle in body):
            matches += 1
    keyword_score = min(matches / KEYWORD_SATURATION, 1) * KEYWORD_WEIGHT

    vip = {entry.lower().strip() for entry in vip_senders}
    sender_score = SENDER_WEIGHT if sender and sender in vip else 0.0

    subject_score = (
        SUBJECT_WEIGHT
        if any(marker in subject for marker in URGENT_SUBJECT_MARKERS)
        else 0.0
    )

    time_score = 0.0
    sent_at = parse_mail_date(message.date)
    if sent_at is not None:
        reference = now or datetime.now().astimezone()
        if is_same_calendar_day(sent_at, reference):
            time_score = TIME_WEIGHT

    scores = PriorityScores(
        keyword_score=keyword_score,
        sender_score=sender_score,
        subject_score=subject_score,
        time_score=time_score,
    )
    total = round(scores.total() * 100, 2)
    return PriorityResult(priority_score=max(0.0, min(total, 100.0)), scores=scores)


def _lowered(value: object) -> str:
    return value.lower() if isinstance(value, str) else ""


__all__ = [
    "KEYWORD_SATURATION",
    "KEYWORD_WEIGHT",
    "SENDER_WEIGHT",
    "SUBJECT_WEIGHT",
    "TIME_WEIGHT",
    "URGENT_SUBJECT_MARKERS",
    "calculate_priority",
]
