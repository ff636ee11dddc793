"""Local text analysis engine bound to the configured lookup tables."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from mail_agent.core.config import AnalysisSettings
from mail_agent.core.models import Keyword, MailMessage, PriorityResult, TopicShare

from .keywords import extract_keywords
from .priority import calculate_priority
from .topics import classify_topic, classify_topics_basic, hour_distribution


class TextAnalysisEngine:
    """Deterministic keyword, priority and topic analysis.

    The engine holds only read-only configuration, so a single instance can
    serve concurrent callers.
    """

    def __init__(self, settings: AnalysisSettings | None = None) -> None:
        self._settings = settings or AnalysisSettings()
        self._stop_words = frozenset(self._settings.stop_words)
        self._vip_senders = tuple(self._settings.vip_senders)
        self._important_keywords = tuple(self._settings.important_keywords)
        self._topic_table = {
            name: tuple(words) for name, words in self._settings.topic_keywords.items()
        }

    @property
    def settings(self) -> AnalysisSettings:
        return self._settings

    def extract_keywords(self, text: object, top_k: int | None = None) -> list[Keyword]:
        """Return frequency keywords; ``top_k`` defaults to the basic limit."""
        limit = self._settings.basic_keyword_top_k if top_k is None else top_k
        return extract_keywords(text, limit, stop_words=self._stop_words)

    def calculate_priority(
        self, message: MailMessage, *, now: datetime | None = None
    ) -> PriorityResult:
        return calculate_priority(
            message, self._vip_senders, self._important_keywords, now=now
        )

    def classify_topic(self, message: MailMessage) -> str:
        return classify_topic(
            message, self._topic_table, fallback_topic=self._settings.fallback_topic
        )

    def classify_topics(self, messages: Sequence[MailMessage]) -> list[TopicShare]:
        return classify_topics_basic(
            messages, self._topic_table, fallback_topic=self._settings.fallback_topic
        )

    def hour_distribution(self, messages: Sequence[MailMessage]) -> list[int]:
        return hour_distribution(messages)


__all__ = ["TextAnalysisEngine"]
