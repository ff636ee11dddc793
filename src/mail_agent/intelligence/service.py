"""Services that combine LLM output with deterministic fallbacks."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime
from typing import TypeVar

from mail_agent.core.interfaces import ExternalClassifier, ResponseLogRepository
from mail_agent.core.models import (
    AiResponseRecord,
    IntentAnalysis,
    IntentScore,
    Keyword,
    KeywordAnalysis,
    MailMessage,
    MailStats,
    PrioritizedMessage,
    TopicAnalysis,
)

from .classifier import INTENT_LABELS, NO_ANALYSIS
from .engine import TextAnalysisEngine
from .llm import LLMError, QuotaExceededError
from .text import strip_html

LOGGER = logging.getLogger(__name__)

LOCAL_PROVIDER = "local"

T = TypeVar("T")


class MailAnalysisService:
    """Run the external classifier first and fall back to the local engine."""

    def __init__(
        self,
        engine: TextAnalysisEngine,
        classifier: ExternalClassifier | None = None,
        *,
        response_log: ResponseLogRepository | None = None,
        max_workers: int | None = None,
    ) -> None:
        """Wire the local engine with an optional classifier and log sink."""
        self._engine = engine
        self._classifier = classifier
        self._response_log = response_log
        self._max_workers = max_workers or engine.settings.max_workers

    @property
    def engine(self) -> TextAnalysisEngine:
        return self._engine

    # Single message operations ----------------------------------------------
    def extract_keywords(
        self,
        text: str,
        top_k: int | None = None,
        *,
        message: MailMessage | None = None,
    ) -> KeywordAnalysis:
        """Return keywords for ``text``, preferring the external classifier."""
        settings = self._engine.settings
        if self._classifier is not None:
            limit = settings.keyword_top_k if top_k is None else top_k
            keywords = self._attempt(
                "keyword extraction",
                lambda: self._classifier.extract_keywords(text, limit),
            )
            if keywords is not None:
                result = KeywordAnalysis(
                    keywords=tuple(keywords),
                    provider=self._classifier.provider_id,
                    used_fallback=False,
                )
                if message is not None:
                    self._record_response(message, result.keywords)
                return result

        limit = settings.basic_keyword_top_k if top_k is None else top_k
        return KeywordAnalysis(
            keywords=tuple(self._engine.extract_keywords(text, limit)),
            provider=LOCAL_PROVIDER,
            used_fallback=self._classifier is not None,
        )

    def classify_topics(self, messages: Sequence[MailMessage]) -> TopicAnalysis:
        """Return the topic distribution of ``messages``."""
        if self._classifier is not None and messages:
            topics = self._attempt(
                "topic classification",
                lambda: self._classifier.classify_topics(messages),
            )
            if topics is not None:
                return TopicAnalysis(
                    topics=tuple(topics),
                    provider=self._classifier.provider_id,
                    used_fallback=False,
                )

        return TopicAnalysis(
            topics=tuple(self._engine.classify_topics(messages)),
            provider=LOCAL_PROVIDER,
            used_fallback=self._classifier is not None,
        )

    def classify_intent(self, message: MailMessage) -> IntentAnalysis:
        """Return intent confidences; all zero when the classifier is unavailable."""
        if self._classifier is not None:
            outcome = self._attempt(
                "intent classification",
                lambda: self._classifier.classify_intent(message),
            )
            if outcome is not None:
                intents, explanation = outcome
                return IntentAnalysis(
                    intents=tuple(intents),
                    explanation=explanation,
                    provider=self._classifier.provider_id,
                    used_fallback=False,
                )

        return IntentAnalysis(
            intents=tuple(
                IntentScore(type=label, confidence=0.0) for _key, label in INTENT_LABELS
            ),
            explanation=NO_ANALYSIS,
            provider=LOCAL_PROVIDER,
            used_fallback=True,
        )

    def prioritize(
        self, message: MailMessage, *, now: datetime | None = None
    ) -> PrioritizedMessage:
        """Score ``message`` locally and attach the classifier's explanation."""
        priority = self._engine.calculate_priority(message, now=now)
        analysis = NO_ANALYSIS
        if self._classifier is not None:
            explanation = self._attempt(
                "priority analysis",
                lambda: self._classifier.explain_priority(message),
            )
            if explanation:
                analysis = explanation
        return PrioritizedMessage(message=message, priority=priority, analysis=analysis)

    def mail_stats(self, messages: Sequence[MailMessage]) -> MailStats:
        """Return counts per hour of day alongside the topic distribution."""
        return MailStats(
            total_emails=len(messages),
            time_distribution=tuple(self._engine.hour_distribution(messages)),
            topics=self.classify_topics(messages).topics,
        )

    # Batch operations -------------------------------------------------------
    async def extract_keywords_batch(
        self, messages: Sequence[MailMessage], top_k: int | None = None
    ) -> list[KeywordAnalysis]:
        """Extract keywords for each message concurrently, preserving order."""
        return await self._gather(
            messages,
            lambda message: self.extract_keywords(
                f"{message.subject}\n{strip_html(message.body or '')}",
                top_k,
                message=message,
            ),
        )

    async def classify_intents_batch(
        self, messages: Sequence[MailMessage]
    ) -> list[IntentAnalysis]:
        """Classify intents for each message concurrently, preserving order."""
        return await self._gather(messages, self.classify_intent)

    async def prioritize_batch(
        self,
        messages: Sequence[MailMessage],
        *,
        descending: bool = True,
        now: datetime | None = None,
    ) -> list[PrioritizedMessage]:
        """Score every message and sort the results by priority score."""
        results = await self._gather(
            messages, lambda message: self.prioritize(message, now=now)
        )
        results.sort(key=lambda item: item.priority.priority_score, reverse=descending)
        return results

    # Internal helpers -------------------------------------------------------
    def _attempt(self, task: str, call: Callable[[], T]) -> T | None:
        """Run ``call`` and return ``None`` when the local path should take over."""
        try:
            return call()
        except QuotaExceededError as exc:
            LOGGER.info(
                "LLM quota exhausted during %s, falling back to local analysis: %s",
                task,
                exc,
            )
        except (LLMError, ValueError) as exc:
            LOGGER.warning(
                "Unexpected LLM failure during %s, falling back to local analysis: %s",
                task,
                exc,
            )
        except Exception:  # noqa: BLE001 - the local path must still answer
            LOGGER.exception(
                "LLM call raised unexpectedly during %s, using local analysis", task
            )
        return None

    async def _gather(
        self, messages: Sequence[MailMessage], work: Callable[[MailMessage], T]
    ) -> list[T]:
        if not messages:
            return []
        loop = asyncio.get_running_loop()
        workers = min(self._max_workers, len(messages))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            tasks = [
                loop.run_in_executor(executor, work, message) for message in messages
            ]
            return list(await asyncio.gather(*tasks))

    def _record_response(
        self, message: MailMessage, keywords: Sequence[Keyword]
    ) -> None:
        if self._response_log is None:
            return
        record = AiResponseRecord(
            id=None,
            subject=message.subject,
            sender=message.sender,
            original_content=message.body,
            ai_response=", ".join(f"{item.text} ({item.score})" for item in keywords),
            keywords=tuple(item.text for item in keywords),
            created_at=datetime.now(tz=UTC),
        )
        try:
            self._response_log.save(record)
        except sqlite3.Error as exc:
            LOGGER.warning("Failed to store AI response for %r: %s", message.subject, exc)


__all__ = ["LOCAL_PROVIDER", "MailAnalysisService"]
