"""Protocol interfaces for decoupling components."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from .models import (
    AiResponseRecord,
    IntentScore,
    Keyword,
    MailMessage,
    TopicShare,
)


class ExternalClassifier(Protocol):
    """Remote classifier that can supersede the local analysis engine.

    Implementations raise ``LLMError`` (or ``QuotaExceededError``) when the
    provider fails and ``ValueError`` when its answer has an unexpected shape.
    """

    @property
    def provider_id(self) -> str:
        """Identifier describing the backing model/provider."""
        raise NotImplementedError

    def extract_keywords(self, text: str, top_k: int) -> Sequence[Keyword]:
        """Return the ``top_k`` most important keywords of ``text``."""
        raise NotImplementedError

    def classify_topics(self, messages: Sequence[MailMessage]) -> Sequence[TopicShare]:
        """Return the topic distribution of ``messages``."""
        raise NotImplementedError

    def classify_intent(
        self, message: MailMessage
    ) -> tuple[Sequence[IntentScore], str]:
        """Return intent confidences and a short explanation."""
        raise NotImplementedError

    def explain_priority(self, message: MailMessage) -> str:
        """Return a short explanation of how important ``message`` is."""
        raise NotImplementedError


class ResponseLogRepository(Protocol):
    """Append-only sink for AI responses."""

    def save(self, record: AiResponseRecord) -> AiResponseRecord:
        """Store ``record`` and return it with its identifier populated."""
        raise NotImplementedError

    def list_recent(self, limit: int | None = None) -> list[AiResponseRecord]:
        """Return stored records, newest first."""
        raise NotImplementedError

    def search(self, query: str) -> list[AiResponseRecord]:
        """Return records whose text fields contain ``query``."""
        raise NotImplementedError

    def close(self) -> None:
        """Close database connections if necessary."""
        raise NotImplementedError


__all__ = ["ExternalClassifier", "ResponseLogRepository"]
