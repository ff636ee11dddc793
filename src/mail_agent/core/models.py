"""Core domain models used across the application."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(slots=True)
class MailMessage:
    """Decoded mail fields consumed by the analysis engine."""

    subject: str = ""
    sender: str = ""
    date: datetime | str | None = None
    body: str = ""


@dataclass(slots=True, frozen=True)
class Keyword:
    """Normalised token with an importance score between 0 and 100."""

    text: str
    score: int


@dataclass(slots=True, frozen=True)
class PriorityScores:
    """Weighted sub-scores making up a priority score."""

    keyword_score: float = 0.0
    sender_score: float = 0.0
    subject_score: float = 0.0
    time_score: float = 0.0

    def total(self) -> float:
        """Return the sum of all sub-scores."""
        return (
            self.keyword_score + self.sender_score + self.subject_score + self.time_score
        )


@dataclass(slots=True, frozen=True)
class PriorityResult:
    """Priority score (0-100) with the sub-scores it was built from."""

    priority_score: float
    scores: PriorityScores


@dataclass(slots=True, frozen=True)
class TopicShare:
    """Percentage of messages assigned to a topic bucket."""

    name: str
    percentage: int


@dataclass(slots=True, frozen=True)
class IntentScore:
    """Confidence (0-1) that a message carries a given intent."""

    type: str
    confidence: float


@dataclass(slots=True)
class KeywordAnalysis:
    """Keywords for a text and the path that produced them."""

    keywords: tuple[Keyword, ...]
    provider: str
    used_fallback: bool


@dataclass(slots=True)
class TopicAnalysis:
    """Topic distribution over a batch of messages."""

    topics: tuple[TopicShare, ...]
    provider: str
    used_fallback: bool


@dataclass(slots=True)
class IntentAnalysis:
    """Intent confidences for a single message."""

    intents: tuple[IntentScore, ...]
    explanation: str
    provider: str
    used_fallback: bool


@dataclass(slots=True)
class PrioritizedMessage:
    """Message paired with its computed priority and optional explanation."""

    message: MailMessage
    priority: PriorityResult
    analysis: str


@dataclass(slots=True)
class MailStats:
    """Aggregate statistics over a batch of messages."""

    total_emails: int
    time_distribution: tuple[int, ...]
    topics: tuple[TopicShare, ...]


@dataclass(slots=True)
class AiResponseRecord:
    """Stored record of an AI response produced for a message."""

    id: int | None
    subject: str
    sender: str
    original_content: str
    ai_response: str
    keywords: tuple[str, ...] = field(default_factory=tuple)
    created_at: datetime | None = None


__all__ = [
    "AiResponseRecord",
    "IntentAnalysis",
    "IntentScore",
    "Keyword",
    "KeywordAnalysis",
    "MailMessage",
    "MailStats",
    "PrioritizedMessage",
    "PriorityResult",
    "PriorityScores",
    "TopicAnalysis",
    "TopicShare",
]
