"""LLM-backed classifier whose answers are validated before use."""

from __future__ import annotations

import json
import re
from collections.abc import Sequence

from pydantic import BaseModel, Field

from mail_agent.core.interfaces import ExternalClassifier
from mail_agent.core.models import IntentScore, Keyword, MailMessage, TopicShare

from .llm import LLMClient
from .prompts import (
    build_intent_prompt,
    build_keyword_prompt,
    build_priority_prompt,
    build_topic_prompt,
)

NO_ANALYSIS = "분석 결과 없음"
INTENT_LABELS: tuple[tuple[str, str], ...] = (
    ("business", "업무"),
    ("spam", "스팸"),
    ("ad", "광고"),
    ("other", "기타"),
)

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class _KeywordItem(BaseModel):
    text: str = Field(min_length=1)
    score: int = Field(ge=0, le=100)


class _KeywordPayload(BaseModel):
    keywords: list[_KeywordItem]


class _TopicItem(BaseModel):
    name: str = Field(min_length=1)
    percentage: int = Field(ge=0, le=100)


class _TopicPayload(BaseModel):
    topics: list[_TopicItem]


class _IntentPayload(BaseModel):
    business: float = Field(default=0.0, ge=0.0, le=1.0)
    spam: float = Field(default=0.0, ge=0.0, le=1.0)
    ad: float = Field(default=0.0, ge=0.0, le=1.0)
    other: float = Field(default=0.0, ge=0.0, le=1.0)
    explanation: str | None = None


class _PriorityPayload(BaseModel):
    score: float | None = None
    explanation: str | None = None


class LLMClassifier(ExternalClassifier):
    """Ask the LLM for keywords, topics and intents.

    Raises ``LLMError`` when the provider fails and ``ValueError`` when the
    reply is not the JSON shape that was asked for.
    """

    def __init__(self, llm_client: LLMClient) -> None:
        self._llm_client = llm_client

    @property
    def provider_id(self) -> str:
        return self._llm_client.provider_id

    def extract_keywords(self, text: str, top_k: int) -> list[Keyword]:
        raw = self._llm_client.complete(*build_keyword_prompt(text, top_k))
        payload = _KeywordPayload.model_validate(_load_json(raw))
        keywords = [
            Keyword(text=item.text.strip(), score=item.score)
            for item in payload.keywords
        ]
        keywords.sort(key=lambda keyword: keyword.score, reverse=True)
        return keywords[:top_k]

    def classify_topics(self, messages: Sequence[MailMessage]) -> list[TopicShare]:
        raw = self._llm_client.complete(*build_topic_prompt(messages))
        payload = _TopicPayload.model_validate(_load_json(raw))
        topics = [
            TopicShare(name=item.name.strip(), percentage=item.percentage)
            for item in payload.topics
        ]
        topics.sort(key=lambda topic: topic.percentage, reverse=True)
        return topics

    def classify_intent(self, message: MailMessage) -> tuple[list[IntentScore], str]:
        raw = self._llm_client.complete(*build_intent_prompt(message))
        payload = _IntentPayload.model_validate(_load_json(raw))
        intents = [
            IntentScore(type=label, confidence=getattr(payload, key))
            for key, label in INTENT_LABELS
        ]
        return intents, (payload.explanation or NO_ANALYSIS).strip()

    def explain_priority(self, message: MailMessage) -> str:
        raw = self._llm_client.complete(*build_priority_prompt(message))
        payload = _PriorityPayload.model_validate(_load_json(raw))
        return (payload.explanation or NO_ANALYSIS).strip()


def _load_json(raw: str) -> object:
    cleaned = _CODE_FENCE.sub("", raw.strip())
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise ValueError("LLM output was not valid JSON") from exc


__all__ = ["INTENT_LABELS", "LLMClassifier", "NO_ANALYSIS"]
