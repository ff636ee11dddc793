"""Tests for the fallback chain in the mail analysis service."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import time
from datetime import datetime, timezone

import pytest

from mail_agent.core.models import (
    AiResponseRecord,
    IntentScore,
    Keyword,
    MailMessage,
    TopicShare,
)
from mail_agent.intelligence.engine import TextAnalysisEngine
from mail_agent.intelligence.llm import LLMError, QuotaExceededError
from mail_agent.intelligence.service import LOCAL_PROVIDER, MailAnalysisService

NOW = datetime(2026, 10, 19, 15, 0, tzinfo=timezone.utc)
MEETING_TEXT = "긴급 회의 요청 드립니다. 회의 자료를 준비해주세요. 회의는 오후 3시입니다."


class StubClassifier:
    """Classifier stub that either answers or raises the configured error."""

    provider_id = "stub-llm"

    def __init__(self, error: Exception | None = None, *, delay: bool = False) -> None:
        self.error = error
        self.delay = delay
        self.calls: list[tuple[str, object]] = []

    def _check(self, task: str, argument: object) -> None:
        self.calls.append((task, argument))
        if self.error is not None:
            raise self.error

    def extract_keywords(self, text: str, top_k: int) -> list[Keyword]:
        self._check("keywords", top_k)
        first = text.split()[0]
        if self.delay:
            # Later messages finish first so ordering is exercised.
            time.sleep(0.05 / (len(first) or 1))
        return [Keyword(text=first, score=100)]

    def classify_topics(self, messages) -> list[TopicShare]:
        self._check("topics", len(messages))
        return [TopicShare("업무", 100)]

    def classify_intent(self, message: MailMessage) -> tuple[list[IntentScore], str]:
        self._check("intent", message.subject)
        return [IntentScore("업무", 0.8)], "업무 관련"

    def explain_priority(self, message: MailMessage) -> str:
        self._check("priority", message.subject)
        return "중요한 메일"


class ListLog:
    """In-memory response log sink."""

    def __init__(self, error: Exception | None = None) -> None:
        self.records: list[AiResponseRecord] = []
        self.error = error

    def save(self, record: AiResponseRecord) -> AiResponseRecord:
        if self.error is not None:
            raise self.error
        self.records.append(record)
        return record

    def list_recent(self, limit: int | None = None) -> list[AiResponseRecord]:
        return list(reversed(self.records))[:limit]

    def search(self, query: str) -> list[AiResponseRecord]:
        return []

    def close(self) -> None:
        return None


def _service(classifier=None, response_log=None) -> MailAnalysisService:
    return MailAnalysisService(
        TextAnalysisEngine(), classifier, response_log=response_log
    )


def _mail(subject: str, sender: str = "a@example.com", **extra: object) -> MailMessage:
    return MailMessage(subject=subject, sender=sender, **extra)  # type: ignore[arg-type]


def test_local_keywords_without_classifier() -> None:
    analysis = _service().extract_keywords(MEETING_TEXT)

    assert analysis.provider == LOCAL_PROVIDER
    assert not analysis.used_fallback
    assert analysis.keywords[0] == Keyword("회의", 100)
    assert len(analysis.keywords) == 5


def test_classifier_keywords_are_preferred_and_logged() -> None:
    classifier = StubClassifier()
    sink = ListLog()
    message = _mail("회의 안내", body="내일 회의")

    analysis = _service(classifier, sink).extract_keywords(
        "회의 안내", message=message
    )

    assert analysis.provider == "stub-llm"
    assert not analysis.used_fallback
    assert classifier.calls == [("keywords", 10)]
    assert sink.records[0].subject == "회의 안내"
    assert sink.records[0].keywords == ("회의",)


def test_quota_error_falls_back_quietly(caplog: pytest.LogCaptureFixture) -> None:
    classifier = StubClassifier(QuotaExceededError("insufficient_quota"))

    with caplog.at_level(logging.INFO):
        analysis = _service(classifier).extract_keywords(MEETING_TEXT)

    assert analysis.used_fallback
    assert analysis.provider == LOCAL_PROVIDER
    assert analysis.keywords[0] == Keyword("회의", 100)
    record = next(r for r in caplog.records if "falling back" in r.getMessage())
    assert record.levelno == logging.INFO


@pytest.mark.parametrize(
    "error", [LLMError("network down"), ValueError("LLM output was not valid JSON")]
)
def test_other_errors_fall_back_with_warning(
    error: Exception, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level(logging.INFO):
        analysis = _service(StubClassifier(error)).extract_keywords(MEETING_TEXT)

    assert analysis.used_fallback
    record = next(r for r in caplog.records if "falling back" in r.getMessage())
    assert record.levelno == logging.WARNING


def test_unexpected_exception_still_falls_back() -> None:
    analysis = _service(StubClassifier(RuntimeError("bug"))).extract_keywords("hello hi")

    assert analysis.used_fallback
    assert analysis.keywords == (Keyword("hello", 100), Keyword("hi", 100))


def test_explicit_top_k_applies_to_both_paths() -> None:
    classifier = StubClassifier(LLMError("down"))

    analysis = _service(classifier).extract_keywords(MEETING_TEXT, 2)

    assert classifier.calls == [("keywords", 2)]
    assert len(analysis.keywords) == 2


def test_topics_fall_back_to_local_buckets() -> None:
    messages = [_mail("회의 일정") for _ in range(3)] + [_mail("점심") for _ in range(7)]

    analysis = _service(StubClassifier(QuotaExceededError("quota"))).classify_topics(
        messages
    )

    assert analysis.used_fallback
    shares = {topic.name: topic.percentage for topic in analysis.topics}
    assert shares["업무"] == 30
    assert shares["기타"] == 70


def test_empty_topic_batch_skips_classifier() -> None:
    classifier = StubClassifier()

    analysis = _service(classifier).classify_topics([])

    assert classifier.calls == []
    assert all(topic.percentage == 0 for topic in analysis.topics)


def test_intent_fallback_reports_zero_confidence() -> None:
    analysis = _service(StubClassifier(LLMError("down"))).classify_intent(_mail("hi"))

    assert analysis.used_fallback
    assert [intent.type for intent in analysis.intents] == ["업무", "스팸", "광고", "기타"]
    assert all(intent.confidence == 0 for intent in analysis.intents)
    assert analysis.explanation == "분석 결과 없음"


def test_intent_from_classifier() -> None:
    analysis = _service(StubClassifier()).classify_intent(_mail("hi"))

    assert not analysis.used_fallback
    assert analysis.explanation == "업무 관련"


def test_prioritize_attaches_explanation_only_when_available() -> None:
    message = _mail("긴급 요청", sender="ceo@company.com", date=NOW, body="...")

    with_llm = _service(StubClassifier()).prioritize(message, now=NOW)
    without_llm = _service(StubClassifier(LLMError("down"))).prioritize(message, now=NOW)

    assert with_llm.analysis == "중요한 메일"
    assert without_llm.analysis == "분석 결과 없음"
    assert with_llm.priority.priority_score == pytest.approx(76)
    assert without_llm.priority == with_llm.priority


def test_prioritize_batch_sorts_by_score() -> None:
    messages = [
        _mail("hello", date=NOW),
        _mail("긴급 요청", sender="ceo@company.com", date=NOW),
        _mail("요청", date=NOW),
    ]
    service = _service()

    descending = asyncio.run(service.prioritize_batch(messages, now=NOW))
    ascending = asyncio.run(
        service.prioritize_batch(messages, descending=False, now=NOW)
    )

    assert [item.message.subject for item in descending] == ["긴급 요청", "요청", "hello"]
    assert [item.message.subject for item in ascending] == ["hello", "요청", "긴급 요청"]


def test_keyword_batch_preserves_input_order() -> None:
    subjects = ["a", "bb", "ccc", "dddd", "eeeee"]
    messages = [_mail(subject, body="본문") for subject in subjects]

    results = asyncio.run(
        _service(StubClassifier(delay=True)).extract_keywords_batch(messages)
    )

    assert [result.keywords[0].text for result in results] == subjects


def test_batch_of_nothing_returns_empty_list() -> None:
    assert asyncio.run(_service().classify_intents_batch([])) == []


def test_response_log_failure_does_not_break_analysis() -> None:
    sink = ListLog(sqlite3.OperationalError("database is locked"))

    analysis = _service(StubClassifier(), sink).extract_keywords(
        "회의", message=_mail("회의")
    )

    assert not analysis.used_fallback
    assert sink.records == []


def test_mail_stats_combines_hours_and_topics() -> None:
    messages = [
        _mail("회의", date=datetime(2026, 10, 19, 10, 0)),
        _mail("광고 안내", date=datetime(2026, 10, 19, 10, 30)),
        _mail("잡담", date="invalid"),
    ]

    stats = _service().mail_stats(messages)

    assert stats.total_emails == 3
    assert stats.time_distribution[10] == 2
    shares = {topic.name: topic.percentage for topic in stats.topics}
    assert shares == {"업무": 33, "공지사항": 33, "기타": 33, "개인": 0, "마케팅": 0}
