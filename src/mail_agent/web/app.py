"""FastAPI application exposing the mail analysis services as JSON."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from datetime import datetime
from typing import Any, Literal

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi import status as http_status
from pydantic import BaseModel, ConfigDict, Field

from mail_agent.core import AppSettings, load_app_settings
from mail_agent.core.config import AutoReplySettings
from mail_agent.core.datetime_utils import parse_mail_date, serialize_datetime
from mail_agent.core.models import (
    AiResponseRecord,
    IntentAnalysis,
    KeywordAnalysis,
    MailMessage,
    PrioritizedMessage,
    PriorityResult,
    TopicShare,
)
from mail_agent.intelligence import (
    ChatCompletionClient,
    LLMClassifier,
    LLMClient,
    MailAnalysisService,
    TextAnalysisEngine,
)
from mail_agent.storage import SqliteResponseLog

LOGGER = logging.getLogger(__name__)

MAX_TOP_K = 50
MAX_BATCH = 100
DEFAULT_LOG_LIMIT = 100


class MessagePayload(BaseModel):
    """Decoded mail fields supplied by the caller."""

    model_config = ConfigDict(populate_by_name=True)

    subject: str = ""
    sender: str = Field(default="", alias="from")
    date: str | None = None
    body: str = ""

    def to_message(self) -> MailMessage:
        return MailMessage(
            subject=self.subject, sender=self.sender, date=self.date, body=self.body
        )


class KeywordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str = ""
    top_k: int | None = Field(default=None, alias="topK", ge=1, le=MAX_TOP_K)


class MessagesRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    messages: list[MessagePayload] = Field(default_factory=list, max_length=MAX_BATCH)
    top_k: int | None = Field(default=None, alias="topK", ge=1, le=MAX_TOP_K)


class PriorityRequest(MessagesRequest):
    sort: Literal["desc", "asc"] = "desc"


class AiLogRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    subject: str = ""
    sender: str = Field(default="", alias="from")
    original_content: str = Field(default="", alias="originalContent")
    ai_response: str = Field(default="", alias="aiResponse")
    keywords: list[str] = Field(default_factory=list)


class AutoReplyUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    mode: Literal["confirm", "auto"] | None = None
    response_style: str | None = Field(default=None, alias="responseStyle")
    keywords: str | None = None
    exclude_keywords: str | None = Field(default=None, alias="excludeKeywords")


def create_app(settings: AppSettings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    app_settings = settings or load_app_settings()
    app = FastAPI(title="Mail Agent")

    response_log = SqliteResponseLog(app_settings.storage)
    llm_client = (
        ChatCompletionClient(app_settings.llm) if app_settings.llm.enabled else None
    )
    app.state.response_log = response_log
    app.state.llm_client = llm_client
    app.state.service = build_analysis_service(
        app_settings, response_log, llm_client=llm_client
    )
    app.state.auto_reply = app_settings.auto_reply.model_copy()

    @app.on_event("shutdown")
    async def shutdown_event() -> None:
        """Close the response log and LLM client on app shutdown."""
        response_log.close()
        if llm_client is not None:
            llm_client.close()
        LOGGER.info("Response log and LLM client closed")

    @app.post("/api/keywords")
    async def keywords(
        payload: KeywordRequest,
        service: MailAnalysisService = Depends(get_service),  # noqa: B008
    ) -> dict[str, Any]:
        """Extract keywords from free text."""
        analysis = await asyncio.to_thread(
            service.extract_keywords, payload.text, payload.top_k
        )
        return _serialize_keyword_analysis(analysis)

    @app.post("/api/keywords/mails")
    async def mail_keywords(
        payload: MessagesRequest,
        service: MailAnalysisService = Depends(get_service),  # noqa: B008
    ) -> list[dict[str, Any]]:
        """Extract keywords for each supplied message."""
        messages = [item.to_message() for item in payload.messages]
        results = await service.extract_keywords_batch(messages, payload.top_k)
        return [
            {**_serialize_message(message), **_serialize_keyword_analysis(analysis)}
            for message, analysis in zip(messages, results)
        ]

    @app.post("/api/priority")
    async def priority(
        payload: PriorityRequest,
        service: MailAnalysisService = Depends(get_service),  # noqa: B008
    ) -> list[dict[str, Any]]:
        """Score and sort the supplied messages by priority."""
        messages = [item.to_message() for item in payload.messages]
        results = await service.prioritize_batch(
            messages, descending=payload.sort == "desc"
        )
        return [_serialize_prioritized(item) for item in results]

    @app.post("/api/intents")
    async def intents(
        payload: MessagesRequest,
        service: MailAnalysisService = Depends(get_service),  # noqa: B008
    ) -> list[dict[str, Any]]:
        """Classify the intent of each supplied message."""
        messages = [item.to_message() for item in payload.messages]
        results = await service.classify_intents_batch(messages)
        return [
            {**_serialize_message(message), **_serialize_intent(analysis)}
            for message, analysis in zip(messages, results)
        ]

    @app.post("/api/topics")
    async def topics(
        payload: MessagesRequest,
        service: MailAnalysisService = Depends(get_service),  # noqa: B008
    ) -> dict[str, Any]:
        """Return the topic distribution of the supplied messages."""
        messages = [item.to_message() for item in payload.messages]
        analysis = await asyncio.to_thread(service.classify_topics, messages)
        return {
            "topics": [_serialize_topic(topic) for topic in analysis.topics],
            "provider": analysis.provider,
            "usedFallback": analysis.used_fallback,
        }

    @app.post("/api/stats")
    async def stats(
        payload: MessagesRequest,
        service: MailAnalysisService = Depends(get_service),  # noqa: B008
    ) -> dict[str, Any]:
        """Return hourly and topic statistics for the supplied messages."""
        messages = [item.to_message() for item in payload.messages]
        result = await asyncio.to_thread(service.mail_stats, messages)
        return {
            "totalEmails": result.total_emails,
            "timeDistribution": {
                "labels": [f"{hour}시" for hour in range(len(result.time_distribution))],
                "data": list(result.time_distribution),
            },
            "topicDistribution": {
                "labels": [topic.name for topic in result.topics],
                "data": [topic.percentage for topic in result.topics],
            },
        }

    @app.get("/api/ai-logs")
    async def list_ai_logs(
        limit: int = Query(default=DEFAULT_LOG_LIMIT, ge=1, le=1000),
        log: SqliteResponseLog = Depends(get_response_log),  # noqa: B008
    ) -> list[dict[str, Any]]:
        """Return stored AI responses, newest first."""
        records = await asyncio.to_thread(_guarded, log.list_recent, limit)
        return [_serialize_record(record) for record in records]

    @app.get("/api/ai-logs/search")
    async def search_ai_logs(
        q: str = "",
        log: SqliteResponseLog = Depends(get_response_log),  # noqa: B008
    ) -> list[dict[str, Any]]:
        """Search stored AI responses by subject, sender or content."""
        records = await asyncio.to_thread(_guarded, log.search, q)
        return [_serialize_record(record) for record in records]

    @app.post("/api/ai-logs")
    async def create_ai_log(
        payload: AiLogRequest,
        log: SqliteResponseLog = Depends(get_response_log),  # noqa: B008
    ) -> dict[str, Any]:
        """Append an AI response to the log."""
        record = AiResponseRecord(
            id=None,
            subject=payload.subject,
            sender=payload.sender,
            original_content=payload.original_content,
            ai_response=payload.ai_response,
            keywords=tuple(payload.keywords),
        )
        stored = await asyncio.to_thread(_guarded, log.save, record)
        return {"success": True, "id": stored.id}

    @app.get("/api/auto-reply/settings")
    async def get_auto_reply_settings(request: Request) -> dict[str, Any]:
        """Return the current auto-reply preferences."""
        return _serialize_auto_reply(request.app.state.auto_reply)

    @app.post("/api/auto-reply/settings")
    async def update_auto_reply_settings(
        payload: AutoReplyUpdate, request: Request
    ) -> dict[str, Any]:
        """Merge the supplied auto-reply preferences into the current ones."""
        current: AutoReplySettings = request.app.state.auto_reply
        changes = payload.model_dump(exclude_none=True)
        request.app.state.auto_reply = current.model_copy(update=changes)
        return {"success": True}

    return app


def build_analysis_service(
    settings: AppSettings,
    response_log: SqliteResponseLog | None = None,
    *,
    llm_client: LLMClient | None = None,
) -> MailAnalysisService:
    """Assemble the analysis service, enabling the LLM only when configured.

    The caller owns ``llm_client``; one is created when it is omitted and an
    API key is configured.
    """
    engine = TextAnalysisEngine(settings.analysis)
    classifier = None
    if llm_client is None and settings.llm.enabled:
        llm_client = ChatCompletionClient(settings.llm)
    if llm_client is not None:
        classifier = LLMClassifier(llm_client)
    else:
        LOGGER.info("LLM API key not configured; using local analysis only")
    return MailAnalysisService(
        engine,
        classifier,
        response_log=response_log,
        max_workers=settings.analysis.max_workers,
    )


def get_service(request: Request) -> MailAnalysisService:
    return request.app.state.service


def get_response_log(request: Request) -> SqliteResponseLog:
    return request.app.state.response_log


def _guarded(func: Any, *args: Any) -> Any:
    try:
        return func(*args)
    except sqlite3.Error as exc:
        LOGGER.exception("AI response log operation failed")
        raise HTTPException(
            status_code=http_status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="AI response log is unavailable.",
        ) from exc


def _serialize_message(message: MailMessage) -> dict[str, Any]:
    date = message.date
    if isinstance(date, datetime):
        date = serialize_datetime(date)
    return {
        "subject": message.subject,
        "from": message.sender,
        "date": date,
        "hasValidDate": parse_mail_date(message.date) is not None,
    }


def _serialize_keyword_analysis(analysis: KeywordAnalysis) -> dict[str, Any]:
    return {
        "keywords": [
            {"text": keyword.text, "score": keyword.score}
            for keyword in analysis.keywords
        ],
        "provider": analysis.provider,
        "usedFallback": analysis.used_fallback,
    }


def _serialize_priority(result: PriorityResult) -> dict[str, Any]:
    return {
        "priorityScore": result.priority_score,
        "scores": {
            "keywordScore": result.scores.keyword_score,
            "senderScore": result.scores.sender_score,
            "subjectScore": result.scores.subject_score,
            "timeScore": result.scores.time_score,
        },
    }


def _serialize_prioritized(item: PrioritizedMessage) -> dict[str, Any]:
    return {
        **_serialize_message(item.message),
        **_serialize_priority(item.priority),
        "analysis": item.analysis,
    }


def _serialize_intent(analysis: IntentAnalysis) -> dict[str, Any]:
    return {
        "intents": [
            {"type": intent.type, "confidence": intent.confidence}
            for intent in analysis.intents
        ],
        "analysis": analysis.explanation,
        "provider": analysis.provider,
        "usedFallback": analysis.used_fallback,
    }


def _serialize_topic(topic: TopicShare) -> dict[str, Any]:
    return {"name": topic.name, "percentage": topic.percentage}


def _serialize_record(record: AiResponseRecord) -> dict[str, Any]:
    return {
        "id": record.id,
        "subject": record.subject,
        "from": record.sender,
        "originalContent": record.original_content,
        "aiResponse": record.ai_response,
        "keywords": list(record.keywords),
        "timestamp": serialize_datetime(record.created_at),
    }


def _serialize_auto_reply(settings: AutoReplySettings) -> dict[str, Any]:
    return {
        "mode": settings.mode,
        "responseStyle": settings.response_style,
        "keywords": settings.keywords,
        "excludeKeywords": settings.exclude_keywords,
    }


__all__ = ["build_analysis_service", "create_app"]
