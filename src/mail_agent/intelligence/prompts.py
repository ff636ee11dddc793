"""Prompt templates for LLM-driven mail analysis."""

from __future__ import annotations

import json
from collections.abc import Sequence
from textwrap import dedent

from mail_agent.core.models import MailMessage

MAX_BODY_CHARS = 2000
MAX_BATCH_BODY_CHARS = 500

KEYWORD_SYSTEM_PROMPT = dedent(
    """
    다음 텍스트에서 가장 중요한 키워드를 추출하고, 각 키워드의 중요도를 0-100 사이의
    정수 점수로 평가해주세요. 응답은 다른 설명 없이 JSON 객체 하나로만 해주세요.
    """
).strip()

TOPIC_SYSTEM_PROMPT = dedent(
    """
    다음 메일 목록을 분석하여 주요 주제와 각 주제의 비율을 계산해주세요.
    응답은 JSON 형식으로 해주세요: {"topics": [{"name": "주제1", "percentage": 30}, ...]}
    """
).strip()

INTENT_SYSTEM_PROMPT = dedent(
    """
    다음 메일의 의도를 분석해주세요. 각 의도 유형(업무, 스팸, 광고, 기타)에 대한
    신뢰도를 0-1 사이의 값으로 제공해주세요. 응답은 JSON 형식으로 해주세요:
    {"business": 0.0, "spam": 0.0, "ad": 0.0, "other": 0.0, "explanation": "..."}
    """
).strip()

PRIORITY_SYSTEM_PROMPT = dedent(
    """
    다음 메일의 중요도를 분석해주세요. 업무적 중요도, 긴급성, 처리 우선순위를 고려하여
    0-1 사이의 점수로 평가해주세요. 응답은 JSON 형식으로 해주세요:
    {"score": 0.0, "explanation": "..."}
    """
).strip()


def build_keyword_prompt(text: str, top_k: int) -> tuple[str, str]:
    """Return the system and user prompts for keyword extraction."""
    system = (
        f"{KEYWORD_SYSTEM_PROMPT}\n"
        f"키워드는 최대 {top_k}개까지 반환하고 다음 형식을 따르세요: "
        '{"keywords": [{"text": "키워드1", "score": 90}, ...]}'
    )
    return system, text[:MAX_BODY_CHARS]


def build_topic_prompt(messages: Sequence[MailMessage]) -> tuple[str, str]:
    """Return the system and user prompts for batch topic classification."""
    payload = [
        {
            "subject": message.subject,
            "from": message.sender,
            "body": (message.body or "")[:MAX_BATCH_BODY_CHARS],
        }
        for message in messages
    ]
    return TOPIC_SYSTEM_PROMPT, json.dumps(payload, ensure_ascii=False)


def build_intent_prompt(message: MailMessage) -> tuple[str, str]:
    """Return the system and user prompts for intent classification."""
    return INTENT_SYSTEM_PROMPT, _describe_message(message)


def build_priority_prompt(message: MailMessage) -> tuple[str, str]:
    """Return the system and user prompts for the importance explanation."""
    return PRIORITY_SYSTEM_PROMPT, _describe_message(message)


def _describe_message(message: MailMessage) -> str:
    body = (message.body or "")[:MAX_BODY_CHARS]
    return f"제목: {message.subject}\n보낸 사람: {message.sender}\n내용: {body}"


__all__ = [
    "build_intent_prompt",
    "build_keyword_prompt",
    "build_priority_prompt",
    "build_topic_prompt",
]
