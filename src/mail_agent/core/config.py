"""Application configuration models and loader utilities."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, cast

from dotenv import dotenv_values
from pydantic import BaseModel, Field, field_validator

DEFAULT_STOP_WORDS: tuple[str, ...] = (
    "이",
    "그",
    "저",
    "것",
    "수",
    "등",
    "및",
    "또는",
    "그리고",
    "하지만",
    "그래서",
    "때문에",
    "위해",
    "대해",
    "관련",
    "의",
    "가",
    "을",
    "를",
    "에",
    "로",
    "으로",
    "와",
    "과",
    "은",
    "는",
    "이런",
    "저런",
    "그런",
    "이러한",
    "저러한",
    "그러한",
    "이것",
    "저것",
    "그것",
    "the",
    "and",
    "or",
    "but",
    "an",
    "of",
    "to",
    "in",
    "on",
    "at",
    "for",
    "with",
    "from",
    "by",
    "is",
    "are",
    "was",
    "were",
    "be",
    "this",
    "that",
    "it",
    "as",
)

DEFAULT_VIP_SENDERS: tuple[str, ...] = (
    "ceo@company.com",
    "cto@company.com",
    "manager@company.com",
)

DEFAULT_IMPORTANT_KEYWORDS: tuple[str, ...] = (
    "긴급",
    "요청",
    "중요",
    "즉시",
    "ASAP",
    "urgent",
    "important",
    "request",
    "immediate",
)

DEFAULT_TOPIC_KEYWORDS: dict[str, tuple[str, ...]] = {
    "업무": ("회의", "보고서", "프로젝트", "업무", "일정", "회사", "부서"),
    "개인": ("개인", "사생활", "취미", "여가", "가족"),
    "공지사항": ("공지", "안내", "알림", "공고", "발표"),
    "마케팅": ("홍보", "마케팅", "광고", "캠페인", "판매"),
    "기타": (),
}


def _split_csv(value: Any) -> Any:
    """Accept comma separated strings for list-valued settings."""
    if isinstance(value, str):
        return tuple(item.strip() for item in value.split(",") if item.strip())
    return value


class LlmSettings(BaseModel):
    """Settings for the OpenAI-compatible chat completion provider."""

    base_url: str = Field(
        default="https://api.openai.com/v1",
        description="Provider base URL (OpenAI or https://api.deepseek.com/v1)",
    )
    api_key: str | None = Field(default=None, description="Provider API key")
    model: str = Field(default="gpt-3.5-turbo", description="Model identifier")
    timeout_seconds: float = Field(
        default=30.0, gt=0, description="Request timeout for LLM calls"
    )
    temperature: float = Field(
        default=0.3,
        ge=0.0,
        le=2.0,
        description="Sampling temperature for LLM completions",
    )
    max_output_tokens: int | None = Field(
        default=512,
        ge=32,
        description="Maximum tokens to request from the provider",
    )
    max_attempts: int = Field(
        default=2, ge=1, le=5, description="Attempts for transport failures"
    )
    json_mode: bool = Field(
        default=True, description="Request a JSON object response format"
    )

    @property
    def enabled(self) -> bool:
        """Return ``True`` when enough configuration exists to call the LLM."""
        return bool(self.api_key and self.base_url and self.model)


class AnalysisSettings(BaseModel):
    """Static tables and limits used by the local text analysis engine."""

    vip_senders: tuple[str, ...] = Field(
        default=DEFAULT_VIP_SENDERS, description="Exact-match VIP sender addresses"
    )
    important_keywords: tuple[str, ...] = Field(
        default=DEFAULT_IMPORTANT_KEYWORDS,
        description="Keywords raising the priority score",
    )
    stop_words: tuple[str, ...] = Field(
        default=DEFAULT_STOP_WORDS, description="Tokens ignored by keyword extraction"
    )
    topic_keywords: dict[str, tuple[str, ...]] = Field(
        default_factory=lambda: dict(DEFAULT_TOPIC_KEYWORDS),
        description="Ordered topic bucket table; first match wins",
    )
    fallback_topic: str = Field(
        default="기타", description="Topic assigned when no bucket matches"
    )
    keyword_top_k: int = Field(
        default=10, ge=1, description="Keywords requested from the LLM"
    )
    basic_keyword_top_k: int = Field(
        default=5, ge=1, description="Keywords kept by the local extractor"
    )
    max_workers: int = Field(
        default=4, ge=1, description="Concurrent per-message classifier calls"
    )

    @field_validator("vip_senders", "important_keywords", "stop_words", mode="before")
    @classmethod
    def _parse_csv(cls, value: Any) -> Any:
        return _split_csv(value)

    @field_validator("topic_keywords", mode="before")
    @classmethod
    def _parse_topics(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {name: _split_csv(words) for name, words in value.items()}
        return value


class StorageSettings(BaseModel):
    """Settings for local persistence."""

    response_log_path: Path = Field(
        default=Path("./logs/ai_responses.db"),
        description="SQLite database holding the AI response log",
    )


class LoggingSettings(BaseModel):
    """Logging preferences."""

    level: str = Field(default="INFO", description="Root logging level")
    structured: bool = Field(
        default=False, description="Toggle JSON structured logging"
    )


class AutoReplySettings(BaseModel):
    """Preferences applied when replies are generated for incoming mail."""

    mode: Literal["confirm", "auto"] = Field(
        default="confirm", description="Send replies directly or ask first"
    )
    response_style: str = Field(default="", description="Preferred reply tone")
    keywords: str = Field(default="", description="Keywords replies should cover")
    exclude_keywords: str = Field(
        default="", description="Keywords replies must avoid"
    )


class AppSettings(BaseModel):
    """Aggregated application configuration."""

    llm: LlmSettings = Field(default_factory=LlmSettings)
    analysis: AnalysisSettings = Field(default_factory=AnalysisSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    auto_reply: AutoReplySettings = Field(default_factory=AutoReplySettings)


ENV_PREFIX = "MAIL_AGENT_"


def _normalize_key(raw_key: str) -> list[str]:
    """Convert an environment variable key into a nested attribute path."""
    trimmed = raw_key.removeprefix(ENV_PREFIX)
    return [segment.lower() for segment in trimmed.split("__") if segment]


def _merge_into_tree(tree: dict[str, Any], path: list[str], value: Any) -> None:
    """Assign a value to a nested dictionary given a path."""
    cursor = tree
    for segment in path[:-1]:
        next_node = cursor.setdefault(segment, {})
        cursor = cast(dict[str, Any], next_node)
    cursor[path[-1]] = value


def _collect_env_values(
    env_file: Path | str | None, *, include_environment: bool = True
) -> dict[str, Any]:
    """Load configuration values from environment variables and optional file."""
    collected: dict[str, Any] = {}

    file_values = {}
    if env_file:
        env_path = Path(env_file)
        if env_path.is_file():
            file_values = {
                key: value
                for key, value in dotenv_values(env_path).items()
                if key and key.startswith(ENV_PREFIX)
            }

    env_values = {}
    if include_environment:
        env_values = {
            key: value
            for key, value in os.environ.items()
            if key.startswith(ENV_PREFIX)
        }

    combined: dict[str, Any] = {**file_values, **env_values}

    for key, value in combined.items():
        path = _normalize_key(key)
        if not path:
            continue
        normalized_value: Any = value
        if isinstance(value, str) and value == "":
            normalized_value = None
        elif isinstance(value, str):
            lowercase_value = value.lower()
            if lowercase_value == "true":
                normalized_value = True
            elif lowercase_value == "false":
                normalized_value = False
        _merge_into_tree(collected, path, normalized_value)

    return collected


@lru_cache(maxsize=1)
def load_app_settings(
    env_file: Path | str | None = None,
    include_environment: bool = True,
    **overrides: Any,
) -> AppSettings:
    """Load application settings, applying env files and overrides."""
    collected = _collect_env_values(env_file, include_environment=include_environment)
    if overrides:
        collected.update(overrides)
    return AppSettings.model_validate(collected)


__all__ = [
    "AnalysisSettings",
    "AppSettings",
    "AutoReplySettings",
    "LlmSettings",
    "LoggingSettings",
    "StorageSettings",
    "load_app_settings",
]
