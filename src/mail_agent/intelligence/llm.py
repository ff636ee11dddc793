"""LLM client abstractions used by intelligence features."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Protocol
from urllib.parse import urljoin, urlparse

import httpx

from mail_agent.core.config import LlmSettings

LOGGER = logging.getLogger(__name__)

QUOTA_ERROR_CODES = frozenset({"insufficient_quota", "rate_limit_exceeded"})


class LLMError(RuntimeError):
    """Raised when the LLM provider fails to respond as expected."""


class QuotaExceededError(LLMError):
    """Raised when the provider rejects a request because a usage limit was hit."""


class LLMClient(Protocol):
    """Protocol describing the minimal LLM client behaviour."""

    @property
    def provider_id(self) -> str:
        """Identifier describing the backing model/provider."""
        raise NotImplementedError

    def complete(self, system_prompt: str, user_prompt: str) -> str:
        """Return the raw text completion for the supplied prompts."""
        raise NotImplementedError


@dataclass(slots=True)
class ChatCompletionClient:
    """Thin synchronous client for OpenAI-compatible chat completion APIs.

    OpenAI and DeepSeek expose the same ``/chat/completions`` contract, so the
    provider is selected purely through ``base_url``, ``model`` and ``api_key``.
    """

    settings: LlmSettings
    http_client: httpx.Client | None = None
    retry_delay_cap: float = 8.0
    _owns_client: bool = field(default=False, init=False)

    def __post_init__(self) -> None:
        if self.http_client is None:
            self.http_client = httpx.Client(timeout=self.settings.timeout_seconds)
            self._owns_client = True

    def complete(self, system_prompt: str, user_prompt: str) -> str:
        """Send a chat completion request and return the message content."""
        client = self.http_client
        if client is None:
            raise LLMError("LLM HTTP client is not configured")
        endpoint = _resolve_endpoint(self.settings.base_url)
        payload: dict[str, Any] = {
            "model": self.settings.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": self.settings.temperature,
        }
        if self.settings.max_output_tokens is not None:
            payload["max_tokens"] = self.settings.max_output_tokens
        if self.settings.json_mode:
            payload["response_format"] = {"type": "json_object"}
        headers = {"Authorization": f"Bearer {self.settings.api_key or ''}"}

        response: httpx.Response | None = None
        last_error: Exception | None = None
        attempts = self.settings.max_attempts
        for attempt in range(1, attempts + 1):
            try:
                response = client.post(
                    endpoint,
                    json=payload,
                    headers=headers,
                    timeout=self.settings.timeout_seconds,
                )
                break
            except httpx.TransportError as exc:
                last_error = exc
                LOGGER.debug(
                    "LLM request attempt %s/%s failed: %s", attempt, attempts, exc
                )

            if attempt < attempts:
                time.sleep(min(2**attempt, self.retry_delay_cap))

        if response is None:
            raise LLMError("LLM request failed after retries") from last_error

        if response.is_error:
            raise _error_from_response(response)

        try:
            data = response.json()
        except json.JSONDecodeError as exc:
            raise LLMError("LLM returned invalid JSON") from exc

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise LLMError("LLM response missing 'choices[0].message.content'") from exc
        if not isinstance(content, str):
            raise LLMError("LLM response content is not text")
        return content

    def close(self) -> None:
        """Close the underlying HTTP client when this instance created it."""
        if self._owns_client and self.http_client is not None:
            self.http_client.close()

    @property
    def provider_id(self) -> str:
        """Return a human readable identifier for the configured model."""
        host = urlparse(self.settings.base_url).hostname or "llm"
        return f"{host}:{self.settings.model}"


def is_quota_error(code: object, message: object, status_code: int | None) -> bool:
    """Return ``True`` when an error payload signals quota or rate exhaustion."""
    if status_code == httpx.codes.TOO_MANY_REQUESTS:
        return True
    if isinstance(code, str) and code in QUOTA_ERROR_CODES:
        return True
    return isinstance(message, str) and "quota" in message.lower()


def _error_from_response(response: httpx.Response) -> LLMError:
    code: object = None
    message: object = None
    try:
        body = response.json()
    except json.JSONDecodeError:
        body = None
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        code = body["error"].get("code")
        message = body["error"].get("message")

    detail = message if isinstance(message, str) else response.reason_phrase
    text = f"LLM provider returned HTTP {response.status_code}: {detail}"
    if is_quota_error(code, message, response.status_code):
        return QuotaExceededError(text)
    return LLMError(text)


def _resolve_endpoint(base_url: str) -> str:
    trimmed = base_url.rstrip("/") + "/"
    return urljoin(trimmed, "chat/completions")


__all__ = [
    "ChatCompletionClient",
    "LLMClient",
    "LLMError",
    "QuotaExceededError",
    "is_quota_error",
]
