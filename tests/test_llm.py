"""Tests for the OpenAI-compatible chat completion client."""

from __future__ import annotations

import json

import httpx
import pytest

from mail_agent.core.config import LlmSettings
from mail_agent.intelligence.llm import (
    ChatCompletionClient,
    LLMError,
    QuotaExceededError,
    is_quota_error,
)


def _settings(**overrides: object) -> LlmSettings:
    values: dict[str, object] = {
        "base_url": "https://api.deepseek.com/v1",
        "api_key": "secret",
        "model": "deepseek-chat",
        "max_attempts": 1,
    }
    values.update(overrides)
    return LlmSettings(**values)  # type: ignore[arg-type]


def _client(handler, **overrides: object) -> ChatCompletionClient:
    http_client = httpx.Client(transport=httpx.MockTransport(handler))
    return ChatCompletionClient(
        _settings(**overrides), http_client=http_client, retry_delay_cap=0
    )


def _completion(content: str) -> dict[str, object]:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def test_complete_returns_message_content() -> None:
    seen: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["payload"] = json.loads(request.content)
        return httpx.Response(200, json=_completion('{"keywords": []}'))

    client = _client(handler)

    assert client.complete("system", "user") == '{"keywords": []}'
    assert seen["url"] == "https://api.deepseek.com/v1/chat/completions"
    assert seen["auth"] == "Bearer secret"
    payload = seen["payload"]
    assert isinstance(payload, dict)
    assert payload["model"] == "deepseek-chat"
    assert payload["messages"][0] == {"role": "system", "content": "system"}
    assert payload["response_format"] == {"type": "json_object"}


def test_insufficient_quota_code_raises_quota_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            403,
            json={"error": {"code": "insufficient_quota", "message": "No credit"}},
        )

    with pytest.raises(QuotaExceededError):
        _client(handler).complete("system", "user")


def test_quota_message_raises_quota_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            400,
            json={"error": {"code": None, "message": "You exceeded your current quota"}},
        )

    with pytest.raises(QuotaExceededError):
        _client(handler).complete("system", "user")


def test_server_error_is_not_a_quota_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"error": {"message": "boom"}})

    with pytest.raises(LLMError) as excinfo:
        _client(handler).complete("system", "user")

    assert not isinstance(excinfo.value, QuotaExceededError)
    assert "boom" in str(excinfo.value)


def test_transport_errors_are_retried_then_raised() -> None:
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        raise httpx.ConnectTimeout("timed out", request=request)

    client = _client(handler, max_attempts=2)

    with pytest.raises(LLMError):
        client.complete("system", "user")
    assert calls["count"] == 2


def test_missing_content_raises_llm_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"choices": []})

    with pytest.raises(LLMError):
        _client(handler).complete("system", "user")


def test_non_json_body_raises_llm_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>gateway</html>")

    with pytest.raises(LLMError):
        _client(handler).complete("system", "user")


def test_provider_id_uses_host_and_model() -> None:
    client = _client(lambda request: httpx.Response(200, json=_completion("{}")))

    assert client.provider_id == "api.deepseek.com:deepseek-chat"


def test_is_quota_error_on_rate_limit_status() -> None:
    assert is_quota_error(None, None, 429)
    assert not is_quota_error("server_error", "try again", 500)


def test_complete_without_http_client_raises_llm_error() -> None:
    client = _client(lambda request: httpx.Response(200, json=_completion("{}")))
    client.http_client = None

    with pytest.raises(LLMError, match="not configured"):
        client.complete("system", "user")


def test_close_only_closes_owned_client() -> None:
    shared = httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
    borrowed = ChatCompletionClient(_settings(), http_client=shared)
    owned = ChatCompletionClient(_settings())

    borrowed.close()
    owned.close()

    assert not shared.is_closed
    assert owned.http_client is not None and owned.http_client.is_closed
    shared.close()
