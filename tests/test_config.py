"""Tests for configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from mail_agent.core.config import load_app_settings


@pytest.fixture(autouse=True)
def clear_settings_cache() -> None:
    """Ensure each test sees a fresh settings instance."""

    load_app_settings.cache_clear()


def test_defaults_loaded_without_env_file() -> None:
    """Default values should be returned when no overrides are present."""

    settings = load_app_settings(include_environment=False)
    assert settings.llm.base_url == "https://api.openai.com/v1"
    assert settings.llm.model == "gpt-3.5-turbo"
    assert not settings.llm.enabled
    assert settings.storage.response_log_path == Path("./logs/ai_responses.db")
    assert settings.analysis.keyword_top_k == 10
    assert settings.analysis.basic_keyword_top_k == 5
    assert "ceo@company.com" in settings.analysis.vip_senders
    assert list(settings.analysis.topic_keywords) == [
        "업무",
        "개인",
        "공지사항",
        "마케팅",
        "기타",
    ]
    assert settings.auto_reply.mode == "confirm"


def test_env_file_overrides(tmp_path: Path) -> None:
    """Values defined in an env file should override defaults."""

    env_file = tmp_path / "test.env"
    env_file.write_text(
        "\n".join(
            [
                "MAIL_AGENT_LLM__BASE_URL=https://api.deepseek.com/v1",
                "MAIL_AGENT_LLM__API_KEY=sk-test",
                "MAIL_AGENT_LLM__JSON_MODE=false",
                "MAIL_AGENT_ANALYSIS__VIP_SENDERS=boss@example.com, cfo@example.com",
                "OTHER_SETTING=ignored",
            ]
        )
        + "\n",
        encoding="utf-8",
    )

    settings = load_app_settings(env_file=env_file, include_environment=False)
    assert settings.llm.base_url == "https://api.deepseek.com/v1"
    assert settings.llm.enabled
    assert settings.llm.json_mode is False
    assert settings.analysis.vip_senders == ("boss@example.com", "cfo@example.com")


def test_environment_wins_over_env_file(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    env_file = tmp_path / "test.env"
    env_file.write_text("MAIL_AGENT_LLM__MODEL=from-file\n", encoding="utf-8")
    monkeypatch.setenv("MAIL_AGENT_LLM__MODEL", "from-env")

    settings = load_app_settings(env_file=env_file)
    assert settings.llm.model == "from-env"


def test_missing_env_file_is_ignored(tmp_path: Path) -> None:
    settings = load_app_settings(
        env_file=tmp_path / "missing.env", include_environment=False
    )
    assert settings.logging.level == "INFO"
