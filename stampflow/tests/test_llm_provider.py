from __future__ import annotations

import pytest

from stampflow.translation import llm_provider


@pytest.fixture(autouse=True)
def _clean_llm_env(monkeypatch):
    for name in (
        *llm_provider.API_KEY_ENV_NAMES,
        *llm_provider.BASE_URL_ENV_NAMES,
        "STAMPFLOW_LLM_HTTP_REFERER",
        "STAMPFLOW_LLM_APP_NAME",
        "OPENROUTER_HTTP_REFERER",
        "OPENROUTER_X_TITLE",
    ):
        monkeypatch.delenv(name, raising=False)


def test_api_key_precedence(monkeypatch):
    monkeypatch.setenv("OPENROUTER_API_KEY", "openrouter-key")
    monkeypatch.setenv("OPENAI_API_KEY", "openai-key")
    assert llm_provider.llm_api_key() == "openai-key"

    monkeypatch.setenv("STAMPFLOW_LLM_API_KEY", "stampflow-key")
    assert llm_provider.llm_api_key() == "stampflow-key"


def test_openrouter_key_alone_selects_openrouter_endpoint(monkeypatch):
    monkeypatch.setenv("OPENROUTER_API_KEY", "openrouter-key")

    kwargs = llm_provider.chat_model_kwargs(model="gpt-4o-mini", temperature=0.1)
    assert kwargs is not None
    assert kwargs["api_key"] == "openrouter-key"
    assert kwargs["base_url"] == llm_provider.OPENROUTER_DEFAULT_BASE_URL

    monkeypatch.setenv("OPENAI_API_KEY", "openai-key")
    assert llm_provider.llm_base_url() is None


def test_explicit_base_url_wins(monkeypatch):
    monkeypatch.setenv("OPENROUTER_API_KEY", "openrouter-key")
    monkeypatch.setenv("STAMPFLOW_LLM_BASE_URL", "https://llm.internal/v1")
    assert llm_provider.llm_base_url() == "https://llm.internal/v1"


def test_headers_support_stampflow_and_openrouter_env(monkeypatch):
    monkeypatch.setenv("OPENROUTER_HTTP_REFERER", "https://example.org")
    monkeypatch.setenv("OPENROUTER_X_TITLE", "StampFlow Test")

    headers = llm_provider.llm_default_headers()
    assert headers == {"HTTP-Referer": "https://example.org", "X-Title": "StampFlow Test"}

    monkeypatch.setenv("STAMPFLOW_LLM_HTTP_REFERER", "https://custom.example")
    monkeypatch.setenv("STAMPFLOW_LLM_APP_NAME", "StampFlow Custom")
    assert llm_provider.llm_default_headers() == {
        "HTTP-Referer": "https://custom.example",
        "X-Title": "StampFlow Custom",
    }


def test_chat_model_kwargs_defaults_and_missing_key(monkeypatch):
    assert llm_provider.chat_model_kwargs() is None
    assert "OPENROUTER_API_KEY" in llm_provider.llm_missing_reason()

    monkeypatch.setenv("OPENAI_API_KEY", "openai-key")
    kwargs = llm_provider.chat_model_kwargs(temperature=0)
    assert kwargs["model"] == llm_provider.config.llm.translation_model
    assert kwargs["temperature"] == 0
    assert "base_url" not in kwargs
    assert "default_headers" not in kwargs
