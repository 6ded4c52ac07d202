from __future__ import annotations

import os
from typing import Any, Optional

from stampflow.core.config import config

OPENROUTER_DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"

# Checked in order; the first non-empty value wins.
API_KEY_ENV_NAMES = ("STAMPFLOW_LLM_API_KEY", "OPENAI_API_KEY", "OPENROUTER_API_KEY")
BASE_URL_ENV_NAMES = ("STAMPFLOW_LLM_BASE_URL", "OPENAI_BASE_URL", "OPENROUTER_BASE_URL")


def _first_env(names: tuple[str, ...]) -> Optional[str]:
    for env_name in names:
        value = str(os.getenv(env_name) or "").strip()
        if value:
            return value
    return None


def llm_api_key() -> Optional[str]:
    return _first_env(API_KEY_ENV_NAMES)


def llm_base_url() -> Optional[str]:
    explicit = _first_env(BASE_URL_ENV_NAMES)
    if explicit:
        return explicit
    # A bare OpenRouter key without an OpenAI key means the OpenRouter endpoint.
    if _first_env(("OPENROUTER_API_KEY",)) and not _first_env(API_KEY_ENV_NAMES[:2]):
        return OPENROUTER_DEFAULT_BASE_URL
    return None


def llm_default_headers() -> dict[str, str]:
    headers: dict[str, str] = {}
    http_referer = _first_env(("STAMPFLOW_LLM_HTTP_REFERER", "OPENROUTER_HTTP_REFERER"))
    app_name = _first_env(("STAMPFLOW_LLM_APP_NAME", "OPENROUTER_X_TITLE"))
    if http_referer:
        headers["HTTP-Referer"] = http_referer
    if app_name:
        headers["X-Title"] = app_name
    return headers


def llm_missing_reason() -> str:
    return " / ".join(API_KEY_ENV_NAMES) + " missing"


def chat_model_kwargs(*, model: Optional[str] = None, temperature: Optional[float] = None) -> Optional[dict[str, Any]]:
    """ChatOpenAI keyword arguments for the translation model, or None without an API key."""
    api_key = llm_api_key()
    if not api_key:
        return None
    kwargs: dict[str, Any] = {
        "model": model or config.llm.translation_model,
        "temperature": config.llm.temperature if temperature is None else temperature,
        "api_key": api_key,
    }
    base_url = llm_base_url()
    if base_url:
        kwargs["base_url"] = base_url
    headers = llm_default_headers()
    if headers:
        kwargs["default_headers"] = headers
    return kwargs
