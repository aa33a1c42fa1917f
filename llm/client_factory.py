"""LangChain client creation (provider-agnostic) for the single-shot path."""

from __future__ import annotations

from config.settings import LLM_API_KEY, LLM_BASE_URL, LLM_MODEL, LLM_PROVIDER, LLM_TIMEOUT_S
from framework.errors import LLMConfigurationError


def get_llm_client():
    """Create an LLM client from environment-backed settings.

    Supports: openrouter (OpenAI-compatible), openai, anthropic. The model
    must accept image parts when screenshots are analysed.
    """
    if not LLM_API_KEY:
        raise LLMConfigurationError("Server is missing LLM_API_KEY")

    if LLM_PROVIDER == "anthropic":
        from langchain_anthropic import ChatAnthropic

        return ChatAnthropic(model=LLM_MODEL, api_key=LLM_API_KEY, temperature=0, timeout=LLM_TIMEOUT_S)

    from langchain_openai import ChatOpenAI

    kwargs: dict = {
        "model": LLM_MODEL,
        "api_key": LLM_API_KEY,
        "temperature": 0,
        "timeout": LLM_TIMEOUT_S,
        "model_kwargs": {"response_format": {"type": "json_object"}},
    }

    if LLM_PROVIDER == "openrouter":
        kwargs["base_url"] = LLM_BASE_URL
        kwargs["default_headers"] = {
            "X-Title": "RedFlag Intel",
        }

    return ChatOpenAI(**kwargs)
