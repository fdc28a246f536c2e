from __future__ import annotations

import os

from env_loader import load_env_once
from converter.adapters.chat_completions_adapter import ChatCompletionsAdapter
from converter.llm_client import LlmClient

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_OPENROUTER_MODEL = "anthropic/claude-sonnet-4-5"
DEFAULT_OPENAI_MODEL = "gpt-4.1"
DEFAULT_APP_NAME = "script2extension"
DEFAULT_HTTP_REFERER = "https://script2extension.app"


def build_llm_client(
    *,
    provider: str | None = None,
    model: str | None = None,
    api_key: str | None = None,
) -> LlmClient:
    """Build the model client for one conversion.

    An explicit ``api_key`` wins; environment variables are only a fallback.
    """
    load_env_once()

    resolved_provider = (
        (provider or os.getenv("LLM_PROVIDER", "openrouter")).lower().strip()
    )
    if resolved_provider == "openrouter":
        resolved_key = (
            api_key or os.getenv("OPENROUTER_API_KEY") or os.getenv("OPENROUTER_KEY")
        )
        if not resolved_key:
            raise ValueError("OpenRouter API key is missing. Set OPENROUTER_API_KEY.")
        return ChatCompletionsAdapter(
            model=model or os.getenv("OPENROUTER_MODEL", DEFAULT_OPENROUTER_MODEL),
            api_key=resolved_key,
            base_url=OPENROUTER_BASE_URL,
            provider_label="OpenRouter",
            default_headers={
                "X-Title": os.getenv("OPENROUTER_APP_NAME", DEFAULT_APP_NAME),
                "HTTP-Referer": os.getenv(
                    "OPENROUTER_HTTP_REFERER", DEFAULT_HTTP_REFERER
                ),
            },
        )
    if resolved_provider == "openai":
        resolved_key = api_key or os.getenv("OPENAI_API_KEY")
        if not resolved_key:
            raise ValueError("OpenAI API key is missing. Set OPENAI_API_KEY.")
        return ChatCompletionsAdapter(
            model=model or os.getenv("OPENAI_MODEL", DEFAULT_OPENAI_MODEL),
            api_key=resolved_key,
            base_url=os.getenv("OPENAI_BASE_URL") or None,
            provider_label="OpenAI",
        )

    raise ValueError(f"Unsupported LLM provider: {resolved_provider}")
