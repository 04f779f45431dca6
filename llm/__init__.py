"""LLM module - OpenAI client and settings."""

from llm.client.openai_client import (
    LLMError,
    OpenAIClient,
    PermanentLLMError,
    ProviderFn,
    TransientLLMError,
)
from llm.settings import LLMSettings, get_llm_settings, reset_llm_settings_cache

__all__ = [
    "LLMError",
    "LLMSettings",
    "OpenAIClient",
    "PermanentLLMError",
    "ProviderFn",
    "TransientLLMError",
    "get_llm_settings",
    "reset_llm_settings_cache",
]
