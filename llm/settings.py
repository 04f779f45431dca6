"""Settings for the homepage copy (OpenAI LLM) job."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, PositiveFloat, PositiveInt, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LLMSettings(BaseSettings):
    """Environment-driven configuration for homepage generation."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    openai_api_key: str = Field(..., alias="OPENAI_API_KEY", description="OpenAI API key")
    homepage_model: str = Field("gpt-4o-mini", alias="HOMEPAGE_MODEL", description="OpenAI model name")
    homepage_max_tokens: PositiveInt = Field(512, alias="HOMEPAGE_MAX_TOKENS", description="Max completion tokens")
    homepage_temperature: PositiveFloat = Field(0.7, alias="HOMEPAGE_TEMPERATURE", description="Sampling temperature")
    homepage_cost_limit_usd: PositiveFloat = Field(
        0.02,
        alias="HOMEPAGE_COST_LIMIT_USD",
        description="Per-request cost cap (USD)",
    )
    homepage_request_timeout_seconds: PositiveInt = Field(
        30,
        alias="HOMEPAGE_REQUEST_TIMEOUT_SECONDS",
        description="Overall request timeout in seconds",
    )
    homepage_retry_max_attempts: PositiveInt = Field(
        2,
        alias="HOMEPAGE_RETRY_MAX_ATTEMPTS",
        description="Max retry attempts",
    )

    @field_validator("openai_api_key")
    @classmethod
    def _non_empty_api_key(cls, v: str) -> str:
        s = v.strip()
        if not s:
            raise ValueError("OPENAI_API_KEY must not be blank")
        return s


@lru_cache()
def get_llm_settings() -> LLMSettings:
    try:
        return LLMSettings()
    except ValidationError as exc:
        raise RuntimeError(f"LLM settings validation failed: {exc}") from exc


def reset_llm_settings_cache() -> None:
    get_llm_settings.cache_clear()  # type: ignore[attr-defined]
