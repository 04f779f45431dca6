"""Configuration models for the news ingestion service."""

from __future__ import annotations

import json
from datetime import timedelta
from functools import lru_cache
from typing import Annotated, Any, List, Literal, Optional, Set

from pydantic import (
    BaseModel,
    Field,
    PositiveInt,
    SecretStr,
    ValidationError,
    field_validator,
)
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

JobTask = Literal["fetch_news", "homepage"]


def _default_schedules() -> List["JobSchedule"]:
    return [
        JobSchedule(name="fetch-news", task="fetch_news", cron="0 0,12 * * *"),
        JobSchedule(name="homepage-content", task="homepage", cron="0 0 * * 0"),
    ]


class JobSchedule(BaseModel):
    """A cron-driven periodic job."""

    name: str = Field(..., description="Unique beat entry name.")
    task: JobTask = Field(..., description="Which job to run.")
    cron: str = Field(..., description="5-field cron expression (minute hour day month weekday).")
    enabled: bool = Field(True, description="Whether the schedule is active.")

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        name = value.strip()
        if not name:
            raise ValueError("schedule name must not be blank")
        return name

    @field_validator("cron")
    @classmethod
    def _validate_cron(cls, value: str) -> str:
        fields = value.split()
        if len(fields) != 5:
            raise ValueError(f"cron expression needs 5 fields, got {len(fields)}: {value!r}")
        return " ".join(fields)


def _parse_code_list(value: Any, env_name: str) -> Any:
    if isinstance(value, str):
        raw = value.strip()
        if raw.startswith("["):
            try:
                return json.loads(raw)
            except json.JSONDecodeError as exc:
                raise ValueError(f"{env_name} is not a valid JSON array") from exc
        return [part for part in raw.split(",") if part.strip()]
    return value


def _normalize_codes(values: List[str], env_name: str) -> List[str]:
    codes: List[str] = []
    for value in values:
        code = value.strip().upper()
        if not code:
            raise ValueError(f"{env_name} must not contain blank values")
        if code in codes:
            raise ValueError(f"{env_name} contains a duplicate value: {code}")
        codes.append(code)
    if not codes:
        raise ValueError(f"{env_name} must contain at least one value")
    return codes


class Settings(BaseSettings):
    """Environment configuration for ingestion, refresh and scheduling."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    redis_url: str = Field(..., alias="INGESTION_REDIS_URL", description="Celery broker/backend Redis DSN.")
    database_url: str = Field(..., alias="DATABASE_URL", description="SQLAlchemy DSN of the article store.")
    rapidapi_key: Optional[SecretStr] = Field(None, alias="RAPIDAPI_KEY", description="News provider credential.")
    rapidapi_host: str = Field("imdb8.p.rapidapi.com", alias="RAPIDAPI_HOST", description="News provider host.")
    news_api_path: str = Field("/news/v2/get-by-category", alias="NEWS_API_PATH", description="News provider path.")
    news_api_timeout_seconds: PositiveInt = Field(
        10,
        alias="NEWS_API_TIMEOUT_SECONDS",
        description="Per-partition HTTP timeout in seconds.",
    )
    news_api_max_attempts: PositiveInt = Field(
        2,
        alias="NEWS_API_MAX_ATTEMPTS",
        description="Attempts per partition on transient errors.",
    )
    news_api_first: PositiveInt = Field(1000, alias="NEWS_API_FIRST", description="Result cap per partition.")
    news_language: str = Field("en-US", alias="NEWS_LANGUAGE", description="Provider language / stored locale.")
    news_categories: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: ["MOVIE", "TV"],
        alias="NEWS_CATEGORIES",
        description="Category set of the fetch matrix.",
    )
    news_countries: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: ["US", "GB"],
        alias="NEWS_COUNTRIES",
        description="Country set of the fetch matrix.",
    )
    refresh_staleness_minutes: PositiveInt = Field(
        12 * 60,
        alias="REFRESH_STALENESS_MINUTES",
        description="Maximum age of fetched data before a refresh is due.",
    )
    refresh_cooldown_minutes: PositiveInt = Field(
        5,
        alias="REFRESH_COOLDOWN_MINUTES",
        description="Minimum spacing between refresh attempts.",
    )
    job_schedules: List[JobSchedule] = Field(
        default_factory=_default_schedules,
        alias="JOB_SCHEDULES",
        description="JSON array of cron schedules.",
    )
    structlog_level: str = Field("INFO", alias="STRUCTLOG_LEVEL", description="Log level.")
    log_json: bool = Field(False, alias="LOG_JSON", description="Emit logs as JSON lines.")
    celery_worker_concurrency: PositiveInt = Field(
        4,
        alias="CELERY_WORKER_CONCURRENCY",
        description="Celery worker concurrency.",
    )
    celery_task_soft_time_limit: PositiveInt = Field(
        300,
        alias="CELERY_TASK_SOFT_TIME_LIMIT",
        description="Celery task soft time limit (seconds).",
    )

    @field_validator("news_categories", mode="before")
    @classmethod
    def _parse_categories(cls, value: Any) -> Any:
        return _parse_code_list(value, "NEWS_CATEGORIES")

    @field_validator("news_countries", mode="before")
    @classmethod
    def _parse_countries(cls, value: Any) -> Any:
        return _parse_code_list(value, "NEWS_COUNTRIES")

    @field_validator("news_categories")
    @classmethod
    def _validate_categories(cls, value: List[str]) -> List[str]:
        return _normalize_codes(value, "NEWS_CATEGORIES")

    @field_validator("news_countries")
    @classmethod
    def _validate_countries(cls, value: List[str]) -> List[str]:
        return _normalize_codes(value, "NEWS_COUNTRIES")

    @field_validator("job_schedules", mode="before")
    @classmethod
    def _parse_job_schedules(cls, value: Any) -> Any:
        if value in (None, ""):
            return _default_schedules()
        if isinstance(value, str):
            try:
                return json.loads(value)
            except json.JSONDecodeError as exc:
                raise ValueError("JOB_SCHEDULES must be a JSON array") from exc
        if isinstance(value, list):
            return value
        raise ValueError("JOB_SCHEDULES must be a list")

    @field_validator("job_schedules")
    @classmethod
    def _validate_unique_schedule(cls, value: List[JobSchedule]) -> List[JobSchedule]:
        seen: Set[str] = set()
        for schedule in value:
            if schedule.name in seen:
                raise ValueError(f"duplicate schedule name: {schedule.name}")
            seen.add(schedule.name)
        return value

    @field_validator("database_url")
    @classmethod
    def _validate_database_url(cls, value: str) -> str:
        if "://" not in value:
            raise ValueError("DATABASE_URL must be a DSN string")
        return value

    @field_validator("news_language", "rapidapi_host")
    @classmethod
    def _non_blank(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("value must not be blank")
        return stripped

    @property
    def has_news_credential(self) -> bool:
        return self.rapidapi_key is not None and bool(self.rapidapi_key.get_secret_value().strip())

    @property
    def news_api_url(self) -> str:
        return f"https://{self.rapidapi_host}/{self.news_api_path.lstrip('/')}"

    @property
    def staleness_window(self) -> timedelta:
        return timedelta(minutes=self.refresh_staleness_minutes)

    @property
    def cooldown_window(self) -> timedelta:
        return timedelta(minutes=self.refresh_cooldown_minutes)


@lru_cache()
def get_settings() -> Settings:
    """Return the Settings instance built from the environment."""
    try:
        return Settings()
    except ValidationError as exc:
        raise RuntimeError(f"environment validation failed: {exc}") from exc


def reset_settings_cache() -> None:
    """Clear the Settings cache (tests)."""
    get_settings.cache_clear()  # type: ignore[attr-defined]
