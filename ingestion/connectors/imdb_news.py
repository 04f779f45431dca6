"""IMDb news connector over RapidAPI (provider-injected for tests/offline)."""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional

import httpx

from ingestion.models.domain import Partition
from ingestion.settings import Settings, get_settings

from .base import BaseConnector, PermanentError, ProviderCredentialMissing, TransientError


ProviderFn = Callable[[Partition], Dict[str, Any]]


class IMDbNewsConnector(BaseConnector):
    """Connector for the ``news/v2/get-by-category`` endpoint.

    - with an injected provider: offline mode, the provider returns the envelope
    - without one: a real HTTP GET per partition
    """

    source = "imdb_news"

    def __init__(self, provider: Optional[ProviderFn] = None, settings: Optional[Settings] = None):
        self._provider = provider
        self._settings = settings

    @property
    def settings(self) -> Settings:
        return self._settings or get_settings()

    def _fetch_raw(self, partition: Partition) -> Any:
        if self._provider is not None:
            return self._provider(partition)

        cfg = self.settings
        if not cfg.has_news_credential:
            raise ProviderCredentialMissing("RAPIDAPI_KEY is not configured")

        headers = {
            "x-rapidapi-key": cfg.rapidapi_key.get_secret_value(),
            "x-rapidapi-host": cfg.rapidapi_host,
        }
        params = {
            "category": partition.category,
            "first": int(cfg.news_api_first),
            "country": partition.country,
            "language": cfg.news_language,
        }
        try:
            resp = httpx.get(
                cfg.news_api_url,
                headers=headers,
                params=params,
                timeout=float(cfg.news_api_timeout_seconds),
            )
        except httpx.TimeoutException as exc:
            raise TransientError(f"provider timeout for {partition}") from exc
        except httpx.HTTPError as exc:
            raise TransientError(f"provider transport error for {partition}: {exc}") from exc

        if resp.status_code == 429 or resp.status_code >= 500:
            raise TransientError(f"provider returned {resp.status_code}: {resp.text[:200]}")
        if resp.status_code >= 400:
            raise PermanentError(f"provider returned {resp.status_code}: {resp.text[:200]}")

        try:
            return resp.json()
        except ValueError as exc:
            raise PermanentError("provider response is not JSON") from exc
