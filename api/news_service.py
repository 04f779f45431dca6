"""Read-path service: the article store plus the refresh coordinator."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from ingestion.models.domain import ArticleFilter, ArticleRecord, RefreshStats
from ingestion.repositories.articles import ArticleStore
from ingestion.services.refresher import RefreshCoordinator, RefreshFn
from ingestion.settings import Settings, get_settings
from ingestion.tasks.fetch import fetch_core
from ingestion.utils.logging import get_logger

logger = get_logger(__name__)


class NewsService:
    def __init__(
        self,
        store: ArticleStore,
        coordinator: RefreshCoordinator,
        settings: Settings,
    ) -> None:
        self.store = store
        self.coordinator = coordinator
        self.settings = settings

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        *,
        refresh: Optional[RefreshFn] = None,
        **coordinator_kwargs: Any,
    ) -> "NewsService":
        cfg = settings or get_settings()
        store = ArticleStore()

        def _refresh(trigger: str) -> RefreshStats:
            return fetch_core(trigger, store=store)

        coordinator = RefreshCoordinator(
            store,
            refresh or _refresh,
            staleness=cfg.staleness_window,
            cooldown=cfg.cooldown_window,
            **coordinator_kwargs,
        )
        return cls(store, coordinator, cfg)

    def read(self, flt: ArticleFilter, limit: Optional[int] = None) -> List[ArticleRecord]:
        """Apply the refresh policy, then return matching records newest first."""
        outcome = self.coordinator.ensure_fresh(flt)
        records = self.store.query(flt, limit)
        logger.info(
            "news.read",
            extra={
                "category": flt.category,
                "country": flt.country,
                "limit": limit,
                "returned": len(records),
                "staleness": outcome.check.reason.value,
                "refresh_mode": outcome.mode.value,
            },
        )
        return records

    def fetch_now(self) -> RefreshStats:
        return self.coordinator.refresh_now("manual")

    def debug_snapshot(self) -> Dict[str, Any]:
        by_category = self.store.count_by("category")
        by_country = self.store.count_by("country")
        last_fetch: Optional[datetime] = self.store.most_recent_fetch()
        return {
            "total": self.store.count(),
            "by_category": {c: by_category.get(c, 0) for c in self.settings.news_categories},
            "by_country": {c: by_country.get(c, 0) for c in self.settings.news_countries},
            "last_fetched_at": last_fetch,
            "samples": self.store.query(None, 5),
            "environment": {
                "credential_configured": self.settings.has_news_credential,
                "database_configured": bool(self.settings.database_url),
                "is_refreshing": self.coordinator.state.is_refreshing,
            },
        }


news_service: NewsService | None = None


def get_news_service() -> NewsService:
    """Get the global news service instance."""
    if news_service is None:
        raise RuntimeError("NewsService not initialized")
    return news_service
