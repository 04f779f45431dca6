"""Celery task and core logic for the fetch-and-store workflow."""

from __future__ import annotations

import uuid
from typing import Callable

from celery import shared_task

from ingestion.connectors.base import BaseConnector
from ingestion.db.models import JobStage
from ingestion.db.session import init_schema, session_scope
from ingestion.models.domain import RefreshStats
from ingestion.repositories.articles import (
    STORE_UNAVAILABLE_ERRORS,
    ArticleStore,
    JobRunRecorder,
    StoreUnavailable,
)
from ingestion.services.fetcher import SourceFetcher
from ingestion.services.refresher import fetch_and_store
from ingestion.settings import get_settings
from ingestion.utils.logging import get_logger


# Connector factory is kept pluggable for tests; None means the real IMDb connector.
CONNECTOR_FACTORY: Callable[[], BaseConnector] | None = None


def _build_fetcher() -> SourceFetcher:
    connector = CONNECTOR_FACTORY() if CONNECTOR_FACTORY is not None else None
    return SourceFetcher.from_settings(get_settings(), connector=connector)


def fetch_core(trigger: str = "scheduled", *, store: ArticleStore | None = None) -> RefreshStats:
    """Run one fetch-and-store sequence and record it as a job run."""
    try:
        return _fetch_core(trigger, store or ArticleStore())
    except STORE_UNAVAILABLE_ERRORS as exc:
        raise StoreUnavailable(f"article store unavailable: {exc}") from exc


def _fetch_core(trigger: str, store: ArticleStore) -> RefreshStats:
    init_schema()
    settings = get_settings()
    trace_id = str(uuid.uuid4())
    logger = get_logger(__name__)
    logger.info("fetch.start", extra={"trace_id": trace_id, "trigger": trigger})
    with session_scope() as session, JobRunRecorder(
        session,
        stage=JobStage.FETCH,
        trigger=trigger,
        task_name="fetch_and_store_news",
        trace_id=trace_id,
    ) as job:
        stats = fetch_and_store(
            _build_fetcher(),
            store,
            language=settings.news_language,
        )
        job.stats = {
            **stats.counters(),
            "partition_errors": [err.model_dump() for err in stats.partition_errors],
        }
        logger.info(
            "fetch.saved",
            extra={
                "trace_id": trace_id,
                "trigger": trigger,
                "failed_partitions": len(stats.partition_errors),
                **stats.counters(),
            },
        )
        return stats


@shared_task(name="ingestion.tasks.fetch.fetch_and_store_news")
def fetch_and_store_news() -> dict:  # pragma: no cover - wrapper
    return fetch_core("scheduled").model_dump()
