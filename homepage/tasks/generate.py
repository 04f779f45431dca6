"""Celery task for the weekly homepage copy."""

from __future__ import annotations

import uuid
from typing import Callable, Optional

from celery import shared_task

from homepage.models.domain import HeadlineItem, HomepageInput
from homepage.repositories.content import upsert_homepage_content
from ingestion.db.models import JobStage
from ingestion.db.session import init_schema, session_scope
from ingestion.models.domain import ArticleFilter
from ingestion.repositories.articles import JobRunRecorder, list_articles
from ingestion.utils.logging import get_logger
from llm.client.openai_client import (
    OpenAIClient,
    PermanentLLMError,
    ProviderFn,
    TransientLLMError,
)


# Provider factory injection point for tests (returns provider fn or None for real OpenAI)
PROVIDER_FACTORY: Callable[[], Optional[ProviderFn]] | None = None

SOURCE_CATEGORY = "MOVIE"


def generate_core(*, limit: int = 20, trigger: str = "scheduled") -> int:
    """Write homepage copy from the latest movie articles.

    Returns the number of homepage rows written (0 or 1).
    """
    init_schema()
    logger = get_logger(__name__)
    trace_id = str(uuid.uuid4())
    with session_scope() as session, JobRunRecorder(
        session,
        stage=JobStage.HOMEPAGE,
        trigger=trigger,
        task_name="generate_homepage_content",
        trace_id=trace_id,
    ) as job:
        rows = list_articles(session, ArticleFilter(category=SOURCE_CATEGORY), limit)
        if not rows:
            logger.info("homepage.no_articles", extra={"trace_id": trace_id})
            job.stats = {"articles": 0, "written": 0}
            return 0
        logger.info("homepage.start", extra={"trace_id": trace_id, "articles": len(rows)})
        inp = HomepageInput(
            items=[HeadlineItem(article_id=r.article_id, title=r.title, text=r.body_text or "") for r in rows],
        )
        extra = {"trace_id": trace_id}
        provider = PROVIDER_FACTORY() if PROVIDER_FACTORY else None
        client = OpenAIClient.from_env(provider=provider)
        try:
            result = client.generate_homepage(inp)
        except PermanentLLMError as exc:
            logger.warning("homepage.permanent_error", extra={**extra, "error": str(exc)})
            raise
        except TransientLLMError as exc:
            logger.warning("homepage.transient_error", extra={**extra, "error": str(exc)})
            raise
        except Exception:
            logger.exception("homepage.unexpected_error", extra=extra)
            raise
        upsert_homepage_content(session, result, source_article_ids=[r.article_id for r in rows])
        job.stats = {
            "articles": len(rows),
            "written": 1,
            "model": result.llm_model,
            "tokens_prompt": result.llm_tokens_prompt,
            "tokens_completion": result.llm_tokens_completion,
            "cost": result.llm_cost,
        }
        logger.info("homepage.saved", extra={**extra, **job.stats})
        return 1


@shared_task(
    name="homepage.tasks.generate.generate_homepage_content",
    autoretry_for=(TransientLLMError,),
    retry_backoff=True,
    retry_jitter=True,
    retry_kwargs={"max_retries": 3},
)
def generate_homepage_content() -> int:  # pragma: no cover - thin wrapper
    return generate_core()
