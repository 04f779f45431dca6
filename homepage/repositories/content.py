"""Repository helpers for HomePageContent."""

from __future__ import annotations

from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from homepage.models.domain import HomepageContentResult
from ingestion.db.models import HomePageContent

DEFAULT_WRITER = "scheduler"


def upsert_homepage_content(
    session: Session,
    result: HomepageContentResult,
    *,
    updated_by: str = DEFAULT_WRITER,
    source_article_ids: Optional[Iterable[str]] = None,
) -> HomePageContent:
    stmt = select(HomePageContent).where(HomePageContent.updated_by == updated_by)
    entity = session.execute(stmt).scalar_one_or_none()
    if entity is None:
        entity = HomePageContent(updated_by=updated_by)
        session.add(entity)
    entity.title = result.title
    entity.description = result.description
    entity.source_article_ids = list(source_article_ids) if source_article_ids is not None else None
    entity.llm_model = result.llm_model
    entity.llm_tokens_prompt = int(result.llm_tokens_prompt)
    entity.llm_tokens_completion = int(result.llm_tokens_completion)
    entity.llm_cost = float(result.llm_cost)
    session.flush()
    return entity


def get_latest_homepage_content(session: Session) -> Optional[HomePageContent]:
    stmt = select(HomePageContent).order_by(HomePageContent.updated_at.desc()).limit(1)
    return session.execute(stmt).scalars().first()
