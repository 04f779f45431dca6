"""Repositories for persisting news articles and job runs."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Callable, ContextManager, Dict, List, Optional, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.exc import DataError, DisconnectionError, IntegrityError, InterfaceError, OperationalError
from sqlalchemy.orm import Session

from ingestion.db.models import JobRun, JobStage, JobStatus, NewsArticle
from ingestion.db.session import session_scope
from ingestion.models.domain import ArticleFilter, ArticleRecord

T = TypeVar("T")

STORE_UNAVAILABLE_ERRORS = (OperationalError, InterfaceError, DisconnectionError)


class StoreUnavailable(Exception):
    """The article store cannot be reached; callers do not retry."""


class RecordRejected(Exception):
    """The database refused one article (oversized value, constraint); the batch goes on."""

    def __init__(self, article_id: str, reason: str) -> None:
        super().__init__(f"article {article_id} rejected: {reason}")
        self.article_id = article_id
        self.reason = reason


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _jsonable(payload: Dict[str, Any]) -> Dict[str, Any]:
    return json.loads(json.dumps(payload, default=str))


def _apply_filter(stmt: Select, flt: Optional[ArticleFilter]) -> Select:
    if flt is None:
        return stmt
    if flt.category is not None:
        stmt = stmt.where(NewsArticle.category == flt.category)
    if flt.country is not None:
        stmt = stmt.where(NewsArticle.country == flt.country)
    return stmt


def _assign(entity: NewsArticle, record: ArticleRecord) -> None:
    entity.title = record.title
    entity.body_text = record.body_text
    entity.image_url = record.image_url
    entity.byline = record.byline
    entity.external_url = record.external_url
    entity.published_at = as_utc(record.published_at)
    entity.category = record.category
    entity.country = record.country
    entity.language = record.language
    entity.raw_source = _jsonable(record.raw_source)


def upsert_article(session: Session, record: ArticleRecord) -> bool:
    """Insert or merge-overwrite by ``article_id``. Returns True when newly created."""
    stmt = select(NewsArticle).where(NewsArticle.article_id == record.id)
    existing = session.execute(stmt).scalar_one_or_none()
    if existing is None:
        entity = NewsArticle(article_id=record.id, last_fetched_at=as_utc(record.last_fetched_at))
        _assign(entity, record)
        session.add(entity)
        session.flush()
        return True

    _assign(existing, record)
    previous = as_utc(existing.last_fetched_at)
    incoming = as_utc(record.last_fetched_at)
    existing.last_fetched_at = max(previous, incoming) if previous is not None else incoming
    return False


def list_articles(session: Session, flt: Optional[ArticleFilter] = None, limit: Optional[int] = None) -> List[NewsArticle]:
    stmt = _apply_filter(select(NewsArticle), flt).order_by(NewsArticle.created_at.desc())
    if limit:
        stmt = stmt.limit(limit)
    return list(session.execute(stmt).scalars().all())


def most_recent_fetch(session: Session, flt: Optional[ArticleFilter] = None) -> Optional[datetime]:
    stmt = _apply_filter(select(func.max(NewsArticle.last_fetched_at)), flt)
    return as_utc(session.execute(stmt).scalar_one_or_none())


def count_articles(session: Session, flt: Optional[ArticleFilter] = None) -> int:
    stmt = _apply_filter(select(func.count()).select_from(NewsArticle), flt)
    return int(session.execute(stmt).scalar_one())


def count_by(session: Session, column_name: str) -> Dict[str, int]:
    column = getattr(NewsArticle, column_name)
    rows = session.execute(select(column, func.count()).group_by(column)).all()
    return {str(value): int(total) for value, total in rows}


def to_record(row: NewsArticle) -> ArticleRecord:
    return ArticleRecord(
        id=row.article_id,
        title=row.title,
        body_text=row.body_text or "",
        image_url=row.image_url,
        byline=row.byline,
        external_url=row.external_url,
        published_at=as_utc(row.published_at),
        category=row.category,
        country=row.country,
        language=row.language,
        raw_source=dict(row.raw_source or {}),
        last_fetched_at=as_utc(row.last_fetched_at),
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
    )


class ArticleStore:
    """Record Store over SQLAlchemy; one transaction per call."""

    def __init__(self, session_factory: Callable[[], ContextManager[Session]] = session_scope) -> None:
        self._session_factory = session_factory

    def _run(self, fn: Callable[..., T], *args: Any) -> T:
        try:
            with self._session_factory() as session:
                return fn(session, *args)
        except STORE_UNAVAILABLE_ERRORS as exc:
            raise StoreUnavailable(f"article store unavailable: {exc}") from exc

    def upsert(self, record: ArticleRecord) -> bool:
        try:
            try:
                return self._run(upsert_article, record)
            except IntegrityError:
                # A concurrent writer inserted the same id first; last write wins.
                return self._run(upsert_article, record)
        except (DataError, IntegrityError) as exc:
            raise RecordRejected(record.id, str(exc.orig)) from exc

    def query(self, flt: Optional[ArticleFilter] = None, limit: Optional[int] = None) -> List[ArticleRecord]:
        def _query(session: Session) -> List[ArticleRecord]:
            return [to_record(row) for row in list_articles(session, flt, limit)]

        return self._run(_query)

    def most_recent_fetch(self, flt: Optional[ArticleFilter] = None) -> Optional[datetime]:
        return self._run(most_recent_fetch, flt)

    def count(self, flt: Optional[ArticleFilter] = None) -> int:
        return self._run(count_articles, flt)

    def count_by(self, column_name: str) -> Dict[str, int]:
        return self._run(count_by, column_name)


def latest_job_run(session: Session, stage: JobStage) -> Optional[JobRun]:
    stmt = select(JobRun).where(JobRun.stage == stage).order_by(JobRun.started_at.desc()).limit(1)
    return session.execute(stmt).scalars().first()


class JobRunRecorder:
    """Context manager to record job run lifecycle."""

    def __init__(
        self,
        session: Session,
        *,
        stage: JobStage = JobStage.FETCH,
        trigger: str | None,
        task_name: str,
        trace_id: str | None = None,
    ) -> None:
        self._session = session
        self._job = JobRun(
            stage=stage,
            status=JobStatus.RUNNING,
            trigger=trigger,
            task_name=task_name,
            trace_id=trace_id,
            started_at=datetime.now(timezone.utc),
        )

    def __enter__(self) -> JobRun:
        self._session.add(self._job)
        # Commit initial RUNNING state so we have a durable record even if later work fails
        self._session.commit()
        return self._job

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        if exc is None:
            self._job.status = JobStatus.SUCCEEDED
        else:
            self._job.status = JobStatus.FAILED
            self._job.error_message = str(exc)[:512]
        self._job.finished_at = datetime.now(timezone.utc)
        self._session.add(self._job)
        # Commit final state before outer transaction may roll back
        try:
            self._session.commit()
        except Exception:  # pragma: no cover - do not mask original error
            self._session.rollback()
