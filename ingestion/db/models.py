"""SQLAlchemy models for news data."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (
    DateTime,
    Enum as SAEnum,
    Float,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import Uuid


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for ORM models."""


class TimestampMixin:
    """Adds created_at/updated_at columns.

    Python-side defaults keep sub-second ordering on backends whose
    ``CURRENT_TIMESTAMP`` only has second resolution (SQLite).
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
    )


class JobStage(str, Enum):
    FETCH = "fetch"
    HOMEPAGE = "homepage"


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class NewsArticle(TimestampMixin, Base):
    """A deduplicated news article, upserted by ``article_id``."""

    __tablename__ = "news_articles"
    __table_args__ = (
        UniqueConstraint("article_id", name="uq_news_articles_article_id"),
        Index("ix_news_articles_category_created", "category", "created_at"),
        Index("ix_news_articles_last_fetched", "last_fetched_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    article_id: Mapped[str] = mapped_column(String(255), nullable=False)
    title: Mapped[str] = mapped_column(String(1024), nullable=False)
    body_text: Mapped[str] = mapped_column(Text, nullable=False, default="")
    image_url: Mapped[str | None] = mapped_column(String(2048))
    byline: Mapped[str | None] = mapped_column(String(512))
    external_url: Mapped[str | None] = mapped_column(String(2048))
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    category: Mapped[str] = mapped_column(String(16), nullable=False, default="MOVIE")
    country: Mapped[str] = mapped_column(String(8), nullable=False, default="US")
    language: Mapped[str] = mapped_column(String(16), nullable=False, default="en-US")
    raw_source: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    last_fetched_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )


class JobRun(TimestampMixin, Base):
    """Represents a single job execution."""

    __tablename__ = "job_runs"
    __table_args__ = (
        Index("ix_job_runs_stage_status", "stage", "status"),
        Index("ix_job_runs_trace", "trace_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    stage: Mapped[JobStage] = mapped_column(
        SAEnum(JobStage, name="job_stage", native_enum=False, length=16),
        nullable=False,
    )
    status: Mapped[JobStatus] = mapped_column(
        SAEnum(JobStatus, name="job_status", native_enum=False, length=16),
        nullable=False,
        default=JobStatus.PENDING,
    )
    trigger: Mapped[str | None] = mapped_column(String(32))
    task_name: Mapped[str | None] = mapped_column(String(100))
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    finished_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    error_message: Mapped[str | None] = mapped_column(String(512))
    stats: Mapped[dict | None] = mapped_column(JSON)
    trace_id: Mapped[str | None] = mapped_column(String(64))


class HomePageContent(TimestampMixin, Base):
    """LLM-written homepage title/description, one row per writer."""

    __tablename__ = "homepage_content"
    __table_args__ = (
        UniqueConstraint("updated_by", name="uq_homepage_content_updated_by"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    updated_by: Mapped[str] = mapped_column(String(32), nullable=False)
    source_article_ids: Mapped[list[str] | None] = mapped_column(JSON)

    # LLM meta
    llm_model: Mapped[str] = mapped_column(String(64), nullable=False)
    llm_tokens_prompt: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    llm_tokens_completion: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    llm_cost: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
