from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from ingestion.db.models import HomePageContent, JobRun, JobStage, JobStatus, NewsArticle


@pytest.fixture()
def sqlite_url(tmp_path: Path) -> str:
    return f"sqlite:///{tmp_path / 'news.db'}"


def _upgrade_database(db_url: str) -> None:
    cfg = Config("alembic.ini")
    cfg.set_main_option("script_location", "ingestion/db/migrations")
    cfg.set_main_option("sqlalchemy.url", db_url)
    cfg.attributes["configure_logger"] = False
    command.upgrade(cfg, "head")


def test_migrations_create_expected_tables(sqlite_url: str) -> None:
    _upgrade_database(sqlite_url)
    engine = create_engine(sqlite_url, future=True)
    inspector = inspect(engine)

    tables = set(inspector.get_table_names())
    assert {"news_articles", "job_runs", "homepage_content"}.issubset(tables)

    article_columns = {column["name"] for column in inspector.get_columns("news_articles")}
    assert {"article_id", "title", "category", "country", "language", "raw_source", "last_fetched_at"}.issubset(
        article_columns
    )

    job_columns = {column["name"] for column in inspector.get_columns("job_runs")}
    assert {"stage", "status", "trigger", "stats", "trace_id"}.issubset(job_columns)

    homepage_columns = {column["name"] for column in inspector.get_columns("homepage_content")}
    assert {"title", "description", "updated_by", "llm_model", "llm_cost"}.issubset(homepage_columns)


def test_models_roundtrip(sqlite_url: str) -> None:
    _upgrade_database(sqlite_url)
    engine = create_engine(sqlite_url, future=True)
    SessionLocal = sessionmaker(bind=engine, expire_on_commit=False, future=True)

    with SessionLocal() as session:  # type: Session
        article = NewsArticle(
            article_id="ni64923",
            title="Trailer drops",
            body_text="Some body",
            category="MOVIE",
            country="US",
            language="en-US",
            raw_source={"id": "ni64923"},
            last_fetched_at=datetime.now(timezone.utc),
        )
        job = JobRun(stage=JobStage.FETCH, status=JobStatus.RUNNING, task_name="fetch_and_store_news")
        content = HomePageContent(
            title="Title",
            description="Description",
            updated_by="scheduler",
            llm_model="gpt-4o-mini",
        )

        session.add_all([article, job, content])
        session.commit()
        session.refresh(job)

    assert article.id is not None
    assert article.created_at is not None
    assert job.status == JobStatus.RUNNING
    assert job.created_at <= job.updated_at
    assert content.llm_cost == 0.0


def test_article_id_is_unique(sqlite_url: str) -> None:
    _upgrade_database(sqlite_url)
    engine = create_engine(sqlite_url, future=True)
    SessionLocal = sessionmaker(bind=engine, future=True)

    with SessionLocal() as session:
        for _ in range(2):
            session.add(
                NewsArticle(
                    article_id="dup",
                    title="t",
                    category="TV",
                    country="GB",
                    last_fetched_at=datetime.now(timezone.utc),
                )
            )
        with pytest.raises(IntegrityError):
            session.commit()
