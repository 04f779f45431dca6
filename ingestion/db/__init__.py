"""Database utilities for the news ingestion service."""

from .models import Base, HomePageContent, JobRun, JobStage, JobStatus, NewsArticle  # noqa: F401
from .session import get_engine, get_sessionmaker, init_schema, session_scope  # noqa: F401

__all__ = [
    "Base",
    "HomePageContent",
    "JobRun",
    "JobStage",
    "JobStatus",
    "NewsArticle",
    "get_engine",
    "get_sessionmaker",
    "init_schema",
    "session_scope",
]
