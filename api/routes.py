from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse

from ingestion.connectors.base import ProviderCredentialMissing
from ingestion.db.session import session_scope
from ingestion.models.domain import ArticleFilter
from ingestion.repositories.articles import StoreUnavailable
from ingestion.services.refresher import RefreshFailed
from ingestion.utils.logging import get_logger
from homepage.repositories.content import get_latest_homepage_content

from .models import DebugResponse, FetchResponse, HomepageResponse, NewsNode, NewsResponse
from .news_service import NewsService, get_news_service

router = APIRouter(prefix="/api")
logger = get_logger(__name__)

ServiceDep = Annotated[NewsService, Depends(get_news_service)]

_READ_ERRORS = (StoreUnavailable, ProviderCredentialMissing, RefreshFailed)


def _error_details(exc: Exception) -> str:
    if isinstance(exc, RefreshFailed) and exc.partition_errors:
        failed = ", ".join(f"{e.category}/{e.country}: {e.error}" for e in exc.partition_errors)
        return f"{exc} ({failed})"
    return str(exc)


@router.get("/news", response_model=NewsResponse)
def read_news_route(
    service: ServiceDep,
    category: str | None = Query(default=None),
    country: str | None = Query(default=None),
    language: str | None = Query(default=None),
    first: int | None = Query(default=None, gt=0),
):
    flt = ArticleFilter(category=category, country=country)
    try:
        records = service.read(flt, first)
    except _READ_ERRORS as exc:
        logger.error(
            "news.read.failed",
            extra={"error": str(exc), "error_type": type(exc).__name__, "language": language},
        )
        return JSONResponse(
            status_code=500,
            content={"error": "Failed to fetch news", "details": _error_details(exc)},
        )
    except Exception as exc:
        logger.exception("news.read.failed", extra={"error_type": type(exc).__name__, "language": language})
        return JSONResponse(
            status_code=500,
            content={"error": "Failed to fetch news", "details": str(exc)},
        )
    return NewsResponse.from_records(records)


@router.api_route("/news/fetch", methods=["GET", "POST"], response_model=FetchResponse)
def fetch_news_route(service: ServiceDep):
    try:
        stats = service.fetch_now()
    except (StoreUnavailable, ProviderCredentialMissing) as exc:
        logger.error("news.fetch.failed", extra={"error": str(exc), "error_type": type(exc).__name__})
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "Failed to fetch news", "details": str(exc)},
        )
    except Exception as exc:
        logger.exception("news.fetch.failed", extra={"error_type": type(exc).__name__})
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "Failed to fetch news", "details": str(exc)},
        )
    return FetchResponse.from_stats(stats)


@router.get("/news/debug", response_model=DebugResponse)
def debug_news_route(service: ServiceDep):
    try:
        snapshot = service.debug_snapshot()
    except Exception as exc:
        logger.exception("news.debug.failed", extra={"error_type": type(exc).__name__})
        return JSONResponse(
            status_code=500,
            content={"error": "Debug failed", "details": str(exc)},
        )
    snapshot["samples"] = [NewsNode.from_record(r) for r in snapshot["samples"]]
    return DebugResponse(**snapshot)


@router.get("/homepage", response_model=HomepageResponse)
def homepage_route() -> HomepageResponse:
    with session_scope() as session:
        entity = get_latest_homepage_content(session)
        if entity is None:
            raise HTTPException(status_code=404, detail="Homepage content not found.")
        return HomepageResponse(
            title=entity.title,
            description=entity.description,
            updated_by=entity.updated_by,
            updated_at=entity.updated_at,
            source_article_ids=list(entity.source_article_ids or []),
            llm_model=entity.llm_model,
        )
