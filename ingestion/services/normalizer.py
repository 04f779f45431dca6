"""Turn partition-tagged provider payloads into ArticleRecords."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import ValidationError

from ingestion.models.domain import DEFAULT_LANGUAGE, ArticleRecord, ProviderNode, RawArticle
from ingestion.services.identity import resolve_article_id


class NormalizationSkipped(Exception):
    """The raw record cannot become an ArticleRecord; it is counted and dropped."""

    def __init__(self, reason: str, *, article_id: Optional[str] = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.article_id = article_id


def parse_node(raw: RawArticle) -> ProviderNode:
    try:
        return ProviderNode.model_validate(raw.payload)
    except ValidationError as exc:
        raise NormalizationSkipped(f"invalid provider node: {exc.error_count()} error(s)") from exc


def normalize_article(
    raw: RawArticle,
    *,
    fetched_at: Optional[datetime] = None,
    language: str = DEFAULT_LANGUAGE,
) -> ArticleRecord:
    node = parse_node(raw)
    fetched_at = fetched_at or datetime.now(timezone.utc)
    article_id = resolve_article_id(node, now=fetched_at)
    title = node.title
    if not title:
        raise NormalizationSkipped("missing title", article_id=article_id)

    image_url = node.image.url if node.image is not None else None
    try:
        return ArticleRecord(
            id=article_id,
            title=title,
            body_text=node.body_text,
            image_url=image_url or None,
            byline=node.byline or None,
            external_url=node.external_url or None,
            published_at=node.date,
            category=raw.category,
            country=raw.country,
            language=language,
            raw_source=dict(raw.payload),
            last_fetched_at=fetched_at,
        )
    except ValidationError as exc:
        fields = ", ".join(str(err["loc"][0]) for err in exc.errors() if err["loc"])
        raise NormalizationSkipped(f"invalid field(s): {fields}", article_id=article_id) from exc
