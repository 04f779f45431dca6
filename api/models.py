from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from ingestion.models.domain import ArticleRecord, PartitionError, RefreshStats


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class PlainTextOut(_CamelModel):
    plain_text: str = Field(..., alias="plainText")


class ImageOut(BaseModel):
    url: str | None = None


class NewsNode(_CamelModel):
    id: str
    article_title: PlainTextOut = Field(..., alias="articleTitle")
    text: PlainTextOut
    image: ImageOut
    byline: str | None = None
    date: datetime | None = None
    external_url: str | None = Field(None, alias="externalUrl")
    category: str
    country: str
    language: str

    @classmethod
    def from_record(cls, record: ArticleRecord) -> "NewsNode":
        return cls(
            id=record.id,
            article_title=PlainTextOut(plain_text=record.title),
            text=PlainTextOut(plain_text=record.body_text),
            image=ImageOut(url=record.image_url),
            byline=record.byline,
            date=record.published_at or record.created_at,
            external_url=record.external_url,
            category=record.category,
            country=record.country,
            language=record.language,
        )


class NewsEdge(BaseModel):
    node: NewsNode


class NewsConnection(BaseModel):
    edges: list[NewsEdge] = Field(default_factory=list)


class NewsData(BaseModel):
    news: NewsConnection


class NewsResponse(BaseModel):
    data: NewsData

    @classmethod
    def from_records(cls, records: list[ArticleRecord]) -> "NewsResponse":
        edges = [NewsEdge(node=NewsNode.from_record(r)) for r in records]
        return cls(data=NewsData(news=NewsConnection(edges=edges)))


class FetchStats(BaseModel):
    saved: int
    updated: int
    skipped: int
    total: int


class FetchResponse(BaseModel):
    success: bool = True
    stats: FetchStats
    partition_errors: list[PartitionError] = Field(default_factory=list)

    @classmethod
    def from_stats(cls, stats: RefreshStats) -> "FetchResponse":
        return cls(stats=FetchStats(**stats.counters()), partition_errors=stats.partition_errors)


class DebugEnvironment(BaseModel):
    credential_configured: bool
    database_configured: bool
    is_refreshing: bool


class DebugResponse(BaseModel):
    total: int
    by_category: dict[str, int]
    by_country: dict[str, int]
    last_fetched_at: datetime | None = None
    samples: list[NewsNode] = Field(default_factory=list)
    environment: DebugEnvironment


class HomepageResponse(BaseModel):
    title: str
    description: str
    updated_by: str
    updated_at: datetime
    source_article_ids: list[str] = Field(default_factory=list)
    llm_model: str
