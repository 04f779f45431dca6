"""Domain DTOs for the news ingestion pipeline."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_LANGUAGE = "en-US"


class Partition(NamedTuple):
    """One (category, country) pair of the fetch matrix."""

    category: str
    country: str

    def __str__(self) -> str:
        return f"{self.category}/{self.country}"


class PlainText(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    plain_text: Optional[str] = Field(None, alias="plainText")


class ImageRef(BaseModel):
    model_config = ConfigDict(extra="allow")

    url: Optional[str] = None


class ProviderNode(BaseModel):
    """A provider ``node`` payload; every field is optional upstream."""

    model_config = ConfigDict(populate_by_name=True, extra="allow", coerce_numbers_to_str=True)

    id: Optional[str] = None
    article_title: Optional[PlainText] = Field(None, alias="articleTitle")
    text: Optional[PlainText] = None
    image: Optional[ImageRef] = None
    byline: Optional[str] = None
    date: Optional[datetime] = None
    external_url: Optional[str] = Field(None, alias="externalUrl")

    @property
    def title(self) -> str:
        if self.article_title is None or self.article_title.plain_text is None:
            return ""
        return self.article_title.plain_text.strip()

    @property
    def body_text(self) -> str:
        if self.text is None or self.text.plain_text is None:
            return ""
        return self.text.plain_text.strip()


class RawArticle(BaseModel):
    """Provider payload tagged with the partition it was fetched from."""

    category: str
    country: str
    payload: Dict[str, Any] = Field(default_factory=dict)

    @property
    def partition(self) -> Partition:
        return Partition(self.category, self.country)


class ArticleRecord(BaseModel):
    """The persisted, deduplicated article."""

    # lengths mirror the news_articles columns
    id: str = Field(..., min_length=1, max_length=255, description="Stable article identifier")
    title: str = Field(..., min_length=1, max_length=1024)
    body_text: str = ""
    image_url: Optional[str] = Field(default=None, max_length=2048)
    byline: Optional[str] = Field(default=None, max_length=512)
    external_url: Optional[str] = Field(default=None, max_length=2048)
    published_at: Optional[datetime] = None
    category: str = Field(..., max_length=16)
    country: str = Field(..., max_length=8)
    language: str = Field(default=DEFAULT_LANGUAGE, max_length=16)
    raw_source: Dict[str, Any] = Field(default_factory=dict)
    last_fetched_at: datetime
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ArticleFilter(BaseModel):
    """Optional category/country restriction; ``ALL`` or blank means unfiltered."""

    model_config = ConfigDict(frozen=True)

    category: Optional[str] = None
    country: Optional[str] = None

    @field_validator("category", "country", mode="before")
    @classmethod
    def _normalize(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        code = str(value).strip().upper()
        if not code or code == "ALL":
            return None
        return code

    @property
    def is_empty(self) -> bool:
        return self.category is None and self.country is None


class PartitionError(BaseModel):
    category: str
    country: str
    error: str


class FetchResult(BaseModel):
    records: List[RawArticle] = Field(default_factory=list)
    partition_errors: List[PartitionError] = Field(default_factory=list)


class RefreshStats(BaseModel):
    """Counters of one fetch-and-store sequence."""

    saved: int = 0
    updated: int = 0
    skipped: int = 0
    total: int = 0
    partition_errors: List[PartitionError] = Field(default_factory=list)

    def counters(self) -> Dict[str, int]:
        return {"saved": self.saved, "updated": self.updated, "skipped": self.skipped, "total": self.total}
