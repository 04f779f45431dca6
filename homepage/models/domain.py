"""DTOs for homepage copy generation."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List

from pydantic import BaseModel, Field, field_validator


class HeadlineItem(BaseModel):
    """One stored article summarized for the prompt."""

    article_id: str
    title: str = Field(..., max_length=1024)
    text: str = ""

    @field_validator("title")
    @classmethod
    def _strip_title(cls, v: str) -> str:
        s = v.strip()
        if not s:
            raise ValueError("title must not be blank")
        return s


class HomepageInput(BaseModel):
    """Prompt input: the headlines and how much body text to include per item."""

    items: List[HeadlineItem] = Field(default_factory=list)
    excerpt_chars: int = Field(200, ge=0, le=2000)

    @field_validator("items")
    @classmethod
    def _non_empty_items(cls, v: List[HeadlineItem]) -> List[HeadlineItem]:
        if len(v) == 0:
            raise ValueError("at least one article is required")
        return v


class HomepageContentResult(BaseModel):
    """Validated LLM output plus call metadata."""

    title: str = Field(..., max_length=512)
    description: str = Field(..., max_length=4000)
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    llm_model: str
    llm_tokens_prompt: int = Field(..., ge=0)
    llm_tokens_completion: int = Field(..., ge=0)
    llm_cost: float = Field(..., ge=0.0)

    @field_validator("title", "description")
    @classmethod
    def _strip_nonempty(cls, v: str) -> str:
        s = v.strip()
        if not s:
            raise ValueError("field must not be blank")
        return s
