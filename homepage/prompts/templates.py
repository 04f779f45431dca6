"""Prompt builder for the homepage title/description."""

from __future__ import annotations

import json
from typing import List

from homepage.models.domain import HomepageInput

MIN_TITLE_CHARS = 50
MIN_DESCRIPTION_CHARS = 150

JSON_SCHEMA_SNIPPET = (
    "{"
    f'"title": string (at least {MIN_TITLE_CHARS} chars), '
    f'"description": string (at least {MIN_DESCRIPTION_CHARS} chars)'
    "}"
)


def build_homepage_messages(inp: HomepageInput) -> List[dict]:
    """System message with the output contract, user message with the headlines."""
    system = (
        "You write the landing-page copy for a movie and TV news site.\n"
        "Read the supplied news articles and produce an exciting title about the latest\n"
        "movie news and a description of the current news, trends and entertainment\n"
        "industry updates.\n\n"
        f"Output: JSON ONLY, no notes, no code fences. Schema: {JSON_SCHEMA_SNIPPET}.\n"
        "Do not invent facts that are not in the articles."
    )
    articles = [
        {"title": item.title, "text": item.text[: inp.excerpt_chars]}
        for item in inp.items
    ]
    user = "Analyze these movie news articles:\n" + json.dumps(articles, ensure_ascii=False)
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": user},
    ]
