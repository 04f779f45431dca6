"""Stable article identifiers for provider nodes.

Resolution order trades determinism for availability:

1. the provider's own ``id``;
2. ``news_url_`` + base64 of the external URL, cut to 50 characters, so the
   same article fetched twice maps to the same id;
3. ``news_<slug>_<millis>_<random>`` built from the title. This last path is
   not deterministic and is only taken when there is neither id nor URL.
"""

from __future__ import annotations

import base64
import re
import secrets
import string
from datetime import datetime, timezone
from typing import Callable, Optional

from ingestion.models.domain import ProviderNode

URL_ID_PREFIX = "news_url_"
URL_ID_ENCODED_CHARS = 50
FALLBACK_PREFIX = "news_"
FALLBACK_TITLE_CHARS = 30
FALLBACK_RANDOM_CHARS = 7

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")
_RANDOM_ALPHABET = string.ascii_lowercase + string.digits


def _random_suffix() -> str:
    return "".join(secrets.choice(_RANDOM_ALPHABET) for _ in range(FALLBACK_RANDOM_CHARS))


def url_article_id(url: str) -> str:
    encoded = base64.b64encode(url.encode("utf-8")).decode("ascii")
    return f"{URL_ID_PREFIX}{encoded[:URL_ID_ENCODED_CHARS]}"


def title_slug(title: str) -> str:
    slug = _NON_ALNUM.sub("", title[:FALLBACK_TITLE_CHARS]).lower()
    return slug or "untitled"


def fallback_article_id(
    title: str,
    published_at: Optional[datetime],
    *,
    now: Optional[datetime] = None,
    random_suffix: Callable[[], str] = _random_suffix,
) -> str:
    moment = published_at or now or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    millis = int(moment.timestamp() * 1000)
    return f"{FALLBACK_PREFIX}{title_slug(title)}_{millis}_{random_suffix()}"


def resolve_article_id(
    node: ProviderNode,
    *,
    now: Optional[datetime] = None,
    random_suffix: Callable[[], str] = _random_suffix,
) -> str:
    if node.id and node.id.strip():
        return node.id
    url = (node.external_url or "").strip()
    if url:
        return url_article_id(url)
    return fallback_article_id(node.title, node.date, now=now, random_suffix=random_suffix)
