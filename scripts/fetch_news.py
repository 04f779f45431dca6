"""Run one fetch-and-store pass from the command line.

Usage:
  uv run -- python scripts/fetch_news.py --categories MOVIE --countries US

Reads configuration from .env via pydantic settings. Requires RAPIDAPI_KEY.
Prints the refresh stats and any failed partitions.

Exit codes: 0 ok, 2 credential missing, 3 store unavailable, 4 unexpected error.
"""

from __future__ import annotations

import argparse
import json
import os
from typing import List

from ingestion.connectors.base import ProviderCredentialMissing
from ingestion.repositories.articles import StoreUnavailable
from ingestion.settings import get_settings, reset_settings_cache
from ingestion.tasks.fetch import fetch_core
from ingestion.utils.logging import configure_logging

EXIT_OK = 0
EXIT_CREDENTIAL_MISSING = 2
EXIT_STORE_UNAVAILABLE = 3
EXIT_UNEXPECTED = 4


def main(argv: List[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Fetch news from the provider and upsert it into the store")
    parser.add_argument("--categories", help="Comma list overriding NEWS_CATEGORIES (e.g. MOVIE,TV)")
    parser.add_argument("--countries", help="Comma list overriding NEWS_COUNTRIES (e.g. US,GB)")
    parser.add_argument("--attempts", type=int, help="Max attempts per partition (overrides NEWS_API_MAX_ATTEMPTS)")
    parser.add_argument("--json", action="store_true", help="Print the result as JSON")
    args = parser.parse_args(argv)

    if args.categories:
        os.environ["NEWS_CATEGORIES"] = args.categories
    if args.countries:
        os.environ["NEWS_COUNTRIES"] = args.countries
    if args.attempts:
        os.environ["NEWS_API_MAX_ATTEMPTS"] = str(args.attempts)
    reset_settings_cache()

    try:
        cfg = get_settings()
    except RuntimeError as exc:
        print(f"Configuration error: {exc}")
        return EXIT_UNEXPECTED
    configure_logging(cfg.structlog_level, cfg.log_json)

    print(
        "Config:",
        {
            "endpoint": cfg.news_api_url,
            "categories": cfg.news_categories,
            "countries": cfg.news_countries,
            "language": cfg.news_language,
            "first": int(cfg.news_api_first),
        },
    )

    try:
        stats = fetch_core("cli")
    except ProviderCredentialMissing as exc:
        print(f"Credential missing: {exc}")
        return EXIT_CREDENTIAL_MISSING
    except StoreUnavailable as exc:
        print(f"Store unavailable: {exc}")
        return EXIT_STORE_UNAVAILABLE
    except Exception as exc:  # unexpected
        print(f"Unexpected error: {exc}")
        return EXIT_UNEXPECTED

    if args.json:
        print(json.dumps(stats.model_dump(), ensure_ascii=False))
        return EXIT_OK

    counters = stats.counters()
    print(
        f"Fetched {counters['total']} records: {counters['saved']} saved, "
        f"{counters['updated']} updated, {counters['skipped']} skipped."
    )
    for err in stats.partition_errors:
        print(f"  failed {err.category}/{err.country}: {err.error}")
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
