from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List

import pytest

from ingestion.connectors.base import (
    PermanentError,
    ProviderCredentialMissing,
    TransientError,
    extract_nodes,
)
from ingestion.connectors.imdb_news import IMDbNewsConnector
from ingestion.models.domain import Partition, RawArticle
from ingestion.services.fetcher import SourceFetcher
from ingestion.services.normalizer import NormalizationSkipped, normalize_article
from ingestion.settings import Settings


def _envelope(nodes: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {"data": {"news": {"edges": [{"node": n} for n in nodes]}}}


def _node(article_id: str, title: str = "Headline") -> Dict[str, Any]:
    return {
        "id": article_id,
        "articleTitle": {"plainText": title},
        "text": {"plainText": f"body of {article_id}"},
        "image": {"url": f"https://img.ex.com/{article_id}.jpg"},
        "byline": "Staff",
        "date": "2026-10-01T10:00:00Z",
        "externalUrl": f"https://ex.com/{article_id}",
    }


def test_extract_nodes_drops_edges_without_node():
    envelope = {"data": {"news": {"edges": [{"node": {"id": "a"}}, {"cursor": "x"}, {"node": None}, "junk"]}}}

    assert extract_nodes(envelope) == [{"id": "a"}]


def test_extract_nodes_accepts_null_edges():
    assert extract_nodes({"data": {"news": {"edges": None}}}) == []


@pytest.mark.parametrize(
    "envelope",
    [[], {"data": None}, {"data": {"news": "oops"}}, {"data": {"news": {"edges": {"node": {}}}}}],
)
def test_extract_nodes_rejects_malformed_envelope(envelope):
    with pytest.raises(PermanentError):
        extract_nodes(envelope)


def test_connector_retries_transient_errors():
    calls: List[Partition] = []

    def provider(partition: Partition) -> Dict[str, Any]:
        calls.append(partition)
        if len(calls) == 1:
            raise TransientError("rate limited")
        return _envelope([_node("ni1")])

    connector = IMDbNewsConnector(provider=provider)
    nodes = connector.fetch_partition(Partition("MOVIE", "US"), max_attempts=2)

    assert [n["id"] for n in nodes] == ["ni1"]
    assert len(calls) == 2


def test_connector_gives_up_after_max_attempts():
    def provider(_partition: Partition) -> Dict[str, Any]:
        raise TransientError("still down")

    connector = IMDbNewsConnector(provider=provider)
    with pytest.raises(TransientError):
        connector.fetch_partition(Partition("TV", "GB"), max_attempts=2)


def test_connector_without_credential_raises(monkeypatch):
    settings = Settings(
        redis_url="redis://localhost:6379/0",
        database_url="sqlite:///:memory:",
        rapidapi_key=None,
    )
    connector = IMDbNewsConnector(settings=settings)

    with pytest.raises(ProviderCredentialMissing):
        connector.fetch_partition(Partition("MOVIE", "US"))


def test_normalize_article_maps_provider_node():
    fetched_at = datetime(2026, 10, 18, 9, 0, tzinfo=timezone.utc)
    raw = RawArticle(category="MOVIE", country="US", payload=_node("ni42", title="  Oppenheimer 2  "))

    record = normalize_article(raw, fetched_at=fetched_at, language="en-US")

    assert record.id == "ni42"
    assert record.title == "Oppenheimer 2"
    assert record.body_text == "body of ni42"
    assert record.image_url == "https://img.ex.com/ni42.jpg"
    assert record.external_url == "https://ex.com/ni42"
    assert record.published_at == datetime(2026, 10, 1, 10, 0, tzinfo=timezone.utc)
    assert (record.category, record.country, record.language) == ("MOVIE", "US", "en-US")
    assert record.last_fetched_at == fetched_at
    assert record.raw_source["id"] == "ni42"


def test_normalize_article_skips_missing_title():
    raw = RawArticle(category="TV", country="GB", payload={"id": "ni7", "articleTitle": {"plainText": "   "}})

    with pytest.raises(NormalizationSkipped) as exc:
        normalize_article(raw)

    assert exc.value.reason == "missing title"
    assert exc.value.article_id == "ni7"


def test_normalize_article_skips_invalid_node():
    raw = RawArticle(category="TV", country="GB", payload={"id": "ni8", "date": "not a date"})

    with pytest.raises(NormalizationSkipped):
        normalize_article(raw)


def test_normalize_article_skips_oversized_title():
    raw = RawArticle(category="MOVIE", country="US", payload=_node("ni9", title="x" * 1500))

    with pytest.raises(NormalizationSkipped) as exc:
        normalize_article(raw)

    assert exc.value.article_id == "ni9"
    assert "title" in exc.value.reason


def test_fetcher_records_failed_partition_and_continues():
    def provider(partition: Partition) -> Dict[str, Any]:
        if partition == Partition("TV", "GB"):
            raise PermanentError("provider returned 500")
        return _envelope([_node(f"{partition.category}-{partition.country}")])

    fetcher = SourceFetcher(IMDbNewsConnector(provider=provider), ["MOVIE", "TV"], ["US", "GB"], max_attempts=1)
    result = fetcher.fetch_all()

    assert len(result.records) == 3
    assert {(r.category, r.country) for r in result.records} == {("MOVIE", "US"), ("MOVIE", "GB"), ("TV", "US")}
    assert len(result.partition_errors) == 1
    error = result.partition_errors[0]
    assert (error.category, error.country) == ("TV", "GB")
    assert "500" in error.error


def test_fetcher_tags_records_with_partition():
    def provider(partition: Partition) -> Dict[str, Any]:
        return _envelope([_node("shared")])

    fetcher = SourceFetcher(IMDbNewsConnector(provider=provider), ["MOVIE"], ["US", "GB"])
    result = fetcher.fetch_all()

    assert [(r.category, r.country) for r in result.records] == [("MOVIE", "US"), ("MOVIE", "GB")]
    assert result.partition_errors == []


def test_fetcher_aborts_on_missing_credential():
    calls: List[Partition] = []

    def provider(partition: Partition) -> Dict[str, Any]:
        calls.append(partition)
        raise ProviderCredentialMissing("RAPIDAPI_KEY is not configured")

    fetcher = SourceFetcher(IMDbNewsConnector(provider=provider), ["MOVIE", "TV"], ["US"])

    with pytest.raises(ProviderCredentialMissing):
        fetcher.fetch_all()
    assert len(calls) == 1
