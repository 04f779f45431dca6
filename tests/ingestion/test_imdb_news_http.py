from __future__ import annotations

import pytest

pytest.importorskip("pytest_httpx")

from ingestion.connectors.base import PermanentError, TransientError
from ingestion.connectors.imdb_news import IMDbNewsConnector
from ingestion.models.domain import Partition
from ingestion.services.fetcher import SourceFetcher
from ingestion.settings import reset_settings_cache

BASE = "https://imdb8.p.rapidapi.com/news/v2/get-by-category"


def _url(category: str, country: str) -> str:
    return f"{BASE}?category={category}&first=1000&country={country}&language=en-US"


@pytest.fixture(autouse=True)
def _env(monkeypatch):
    monkeypatch.setenv("RAPIDAPI_KEY", "test-key")
    monkeypatch.setenv("RAPIDAPI_HOST", "imdb8.p.rapidapi.com")
    monkeypatch.setenv("NEWS_API_TIMEOUT_SECONDS", "5")
    monkeypatch.setenv("NEWS_API_MAX_ATTEMPTS", "1")
    monkeypatch.setenv("INGESTION_REDIS_URL", "redis://localhost:6379/0")
    monkeypatch.setenv("DATABASE_URL", "sqlite:///./var/dev.db")
    reset_settings_cache()
    yield
    reset_settings_cache()


def _payload(article_id: str) -> dict:
    return {
        "data": {
            "news": {
                "edges": [
                    {
                        "node": {
                            "id": article_id,
                            "articleTitle": {"plainText": f"Story {article_id}"},
                            "externalUrl": f"https://ex.com/{article_id}",
                        }
                    }
                ]
            }
        }
    }


def test_imdb_news_sends_credentials_and_partition_params(httpx_mock):
    httpx_mock.add_response(method="GET", url=_url("MOVIE", "US"), json=_payload("ni1"), status_code=200)

    connector = IMDbNewsConnector()  # real HTTP path
    nodes = connector.fetch_partition(Partition("MOVIE", "US"), max_attempts=1)

    assert [n["id"] for n in nodes] == ["ni1"]
    request = httpx_mock.get_requests()[0]
    assert request.headers["x-rapidapi-key"] == "test-key"
    assert request.headers["x-rapidapi-host"] == "imdb8.p.rapidapi.com"


def test_imdb_news_rate_limit_raises_transient(httpx_mock):
    httpx_mock.add_response(method="GET", url=_url("MOVIE", "US"), json={"message": "slow down"}, status_code=429)

    connector = IMDbNewsConnector()
    with pytest.raises(TransientError):
        connector.fetch_partition(Partition("MOVIE", "US"), max_attempts=1)


def test_imdb_news_client_error_is_permanent(httpx_mock):
    httpx_mock.add_response(method="GET", url=_url("TV", "GB"), json={"message": "forbidden"}, status_code=403)

    connector = IMDbNewsConnector()
    with pytest.raises(PermanentError):
        connector.fetch_partition(Partition("TV", "GB"), max_attempts=1)


def test_imdb_news_non_json_body_is_permanent(httpx_mock):
    httpx_mock.add_response(method="GET", url=_url("TV", "US"), text="<html>oops</html>", status_code=200)

    connector = IMDbNewsConnector()
    with pytest.raises(PermanentError):
        connector.fetch_partition(Partition("TV", "US"), max_attempts=1)


def test_fetch_all_survives_one_failing_partition(httpx_mock):
    httpx_mock.add_response(method="GET", url=_url("MOVIE", "US"), json=_payload("m-us"))
    httpx_mock.add_response(method="GET", url=_url("MOVIE", "GB"), json=_payload("m-gb"))
    httpx_mock.add_response(method="GET", url=_url("TV", "US"), json=_payload("t-us"))
    httpx_mock.add_response(method="GET", url=_url("TV", "GB"), json={"error": "boom"}, status_code=500)

    result = SourceFetcher.from_settings().fetch_all()

    assert sorted(r.payload["id"] for r in result.records) == ["m-gb", "m-us", "t-us"]
    assert [(e.category, e.country) for e in result.partition_errors] == [("TV", "GB")]
