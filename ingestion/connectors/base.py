"""Connector abstraction, errors, and envelope helpers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List

from ingestion.models.domain import Partition


class ConnectorError(Exception):
    """Base connector error."""


class ProviderUnavailable(ConnectorError):
    """A single partition could not be fetched; the fetch moves on."""


class TransientError(ProviderUnavailable):
    """Retryable error (e.g., rate limit, network hiccup)."""


class PermanentError(ProviderUnavailable):
    """Non-retryable error (e.g., 4xx semantics, malformed envelope)."""


class ProviderCredentialMissing(ConnectorError):
    """No credential is configured, so no partition can succeed."""


def extract_nodes(envelope: Any) -> List[Dict[str, Any]]:
    """Return the ``node`` dicts of a ``{data:{news:{edges:[{node}]}}}`` envelope.

    Edges without a node object are dropped. A missing or non-object level of
    the envelope raises PermanentError.
    """
    if not isinstance(envelope, dict):
        raise PermanentError("malformed envelope: top level is not an object")
    data = envelope.get("data")
    if not isinstance(data, dict):
        raise PermanentError("malformed envelope: missing 'data'")
    news = data.get("news")
    if not isinstance(news, dict):
        raise PermanentError("malformed envelope: missing 'data.news'")
    edges = news.get("edges") or []
    if not isinstance(edges, list):
        raise PermanentError("malformed envelope: 'data.news.edges' is not a list")
    return [edge["node"] for edge in edges if isinstance(edge, dict) and isinstance(edge.get("node"), dict)]


class BaseConnector(ABC):
    """Abstract per-partition connector with retry on transient errors."""

    source: str

    def fetch_partition(self, partition: Partition, *, max_attempts: int = 2) -> List[Dict[str, Any]]:
        attempts = 0
        while True:
            attempts += 1
            try:
                return extract_nodes(self._fetch_raw(partition))
            except TransientError:
                if attempts >= max_attempts:
                    raise

    @abstractmethod
    def _fetch_raw(self, partition: Partition) -> Any:
        """Return the decoded upstream envelope for one partition."""
