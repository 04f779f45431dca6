"""Fetch the full category x country matrix from the news provider."""

from __future__ import annotations

from itertools import product
from typing import List, Optional, Sequence

from ingestion.connectors.base import BaseConnector, ProviderCredentialMissing, ProviderUnavailable
from ingestion.connectors.imdb_news import IMDbNewsConnector
from ingestion.models.domain import FetchResult, Partition, PartitionError, RawArticle
from ingestion.settings import Settings, get_settings
from ingestion.utils.logging import get_logger

logger = get_logger(__name__)


class SourceFetcher:
    """Calls the connector once per partition and never lets one partition abort the rest."""

    def __init__(
        self,
        connector: BaseConnector,
        categories: Sequence[str],
        countries: Sequence[str],
        *,
        max_attempts: int = 2,
    ) -> None:
        self._connector = connector
        self._categories = list(categories)
        self._countries = list(countries)
        self._max_attempts = max_attempts

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        connector: Optional[BaseConnector] = None,
    ) -> "SourceFetcher":
        cfg = settings or get_settings()
        return cls(
            connector or IMDbNewsConnector(settings=cfg),
            cfg.news_categories,
            cfg.news_countries,
            max_attempts=int(cfg.news_api_max_attempts),
        )

    @property
    def partitions(self) -> List[Partition]:
        return [Partition(category, country) for category, country in product(self._categories, self._countries)]

    def fetch_all(self) -> FetchResult:
        result = FetchResult()
        for partition in self.partitions:
            try:
                nodes = self._connector.fetch_partition(partition, max_attempts=self._max_attempts)
            except ProviderCredentialMissing:
                logger.error("fetch.credential_missing", extra={"partition": str(partition)})
                raise
            except ProviderUnavailable as exc:
                logger.warning("fetch.partition.failed", extra={"partition": str(partition), "error": str(exc)})
                result.partition_errors.append(
                    PartitionError(category=partition.category, country=partition.country, error=str(exc))
                )
                continue
            result.records.extend(
                RawArticle(category=partition.category, country=partition.country, payload=node) for node in nodes
            )
            logger.info("fetch.partition.ok", extra={"partition": str(partition), "fetched": len(nodes)})

        logger.info(
            "fetch.done",
            extra={"fetched": len(result.records), "failed_partitions": len(result.partition_errors)},
        )
        return result
