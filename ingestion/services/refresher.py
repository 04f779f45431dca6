"""Fetch-and-store sequence and the read-path refresh coordinator.

The coordinator owns a process-local ``RefreshState``. It keeps at most one
refresh running per process; it is not a lock across processes, and
overlapping refreshes from separate processes are tolerated because upserts
are idempotent by article id.

Background refreshes run on a detached daemon thread. The caller never joins
it: its result is only logged, and its failures never reach the read request
that triggered it.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, List, Optional, Protocol

from ingestion.models.domain import (
    DEFAULT_LANGUAGE,
    ArticleFilter,
    ArticleRecord,
    FetchResult,
    PartitionError,
    RefreshStats,
)
from ingestion.repositories.articles import RecordRejected
from ingestion.services.normalizer import NormalizationSkipped, normalize_article
from ingestion.utils.logging import get_logger

logger = get_logger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
DEFAULT_STALENESS = timedelta(hours=12)
DEFAULT_COOLDOWN = timedelta(minutes=5)


class RefreshFailed(Exception):
    """The blocking refresh of an empty store produced no data."""

    def __init__(self, message: str, partition_errors: Optional[List[PartitionError]] = None) -> None:
        super().__init__(message)
        self.partition_errors = list(partition_errors or [])


class Fetcher(Protocol):
    def fetch_all(self) -> FetchResult: ...  # noqa: D401


class Store(Protocol):
    def upsert(self, record: ArticleRecord) -> bool: ...  # noqa: D401
    def most_recent_fetch(self, flt: Optional[ArticleFilter] = None) -> Optional[datetime]: ...  # noqa: D401


RefreshFn = Callable[[str], RefreshStats]
Clock = Callable[[], datetime]
Spawner = Callable[[Callable[[], None]], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def fetch_and_store(
    fetcher: Fetcher,
    store: Store,
    *,
    language: str = DEFAULT_LANGUAGE,
    clock: Clock = _utcnow,
) -> RefreshStats:
    """Fetch every partition, normalize each record and upsert it in provider order."""
    result = fetcher.fetch_all()
    stats = RefreshStats(total=len(result.records), partition_errors=list(result.partition_errors))
    if not result.records:
        logger.warning("refresh.nothing_fetched", extra={"failed_partitions": len(result.partition_errors)})
        return stats

    fetched_at = clock()
    for raw in result.records:
        try:
            record = normalize_article(raw, fetched_at=fetched_at, language=language)
        except NormalizationSkipped as exc:
            stats.skipped += 1
            logger.info(
                "refresh.record.skipped",
                extra={"partition": str(raw.partition), "reason": exc.reason, "article_id": exc.article_id},
            )
            continue
        try:
            created = store.upsert(record)
        except RecordRejected as exc:
            stats.skipped += 1
            logger.warning(
                "refresh.record.rejected",
                extra={"partition": str(raw.partition), "reason": exc.reason, "article_id": exc.article_id},
            )
            continue
        if created:
            stats.saved += 1
        else:
            stats.updated += 1

    logger.info("refresh.stored", extra=stats.counters())
    return stats


class RefreshMode(str, Enum):
    NONE = "none"
    BLOCKING = "blocking"
    BACKGROUND = "background"


class StalenessReason(str, Enum):
    FRESH = "fresh"
    STORE_EMPTY = "store_empty"
    FILTER_EMPTY = "filter_empty"
    STALE = "stale"


@dataclass
class RefreshState:
    is_refreshing: bool = False
    last_attempt_at: datetime = EPOCH


@dataclass(frozen=True)
class StalenessCheck:
    reason: StalenessReason
    last_fetched_at: Optional[datetime] = None

    @property
    def due(self) -> bool:
        return self.reason is not StalenessReason.FRESH

    @property
    def blocking(self) -> bool:
        return self.reason is StalenessReason.STORE_EMPTY


@dataclass
class RefreshOutcome:
    """What ``ensure_fresh`` decided and, for the blocking path, the stats."""

    check: StalenessCheck
    mode: RefreshMode = RefreshMode.NONE
    stats: Optional[RefreshStats] = None
    skipped_reason: Optional[str] = None


def _spawn_thread(target: Callable[[], None]) -> None:
    threading.Thread(target=target, name="news-refresh", daemon=True).start()


class RefreshCoordinator:
    """Decides when a read should trigger a refresh and how it runs."""

    def __init__(
        self,
        store: Store,
        refresh: RefreshFn,
        *,
        staleness: timedelta = DEFAULT_STALENESS,
        cooldown: timedelta = DEFAULT_COOLDOWN,
        clock: Clock = _utcnow,
        spawn: Spawner = _spawn_thread,
    ) -> None:
        self._store = store
        self._refresh = refresh
        self._staleness = staleness
        self._cooldown = cooldown
        self._clock = clock
        self._spawn = spawn
        self._state = RefreshState()
        self._lock = threading.Lock()

    @property
    def state(self) -> RefreshState:
        with self._lock:
            return RefreshState(self._state.is_refreshing, self._state.last_attempt_at)

    def check_staleness(self, flt: Optional[ArticleFilter] = None) -> StalenessCheck:
        overall = self._store.most_recent_fetch(None)
        if overall is None:
            return StalenessCheck(StalenessReason.STORE_EMPTY)
        filtered = overall if flt is None or flt.is_empty else self._store.most_recent_fetch(flt)
        if filtered is None:
            return StalenessCheck(StalenessReason.FILTER_EMPTY)
        if self._clock() - filtered > self._staleness:
            return StalenessCheck(StalenessReason.STALE, filtered)
        return StalenessCheck(StalenessReason.FRESH, filtered)

    def _try_begin(self) -> Optional[str]:
        """Move Idle -> Refreshing; returns why not when the transition is refused."""
        with self._lock:
            if self._state.is_refreshing:
                return "in_progress"
            now = self._clock()
            if now - self._state.last_attempt_at <= self._cooldown:
                return "cooldown"
            self._state.is_refreshing = True
            self._state.last_attempt_at = now
            return None

    def _finish(self) -> None:
        with self._lock:
            self._state.is_refreshing = False

    def ensure_fresh(self, flt: Optional[ArticleFilter] = None) -> RefreshOutcome:
        """Run the read-path refresh policy before the caller queries the store.

        An empty store refreshes synchronously and failures propagate. Stale or
        missing filtered data refreshes in the background and the caller
        proceeds with what is already stored.
        """
        check = self.check_staleness(flt)
        if not check.due:
            return RefreshOutcome(check)

        refused = self._try_begin()
        if refused is not None:
            logger.info("refresh.not_started", extra={"reason": refused, "staleness": check.reason.value})
            return RefreshOutcome(check, skipped_reason=refused)

        if check.blocking:
            logger.info("refresh.blocking.start", extra={"staleness": check.reason.value})
            try:
                stats = self._refresh("read_blocking")
            finally:
                self._finish()
            if stats.total == 0 and stats.partition_errors:
                raise RefreshFailed(
                    f"initial fetch failed for all {len(stats.partition_errors)} partitions",
                    stats.partition_errors,
                )
            return RefreshOutcome(check, RefreshMode.BLOCKING, stats)

        logger.info("refresh.background.start", extra={"staleness": check.reason.value})
        try:
            self._spawn(self._run_background)
        except Exception:
            self._finish()
            raise
        return RefreshOutcome(check, RefreshMode.BACKGROUND)

    def _run_background(self) -> None:
        try:
            stats = self._refresh("read_background")
            logger.info("refresh.background.done", extra=stats.counters())
        except Exception:
            logger.exception("refresh.background.failed")
        finally:
            self._finish()

    def refresh_now(self, trigger: str = "manual") -> RefreshStats:
        """Run one fetch-and-store right away, ignoring staleness and cooldown."""
        with self._lock:
            owns_flag = not self._state.is_refreshing
            self._state.is_refreshing = True
            self._state.last_attempt_at = self._clock()
        try:
            return self._refresh(trigger)
        finally:
            if owns_flag:
                self._finish()
