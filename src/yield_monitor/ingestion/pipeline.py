"""Yield ingestion pipeline -- validate, normalize, cache, and announce readings.

The pipeline exclusively owns the snapshot cache and ingestion metrics. It is
synchronous and never suspends, so it can run inside a tick's completion
handler. It never raises to the caller: rejected readings are counted and
announced on the event channel instead.

Cache policy: at most one live snapshot per uppercase symbol; a new reading
replaces the entry. The bound is coarse: when full and a new symbol arrives,
the oldest-inserted entry is evicted (not LRU).

Ordering policy: a reading whose source timestamp is strictly older than the
cached snapshot's is discarded, so overlapping ticks cannot regress "latest".
"""

from collections import deque
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta
from typing import Any

from yield_monitor.broadcast.channel import EventChannel
from yield_monitor.exceptions import ValidationFailed
from yield_monitor.ingestion.models import (
    BatchIngestResult,
    IngestionEvent,
    IngestionEventType,
    IngestionMetrics,
)
from yield_monitor.ingestion.validation import validate_yield_info
from yield_monitor.logging import get_logger
from yield_monitor.models import YieldInfo, YieldSnapshot, ensure_utc, utcnow

logger = get_logger(__name__)

_TRACKED_FIELDS = ("supply_apy", "borrow_apy", "utilization_rate")


class IngestionPipeline:
    """Validates, normalizes, and caches YieldInfo readings.

    Args:
        source: Tag stamped on every snapshot (e.g. "aave-v3").
        max_cache_size: Maximum number of distinct symbols held.
        significant_change_threshold: Absolute delta (percentage points) on
            any tracked field that triggers a significant_change event.
        stale_after_seconds: Reading age that produces a validation warning.
        rate_window_seconds: Trailing window for the ingestion-rate metric.
        health_window_seconds: Max time since last ingestion to be healthy.
        event_queue_size: Bound of the event channel (drop-oldest).
        clock: Returns the current aware UTC datetime.
    """

    def __init__(
        self,
        source: str = "aave-v3",
        max_cache_size: int = 1000,
        significant_change_threshold: float = 0.1,
        stale_after_seconds: float = 300,
        rate_window_seconds: float = 60,
        health_window_seconds: float = 300,
        event_queue_size: int = 1000,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if max_cache_size < 1:
            raise ValueError("max_cache_size must be at least 1")
        self._source = source
        self._max_cache_size = max_cache_size
        self._threshold = significant_change_threshold
        self._stale_after = stale_after_seconds
        self._rate_window = timedelta(seconds=rate_window_seconds)
        self._health_window = health_window_seconds
        self._clock = clock
        self._cache: dict[str, YieldSnapshot] = {}
        self._ingestion_times: deque[datetime] = deque()
        self._metrics = IngestionMetrics()
        self.events: EventChannel[IngestionEvent] = EventChannel(event_queue_size)
        logger.info("ingestion_pipeline_initialized", max_cache_size=max_cache_size)

    # ──────────────────────────────────────────────
    # Ingestion
    # ──────────────────────────────────────────────

    def ingest(self, info: YieldInfo) -> YieldSnapshot | None:
        """Validate, normalize, and cache one reading.

        Returns:
            The cached snapshot, or None if the reading was rejected,
            discarded as out-of-order, or hit an internal error.
        """
        symbol = getattr(info, "symbol", None)
        try:
            return self._ingest(info)
        except ValidationFailed as exc:
            self._metrics.validation_failures += 1
            logger.warning("yield_validation_failed", symbol=symbol, errors=exc.errors)
            self._emit(IngestionEventType.VALIDATION_ERROR, symbol, {"errors": exc.errors})
            return None
        except Exception as exc:
            self._metrics.error_count += 1
            logger.error("yield_ingestion_error", symbol=symbol, exc_info=True)
            self._emit(IngestionEventType.INGESTION_ERROR, symbol, {"error": str(exc)})
            return None

    def _ingest(self, info: YieldInfo) -> YieldSnapshot | None:
        now = self._clock()
        validation = validate_yield_info(info, now, self._stale_after)
        if not validation.is_valid:
            raise ValidationFailed(getattr(info, "symbol", None), validation.errors)
        if validation.warnings:
            logger.warning(
                "yield_validation_warnings",
                symbol=info.symbol,
                warnings=validation.warnings,
            )

        snapshot = self._normalize(info, now)
        previous = self._cache.get(snapshot.symbol)

        if previous is not None and snapshot.timestamp < previous.timestamp:
            self._metrics.stale_discards += 1
            logger.info(
                "out_of_order_reading_discarded",
                symbol=snapshot.symbol,
                reading_time=snapshot.timestamp.isoformat(),
                cached_time=previous.timestamp.isoformat(),
            )
            return None

        self._store(snapshot)
        self._record_ingestion(now)

        self._emit(IngestionEventType.YIELD_INGESTED, snapshot.symbol, snapshot)
        if previous is not None and self.has_significant_change(previous, snapshot):
            self._emit(
                IngestionEventType.SIGNIFICANT_CHANGE,
                snapshot.symbol,
                {"previous": previous, "current": snapshot},
            )

        logger.debug(
            "yield_ingested",
            symbol=snapshot.symbol,
            supply_apy=snapshot.supply_apy,
            borrow_apy=snapshot.borrow_apy,
        )
        return snapshot

    def batch_ingest(self, infos: Iterable[YieldInfo]) -> BatchIngestResult:
        """Ingest each reading independently; one failure never aborts the rest."""
        snapshots: list[YieldSnapshot] = []
        failed = 0
        skipped = 0
        total = 0

        for info in infos:
            total += 1
            failures_before = self._metrics.validation_failures + self._metrics.error_count
            snapshot = self.ingest(info)
            if snapshot is not None:
                snapshots.append(snapshot)
            elif self._metrics.validation_failures + self._metrics.error_count > failures_before:
                failed += 1
            else:
                skipped += 1

        result = BatchIngestResult(
            successful=len(snapshots),
            failed=failed,
            skipped=skipped,
            total=total,
            snapshots=snapshots,
        )
        logger.info(
            "batch_ingestion_complete",
            successful=result.successful,
            failed=result.failed,
            skipped=result.skipped,
        )
        if failed:
            self._emit(
                IngestionEventType.BATCH_PARTIAL_FAILURE,
                None,
                {"successful": result.successful, "failed": failed, "total": total},
            )
        return result

    # ──────────────────────────────────────────────
    # Internals
    # ──────────────────────────────────────────────

    def _normalize(self, info: YieldInfo, now: datetime) -> YieldSnapshot:
        return YieldSnapshot(
            symbol=info.symbol.upper(),
            supply_apy=round(float(info.supply_apy), 4),
            borrow_apy=round(float(info.borrow_apy), 4),
            utilization_rate=round(float(info.utilization_rate), 2),
            total_supply=info.total_supply,
            total_borrow=info.total_borrow,
            block_number=info.block_number,
            timestamp=ensure_utc(info.last_updated),
            ingestion_time=now,
            source=self._source,
        )

    def _store(self, snapshot: YieldSnapshot) -> None:
        if snapshot.symbol not in self._cache and len(self._cache) >= self._max_cache_size:
            evicted = next(iter(self._cache))
            del self._cache[evicted]
            logger.debug("snapshot_cache_evicted", symbol=evicted)
        self._cache[snapshot.symbol] = snapshot

    def _record_ingestion(self, now: datetime) -> None:
        self._metrics.total_ingested += 1
        self._metrics.last_ingestion_time = now
        self._ingestion_times.append(now)
        cutoff = now - self._rate_window
        while self._ingestion_times and self._ingestion_times[0] <= cutoff:
            self._ingestion_times.popleft()
        self._metrics.ingestion_rate = len(self._ingestion_times)

    def _emit(self, event_type: IngestionEventType, symbol: str | None, data: Any) -> None:
        self.events.publish(IngestionEvent(type=event_type, symbol=symbol, data=data))

    def has_significant_change(self, previous: YieldSnapshot, current: YieldSnapshot) -> bool:
        """True when any tracked field moved by at least the threshold."""
        for name in _TRACKED_FIELDS:
            delta = round(abs(getattr(current, name) - getattr(previous, name)), 4)
            if delta >= self._threshold:
                return True
        return False

    # ──────────────────────────────────────────────
    # Queries
    # ──────────────────────────────────────────────

    def get_snapshot(self, symbol: str) -> YieldSnapshot | None:
        return self._cache.get(symbol.upper())

    def get_all_snapshots(self) -> list[YieldSnapshot]:
        return list(self._cache.values())

    def get_metrics(self) -> IngestionMetrics:
        m = self._metrics
        return IngestionMetrics(
            total_ingested=m.total_ingested,
            last_ingestion_time=m.last_ingestion_time,
            ingestion_rate=m.ingestion_rate,
            error_count=m.error_count,
            validation_failures=m.validation_failures,
            stale_discards=m.stale_discards,
        )

    def get_cache_stats(self) -> dict:
        return {
            "size": len(self._cache),
            "max_size": self._max_cache_size,
            "utilization_percent": len(self._cache) / self._max_cache_size * 100,
            "symbols": list(self._cache),
        }

    def get_health_status(self) -> dict:
        """Healthy iff the last successful ingestion is within the health window."""
        last = self._metrics.last_ingestion_time
        if last is None:
            seconds_since = None
            is_healthy = False
        else:
            seconds_since = (self._clock() - last).total_seconds()
            is_healthy = seconds_since < self._health_window

        return {
            "is_healthy": is_healthy,
            "seconds_since_last_ingestion": seconds_since,
            "metrics": self.get_metrics(),
            "cache_stats": self.get_cache_stats(),
        }

    def reset(self) -> None:
        """Clear the cache, metrics, and pending events."""
        self._cache.clear()
        self._ingestion_times.clear()
        self._metrics = IngestionMetrics()
        self.events.drain()
        logger.info("ingestion_pipeline_reset")
