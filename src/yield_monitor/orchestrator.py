"""Yield orchestrator -- wires polling ticks through the analysis pipeline.

Each completed tick flows through:
  1. INGEST: batch-ingest the tick's readings (validate, normalize, cache)
  2. DETECT: publish yield_update and run the change detector per snapshot
  3. RECOMMEND: rebuild the recommendation from the ingestion cache
  4. PERSIST: write accepted snapshots to the key-value cache and history

Steps 1-3 are synchronous, so overlapping ticks never interleave their
ingestion. Only the manual single-asset fetch lets FetchExhausted escape;
every batch path degrades to partial results.
"""

from __future__ import annotations

import asyncio
from collections import deque
from typing import TYPE_CHECKING, Any

from yield_monitor.analysis.change_detector import ChangeDetector
from yield_monitor.analysis.models import YieldRecommendation
from yield_monitor.analysis.recommendation import RecommendationEngine
from yield_monitor.broadcast.broadcaster import BroadcastSink, MessageType
from yield_monitor.ingestion.models import BatchIngestResult, IngestionEvent
from yield_monitor.ingestion.pipeline import IngestionPipeline
from yield_monitor.logging import get_logger
from yield_monitor.market_data.fetcher import RetryingFetcher
from yield_monitor.market_data.scheduler import PollingScheduler, TickResult
from yield_monitor.models import YieldSnapshot, utcnow

if TYPE_CHECKING:
    from yield_monitor.cache.store import KeyValueCache
    from yield_monitor.data.store import YieldHistoryStore

logger = get_logger(__name__)


class YieldOrchestrator:
    """Owns the tick completion handler and the manual fetch paths.

    Args:
        scheduler: Polling scheduler; its tick handler is set to handle_tick.
        fetcher: Retrying fetcher used for manual single-asset fetches.
        pipeline: Ingestion pipeline (snapshot cache owner).
        detector: Change detector.
        engine: Recommendation engine.
        assets: Tracked assets, symbol -> reserve asset address.
        sink: Optional broadcast sink for updates and recommendations.
        cache: Optional key-value cache for the single-asset fast path.
        history: Optional durable yield history store.
        cache_ttl: Expiry in seconds for cached snapshots.
        cache_prefix: Key prefix for cached snapshots.
        recent_events_size: Number of ingestion events kept for queries.
    """

    def __init__(
        self,
        scheduler: PollingScheduler,
        fetcher: RetryingFetcher,
        pipeline: IngestionPipeline,
        detector: ChangeDetector,
        engine: RecommendationEngine,
        assets: dict[str, str],
        sink: BroadcastSink | None = None,
        cache: KeyValueCache | None = None,
        history: YieldHistoryStore | None = None,
        cache_ttl: int = 30,
        cache_prefix: str = "yield:",
        recent_events_size: int = 100,
    ) -> None:
        self._scheduler = scheduler
        self._fetcher = fetcher
        self._pipeline = pipeline
        self._detector = detector
        self._engine = engine
        self._assets = {symbol.upper(): address for symbol, address in assets.items()}
        self._sink = sink
        self._cache = cache
        self._history = history
        self._cache_ttl = cache_ttl
        self._cache_prefix = cache_prefix
        self._recent_events: deque[IngestionEvent] = deque(maxlen=recent_events_size)
        self._recommendation: YieldRecommendation | None = None
        self._events_task: asyncio.Task | None = None  # type: ignore[type-arg]

        self._scheduler.set_tick_handler(self.handle_tick)

    @property
    def history_enabled(self) -> bool:
        return self._history is not None

    # ──────────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────────

    async def start(self) -> None:
        """Start the event consumer, then the scheduler.

        Raises:
            ConnectionFailed: if the scheduler's startup probe fails.
        """
        if self._events_task is None:
            self._events_task = asyncio.create_task(self._consume_events())
        await self._scheduler.start()
        logger.info("orchestrator_started", assets=list(self._assets))

    async def stop(self) -> None:
        await self._scheduler.stop()
        if self._events_task is not None:
            self._events_task.cancel()
            try:
                await self._events_task
            except asyncio.CancelledError:
                pass
            self._events_task = None
        logger.info("orchestrator_stopped")

    async def _consume_events(self) -> None:
        while True:
            event = await self._pipeline.events.get()
            self._recent_events.append(event)

    # ──────────────────────────────────────────────
    # Tick handling
    # ──────────────────────────────────────────────

    async def handle_tick(self, result: TickResult) -> BatchIngestResult:
        """Run one tick's readings through ingest, detect, recommend, persist."""
        batch = self._pipeline.batch_ingest(result.readings)

        for snapshot in batch.snapshots:
            self._publish(MessageType.YIELD_UPDATE, snapshot)
            self._detector.analyze(snapshot)

        if batch.snapshots:
            recommendation = self._engine.analyze(self._pipeline.get_all_snapshots())
            self._recommendation = recommendation
            self._publish(MessageType.RECOMMENDATION_UPDATE, recommendation)

        await self._persist(batch.snapshots)
        return batch

    def _publish(self, message_type: MessageType, payload: Any) -> None:
        if self._sink is not None:
            self._sink.publish(message_type, payload)

    async def _persist(self, snapshots: list[YieldSnapshot]) -> None:
        for snapshot in snapshots:
            if self._cache is not None:
                try:
                    await self._cache.set_with_expiry(
                        self.cache_key(snapshot.symbol), snapshot, self._cache_ttl
                    )
                except Exception:
                    logger.warning("snapshot_cache_write_failed", symbol=snapshot.symbol, exc_info=True)
            if self._history is not None:
                try:
                    await self._history.record_snapshot(snapshot)
                except Exception:
                    logger.warning("snapshot_history_write_failed", symbol=snapshot.symbol, exc_info=True)

    def cache_key(self, symbol: str) -> str:
        return f"{self._cache_prefix}{symbol.upper()}"

    # ──────────────────────────────────────────────
    # Manual fetch paths
    # ──────────────────────────────────────────────

    async def fetch_asset(self, symbol: str) -> YieldSnapshot | None:
        """Fetch one asset now and ingest it through the tick handler.

        Returns the snapshot this fetch produced, or None when the reading was
        rejected by validation or discarded as older than the cached one.

        Raises:
            KeyError: if the symbol is not a tracked asset.
            FetchExhausted: if every retry attempt failed.
        """
        key = symbol.upper()
        address = self._assets.get(key)
        if address is None:
            raise KeyError(symbol)

        started_at = utcnow()
        info = await self._fetcher.fetch_one(address, key)
        batch = await self.handle_tick(
            TickResult(readings=[info], failures={}, started_at=started_at)
        )
        return batch.snapshots[0] if batch.snapshots else None

    async def fetch_now(self) -> dict:
        """Fetch every asset now through the batch path. Never raises on fetch failure."""
        result = await self._scheduler.collect_tick()
        batch = await self.handle_tick(result)
        return {
            "successful": result.successful,
            "failed": result.failed,
            "total": result.total,
            "failures": dict(result.failures),
            "accepted": batch.successful,
        }

    # ──────────────────────────────────────────────
    # Queries
    # ──────────────────────────────────────────────

    def is_tracked(self, symbol: str) -> bool:
        return symbol.upper() in self._assets

    def get_current_yields(self) -> list[YieldSnapshot]:
        return self._pipeline.get_all_snapshots()

    async def get_asset(self, symbol: str) -> Any | None:
        """Latest reading for one asset, served from the key-value cache first."""
        if self._cache is not None:
            try:
                cached = await self._cache.get(self.cache_key(symbol))
            except Exception:
                logger.warning("snapshot_cache_read_failed", symbol=symbol, exc_info=True)
                cached = None
            if cached is not None:
                return cached
        return self._pipeline.get_snapshot(symbol)

    def get_recommendation(self) -> YieldRecommendation:
        if self._recommendation is None or not self._pipeline.get_all_snapshots():
            return self._engine.fallback()
        return self._recommendation

    def get_recent_events(self, limit: int | None = None) -> list[IngestionEvent]:
        events = list(self._recent_events)
        if limit is not None:
            events = events[-limit:] if limit > 0 else []
        return events

    async def get_history(self, symbol: str, **kwargs: Any) -> list:
        if self._history is None:
            raise RuntimeError("Yield history is disabled")
        return await self._history.get_history(symbol, **kwargs)

    async def get_stored_yields(self) -> dict:
        """Persisted latest value per symbol plus the total history row count."""
        if self._history is None:
            raise RuntimeError("Yield history is disabled")
        return {
            "latest": await self._history.get_current_yields(),
            "total_records": await self._history.count_history(),
        }

    def is_healthy(self) -> bool:
        return bool(self._pipeline.get_health_status()["is_healthy"])

    def get_status(self) -> dict:
        sink_stats = getattr(self._sink, "stats", None)
        return {
            "scheduler": self._scheduler.status(),
            "ingestion": self._pipeline.get_health_status(),
            "change_detection": self._detector.get_statistics(),
            "recommendation_summary": self._engine.summary(),
            "broadcast": sink_stats() if callable(sink_stats) else None,
            "cache_enabled": self._cache is not None,
            "history_enabled": self._history is not None,
            "events": {
                "published": self._pipeline.events.published,
                "dropped": self._pipeline.events.dropped,
            },
        }

    async def reset(self) -> None:
        """Clear every in-memory map and the cached snapshots."""
        self._pipeline.reset()
        self._detector.reset()
        self._engine.reset()
        self._recent_events.clear()
        self._recommendation = None
        if self._cache is not None:
            try:
                await self._cache.delete_by_prefix(self._cache_prefix)
            except Exception:
                logger.warning("snapshot_cache_clear_failed", exc_info=True)
        logger.info("orchestrator_reset")
