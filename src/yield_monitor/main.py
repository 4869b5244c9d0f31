"""Entry point for the Aave yield monitor.

Wires all components together, optionally embeds the FastAPI dashboard,
and starts polling. When the dashboard is enabled (default), the monitor
and the API share a single asyncio event loop via uvicorn's programmatic
API and FastAPI's lifespan context manager.

Component wiring order (in _build_components):
1. AaveV3DataSource (web3 reserve reads)
2. RetryingFetcher (bounded retries, linear backoff)
3. PollingScheduler (periodic fan-out over tracked assets)
4. IngestionPipeline (validation, normalization, snapshot cache)
5. YieldHub + Broadcaster (WebSocket fan-out)
6. ChangeDetector (yield_alert on significant moves)
7. RecommendationEngine (ranking and best-yield selection)
8. KeyValueCache (Redis when enabled)
9. YieldDatabase + YieldHistoryStore (when history is enabled)
10. YieldOrchestrator (tick handler and manual fetch paths)
"""

import asyncio
import signal
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI

from yield_monitor.analysis.change_detector import ChangeDetector
from yield_monitor.analysis.recommendation import RecommendationEngine
from yield_monitor.broadcast.broadcaster import Broadcaster
from yield_monitor.cache.store import RedisCache
from yield_monitor.chain.aave_v3 import AaveV3DataSource
from yield_monitor.config import AppSettings
from yield_monitor.dashboard.routes.ws import YieldHub
from yield_monitor.data.database import YieldDatabase
from yield_monitor.data.store import YieldHistoryStore
from yield_monitor.ingestion.pipeline import IngestionPipeline
from yield_monitor.logging import get_logger, setup_logging
from yield_monitor.market_data.fetcher import RetryingFetcher
from yield_monitor.market_data.scheduler import PollingScheduler
from yield_monitor.orchestrator import YieldOrchestrator


def _build_components(settings: AppSettings) -> dict[str, Any]:
    """Build all monitor components from settings.

    Note: Does NOT connect the data source, the database, or start any
    background task -- that happens in start_components().
    """
    polling = settings.polling
    ingestion = settings.ingestion

    source = AaveV3DataSource(settings.chain)
    fetcher = RetryingFetcher(
        source,
        max_retries=polling.max_retries,
        retry_delay=polling.retry_delay_ms / 1000,
    )
    scheduler = PollingScheduler(
        fetcher,
        polling.assets,
        interval=polling.interval_ms / 1000,
    )
    pipeline = IngestionPipeline(
        source=settings.chain.source_tag,
        max_cache_size=ingestion.max_cache_size,
        significant_change_threshold=ingestion.significant_change_threshold,
        stale_after_seconds=ingestion.stale_after_seconds,
        rate_window_seconds=ingestion.rate_window_seconds,
        health_window_seconds=ingestion.health_window_seconds,
        event_queue_size=ingestion.event_queue_size,
    )

    hub = YieldHub()
    broadcaster = Broadcaster(hub, maxsize=settings.dashboard.broadcast_queue_size)
    detector = ChangeDetector(settings.change_detection, sink=broadcaster)
    engine = RecommendationEngine(settings.recommendation)

    cache = RedisCache(settings.cache.redis_url) if settings.cache.enabled else None
    database = YieldDatabase(settings.history.db_path) if settings.history.enabled else None
    history = YieldHistoryStore(database) if database is not None else None

    orchestrator = YieldOrchestrator(
        scheduler=scheduler,
        fetcher=fetcher,
        pipeline=pipeline,
        detector=detector,
        engine=engine,
        assets=polling.assets,
        sink=broadcaster,
        cache=cache,
        history=history,
        cache_ttl=settings.cache.ttl_seconds,
        cache_prefix=settings.cache.key_prefix,
    )

    return {
        "source": source,
        "fetcher": fetcher,
        "scheduler": scheduler,
        "pipeline": pipeline,
        "hub": hub,
        "broadcaster": broadcaster,
        "detector": detector,
        "engine": engine,
        "cache": cache,
        "database": database,
        "history": history,
        "orchestrator": orchestrator,
    }


async def start_components(components: dict[str, Any]) -> None:
    """Connect I/O collaborators and start polling.

    Raises:
        ConnectionFailed: if the scheduler's startup probe fails.
    """
    logger = get_logger("yield_monitor.main")

    await components["source"].connect()
    if components["database"] is not None:
        await components["database"].connect()
    if components["cache"] is not None and not await components["cache"].ping():
        logger.warning("redis_unavailable_running_degraded")

    await components["broadcaster"].start()
    await components["orchestrator"].start()


async def stop_components(components: dict[str, Any]) -> None:
    """Stop background tasks and release connections, in reverse start order."""
    await components["orchestrator"].stop()
    await components["scheduler"].wait_for_ticks()
    await components["broadcaster"].stop()
    if components["cache"] is not None:
        await components["cache"].close()
    if components["database"] is not None:
        await components["database"].close()
    await components["source"].close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage monitor component lifecycle within the FastAPI application."""
    logger = get_logger("yield_monitor.main")
    components = app.state.components

    app.state.orchestrator = components["orchestrator"]

    await start_components(components)
    logger.info("lifespan_started", assets=list(app.state.settings.polling.assets))

    yield

    await stop_components(components)
    logger.info("yield_monitor_stopped")


def _setup_signal_handlers(stop_event: asyncio.Event) -> None:
    """SIGINT/SIGTERM set the stop event for a graceful headless shutdown."""
    logger = get_logger("yield_monitor.main")
    loop = asyncio.get_running_loop()

    def _graceful_handler() -> None:
        logger.info("graceful_shutdown_signal")
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _graceful_handler)


async def run() -> None:
    """Run the yield monitor.

    When the dashboard is enabled (DASHBOARD_ENABLED=true, the default) the
    lifespan manages startup/shutdown and uvicorn owns signal handling.
    Otherwise the monitor runs headless until SIGINT/SIGTERM.
    """
    settings = AppSettings()

    setup_logging(settings.log_level)
    logger = get_logger("yield_monitor.main")

    components = _build_components(settings)

    if settings.dashboard.enabled:
        from yield_monitor.dashboard.app import create_dashboard_app

        app = create_dashboard_app(lifespan=lifespan, hub=components["hub"])
        app.state.settings = settings
        app.state.components = components

        logger.info(
            "starting_with_dashboard",
            host=settings.dashboard.host,
            port=settings.dashboard.port,
        )

        config = uvicorn.Config(
            app,
            host=settings.dashboard.host,
            port=settings.dashboard.port,
            log_level="warning",  # Suppress uvicorn access logs
        )
        server = uvicorn.Server(config)
        await server.serve()
    else:
        stop_event = asyncio.Event()
        _setup_signal_handlers(stop_event)

        logger.info(
            "starting_without_dashboard",
            assets=list(settings.polling.assets),
            interval_ms=settings.polling.interval_ms,
        )

        try:
            await start_components(components)
            await stop_event.wait()
        finally:
            await stop_components(components)
            logger.info("yield_monitor_stopped")


def main() -> None:
    """Synchronous entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
