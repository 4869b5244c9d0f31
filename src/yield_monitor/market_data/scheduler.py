"""Polling scheduler -- periodic fan-out/fan-in fetch of all tracked assets.

State machine: STOPPED -> STARTING -> RUNNING -> STOPPED. start() probes the
data source once (no retries at this layer) and raises ConnectionFailed if
it cannot reach it. Once running, a timer task spawns one tick immediately
and then one per interval. Ticks run as their own tasks so a slow tick never
delays the timer; overlapping ticks are tolerated and ordering is resolved
downstream by the ingestion pipeline.

Per tick, every asset is fetched concurrently. One asset's FetchExhausted is
recorded in the TickResult and never aborts the other fetches or the loop.
"""

import asyncio
import itertools
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

import structlog

from yield_monitor.exceptions import ConnectionFailed
from yield_monitor.logging import get_logger
from yield_monitor.market_data.fetcher import RetryingFetcher
from yield_monitor.models import YieldInfo, utcnow

logger = get_logger(__name__)


class SchedulerState(str, Enum):
    """Polling scheduler lifecycle state."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"


@dataclass
class TickResult:
    """Union of per-asset outcomes for one polling tick."""

    readings: list[YieldInfo]
    failures: dict[str, str]  # symbol -> error message
    started_at: datetime
    completed_at: datetime = field(default_factory=utcnow)

    @property
    def successful(self) -> int:
        return len(self.readings)

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def total(self) -> int:
        return self.successful + self.failed


TickHandler = Callable[[TickResult], Awaitable[object]]


class PollingScheduler:
    """Owns the repeating timer that drives reserve fetches.

    Args:
        fetcher: Retrying single-asset fetcher.
        assets: Mapping of symbol -> asset address to poll.
        interval: Seconds between ticks.
        on_tick: Async completion handler receiving each TickResult.
    """

    def __init__(
        self,
        fetcher: RetryingFetcher,
        assets: dict[str, str],
        interval: float = 30.0,
        on_tick: TickHandler | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._assets = dict(assets)
        self._interval = interval
        self._on_tick = on_tick
        self._state = SchedulerState.STOPPED
        self._timer_task: asyncio.Task | None = None  # type: ignore[type-arg]
        self._tick_tasks: set[asyncio.Task] = set()  # type: ignore[type-arg]
        self._tick_ids = itertools.count(1)
        self._ticks_completed = 0
        self._last_tick: TickResult | None = None

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is SchedulerState.RUNNING

    def set_tick_handler(self, on_tick: TickHandler) -> None:
        self._on_tick = on_tick

    async def start(self) -> None:
        """Probe the data source, then begin polling in the background.

        Idempotent: calling while already starting or running only logs. A
        stop() that lands while the probe is pending wins; no timer is created.

        Raises:
            ConnectionFailed: The probe could not reach the data source. The
                scheduler stays STOPPED.
        """
        if self._state is not SchedulerState.STOPPED:
            logger.warning("polling_scheduler_already_running", state=self._state.value)
            return

        self._state = SchedulerState.STARTING
        try:
            block_number = await self._fetcher.source.get_block_number()
        except Exception as exc:
            self._state = SchedulerState.STOPPED
            logger.error("polling_scheduler_probe_failed", error=str(exc))
            raise ConnectionFailed(
                "Failed to connect to the reserve data source"
            ) from exc

        if self._state is not SchedulerState.STARTING:
            logger.info("polling_scheduler_stopped_during_probe")
            return

        self._state = SchedulerState.RUNNING
        self._timer_task = asyncio.create_task(self._timer_loop())
        logger.info(
            "polling_scheduler_started",
            block_number=block_number,
            interval=self._interval,
            assets=list(self._assets),
        )

    async def stop(self) -> None:
        """Cancel the timer so no new tick begins. Always safe to call.

        In-flight ticks are left to finish; their results still reach the
        completion handler but never move the scheduler out of STOPPED.
        """
        self._state = SchedulerState.STOPPED
        if self._timer_task is not None:
            self._timer_task.cancel()
            try:
                await self._timer_task
            except asyncio.CancelledError:
                pass
            self._timer_task = None
        logger.info("polling_scheduler_stopped", in_flight_ticks=len(self._tick_tasks))

    async def wait_for_ticks(self) -> None:
        """Wait for every in-flight tick to finish."""
        if self._tick_tasks:
            await asyncio.gather(*self._tick_tasks, return_exceptions=True)

    async def _timer_loop(self) -> None:
        while self._state is SchedulerState.RUNNING:
            task = asyncio.create_task(self.run_tick())
            self._tick_tasks.add(task)
            task.add_done_callback(self._tick_tasks.discard)
            await asyncio.sleep(self._interval)

    async def run_tick(self) -> TickResult:
        """Collect one tick and deliver it to the completion handler.

        Handler errors are logged and never stop the timer.
        """
        with structlog.contextvars.bound_contextvars(tick_id=next(self._tick_ids)):
            result = await self.collect_tick()
            if self._on_tick is not None:
                try:
                    await self._on_tick(result)
                except asyncio.CancelledError:
                    raise
                except Exception:
                    logger.warning("tick_handler_error", exc_info=True)
        return result

    async def collect_tick(self) -> TickResult:
        """Fetch every asset concurrently without invoking the handler."""
        started_at = utcnow()
        symbols = list(self._assets)
        results = await asyncio.gather(
            *(self._fetcher.fetch_one(self._assets[s], s) for s in symbols),
            return_exceptions=True,
        )

        readings: list[YieldInfo] = []
        failures: dict[str, str] = {}
        for symbol, outcome in zip(symbols, results):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, BaseException):
                failures[symbol] = str(outcome)
                logger.error("tick_asset_failed", symbol=symbol, error=str(outcome))
            else:
                readings.append(outcome)

        result = TickResult(readings=readings, failures=failures, started_at=started_at)
        self._ticks_completed += 1
        self._last_tick = result
        logger.info(
            "polling_tick_complete",
            successful=result.successful,
            failed=result.failed,
            total=result.total,
        )
        return result

    def status(self) -> dict:
        last = self._last_tick
        return {
            "state": self._state.value,
            "interval_seconds": self._interval,
            "assets": list(self._assets),
            "ticks_completed": self._ticks_completed,
            "in_flight_ticks": len(self._tick_tasks),
            "last_tick": None
            if last is None
            else {
                "completed_at": last.completed_at,
                "successful": last.successful,
                "failed": last.failed,
                "total": last.total,
                "failures": dict(last.failures),
            },
        }
