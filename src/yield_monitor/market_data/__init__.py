"""Market data layer -- retrying reserve fetches and the polling scheduler."""

from yield_monitor.market_data.fetcher import RetryingFetcher, build_yield_info
from yield_monitor.market_data.scheduler import PollingScheduler, SchedulerState, TickResult

__all__ = [
    "PollingScheduler",
    "RetryingFetcher",
    "SchedulerState",
    "TickResult",
    "build_yield_info",
]
