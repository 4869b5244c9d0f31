"""Yield history persistence on aiosqlite."""

from yield_monitor.data.database import YieldDatabase
from yield_monitor.data.models import HistoricalYield
from yield_monitor.data.store import YieldHistoryStore

__all__ = ["HistoricalYield", "YieldDatabase", "YieldHistoryStore"]
