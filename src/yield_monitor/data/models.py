"""Data models for persisted yield history.

APY and utilization values are stored as TEXT in SQLite and restored as
float on read; totals stay decimal strings end to end.
"""

from dataclasses import dataclass
from datetime import datetime, timezone


@dataclass
class HistoricalYield:
    """One persisted yield reading for a symbol."""

    symbol: str
    timestamp_ms: int  # source-side reading time
    supply_apy: float
    borrow_apy: float
    utilization_rate: float
    total_supply: str
    total_borrow: str
    block_number: int
    source: str

    @property
    def timestamp(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp_ms / 1000, tz=timezone.utc)
