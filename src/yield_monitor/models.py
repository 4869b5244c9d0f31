"""Shared data models for the yield monitor.

APYs and utilization are floats (percentages). Raw on-chain quantities stay
as int/Decimal until RateConverter or the fetcher produces the final figure.
All timestamps are timezone-aware UTC datetimes.
"""

from dataclasses import dataclass
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Interpret naive datetimes as UTC; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class YieldInfo:
    """One successful fetch+convert of a reserve. Immutable once created."""

    asset: str  # reserve asset address
    symbol: str
    supply_apy: float
    borrow_apy: float
    utilization_rate: float  # 0-100
    total_supply: str  # decimal string, token units
    total_borrow: str
    last_updated: datetime  # source-side reading time
    block_number: int


@dataclass(frozen=True)
class YieldSnapshot:
    """Normalized, cache-ready reading keyed by uppercase symbol.

    timestamp is the source's reported time; ingestion_time is when the
    pipeline accepted the reading.
    """

    symbol: str
    supply_apy: float  # 4 dp
    borrow_apy: float  # 4 dp
    utilization_rate: float  # 2 dp
    total_supply: str
    total_borrow: str
    block_number: int
    timestamp: datetime
    ingestion_time: datetime
    source: str
