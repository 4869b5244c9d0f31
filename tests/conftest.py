"""Shared test fixtures for the yield monitor."""

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from yield_monitor.config import (
    ChangeDetectionSettings,
    IngestionSettings,
    RecommendationSettings,
)
from yield_monitor.models import YieldInfo, YieldSnapshot

T0 = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock returning aware UTC datetimes."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


def make_yield_info(
    symbol: str = "USDC",
    supply_apy: float = 4.0,
    borrow_apy: float = 5.5,
    utilization_rate: float = 80.0,
    last_updated: datetime = T0,
    block_number: int = 19_000_000,
    **overrides,
) -> YieldInfo:
    """Create a valid YieldInfo, overriding any field."""
    info = YieldInfo(
        asset="0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
        symbol=symbol,
        supply_apy=supply_apy,
        borrow_apy=borrow_apy,
        utilization_rate=utilization_rate,
        total_supply="1000000.00",
        total_borrow="800000.00",
        last_updated=last_updated,
        block_number=block_number,
    )
    return replace(info, **overrides) if overrides else info


def make_snapshot(
    symbol: str = "USDC",
    supply_apy: float = 4.0,
    borrow_apy: float = 5.5,
    utilization_rate: float = 80.0,
    timestamp: datetime = T0,
) -> YieldSnapshot:
    return YieldSnapshot(
        symbol=symbol,
        supply_apy=supply_apy,
        borrow_apy=borrow_apy,
        utilization_rate=utilization_rate,
        total_supply="1000000.00",
        total_borrow="800000.00",
        block_number=19_000_000,
        timestamp=timestamp,
        ingestion_time=timestamp,
        source="aave-v3",
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def ingestion_settings() -> IngestionSettings:
    return IngestionSettings()


@pytest.fixture
def change_settings() -> ChangeDetectionSettings:
    return ChangeDetectionSettings()


@pytest.fixture
def recommendation_settings() -> RecommendationSettings:
    return RecommendationSettings()
