"""Tests for hard errors and soft warnings in reading validation."""

from datetime import datetime, timedelta

import pytest

from yield_monitor.ingestion.validation import validate_yield_info

from conftest import T0, make_yield_info


class TestHardErrors:
    def test_valid_reading_passes(self) -> None:
        result = validate_yield_info(make_yield_info(), T0)
        assert result.is_valid
        assert result.errors == []
        assert result.warnings == []

    def test_utilization_above_hundred_rejected(self) -> None:
        result = validate_yield_info(make_yield_info(utilization_rate=150.0), T0)
        assert not result.is_valid
        assert "Utilization rate must be between 0 and 100" in result.errors

    def test_negative_utilization_rejected(self) -> None:
        assert not validate_yield_info(make_yield_info(utilization_rate=-1.0), T0).is_valid

    @pytest.mark.parametrize("field", ["supply_apy", "borrow_apy", "utilization_rate"])
    def test_nan_rejected(self, field: str) -> None:
        result = validate_yield_info(make_yield_info(**{field: float("nan")}), T0)
        assert not result.is_valid

    def test_non_numeric_apy_rejected(self) -> None:
        result = validate_yield_info(make_yield_info(supply_apy="4.0"), T0)
        assert "Supply APY must be a valid number" in result.errors

    @pytest.mark.parametrize("symbol", ["", None, 42])
    def test_bad_symbol_rejected(self, symbol) -> None:
        assert not validate_yield_info(make_yield_info(symbol=symbol), T0).is_valid

    @pytest.mark.parametrize("block", [0, -5, None, "19000000"])
    def test_non_positive_block_rejected(self, block) -> None:
        assert not validate_yield_info(make_yield_info(block_number=block), T0).is_valid

    def test_missing_timestamp_rejected(self) -> None:
        result = validate_yield_info(make_yield_info(last_updated=None), T0)
        assert "Last updated must be a valid datetime" in result.errors


class TestWarnings:
    def test_high_apy_is_warning_only(self) -> None:
        result = validate_yield_info(make_yield_info(supply_apy=500.0, borrow_apy=1500.0), T0)
        assert result.is_valid
        assert "Borrow APY seems unusually high or negative" in result.warnings

    def test_supply_apy_500_accepted_with_warning(self) -> None:
        result = validate_yield_info(make_yield_info(supply_apy=500.0), T0)
        assert result.is_valid
        assert "Borrow APY is lower than supply APY, which is unusual" in result.warnings

    def test_stale_timestamp_warns(self) -> None:
        old = T0 - timedelta(minutes=6)
        result = validate_yield_info(make_yield_info(last_updated=old), T0)
        assert result.is_valid
        assert "Data timestamp is more than 300 seconds old" in result.warnings

    def test_naive_timestamp_treated_as_utc(self) -> None:
        naive = datetime(2024, 1, 1, 12, 0, 0)
        result = validate_yield_info(make_yield_info(last_updated=naive), T0)
        assert result.is_valid
        assert result.warnings == []
