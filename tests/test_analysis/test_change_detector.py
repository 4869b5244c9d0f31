"""Tests for ChangeDetector -- baseline, severity classification, alerts."""

from unittest.mock import MagicMock

import pytest

from yield_monitor.analysis.change_detector import ChangeDetector, calculate_change
from yield_monitor.analysis.models import ChangeField, Direction, Severity
from yield_monitor.broadcast.broadcaster import MessageType
from yield_monitor.config import ChangeDetectionSettings

from conftest import make_snapshot


@pytest.fixture
def sink() -> MagicMock:
    return MagicMock()


@pytest.fixture
def detector(change_settings: ChangeDetectionSettings, sink: MagicMock) -> ChangeDetector:
    return ChangeDetector(change_settings, sink=sink)


class TestCalculateChange:
    def test_rounding(self) -> None:
        assert calculate_change(4.0, 4.123456) == (0.1235, 3.09)

    def test_zero_previous_gives_zero_percent(self) -> None:
        assert calculate_change(0.0, 1.5) == (1.5, 0.0)


class TestAnalyze:
    def test_first_observation_is_baseline(self, detector: ChangeDetector, sink: MagicMock) -> None:
        analysis = detector.analyze(make_snapshot(supply_apy=4.0))

        assert analysis.has_significant_change is False
        assert analysis.changes == []
        sink.publish.assert_not_called()

    def test_large_supply_move_is_major(self, detector: ChangeDetector, sink: MagicMock) -> None:
        detector.analyze(make_snapshot(supply_apy=4.0))
        analysis = detector.analyze(make_snapshot(supply_apy=4.6))

        assert analysis.has_significant_change is True
        assert len(analysis.changes) == 1
        change = analysis.changes[0]
        assert change.field is ChangeField.SUPPLY
        assert change.direction is Direction.INCREASE
        assert change.absolute_change == 0.6
        assert change.percentage_change == 15.0
        assert change.severity is Severity.MAJOR
        sink.publish.assert_called_once_with(MessageType.YIELD_ALERT, analysis)

    def test_small_percentage_move_is_significant(self, detector: ChangeDetector) -> None:
        detector.analyze(make_snapshot(utilization_rate=80.0))
        analysis = detector.analyze(make_snapshot(utilization_rate=80.2))

        change = analysis.changes[0]
        assert change.field is ChangeField.UTILIZATION
        assert change.percentage_change == 0.25
        assert change.severity is Severity.SIGNIFICANT

    def test_minor_moves_are_omitted(self, detector: ChangeDetector, sink: MagicMock) -> None:
        detector.analyze(make_snapshot(utilization_rate=80.0))
        analysis = detector.analyze(make_snapshot(utilization_rate=80.05))

        assert analysis.changes == []
        assert analysis.has_significant_change is False
        sink.publish.assert_not_called()

    def test_decrease_direction(self, detector: ChangeDetector) -> None:
        detector.analyze(make_snapshot(borrow_apy=6.0))
        analysis = detector.analyze(make_snapshot(borrow_apy=5.0))

        change = analysis.changes[0]
        assert change.field is ChangeField.BORROW
        assert change.direction is Direction.DECREASE
        assert change.percentage_change == pytest.approx(-16.67)

    def test_previous_is_always_overwritten(self, detector: ChangeDetector) -> None:
        detector.analyze(make_snapshot(supply_apy=4.0))
        detector.analyze(make_snapshot(supply_apy=4.002))  # below threshold
        analysis = detector.analyze(make_snapshot(supply_apy=4.002))

        assert analysis.changes == []

    def test_zero_previous_value_is_not_reported(self, detector: ChangeDetector) -> None:
        detector.analyze(make_snapshot(supply_apy=0.0))
        analysis = detector.analyze(make_snapshot(supply_apy=3.0))

        assert all(c.field is not ChangeField.SUPPLY for c in analysis.changes)

    def test_symbols_are_tracked_independently(self, detector: ChangeDetector) -> None:
        detector.analyze(make_snapshot(symbol="USDC", supply_apy=4.0))
        analysis = detector.analyze(make_snapshot(symbol="DAI", supply_apy=8.0))
        assert analysis.changes == []


class TestStatistics:
    def test_statistics_and_reset(self, detector: ChangeDetector) -> None:
        detector.analyze(make_snapshot(symbol="USDC"))
        detector.analyze(make_snapshot(symbol="DAI"))

        stats = detector.get_statistics()
        assert stats["total_assets_tracked"] == 2
        assert stats["assets_with_data"] == ["USDC", "DAI"]
        assert stats["last_analysis_time"] is not None

        detector.reset()
        assert detector.get_statistics()["total_assets_tracked"] == 0
        assert detector.analyze(make_snapshot(symbol="USDC")).changes == []

    def test_works_without_sink(self, change_settings: ChangeDetectionSettings) -> None:
        detector = ChangeDetector(change_settings)
        detector.analyze(make_snapshot(supply_apy=4.0))
        assert detector.analyze(make_snapshot(supply_apy=5.0)).has_significant_change
