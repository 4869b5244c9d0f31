"""Tests for RecommendationEngine -- ranking, insights, best-yield selection."""

import pytest

from yield_monitor.analysis.models import Confidence, InsightType, TrendDirection
from yield_monitor.analysis.recommendation import RecommendationEngine
from yield_monitor.config import RecommendationSettings

from conftest import make_snapshot


def _yields(**apys: float) -> list:
    return [make_snapshot(symbol=symbol, supply_apy=apy) for symbol, apy in apys.items()]


@pytest.fixture
def engine(recommendation_settings: RecommendationSettings) -> RecommendationEngine:
    return RecommendationEngine(recommendation_settings)


class TestFallback:
    def test_empty_input_returns_fallback(self, engine: RecommendationEngine) -> None:
        rec = engine.analyze([])

        assert rec.best_yield.symbol == "N/A"
        assert rec.best_yield.supply_apy == 0.0
        assert rec.best_yield.confidence is Confidence.LOW
        assert len(rec.insights) == 1
        assert rec.insights[0].symbol == "SYSTEM"
        assert rec.comparison == []


class TestRanking:
    def test_three_assets_no_history(self, engine: RecommendationEngine) -> None:
        rec = engine.analyze(_yields(USDC=5.0, USDT=4.5, DAI=4.0))

        assert rec.best_yield.symbol == "USDC"
        assert rec.best_yield.confidence is Confidence.MEDIUM
        assert [c.rank for c in rec.comparison] == [1, 2, 3]
        assert [c.symbol for c in rec.comparison] == ["USDC", "USDT", "DAI"]
        assert all(c.trend is TrendDirection.STABLE for c in rec.comparison)

    def test_sorted_descending(self, engine: RecommendationEngine) -> None:
        rec = engine.analyze(_yields(DAI=4.0, USDC=5.0, USDT=4.5))
        assert [c.symbol for c in rec.comparison] == ["USDC", "USDT", "DAI"]

    def test_ties_keep_input_order(self, engine: RecommendationEngine) -> None:
        rec = engine.analyze(_yields(USDT=4.5, USDC=4.5, DAI=4.5))
        assert [c.symbol for c in rec.comparison] == ["USDT", "USDC", "DAI"]
        assert rec.best_yield.symbol == "USDT"

    def test_market_insight_when_nothing_notable(self, engine: RecommendationEngine) -> None:
        rec = engine.analyze(_yields(USDC=5.0, USDT=4.0))

        assert len(rec.insights) == 1
        assert rec.insights[0].symbol == "MARKET"
        assert rec.insights[0].type is InsightType.STABLE
        assert "4.500" in rec.insights[0].message


class TestInsights:
    def test_spike_in_top_two_is_selected(self, engine: RecommendationEngine) -> None:
        engine.analyze(_yields(USDC=5.0, DAI=4.5, USDT=4.0))
        rec = engine.analyze(_yields(USDC=5.0, DAI=4.7, USDT=4.0))

        spikes = [i for i in rec.insights if i.type is InsightType.SPIKE]
        assert [i.symbol for i in spikes] == ["DAI"]
        assert rec.best_yield.symbol == "DAI"
        assert rec.best_yield.confidence is Confidence.HIGH

    def test_spike_outside_top_two_is_ignored(self, engine: RecommendationEngine) -> None:
        engine.analyze(_yields(USDC=5.0, USDT=4.8, DAI=3.0))
        rec = engine.analyze(_yields(USDC=5.0, USDT=4.8, DAI=3.5))

        assert any(i.type is InsightType.SPIKE for i in rec.insights)
        assert rec.best_yield.symbol == "USDC"

    def test_cooling_lowers_confidence(self, engine: RecommendationEngine) -> None:
        engine.analyze(_yields(USDC=5.2, USDT=4.0))
        rec = engine.analyze(_yields(USDC=5.0, USDT=4.0))

        assert rec.insights[0].type is InsightType.COOLING
        assert rec.best_yield.symbol == "USDC"
        assert rec.best_yield.confidence is Confidence.LOW
        assert rec.comparison[0].trend is TrendDirection.DOWN

    def test_upward_trend_on_leader_is_high_confidence(self, engine: RecommendationEngine) -> None:
        engine.analyze(_yields(USDC=5.0, USDT=4.0))
        rec = engine.analyze(_yields(USDC=5.05, USDT=4.0))

        assert rec.comparison[0].trend is TrendDirection.UP
        assert rec.best_yield.confidence is Confidence.HIGH
        assert "upward trend" in rec.best_yield.reason

    def test_rising_history_insight(self, engine: RecommendationEngine) -> None:
        for apy in (4.00, 4.04, 4.08):
            engine.analyze(_yields(USDC=apy))
        rec = engine.analyze(_yields(USDC=4.09))

        assert [i.type for i in rec.insights] == [InsightType.RISING]

    def test_falling_history_insight(self, engine: RecommendationEngine) -> None:
        for apy in (4.08, 4.04, 4.00):
            engine.analyze(_yields(USDC=apy))
        rec = engine.analyze(_yields(USDC=4.00))

        assert [i.type for i in rec.insights] == [InsightType.FALLING]

    def test_fewer_than_three_points_no_trend(self, engine: RecommendationEngine) -> None:
        engine.analyze(_yields(USDC=4.00))
        engine.analyze(_yields(USDC=4.08))
        rec = engine.analyze(_yields(USDC=4.12))

        assert rec.insights[0].symbol == "MARKET"


class TestState:
    def test_history_is_bounded(self, recommendation_settings: RecommendationSettings) -> None:
        engine = RecommendationEngine(recommendation_settings)
        for i in range(15):
            engine.analyze(_yields(USDC=4.0 + i * 0.01))

        history = engine.get_history("USDC")
        assert len(history) == 10
        assert history[0] == pytest.approx(4.05)

    def test_summary(self, engine: RecommendationEngine) -> None:
        assert engine.summary() == "Analyzing yields..."
        engine.analyze(_yields(USDC=5.0, DAI=6.25))
        assert engine.summary() == "DAI offers the best yield at 6.250%"

    def test_reset_clears_state(self, engine: RecommendationEngine) -> None:
        engine.analyze(_yields(USDC=5.0))
        engine.reset()

        assert engine.get_history("USDC") == []
        assert engine.summary() == "Analyzing yields..."
