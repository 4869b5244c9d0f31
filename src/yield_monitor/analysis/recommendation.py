"""Recommendation engine -- ranks current yields and picks a best-yield asset.

The engine keeps two maps of its own: the last-seen supply APY per symbol
(for change/trend classification) and a bounded rolling history per symbol
(for multi-reading trend insights). Both are updated at the end of every
analyze() call, after the recommendation has been built.
"""

from collections import deque
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Protocol

from yield_monitor.analysis.models import (
    BestYield,
    Confidence,
    InsightSeverity,
    InsightType,
    TrendDirection,
    YieldComparison,
    YieldInsight,
    YieldRecommendation,
)
from yield_monitor.config import RecommendationSettings
from yield_monitor.logging import get_logger
from yield_monitor.models import utcnow

logger = get_logger(__name__)


class YieldReading(Protocol):
    """Anything with a symbol and a supply APY (snapshots in practice)."""

    @property
    def symbol(self) -> str: ...

    @property
    def supply_apy(self) -> float: ...


class RecommendationEngine:
    """Builds a YieldRecommendation from the current set of per-asset yields.

    Args:
        settings: Spike/cooling/stable thresholds and history bounds.
        clock: Source of ``last_updated`` timestamps.
    """

    def __init__(
        self,
        settings: RecommendationSettings,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._settings = settings
        self._clock = clock
        self._previous: dict[str, float] = {}
        self._history: dict[str, deque[float]] = {}

    def analyze(self, readings: Sequence[YieldReading]) -> YieldRecommendation:
        """Rank the readings, derive insights, and select the best yield.

        Empty input returns a fallback recommendation, never an error.
        """
        if not readings:
            return self.fallback()

        changes = {r.symbol: self._change(r.symbol, float(r.supply_apy)) for r in readings}
        comparison = self._rank(readings, changes)
        insights = self._insights(readings, changes)
        best = self._select_best(comparison, insights)

        self._update_history(readings)

        logger.debug(
            "recommendation_generated",
            symbol=best.symbol,
            supply_apy=best.supply_apy,
            confidence=best.confidence.value,
            insights=len(insights),
        )
        return YieldRecommendation(
            best_yield=best,
            insights=insights,
            comparison=comparison,
            last_updated=self._clock(),
        )

    def fallback(self) -> YieldRecommendation:
        return YieldRecommendation(
            best_yield=BestYield(
                symbol="N/A",
                supply_apy=0.0,
                reason="No yield data available",
                confidence=Confidence.LOW,
            ),
            insights=[
                YieldInsight(
                    symbol="SYSTEM",
                    type=InsightType.STABLE,
                    message="Waiting for yield data...",
                    severity=InsightSeverity.INFO,
                )
            ],
            comparison=[],
            last_updated=self._clock(),
        )

    # ──────────────────────────────────────────────
    # Ranking and trend
    # ──────────────────────────────────────────────

    def _change(self, symbol: str, current: float) -> tuple[float, float]:
        """(raw change at 4 dp, change percent) versus the last-seen value."""
        previous = self._previous.get(symbol, current)
        change = round(current - previous, 4)
        percent = change / previous * 100 if previous > 0 else 0.0
        return change, round(percent, 4)

    def classify_trend(self, change_percent: float) -> TrendDirection:
        stable = self._settings.stable_threshold
        if change_percent > stable:
            return TrendDirection.UP
        if change_percent < -stable:
            return TrendDirection.DOWN
        return TrendDirection.STABLE

    def _rank(
        self,
        readings: Sequence[YieldReading],
        changes: dict[str, tuple[float, float]],
    ) -> list[YieldComparison]:
        # sorted() is stable, so equal APYs keep their input order.
        ordered = sorted(readings, key=lambda r: float(r.supply_apy), reverse=True)
        comparison = []
        for rank, reading in enumerate(ordered, start=1):
            change, percent = changes[reading.symbol]
            comparison.append(
                YieldComparison(
                    symbol=reading.symbol,
                    supply_apy=float(reading.supply_apy),
                    rank=rank,
                    change_from_previous=change,
                    change_percent=percent,
                    trend=self.classify_trend(percent),
                )
            )
        return comparison

    # ──────────────────────────────────────────────
    # Insights
    # ──────────────────────────────────────────────

    def _insights(
        self,
        readings: Sequence[YieldReading],
        changes: dict[str, tuple[float, float]],
    ) -> list[YieldInsight]:
        insights: list[YieldInsight] = []

        for reading in readings:
            symbol = reading.symbol
            current = float(reading.supply_apy)
            change, percent = changes[symbol]

            if change >= self._settings.spike_threshold:
                insights.append(
                    YieldInsight(
                        symbol=symbol,
                        type=InsightType.SPIKE,
                        message=f"{symbol} yield spiked +{change:.3f}% to {current:.3f}%",
                        severity=InsightSeverity.SUCCESS,
                        change_percent=percent,
                    )
                )
            elif change <= self._settings.cooling_threshold:
                insights.append(
                    YieldInsight(
                        symbol=symbol,
                        type=InsightType.COOLING,
                        message=f"{symbol} yield cooling {change:.3f}% to {current:.3f}%",
                        severity=InsightSeverity.WARNING,
                        change_percent=percent,
                    )
                )
            else:
                trend = self._history_trend(symbol)
                if trend is not None:
                    insights.append(trend)

        if not insights:
            average = sum(float(r.supply_apy) for r in readings) / len(readings)
            insights.append(
                YieldInsight(
                    symbol="MARKET",
                    type=InsightType.STABLE,
                    message=f"Market stable - Average APY: {average:.3f}%",
                    severity=InsightSeverity.INFO,
                )
            )

        return insights

    def _history_trend(self, symbol: str) -> YieldInsight | None:
        """Rising/falling insight from the most recent history window, if any."""
        window = self._settings.trend_window
        history = self._history.get(symbol)
        if history is None or len(history) < window:
            return None

        recent = list(history)[-window:]
        pairs = list(zip(recent, recent[1:]))
        threshold = self._settings.trend_threshold

        if all(b >= a for a, b in pairs) and recent[-1] - recent[0] > threshold:
            return YieldInsight(
                symbol=symbol,
                type=InsightType.RISING,
                message=f"{symbol} showing consistent upward trend",
                severity=InsightSeverity.SUCCESS,
            )
        if all(b <= a for a, b in pairs) and recent[0] - recent[-1] > threshold:
            return YieldInsight(
                symbol=symbol,
                type=InsightType.FALLING,
                message=f"{symbol} in declining trend",
                severity=InsightSeverity.WARNING,
            )
        return None

    # ──────────────────────────────────────────────
    # Selection
    # ──────────────────────────────────────────────

    def _select_best(
        self,
        comparison: list[YieldComparison],
        insights: list[YieldInsight],
    ) -> BestYield:
        spiking = {i.symbol for i in insights if i.type == InsightType.SPIKE}
        for entry in comparison:
            if entry.symbol in spiking:
                if entry.rank <= 2:
                    return BestYield(
                        symbol=entry.symbol,
                        supply_apy=entry.supply_apy,
                        reason=(
                            f"Top-{entry.rank} yield with recent spike "
                            f"(+{entry.change_from_previous:.3f}%, +{entry.change_percent:.2f}% relative)"
                        ),
                        confidence=Confidence.HIGH,
                    )
                break

        top = comparison[0]
        if top.trend == TrendDirection.UP:
            return BestYield(
                symbol=top.symbol,
                supply_apy=top.supply_apy,
                reason=f"Highest yield with upward trend (+{top.change_percent:.2f}%)",
                confidence=Confidence.HIGH,
            )

        own = [i for i in insights if i.symbol == top.symbol]
        if any(i.is_positive for i in own):
            confidence = Confidence.HIGH
        elif any(i.is_negative for i in own):
            confidence = Confidence.LOW
        else:
            confidence = Confidence.MEDIUM

        return BestYield(
            symbol=top.symbol,
            supply_apy=top.supply_apy,
            reason=f"Highest current yield at {top.supply_apy:.3f}%",
            confidence=confidence,
        )

    # ──────────────────────────────────────────────
    # State
    # ──────────────────────────────────────────────

    def _update_history(self, readings: Sequence[YieldReading]) -> None:
        for reading in readings:
            current = float(reading.supply_apy)
            self._previous[reading.symbol] = current
            history = self._history.setdefault(
                reading.symbol, deque(maxlen=self._settings.history_length)
            )
            history.append(current)

    def get_history(self, symbol: str) -> list[float]:
        return list(self._history.get(symbol, ()))

    def summary(self) -> str:
        """One-line best-yield summary from the last-seen values."""
        if not self._previous:
            return "Analyzing yields..."
        symbol, apy = max(self._previous.items(), key=lambda item: item[1])
        return f"{symbol} offers the best yield at {apy:.3f}%"

    def reset(self) -> None:
        self._previous.clear()
        self._history.clear()
        logger.info("recommendation_engine_reset")
