"""Change detector -- flags significant moves between consecutive snapshots.

Keeps its own "last compared" snapshot per symbol, separate from the
ingestion cache. The first observation of a symbol is a silent baseline.
"""

from collections.abc import Callable
from datetime import datetime

from yield_monitor.analysis.models import (
    ChangeField,
    Direction,
    Severity,
    YieldChange,
    YieldChangeAnalysis,
)
from yield_monitor.broadcast.broadcaster import BroadcastSink, MessageType
from yield_monitor.config import ChangeDetectionSettings
from yield_monitor.logging import get_logger
from yield_monitor.models import YieldSnapshot, utcnow

logger = get_logger(__name__)

_FIELDS = (
    (ChangeField.SUPPLY, "supply_apy"),
    (ChangeField.BORROW, "borrow_apy"),
    (ChangeField.UTILIZATION, "utilization_rate"),
)


def calculate_change(old: float, new: float) -> tuple[float, float]:
    """Return (absolute change at 4 dp, percentage change at 2 dp).

    Percentage change is 0 when the old value is 0.
    """
    absolute = new - old
    percentage = absolute / old * 100 if old != 0 else 0.0
    return round(absolute, 4), round(percentage, 2)


class ChangeDetector:
    """Compares each snapshot with the previous one for the same symbol.

    Args:
        settings: Significant/major percentage-change thresholds.
        sink: Optional broadcast sink; significant analyses are published
            to it as ``yield_alert`` messages.
    """

    def __init__(
        self,
        settings: ChangeDetectionSettings,
        sink: BroadcastSink | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._settings = settings
        self._sink = sink
        self._clock = clock
        self._previous: dict[str, YieldSnapshot] = {}
        self._last_analysis_time: datetime | None = None
        logger.info(
            "change_detector_initialized",
            significant_threshold=settings.significant_threshold,
            major_threshold=settings.major_threshold,
        )

    def analyze(self, snapshot: YieldSnapshot) -> YieldChangeAnalysis:
        """Analyze a snapshot and remember it as the new baseline."""
        now = self._clock()
        self._last_analysis_time = now
        previous = self._previous.get(snapshot.symbol)
        self._previous[snapshot.symbol] = snapshot

        if previous is None:
            logger.debug("change_baseline_recorded", symbol=snapshot.symbol)
            return YieldChangeAnalysis(
                symbol=snapshot.symbol, has_significant_change=False, timestamp=now
            )

        changes: list[YieldChange] = []
        for change_field, attr in _FIELDS:
            old = getattr(previous, attr)
            new = getattr(snapshot, attr)
            absolute, percentage = calculate_change(old, new)
            if abs(percentage) < self._settings.significant_threshold:
                continue
            changes.append(
                YieldChange(
                    field=change_field,
                    direction=Direction.INCREASE if absolute > 0 else Direction.DECREASE,
                    previous_value=old,
                    new_value=new,
                    absolute_change=absolute,
                    percentage_change=percentage,
                    severity=self.classify(percentage),
                )
            )

        analysis = YieldChangeAnalysis(
            symbol=snapshot.symbol,
            has_significant_change=bool(changes),
            changes=changes,
            timestamp=now,
        )

        if analysis.has_significant_change:
            self._log_changes(analysis)
            if self._sink is not None:
                self._sink.publish(MessageType.YIELD_ALERT, analysis)

        return analysis

    def classify(self, percentage_change: float) -> Severity:
        magnitude = abs(percentage_change)
        if magnitude >= self._settings.major_threshold:
            return Severity.MAJOR
        if magnitude >= self._settings.significant_threshold:
            return Severity.SIGNIFICANT
        return Severity.MINOR

    def _log_changes(self, analysis: YieldChangeAnalysis) -> None:
        for change in analysis.changes:
            log = logger.warning if change.severity == Severity.MAJOR else logger.info
            log(
                "major_yield_change" if change.severity == Severity.MAJOR else "yield_change_detected",
                symbol=analysis.symbol,
                field=change.field.value,
                direction=change.direction.value,
                previous=change.previous_value,
                current=change.new_value,
                absolute_change=change.absolute_change,
                percentage_change=change.percentage_change,
            )

    def get_statistics(self) -> dict:
        return {
            "total_assets_tracked": len(self._previous),
            "assets_with_data": list(self._previous),
            "last_analysis_time": self._last_analysis_time,
        }

    def reset(self) -> None:
        self._previous.clear()
        self._last_analysis_time = None
        logger.info("change_detector_reset")
