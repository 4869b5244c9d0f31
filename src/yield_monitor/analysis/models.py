"""Data models for change detection and yield recommendations."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from yield_monitor.models import utcnow


# ──────────────────────────────────────────────
# Change detection
# ──────────────────────────────────────────────


class Severity(str, Enum):
    MINOR = "minor"  # never reported, kept for completeness
    SIGNIFICANT = "significant"
    MAJOR = "major"


class ChangeField(str, Enum):
    SUPPLY = "supply"
    BORROW = "borrow"
    UTILIZATION = "utilization"


class Direction(str, Enum):
    INCREASE = "increase"
    DECREASE = "decrease"


@dataclass(frozen=True)
class YieldChange:
    field: ChangeField
    direction: Direction
    previous_value: float
    new_value: float
    absolute_change: float  # 4 dp
    percentage_change: float  # 2 dp
    severity: Severity


@dataclass
class YieldChangeAnalysis:
    """Comparison of one snapshot against the last one seen for its symbol."""

    symbol: str
    has_significant_change: bool
    changes: list[YieldChange] = field(default_factory=list)
    timestamp: datetime = field(default_factory=utcnow)

    @property
    def has_major_change(self) -> bool:
        return any(c.severity == Severity.MAJOR for c in self.changes)


# ──────────────────────────────────────────────
# Recommendations
# ──────────────────────────────────────────────


class TrendDirection(str, Enum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


class InsightType(str, Enum):
    SPIKE = "spike"
    COOLING = "cooling"
    STABLE = "stable"
    RISING = "rising"
    FALLING = "falling"


class InsightSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    SUCCESS = "success"


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class YieldInsight:
    symbol: str
    type: InsightType
    message: str
    severity: InsightSeverity
    change_percent: float | None = None

    @property
    def is_positive(self) -> bool:
        return self.type in (InsightType.SPIKE, InsightType.RISING)

    @property
    def is_negative(self) -> bool:
        return self.type in (InsightType.COOLING, InsightType.FALLING)


@dataclass(frozen=True)
class YieldComparison:
    """Per-asset rank entry, rebuilt from scratch on every cycle."""

    symbol: str
    supply_apy: float
    rank: int  # 1-based, ties keep input order
    change_from_previous: float
    change_percent: float
    trend: TrendDirection


@dataclass(frozen=True)
class BestYield:
    symbol: str
    supply_apy: float
    reason: str
    confidence: Confidence


@dataclass
class YieldRecommendation:
    best_yield: BestYield
    insights: list[YieldInsight] = field(default_factory=list)
    comparison: list[YieldComparison] = field(default_factory=list)
    last_updated: datetime = field(default_factory=utcnow)
