"""Analysis layer -- change detection and best-yield recommendations."""

from yield_monitor.analysis.change_detector import ChangeDetector, calculate_change
from yield_monitor.analysis.models import (
    BestYield,
    ChangeField,
    Confidence,
    Direction,
    InsightSeverity,
    InsightType,
    Severity,
    TrendDirection,
    YieldChange,
    YieldChangeAnalysis,
    YieldComparison,
    YieldInsight,
    YieldRecommendation,
)
from yield_monitor.analysis.recommendation import RecommendationEngine

__all__ = [
    "BestYield",
    "ChangeDetector",
    "ChangeField",
    "Confidence",
    "Direction",
    "InsightSeverity",
    "InsightType",
    "RecommendationEngine",
    "Severity",
    "TrendDirection",
    "YieldChange",
    "YieldChangeAnalysis",
    "YieldComparison",
    "YieldInsight",
    "YieldRecommendation",
    "calculate_change",
]
