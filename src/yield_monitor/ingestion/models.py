"""Ingestion pipeline data models: validation outcome, metrics, and events."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from yield_monitor.models import YieldSnapshot, utcnow


@dataclass
class ValidationResult:
    """Outcome of validating one YieldInfo. Transient, never persisted."""

    is_valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass
class IngestionMetrics:
    total_ingested: int = 0
    last_ingestion_time: datetime | None = None
    ingestion_rate: int = 0  # ingestions within the trailing window
    error_count: int = 0
    validation_failures: int = 0
    stale_discards: int = 0


class IngestionEventType(str, Enum):
    YIELD_INGESTED = "yield_ingested"
    SIGNIFICANT_CHANGE = "significant_change"
    VALIDATION_ERROR = "validation_error"
    INGESTION_ERROR = "ingestion_error"
    BATCH_PARTIAL_FAILURE = "batch_ingestion_partial_failure"


@dataclass(frozen=True)
class IngestionEvent:
    type: IngestionEventType
    symbol: str | None
    data: Any
    timestamp: datetime = field(default_factory=utcnow)


@dataclass
class BatchIngestResult:
    """Per-item outcome counts for one batch. skipped counts stale discards."""

    successful: int
    failed: int
    skipped: int
    total: int
    snapshots: list[YieldSnapshot] = field(default_factory=list)
