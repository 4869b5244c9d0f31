"""Ingestion layer -- validation, normalization, snapshot cache, and events."""

from yield_monitor.ingestion.models import (
    BatchIngestResult,
    IngestionEvent,
    IngestionEventType,
    IngestionMetrics,
    ValidationResult,
)
from yield_monitor.ingestion.pipeline import IngestionPipeline
from yield_monitor.ingestion.validation import validate_yield_info

__all__ = [
    "BatchIngestResult",
    "IngestionEvent",
    "IngestionEventType",
    "IngestionMetrics",
    "IngestionPipeline",
    "ValidationResult",
    "validate_yield_info",
]
