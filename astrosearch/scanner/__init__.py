"""Batch/range scanning over stored or generated samples."""

from __future__ import annotations

from .criteria import (
    AspectCriterion,
    ConfigurationCriteria,
    Criterion,
    EclipseCriteria,
    EclipseCriterion,
    EclipseRecord,
    PlacementCriterion,
    RetrogradeCriterion,
    Sample,
    ScanCriteria,
)
from .ranges import (
    DateRange,
    ScanResult,
    consolidate_ranges,
    sample_series,
    samples_from_rows,
    scan_range,
)

__all__ = [
    "AspectCriterion",
    "ConfigurationCriteria",
    "Criterion",
    "DateRange",
    "EclipseCriteria",
    "EclipseCriterion",
    "EclipseRecord",
    "PlacementCriterion",
    "RetrogradeCriterion",
    "Sample",
    "ScanCriteria",
    "ScanResult",
    "consolidate_ranges",
    "sample_series",
    "samples_from_rows",
    "scan_range",
]
