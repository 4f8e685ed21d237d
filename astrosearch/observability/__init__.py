"""Runtime observability primitives for astrosearch modules."""

from __future__ import annotations

from .metrics import (
    ASPECT_COMPUTE_DURATION,
    PROVIDER_FAILURES,
    PROVIDER_QUERIES,
    REFINE_ITERATIONS,
    SCAN_MATCHES,
    SCAN_SAMPLES_SKIPPED,
    ensure_metrics_registered,
)

__all__ = [
    "ASPECT_COMPUTE_DURATION",
    "PROVIDER_FAILURES",
    "PROVIDER_QUERIES",
    "REFINE_ITERATIONS",
    "SCAN_MATCHES",
    "SCAN_SAMPLES_SKIPPED",
    "ensure_metrics_registered",
]
