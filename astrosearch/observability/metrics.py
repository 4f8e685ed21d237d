"""Prometheus metric definitions shared across astrosearch components."""

from __future__ import annotations

from collections.abc import Iterable

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram

__all__ = [
    "ASPECT_COMPUTE_DURATION",
    "PROVIDER_FAILURES",
    "PROVIDER_QUERIES",
    "REFINE_ITERATIONS",
    "SCAN_MATCHES",
    "SCAN_SAMPLES_SKIPPED",
    "ensure_metrics_registered",
]


ASPECT_COMPUTE_DURATION = Histogram(
    "astrosearch_aspect_compute_duration_seconds",
    "Duration of aspect graph and pattern computations.",
    ("operation",),
    registry=None,
)


PROVIDER_QUERIES = Counter(
    "astrosearch_provider_queries_total",
    "Total ephemeris provider position lookups issued by searches.",
    ("provider_id",),
    registry=None,
)


PROVIDER_FAILURES = Counter(
    "astrosearch_provider_failures_total",
    "Total provider call failures grouped by error code.",
    ("provider_id", "error_code"),
    registry=None,
)


REFINE_ITERATIONS = Histogram(
    "astrosearch_refine_iterations",
    "Bisection iterations spent per exact-instant refinement.",
    ("mode",),
    buckets=(4, 8, 16, 24, 32, 48, 64),
    registry=None,
)


SCAN_SAMPLES_SKIPPED = Counter(
    "astrosearch_scan_samples_skipped_total",
    "Samples dropped from batch scans after a provider failure.",
    ("component",),
    registry=None,
)


SCAN_MATCHES = Counter(
    "astrosearch_scan_matches_total",
    "Samples that satisfied range-scan criteria.",
    ("criteria",),
    registry=None,
)


def _iter_metrics() -> Iterable[Counter | Histogram]:
    yield ASPECT_COMPUTE_DURATION
    yield PROVIDER_QUERIES
    yield PROVIDER_FAILURES
    yield REFINE_ITERATIONS
    yield SCAN_SAMPLES_SKIPPED
    yield SCAN_MATCHES


def ensure_metrics_registered(
    registry: CollectorRegistry | None = None,
) -> None:
    """Register shared metrics with ``registry`` if not already present."""

    target = registry or REGISTRY
    for metric in _iter_metrics():
        try:
            target.register(metric)
        except ValueError:
            # Prometheus raises when a metric name already exists in the registry.
            continue
