"""Event detectors built on the exact-instant root finder."""

from __future__ import annotations

from .ingresses import (
    IngressKind,
    IngressNotFoundError,
    active_ingress,
    annual_ingress_calendar,
    calculate_ingress,
    ingress_calendars,
    ingress_expiry,
)
from .transits import (
    ChartImpact,
    ImpactMatch,
    NatalChart,
    TransitStrategy,
    aspect_points,
    find_database_impact,
    find_transit_hits,
)

__all__ = [
    "ChartImpact",
    "ImpactMatch",
    "IngressKind",
    "IngressNotFoundError",
    "NatalChart",
    "TransitStrategy",
    "active_ingress",
    "annual_ingress_calendar",
    "aspect_points",
    "calculate_ingress",
    "find_database_impact",
    "find_transit_hits",
    "ingress_calendars",
    "ingress_expiry",
]
