"""Synthetic ephemerides shared across the test suites."""

from .ephemeris import (
    EPOCH,
    SUN_KNOTS,
    CountingProvider,
    LinearEphemeris,
    OscillatingEphemeris,
    PiecewiseEphemeris,
    chart,
    days,
    pattern_keys,
    sun_ephemeris,
)

__all__ = [
    "EPOCH",
    "SUN_KNOTS",
    "CountingProvider",
    "LinearEphemeris",
    "OscillatingEphemeris",
    "PiecewiseEphemeris",
    "chart",
    "days",
    "pattern_keys",
    "sun_ephemeris",
]
