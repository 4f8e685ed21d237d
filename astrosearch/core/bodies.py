"""Body catalogue helpers for identifier validation and search cadence."""

from __future__ import annotations

from collections.abc import Collection
from datetime import timedelta
from functools import lru_cache
from typing import Dict, FrozenSet

__all__ = [
    "FIXED_AXIS_PAIRS",
    "SLOW_BODIES",
    "UnknownBodyError",
    "body_class",
    "canonical_name",
    "display_name",
    "is_fixed_axis_pair",
    "is_slow_body",
    "transit_step",
]


class UnknownBodyError(KeyError):
    """Raised when a body identifier is not part of the catalogue."""

    def __init__(self, name: object) -> None:
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"unknown body {self.name!r}"


# Canonical body classification.
_BODY_CLASS: Dict[str, str] = {
    "sun": "luminary",
    "moon": "luminary",
    "mercury": "personal",
    "venus": "personal",
    "mars": "personal",
    "jupiter": "social",
    "saturn": "social",
    "uranus": "outer",
    "neptune": "outer",
    "pluto": "outer",

    # Lunar nodes
    "mean_node": "point",
    "true_node": "point",
    "south_node": "point",
    "true_south_node": "point",
    # Black Moon Lilith variants
    "mean_lilith": "point",
    "true_lilith": "point",

    "ceres": "asteroid",
    "pallas": "asteroid",
    "juno": "asteroid",
    "vesta": "asteroid",
    "chiron": "centaur",

    # Chart angles
    "ascendant": "angle",
    "descendant": "angle",
    "midheaven": "angle",
    "imum_coeli": "angle",
    "vertex": "angle",
}


_BODY_ALIASES: Dict[str, str] = {
    "north_node": "mean_node",
    "node": "mean_node",
    "nn": "mean_node",
    "sn": "south_node",
    "mean_south_node": "south_node",
    "true_north_node": "true_node",

    "black_moon_lilith": "mean_lilith",
    "lilith": "mean_lilith",

    "asc": "ascendant",
    "dsc": "descendant",
    "mc": "midheaven",
    "ic": "imum_coeli",
}

_DISPLAY_NAMES: Dict[str, str] = {
    "mean_node": "North Node",
    "true_node": "True Node",
    "south_node": "South Node",
    "true_south_node": "True South Node",
    "mean_lilith": "Lilith",
    "true_lilith": "True Lilith",
    "imum_coeli": "IC",
}


# Jupiter and beyond are sampled once per day when scanning transits.
SLOW_BODIES: FrozenSet[str] = frozenset({"jupiter", "saturn", "uranus", "neptune", "pluto"})

# Pairs that sit exactly 180° apart by construction.
FIXED_AXIS_PAIRS: FrozenSet[FrozenSet[str]] = frozenset(
    {
        frozenset({"mean_node", "south_node"}),
        frozenset({"true_node", "true_south_node"}),
    }
)


def _normalise(name: str) -> str:
    return str(name or "").strip().lower().replace(" ", "_").replace("-", "_")


def canonical_name(name: str) -> str:
    """Return the canonical lower-case identifier for ``name``.

    Raises :class:`UnknownBodyError` for identifiers outside the catalogue so
    a typo never silently turns into an empty search.
    """

    lowered = _normalise(name)
    canonical = _BODY_ALIASES.get(lowered, lowered)
    if canonical not in _BODY_CLASS:
        raise UnknownBodyError(name)
    return canonical


def display_name(name: str) -> str:
    canonical = canonical_name(name)
    return _DISPLAY_NAMES.get(canonical, canonical.replace("_", " ").title())


@lru_cache(maxsize=None)
def body_class(name: str) -> str:
    """Return the classification bucket (luminary, personal, social, ...)."""

    return _BODY_CLASS[canonical_name(name)]


def is_slow_body(name: str) -> bool:
    return canonical_name(name) in SLOW_BODIES


def transit_step(name: str) -> timedelta:
    """Return the sampling cadence used when scanning transits of ``name``."""

    return timedelta(days=1) if is_slow_body(name) else timedelta(hours=12)


def _pair_label(name: str) -> str:
    try:
        return canonical_name(name)
    except UnknownBodyError:
        return name


def is_fixed_axis_pair(
    a: str, b: str, pairs: Collection[FrozenSet[str]] = FIXED_AXIS_PAIRS
) -> bool:
    """Return ``True`` when ``a``/``b`` form one of ``pairs``.

    The default ``pairs`` are the two ends of each nodal axis.  Labels that
    are not catalogue bodies (chart points supplied by a caller) are
    compared verbatim.
    """

    return frozenset((_pair_label(a), _pair_label(b))) in pairs
