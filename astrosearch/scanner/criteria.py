"""Predicates evaluated against one time-stamped sample of a batch scan."""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Protocol, runtime_checkable

from ..core.angles import degree_in_sign, normalize_degrees, shortest_arc, sign_index
from ..core.aspects import AspectDefinition, AspectKind, ZodiacSign, aspect_definition
from ..core.bodies import UnknownBodyError, canonical_name
from ..providers import Position

__all__ = [
    "AspectCriterion",
    "ConfigurationCriteria",
    "Criterion",
    "EclipseCriteria",
    "EclipseCriterion",
    "EclipseRecord",
    "PlacementCriterion",
    "RetrogradeCriterion",
    "Sample",
    "ScanCriteria",
]


DEFAULT_CONFIGURATION_GAP = timedelta(hours=72)
DEFAULT_ECLIPSE_GAP = timedelta(hours=24)

ECLIPSE_TYPES = frozenset({"solar", "lunar"})


def _key(name: str) -> str:
    try:
        return canonical_name(name)
    except UnknownBodyError:
        return str(name).strip().lower()


def _degree(value: Any, label: str, *, upper: float = 360.0) -> float:
    numeric = float(value)
    if not math.isfinite(numeric) or numeric < 0.0 or numeric > upper:
        raise ValueError(f"{label} must lie in [0, {upper:g}], got {value!r}")
    return numeric


@dataclass(frozen=True)
class EclipseRecord:
    """An eclipse stored alongside a sample (``kind_type`` is solar / lunar)."""

    kind_type: str
    kind: str
    longitude: float

    @property
    def sign(self) -> ZodiacSign:
        return ZodiacSign.from_index(sign_index(self.longitude))

    @property
    def degree_in_sign(self) -> float:
        return degree_in_sign(self.longitude)


@dataclass(frozen=True)
class Sample:
    """Body positions at one instant; the unit a batch scan iterates over."""

    ts: datetime
    positions: Mapping[str, Position] = field(default_factory=dict)
    eclipse: EclipseRecord | None = None

    def position(self, body: str) -> Position | None:
        found = self.positions.get(body)
        if found is None:
            found = self.positions.get(_key(body))
        return found


@runtime_checkable
class Criterion(Protocol):
    def matches(self, sample: Sample) -> bool: ...


@dataclass(frozen=True)
class AspectCriterion:
    """Aspect between two bodies, or between a body and a fixed degree.

    Each side is either a body (``body_a`` / ``body_b``) or a fixed
    longitude (``fixed_a`` / ``fixed_b``), never both.
    """

    aspect: str | AspectKind | AspectDefinition
    body_a: str | None = None
    body_b: str | None = None
    fixed_a: float | None = None
    fixed_b: float | None = None
    orb: float = 2.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "aspect", aspect_definition(self.aspect))
        for side in ("a", "b"):
            body = getattr(self, f"body_{side}")
            fixed = getattr(self, f"fixed_{side}")
            if (body is None) == (fixed is None):
                raise ValueError(f"side {side} needs exactly one of body_{side} or fixed_{side}")
            if body is not None:
                object.__setattr__(self, f"body_{side}", canonical_name(body))
            else:
                object.__setattr__(self, f"fixed_{side}", normalize_degrees(fixed))
        object.__setattr__(self, "orb", _degree(self.orb, "orb", upper=180.0))

    def _longitude(self, sample: Sample, body: str | None, fixed: float | None) -> float | None:
        if fixed is not None:
            return fixed
        position = sample.position(body)
        return None if position is None else position.longitude

    def matches(self, sample: Sample) -> bool:
        lon_a = self._longitude(sample, self.body_a, self.fixed_a)
        lon_b = self._longitude(sample, self.body_b, self.fixed_b)
        if lon_a is None or lon_b is None:
            return False
        return abs(shortest_arc(lon_a, lon_b) - self.aspect.angle) <= self.orb


@dataclass(frozen=True)
class PlacementCriterion:
    """Body inside a sign (optionally a degree slice of it) or an absolute range.

    Absolute ranges with ``min_degree > max_degree`` wrap through 0° Aries.
    """

    body: str
    sign: str | ZodiacSign | None = None
    sign_min_degree: float | None = None
    sign_max_degree: float | None = None
    min_degree: float | None = None
    max_degree: float | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "body", canonical_name(self.body))
        if self.sign is not None:
            object.__setattr__(self, "sign", ZodiacSign.parse(self.sign))
            for label in ("sign_min_degree", "sign_max_degree"):
                value = getattr(self, label)
                if value is not None:
                    object.__setattr__(self, label, _degree(value, label, upper=30.0))
        elif self.min_degree is not None and self.max_degree is not None:
            object.__setattr__(self, "min_degree", _degree(self.min_degree, "min_degree"))
            object.__setattr__(self, "max_degree", _degree(self.max_degree, "max_degree"))
        else:
            raise ValueError("placement needs a sign or both min_degree and max_degree")

    def matches(self, sample: Sample) -> bool:
        position = sample.position(self.body)
        if position is None:
            return False
        lon = position.longitude
        if self.sign is not None:
            start = self.sign.start_degree
            if self.sign_min_degree is None and self.sign_max_degree is None:
                return start <= lon < start + 30.0
            low = start + (self.sign_min_degree or 0.0)
            high = start + (30.0 if self.sign_max_degree is None else self.sign_max_degree)
            return low <= lon <= high
        if self.min_degree <= self.max_degree:
            return self.min_degree <= lon <= self.max_degree
        return lon >= self.min_degree or lon <= self.max_degree


@dataclass(frozen=True)
class RetrogradeCriterion:
    body: str
    retrograde: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "body", canonical_name(self.body))

    def matches(self, sample: Sample) -> bool:
        position = sample.position(self.body)
        if position is None:
            return False
        return position.retrograde is self.retrograde


@dataclass(frozen=True)
class EclipseCriterion:
    """Eclipse filter by type, sign and degree slice within the sign."""

    kind_type: str | None = None
    sign: str | ZodiacSign | None = None
    min_degree: float | None = None
    max_degree: float | None = None

    def __post_init__(self) -> None:
        if self.kind_type is not None:
            kind_type = str(self.kind_type).strip().lower()
            if kind_type not in ECLIPSE_TYPES:
                raise ValueError(f"eclipse type must be solar or lunar, got {self.kind_type!r}")
            object.__setattr__(self, "kind_type", kind_type)
        if self.sign is not None:
            object.__setattr__(self, "sign", ZodiacSign.parse(self.sign))
        for label in ("min_degree", "max_degree"):
            value = getattr(self, label)
            if value is not None:
                object.__setattr__(self, label, _degree(value, label, upper=30.0))

    def matches(self, sample: Sample) -> bool:
        eclipse = sample.eclipse
        if eclipse is None:
            return False
        if self.kind_type is not None and eclipse.kind_type.lower() != self.kind_type:
            return False
        if self.sign is not None:
            if eclipse.sign is not self.sign:
                return False
            if self.min_degree is not None or self.max_degree is not None:
                low = self.min_degree or 0.0
                high = 30.0 if self.max_degree is None else self.max_degree
                return low <= eclipse.degree_in_sign <= high
        return True


@dataclass(frozen=True)
class ConfigurationCriteria:
    """Every listed criterion must hold for a sample to match.

    ``max_gap=None`` leaves the range gap to the caller: the engine's
    configured gap, else ``default_gap``.
    """

    aspects: tuple[AspectCriterion, ...] = ()
    placements: tuple[PlacementCriterion, ...] = ()
    retrograde: tuple[RetrogradeCriterion, ...] = ()
    max_gap: timedelta | None = None

    name = "configuration"
    default_gap = DEFAULT_CONFIGURATION_GAP

    def __post_init__(self) -> None:
        for label in ("aspects", "placements", "retrograde"):
            object.__setattr__(self, label, tuple(getattr(self, label)))

    def _criteria(self) -> Iterable[Criterion]:
        yield from self.placements
        yield from self.retrograde
        yield from self.aspects

    def matches(self, sample: Sample) -> bool:
        return all(criterion.matches(sample) for criterion in self._criteria())

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> ConfigurationCriteria:
        """Build criteria from the saved-search dict format.

        ``{"aspects": [{"planet1": "saturn", "planet2": "pluto", "aspect":
        "square", "orb": 2}], "placements": [{"planet": "uranus", "sign":
        "gemini"}], "retrograde": [{"planet": "mercury", "isRetrograde": true}]}``
        """

        aspects = tuple(
            AspectCriterion(
                aspect=item["aspect"],
                body_a=item.get("planet1", item.get("body_a")),
                body_b=item.get("planet2", item.get("body_b")),
                fixed_a=item.get("planet1FixedDegree", item.get("fixed_a")),
                fixed_b=item.get("planet2FixedDegree", item.get("fixed_b")),
                orb=2.0 if item.get("orb") is None else item["orb"],
            )
            for item in payload.get("aspects") or ()
        )
        placements = tuple(
            PlacementCriterion(
                body=item.get("planet", item.get("body")),
                sign=item.get("sign"),
                sign_min_degree=item.get("signMinDegree", item.get("sign_min_degree")),
                sign_max_degree=item.get("signMaxDegree", item.get("sign_max_degree")),
                min_degree=item.get("minDegree", item.get("min_degree")),
                max_degree=item.get("maxDegree", item.get("max_degree")),
            )
            for item in payload.get("placements") or ()
        )
        retrograde = tuple(
            RetrogradeCriterion(
                body=item.get("planet", item.get("body")),
                retrograde=bool(item.get("isRetrograde", item.get("retrograde", True))),
            )
            for item in payload.get("retrograde") or ()
        )
        gap = payload.get("max_gap_hours")
        return cls(
            aspects=aspects,
            placements=placements,
            retrograde=retrograde,
            max_gap=None if gap is None else timedelta(hours=float(gap)),
        )


@dataclass(frozen=True)
class EclipseCriteria:
    """Match samples carrying an eclipse accepted by any listed filter."""

    filters: tuple[EclipseCriterion, ...] = ()
    max_gap: timedelta | None = None

    name = "eclipse"
    default_gap = DEFAULT_ECLIPSE_GAP

    def __post_init__(self) -> None:
        object.__setattr__(self, "filters", tuple(self.filters))

    def matches(self, sample: Sample) -> bool:
        if sample.eclipse is None:
            return False
        if not self.filters:
            return True
        return any(item.matches(sample) for item in self.filters)


ScanCriteria = ConfigurationCriteria | EclipseCriteria
