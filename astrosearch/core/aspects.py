"""Fixed aspect and zodiac tables shared read-only by every component."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping

__all__ = [
    "ASPECT_TABLE",
    "AspectDefinition",
    "AspectKind",
    "MAJOR_ASPECTS",
    "MINOR_ASPECTS",
    "UnknownAspectError",
    "ZodiacSign",
    "aspect_definition",
    "resolve_aspects",
]


class UnknownAspectError(KeyError):
    """Raised when an aspect identifier is not part of the aspect table."""

    def __init__(self, name: object) -> None:
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        valid = ", ".join(kind.value for kind in AspectKind)
        return f"unknown aspect {self.name!r}; expected one of: {valid}"


class AspectKind(str, Enum):
    """Closed set of supported aspect identifiers."""

    CONJUNCTION = "conjunction"
    SEMISEXTILE = "semisextile"
    SEXTILE = "sextile"
    SQUARE = "square"
    TRINE = "trine"
    QUINCUNX = "quincunx"
    OPPOSITION = "opposition"


@dataclass(frozen=True, slots=True)
class AspectDefinition:
    """Immutable aspect table entry."""

    kind: AspectKind
    angle: float
    name: str
    symbol: str
    is_major: bool


# Ascending angle order; ``tie_break="table"`` relies on it.
ASPECT_TABLE: tuple[AspectDefinition, ...] = (
    AspectDefinition(AspectKind.CONJUNCTION, 0.0, "Conjunction", "☌", True),
    AspectDefinition(AspectKind.SEMISEXTILE, 30.0, "Semisextile", "⚺", False),
    AspectDefinition(AspectKind.SEXTILE, 60.0, "Sextile", "⚹", True),
    AspectDefinition(AspectKind.SQUARE, 90.0, "Square", "□", True),
    AspectDefinition(AspectKind.TRINE, 120.0, "Trine", "△", True),
    AspectDefinition(AspectKind.QUINCUNX, 150.0, "Quincunx", "⚻", False),
    AspectDefinition(AspectKind.OPPOSITION, 180.0, "Opposition", "☍", True),
)

_BY_KIND: Mapping[AspectKind, AspectDefinition] = MappingProxyType(
    {definition.kind: definition for definition in ASPECT_TABLE}
)

if set(_BY_KIND) != set(AspectKind):
    raise RuntimeError("aspect table is missing rows for some AspectKind members")

MAJOR_ASPECTS: tuple[AspectDefinition, ...] = tuple(d for d in ASPECT_TABLE if d.is_major)
MINOR_ASPECTS: tuple[AspectDefinition, ...] = tuple(d for d in ASPECT_TABLE if not d.is_major)


def aspect_definition(name: str | AspectKind | AspectDefinition) -> AspectDefinition:
    """Return the table entry for ``name``.

    Accepts an :class:`AspectKind`, a definition, or a case-insensitive name
    (``"Square"``, ``"square"``, ``"SQUARE"``).  Anything else raises
    :class:`UnknownAspectError`; there is no silent default.
    """

    if isinstance(name, AspectDefinition):
        return name
    if isinstance(name, AspectKind):
        return _BY_KIND[name]
    key = str(name).strip().lower().replace("-", "").replace("_", "").replace(" ", "")
    try:
        return _BY_KIND[AspectKind(key)]
    except ValueError:
        raise UnknownAspectError(name) from None


def resolve_aspects(
    names: Iterable[str | AspectKind | AspectDefinition] | None,
    *,
    include_minor: bool = False,
) -> tuple[AspectDefinition, ...]:
    """Resolve an aspect selection into table order, without duplicates."""

    if names is None:
        return ASPECT_TABLE if include_minor else MAJOR_ASPECTS
    wanted = {aspect_definition(name).kind for name in names}
    if include_minor:
        wanted.update(d.kind for d in MINOR_ASPECTS)
    return tuple(d for d in ASPECT_TABLE if d.kind in wanted)


class ZodiacSign(Enum):
    """The twelve tropical signs; values are the zero-based index."""

    ARIES = 0
    TAURUS = 1
    GEMINI = 2
    CANCER = 3
    LEO = 4
    VIRGO = 5
    LIBRA = 6
    SCORPIO = 7
    SAGITTARIUS = 8
    CAPRICORN = 9
    AQUARIUS = 10
    PISCES = 11

    @property
    def title(self) -> str:
        return self.name.title()

    @property
    def start_degree(self) -> float:
        return self.value * 30.0

    @classmethod
    def from_index(cls, index: int) -> ZodiacSign:
        return cls(int(index) % 12)

    @classmethod
    def parse(cls, name: str | ZodiacSign) -> ZodiacSign:
        """Return the sign called ``name`` (case-insensitive)."""

        if isinstance(name, ZodiacSign):
            return name
        try:
            return cls[str(name).strip().upper()]
        except KeyError:
            raise ValueError(
                f"unknown zodiac sign {name!r}; expected one of: "
                + ", ".join(sign.title for sign in cls)
            ) from None
