"""Canonical event dataclasses produced by the search routines."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from .core.aspects import AspectKind
from .providers import Position

__all__ = ["ExactHit", "IngressEvent"]


@dataclass(frozen=True)
class ExactHit:
    """An instant at which a moving body sits exactly on an aspect point.

    ``aspect_point`` is the longitude actually crossed: the natal target
    shifted by the aspect angle in one direction or the other.
    """

    ts: datetime
    body: str
    aspect: AspectKind
    target_longitude: float
    aspect_point: float
    orb: float
    position: Position

    @property
    def retrograde(self) -> bool:
        return self.position.retrograde

    @property
    def speed(self) -> float:
        return self.position.speed

    def as_dict(self) -> dict[str, Any]:
        return {
            "ts": self.ts.isoformat().replace("+00:00", "Z"),
            "body": self.body,
            "aspect": self.aspect.value,
            "target_longitude": self.target_longitude,
            "aspect_point": self.aspect_point,
            "orb": self.orb,
            "longitude": self.position.longitude,
            "speed": self.position.speed,
            "retrograde": self.retrograde,
        }


@dataclass(frozen=True)
class IngressEvent:
    """The Sun crossing a cardinal longitude (equinox or solstice)."""

    kind: str
    year: int
    ts: datetime
    target_longitude: float
    longitude: float

    @property
    def orb(self) -> float:
        delta = abs(self.longitude - self.target_longitude) % 360.0
        return min(delta, 360.0 - delta)
