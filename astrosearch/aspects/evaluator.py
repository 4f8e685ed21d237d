"""Pairwise aspect evaluation with applying / separating state.

``find_aspect`` compares the shortest arc between two positions with every
candidate angle of the aspect table.  When several aspects fit inside their
orbs the tightest match wins (``tie_break="closest"``); ``"table"`` keeps
the first hit in ascending angle order instead.

Applying state follows the rate of change of the orb::

    s   = signed_delta(lon_a, lon_b)        # where B sits relative to A
    d   = |s|                               # current separation
    dd  = sign(s) * (speed_b - speed_a)     # how d evolves
    orb = |d - angle|                       # shrinking => applying

``s`` comes from ``signed_delta`` so pairs straddling 0° Aries keep the
right orientation.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Literal

from ..core.angles import shortest_arc, signed_delta
from ..core.aspects import (
    MAJOR_ASPECTS,
    AspectDefinition,
    AspectKind,
    aspect_definition,
)
from ..providers import Position
from .orb_policy import OrbSpec, resolve_orb_policy

__all__ = [
    "AspectInstance",
    "TieBreak",
    "applying_state",
    "find_aspect",
]


TieBreak = Literal["closest", "table"]

# Float slack on the orb comparison, matching the pair matcher.
EPS = 1e-9


@dataclass(frozen=True)
class AspectInstance:
    """One aspect between two bodies of a chart snapshot."""

    body_a: str
    body_b: str
    definition: AspectDefinition
    orb: float
    separation: float
    applying: bool | None
    in_orb: bool = True
    orb_allowance: float = 0.0

    @property
    def kind(self) -> AspectKind:
        return self.definition.kind

    @property
    def angle(self) -> float:
        return self.definition.angle

    @property
    def bodies(self) -> frozenset[str]:
        return frozenset((self.body_a, self.body_b))

    def involves(self, body: str) -> bool:
        return body == self.body_a or body == self.body_b

    def other(self, body: str) -> str:
        if body == self.body_a:
            return self.body_b
        if body == self.body_b:
            return self.body_a
        raise ValueError(f"{body!r} is not part of {self.body_a}-{self.body_b}")

    def as_dict(self) -> dict[str, Any]:
        return {
            "a": self.body_a,
            "b": self.body_b,
            "aspect": self.kind.value,
            "angle": self.angle,
            "orb": self.orb,
            "separation": self.separation,
            "applying": self.applying,
            "in_orb": self.in_orb,
            "orb_allowance": self.orb_allowance,
        }


def applying_state(
    lon_a: float,
    speed_a: float,
    lon_b: float,
    speed_b: float,
    angle: float,
) -> bool | None:
    """Return ``True`` while the orb to ``angle`` shrinks, ``False`` while it grows.

    ``None`` when both bodies are stationary (zero speed): the direction
    cannot be known.  Exactly on the aspect the pair counts as separating.
    """

    if speed_a == 0.0 and speed_b == 0.0:
        return None

    s = signed_delta(lon_a, lon_b)
    separation = abs(s)
    diff = separation - float(angle)
    if diff == 0.0:
        return False

    relative = float(speed_b) - float(speed_a)
    if separation == 0.0:
        # Bodies on top of each other: any motion opens the gap.
        rate = abs(relative)
    elif separation == 180.0:
        rate = -abs(relative)
    else:
        rate = relative if s > 0.0 else -relative

    orb_rate = rate if diff > 0.0 else -rate
    return orb_rate < 0.0


def _check_orb(value: float, label: str) -> float:
    numeric = float(value)
    if not math.isfinite(numeric) or numeric < 0.0:
        raise ValueError(f"{label} must be a non-negative finite number, got {value!r}")
    return numeric


def find_aspect(
    pos_a: Position | Any,
    pos_b: Position | Any,
    *,
    orb: OrbSpec = 8.0,
    aspects: Iterable[str | AspectKind | AspectDefinition] | None = None,
    tie_break: TieBreak = "closest",
    max_orb: float | None = None,
    body_a: str = "a",
    body_b: str = "b",
) -> AspectInstance | None:
    """Return the aspect formed by ``pos_a`` and ``pos_b`` or ``None``.

    ``orb`` is a flat number of degrees, an :class:`OrbPolicy` or its dict
    form.  ``max_orb`` additionally reports near misses out to that many
    degrees, flagged ``in_orb=False``; an in-orb match always wins over a
    near miss.
    """

    if tie_break not in ("closest", "table"):
        raise ValueError(f"tie_break must be 'closest' or 'table', got {tie_break!r}")
    policy = resolve_orb_policy(orb)
    potential = None if max_orb is None else _check_orb(max_orb, "max_orb")
    definitions = MAJOR_ASPECTS if aspects is None else tuple(
        sorted({aspect_definition(a) for a in aspects}, key=lambda d: d.angle)
    )

    a = Position.coerce(pos_a)
    b = Position.coerce(pos_b)
    separation = shortest_arc(a.longitude, b.longitude)

    best: tuple[AspectDefinition, float, float] | None = None
    near: tuple[AspectDefinition, float, float] | None = None
    for definition in definitions:
        diff = abs(separation - definition.angle)
        limit = policy.limit(body_a, body_b, definition)
        if diff <= limit + EPS:
            if best is None or (tie_break == "closest" and diff < best[1]):
                best = (definition, diff, limit)
        elif potential is not None and diff <= potential + EPS:
            if near is None or diff < near[1]:
                near = (definition, diff, limit)

    chosen = best or near
    if chosen is None:
        return None
    definition, diff, limit = chosen
    return AspectInstance(
        body_a=body_a,
        body_b=body_b,
        definition=definition,
        orb=diff,
        separation=separation,
        applying=applying_state(a.longitude, a.speed, b.longitude, b.speed, definition.angle),
        in_orb=best is not None,
        orb_allowance=limit,
    )
