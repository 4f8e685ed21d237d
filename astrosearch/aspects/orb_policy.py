from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from ..core.aspects import AspectDefinition, aspect_definition
from ..core.bodies import UnknownBodyError, canonical_name

__all__ = ["DEFAULT_ORB", "OrbPolicy", "OrbSpec", "resolve_orb_policy"]


DEFAULT_ORB = 8.0

LUMINARIES = frozenset({"sun", "moon"})
OUTERS = frozenset({"jupiter", "saturn", "uranus", "neptune", "pluto"})


def _non_negative(value: Any, label: str) -> float:
    numeric = float(value)
    if not math.isfinite(numeric) or numeric < 0.0:
        raise ValueError(f"{label} must be a non-negative finite number, got {value!r}")
    return numeric


def _body_key(name: str) -> str:
    try:
        return canonical_name(name)
    except UnknownBodyError:
        return str(name).strip().lower()


@dataclass(frozen=True)
class OrbPolicy:
    """Orb budget resolved per aspect and per body pair.

    ``per_aspect`` replaces ``default`` for the named aspect; ``per_body``
    overrides widen the allowance (the most permissive body of the pair
    wins); the factors then scale the result.
    """

    default: float = DEFAULT_ORB
    per_aspect: Mapping[str, float] = field(default_factory=dict)
    per_body: Mapping[str, float] = field(default_factory=dict)
    luminaries_factor: float = 1.0
    outers_factor: float = 1.0
    minor_aspect_factor: float = 1.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "default", _non_negative(self.default, "default orb"))
        object.__setattr__(
            self,
            "per_aspect",
            {
                aspect_definition(name).kind.value: _non_negative(orb, f"orb for {name}")
                for name, orb in self.per_aspect.items()
            },
        )
        object.__setattr__(
            self,
            "per_body",
            {_body_key(name): _non_negative(orb, f"orb for {name}") for name, orb in self.per_body.items()},
        )
        for label in ("luminaries_factor", "outers_factor", "minor_aspect_factor"):
            object.__setattr__(self, label, _non_negative(getattr(self, label), label))

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> OrbPolicy:
        """Build a policy from the JSON-safe dict shape used in settings files.

        ``{"default": 8, "per_aspect": {...}, "per_object": {...},
        "adaptive_rules": {"luminaries_factor": 1.2, ...}}``
        """

        rules = payload.get("adaptive_rules") or {}
        return cls(
            default=payload.get("default", DEFAULT_ORB),
            per_aspect=dict(payload.get("per_aspect") or {}),
            per_body=dict(payload.get("per_body") or payload.get("per_object") or {}),
            luminaries_factor=rules.get("luminaries_factor", payload.get("luminaries_factor", 1.0)),
            outers_factor=rules.get("outers_factor", payload.get("outers_factor", 1.0)),
            minor_aspect_factor=rules.get(
                "minor_aspect_factor", payload.get("minor_aspect_factor", 1.0)
            ),
        )

    def limit(self, body_a: str, body_b: str, aspect: str | AspectDefinition) -> float:
        """Return the allowed orb in degrees for ``aspect`` between the pair."""

        definition = aspect_definition(aspect)
        base = self.per_aspect.get(definition.kind.value, self.default)
        a = _body_key(body_a)
        b = _body_key(body_b)
        start = max(base, self.per_body.get(a, base), self.per_body.get(b, base))

        factor = 1.0
        if a in LUMINARIES or b in LUMINARIES:
            factor *= self.luminaries_factor
        if a in OUTERS or b in OUTERS:
            factor *= self.outers_factor
        if not definition.is_major:
            factor *= self.minor_aspect_factor
        return start * factor

    def widest(self) -> float:
        """Upper bound of every limit this policy can return."""

        candidates = [self.default, *self.per_aspect.values(), *self.per_body.values()]
        factor = max(1.0, self.luminaries_factor) * max(1.0, self.outers_factor)
        factor *= max(1.0, self.minor_aspect_factor)
        return max(candidates) * factor


OrbSpec = float | int | OrbPolicy | Mapping[str, Any] | None


def resolve_orb_policy(spec: OrbSpec) -> OrbPolicy:
    """Coerce a bare number, a policy mapping or ``None`` into an :class:`OrbPolicy`."""

    if spec is None:
        return OrbPolicy()
    if isinstance(spec, OrbPolicy):
        return spec
    if isinstance(spec, Mapping):
        return OrbPolicy.from_mapping(spec)
    if isinstance(spec, bool):
        raise ValueError("orb cannot be a boolean")
    return OrbPolicy(default=spec)
