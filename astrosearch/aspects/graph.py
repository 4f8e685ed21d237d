from __future__ import annotations

import logging
import time
from collections.abc import Collection, Iterable, Iterator, Mapping
from itertools import combinations
from typing import Any

from ..core.aspects import AspectDefinition, AspectKind, aspect_definition, resolve_aspects
from ..core.bodies import FIXED_AXIS_PAIRS, is_fixed_axis_pair
from ..observability import ASPECT_COMPUTE_DURATION
from ..providers import Position
from .evaluator import AspectInstance, TieBreak, find_aspect
from .orb_policy import OrbSpec, resolve_orb_policy

LOG = logging.getLogger(__name__)

__all__ = [
    "AspectGraph",
    "clean_positions",
    "compute_aspects",
    "compute_cross_aspects",
]


def clean_positions(body_positions: Mapping[str, Any]) -> dict[str, Position]:
    """Return the entries of ``body_positions`` that read as valid positions.

    Malformed entries (missing or non-finite longitude, ``None``) are dropped
    with a debug log rather than failing the whole chart.
    """

    cleaned: dict[str, Position] = {}
    for body, raw in body_positions.items():
        if raw is None:
            continue
        try:
            cleaned[body] = Position.coerce(raw)
        except (TypeError, ValueError) as exc:
            LOG.debug("dropping malformed position for %s: %s", body, exc)
    return cleaned


def compute_aspects(
    body_positions: Mapping[str, Any],
    orb_config: OrbSpec = None,
    *,
    aspects: Iterable[str | AspectKind | AspectDefinition] | None = None,
    include_minor: bool = False,
    tie_break: TieBreak = "closest",
    max_orb: float | None = None,
    skip_pairs: Collection[frozenset[str]] = FIXED_AXIS_PAIRS,
) -> list[AspectInstance]:
    """Evaluate every unordered body pair and return the aspects found.

    Pairs listed in ``skip_pairs`` (by default the two ends of the lunar
    node axis, always 180° apart) are not reported.  The result is sorted by
    orb, then body names.
    """

    started = time.perf_counter()
    policy = resolve_orb_policy(orb_config)
    definitions = resolve_aspects(aspects, include_minor=include_minor)
    positions = clean_positions(body_positions)

    found: list[AspectInstance] = []
    for body_a, body_b in combinations(positions, 2):
        if is_fixed_axis_pair(body_a, body_b, skip_pairs):
            continue
        instance = find_aspect(
            positions[body_a],
            positions[body_b],
            orb=policy,
            aspects=definitions,
            tie_break=tie_break,
            max_orb=max_orb,
            body_a=body_a,
            body_b=body_b,
        )
        if instance is not None:
            found.append(instance)

    found.sort(key=lambda item: (item.orb, item.body_a, item.body_b))
    ASPECT_COMPUTE_DURATION.labels(operation="compute_aspects").observe(
        time.perf_counter() - started
    )
    LOG.debug("%d aspects across %d bodies", len(found), len(positions))
    return found


def compute_cross_aspects(
    moving: Mapping[str, Any],
    fixed: Mapping[str, Any],
    orb_config: OrbSpec = None,
    *,
    aspects: Iterable[str | AspectKind | AspectDefinition] | None = None,
    include_minor: bool = False,
    tie_break: TieBreak = "closest",
    max_orb: float | None = None,
) -> list[AspectInstance]:
    """Aspects from each body of ``moving`` to each body of ``fixed``.

    Used for transit-to-natal and synastry grids; ``body_a`` always names the
    ``moving`` side, so the same label may appear on both sides.
    """

    started = time.perf_counter()
    policy = resolve_orb_policy(orb_config)
    definitions = resolve_aspects(aspects, include_minor=include_minor)
    left = clean_positions(moving)
    right = clean_positions(fixed)

    found: list[AspectInstance] = []
    for body_a, pos_a in left.items():
        for body_b, pos_b in right.items():
            instance = find_aspect(
                pos_a,
                pos_b,
                orb=policy,
                aspects=definitions,
                tie_break=tie_break,
                max_orb=max_orb,
                body_a=body_a,
                body_b=body_b,
            )
            if instance is not None:
                found.append(instance)

    found.sort(key=lambda item: (item.orb, item.body_a, item.body_b))
    ASPECT_COMPUTE_DURATION.labels(operation="compute_cross_aspects").observe(
        time.perf_counter() - started
    )
    return found


class AspectGraph:
    """Undirected graph of bodies joined by at most one aspect edge per pair."""

    def __init__(self, aspects: Iterable[AspectInstance] = (), bodies: Iterable[str] = ()) -> None:
        self._edges: dict[frozenset[str], AspectInstance] = {}
        self._adjacency: dict[str, set[str]] = {body: set() for body in bodies}
        for aspect in aspects:
            self.add(aspect)

    def add(self, aspect: AspectInstance) -> None:
        if aspect.body_a == aspect.body_b:
            return
        key = aspect.bodies
        current = self._edges.get(key)
        if current is not None and current.orb <= aspect.orb:
            return
        self._edges[key] = aspect
        self._adjacency.setdefault(aspect.body_a, set()).add(aspect.body_b)
        self._adjacency.setdefault(aspect.body_b, set()).add(aspect.body_a)

    @property
    def bodies(self) -> tuple[str, ...]:
        return tuple(sorted(self._adjacency))

    def __len__(self) -> int:
        return len(self._edges)

    def __iter__(self) -> Iterator[AspectInstance]:
        return iter(self._edges.values())

    def __contains__(self, body: object) -> bool:
        return body in self._adjacency

    def edge(
        self, a: str, b: str, kind: AspectKind | str | None = None
    ) -> AspectInstance | None:
        """Return the edge between ``a`` and ``b``, optionally of one ``kind``."""

        found = self._edges.get(frozenset((a, b)))
        if found is None or kind is None:
            return found
        return found if found.kind is aspect_definition(kind).kind else None

    def neighbors(self, body: str, kind: AspectKind | str | None = None) -> tuple[str, ...]:
        others = self._adjacency.get(body, set())
        if kind is None:
            return tuple(sorted(others))
        return tuple(sorted(other for other in others if self.edge(body, other, kind) is not None))

    def edges_of_kind(self, kind: AspectKind | str) -> list[AspectInstance]:
        wanted = aspect_definition(kind).kind
        return sorted(
            (edge for edge in self._edges.values() if edge.kind is wanted),
            key=lambda e: (min(e.body_a, e.body_b), max(e.body_a, e.body_b)),
        )
