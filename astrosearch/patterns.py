"""Multi-body aspect pattern detection.

Detection runs on an :class:`~astrosearch.aspects.AspectGraph` built from
precomputed aspects; no ephemeris access is needed.  Bodies are visited in
sorted order and every grouping is enumerated once by ascending index, so
the detected set does not depend on the iteration order of the inputs.

Kites are found in a second phase by extending the Grand Trines detected
in the first phase.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from itertools import combinations
from typing import Any, ClassVar

from .aspects import AspectGraph, AspectInstance, clean_positions
from .core.aspects import AspectKind
from .core.bodies import UnknownBodyError, display_name
from .observability import ASPECT_COMPUTE_DURATION

LOG = logging.getLogger(__name__)

__all__ = [
    "GrandCross",
    "GrandTrine",
    "Kite",
    "PatternInstance",
    "PatternSet",
    "TSquare",
    "Yod",
    "detect_patterns",
]


def _label(body: str) -> str:
    try:
        return display_name(body)
    except UnknownBodyError:
        return body


@dataclass(frozen=True)
class PatternInstance:
    """Base for detected configurations.

    ``aspects`` holds the AspectInstances the pattern was built from; they
    are shared with the input list, not copies.
    """

    kind: ClassVar[str] = "pattern"

    bodies: tuple[str, ...]
    aspects: tuple[AspectInstance, ...]

    @property
    def description(self) -> str:
        return f"{self.kind}: " + ", ".join(_label(b) for b in self.bodies)

    def as_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "bodies": list(self.bodies),
            "aspects": [aspect.as_dict() for aspect in self.aspects],
            "description": self.description,
        }


@dataclass(frozen=True)
class Yod(PatternInstance):
    kind: ClassVar[str] = "yod"

    apex: str

    @property
    def description(self) -> str:
        base = [b for b in self.bodies if b != self.apex]
        return (
            f"Yod: {_label(base[0])} sextile {_label(base[1])}, "
            f"both quincunx {_label(self.apex)} (apex)"
        )


@dataclass(frozen=True)
class TSquare(PatternInstance):
    kind: ClassVar[str] = "t_square"

    apex: str

    @property
    def description(self) -> str:
        base = [b for b in self.bodies if b != self.apex]
        return (
            f"T-Square: {_label(base[0])} opposite {_label(base[1])}, "
            f"both square {_label(self.apex)} (apex)"
        )


@dataclass(frozen=True)
class GrandTrine(PatternInstance):
    kind: ClassVar[str] = "grand_trine"

    @property
    def description(self) -> str:
        return "Grand Trine: " + " - ".join(_label(b) for b in self.bodies)


@dataclass(frozen=True)
class GrandCross(PatternInstance):
    kind: ClassVar[str] = "grand_cross"

    oppositions: tuple[tuple[str, str], tuple[str, str]]

    @property
    def description(self) -> str:
        (a, b), (c, d) = self.oppositions
        return (
            f"Grand Cross: {_label(a)} opposite {_label(b)}, "
            f"{_label(c)} opposite {_label(d)}"
        )


@dataclass(frozen=True)
class Kite(PatternInstance):
    kind: ClassVar[str] = "kite"

    trine: GrandTrine
    focus: str
    tail: str

    @property
    def description(self) -> str:
        return (
            f"Kite: {self.trine.description[len('Grand Trine: '):]} "
            f"with {_label(self.tail)} opposite {_label(self.focus)}"
        )


@dataclass(frozen=True)
class PatternSet:
    yods: tuple[Yod, ...] = ()
    t_squares: tuple[TSquare, ...] = ()
    grand_trines: tuple[GrandTrine, ...] = ()
    grand_crosses: tuple[GrandCross, ...] = ()
    kites: tuple[Kite, ...] = ()

    @property
    def total(self) -> int:
        return (
            len(self.yods)
            + len(self.t_squares)
            + len(self.grand_trines)
            + len(self.grand_crosses)
            + len(self.kites)
        )

    def __iter__(self) -> Iterator[PatternInstance]:
        yield from self.yods
        yield from self.t_squares
        yield from self.grand_trines
        yield from self.grand_crosses
        yield from self.kites

    def as_dict(self) -> dict[str, list[dict[str, Any]]]:
        return {
            "yods": [p.as_dict() for p in self.yods],
            "t_squares": [p.as_dict() for p in self.t_squares],
            "grand_trines": [p.as_dict() for p in self.grand_trines],
            "grand_crosses": [p.as_dict() for p in self.grand_crosses],
            "kites": [p.as_dict() for p in self.kites],
        }


def _apex_patterns(graph: AspectGraph, bodies: list[str], base_kind: AspectKind, apex_kind: AspectKind):
    for base_edge in graph.edges_of_kind(base_kind):
        a, b = sorted((base_edge.body_a, base_edge.body_b))
        for apex in bodies:
            if apex in (a, b):
                continue
            first = graph.edge(a, apex, apex_kind)
            second = graph.edge(b, apex, apex_kind)
            if first is not None and second is not None:
                yield (a, b, apex), (base_edge, first, second)


def _grand_trines(graph: AspectGraph, bodies: list[str]) -> list[GrandTrine]:
    found = []
    for a, b, c in combinations(bodies, 3):
        edges = (
            graph.edge(a, b, AspectKind.TRINE),
            graph.edge(b, c, AspectKind.TRINE),
            graph.edge(a, c, AspectKind.TRINE),
        )
        if all(edge is not None for edge in edges):
            found.append(GrandTrine(bodies=(a, b, c), aspects=edges))
    return found


def _grand_crosses(graph: AspectGraph, bodies: list[str]) -> list[GrandCross]:
    found = []
    for a, b, c, d in combinations(bodies, 4):
        for (p, q), (r, s) in (((a, b), (c, d)), ((a, c), (b, d)), ((a, d), (b, c))):
            opp1 = graph.edge(p, q, AspectKind.OPPOSITION)
            opp2 = graph.edge(r, s, AspectKind.OPPOSITION)
            if opp1 is None or opp2 is None:
                continue
            squares = tuple(
                graph.edge(x, y, AspectKind.SQUARE) for x, y in ((p, r), (p, s), (q, r), (q, s))
            )
            if all(edge is not None for edge in squares):
                found.append(
                    GrandCross(
                        bodies=(a, b, c, d),
                        aspects=(opp1, opp2, *squares),
                        oppositions=((p, q), (r, s)),
                    )
                )
                break
    return found


def _kites(graph: AspectGraph, bodies: list[str], trines: Iterable[GrandTrine]) -> list[Kite]:
    found = []
    for trine in trines:
        for focus in trine.bodies:
            wings = [b for b in trine.bodies if b != focus]
            for tail in bodies:
                if tail in trine.bodies:
                    continue
                opposition = graph.edge(tail, focus, AspectKind.OPPOSITION)
                if opposition is None:
                    continue
                sextiles = [graph.edge(tail, wing, AspectKind.SEXTILE) for wing in wings]
                if all(edge is not None for edge in sextiles):
                    found.append(
                        Kite(
                            bodies=(*trine.bodies, tail),
                            aspects=(*trine.aspects, opposition, *sextiles),
                            trine=trine,
                            focus=focus,
                            tail=tail,
                        )
                    )
    return found


def detect_patterns(
    aspects: Iterable[AspectInstance] | None,
    body_positions: Mapping[str, Any] | None,
) -> PatternSet:
    """Return every Yod, T-Square, Grand Trine, Grand Cross and Kite present.

    Aspects naming a body that is missing from ``body_positions`` (or whose
    position is malformed) are ignored, as are near-miss aspects outside
    their orb.  Insufficient data yields an empty :class:`PatternSet`.
    """

    started = time.perf_counter()
    positions = clean_positions(body_positions or {})
    usable = [
        aspect
        for aspect in (aspects or ())
        if isinstance(aspect, AspectInstance)
        and aspect.in_orb
        and aspect.body_a in positions
        and aspect.body_b in positions
    ]
    graph = AspectGraph(usable)
    bodies = sorted(positions)
    if len(bodies) < 3 or not usable:
        return PatternSet()

    yods = tuple(
        Yod(bodies=names, aspects=edges, apex=names[2])
        for names, edges in _apex_patterns(graph, bodies, AspectKind.SEXTILE, AspectKind.QUINCUNX)
    )
    t_squares = tuple(
        TSquare(bodies=names, aspects=edges, apex=names[2])
        for names, edges in _apex_patterns(graph, bodies, AspectKind.OPPOSITION, AspectKind.SQUARE)
    )
    grand_trines = _grand_trines(graph, bodies)
    grand_crosses = _grand_crosses(graph, bodies)
    kites = _kites(graph, bodies, grand_trines)

    result = PatternSet(
        yods=yods,
        t_squares=t_squares,
        grand_trines=tuple(grand_trines),
        grand_crosses=tuple(grand_crosses),
        kites=tuple(kites),
    )
    ASPECT_COMPUTE_DURATION.labels(operation="detect_patterns").observe(
        time.perf_counter() - started
    )
    LOG.debug("detected %d patterns among %d bodies", result.total, len(bodies))
    return result
