from __future__ import annotations

import pytest

from astrosearch.aspects import (
    AspectGraph,
    clean_positions,
    compute_aspects,
    compute_cross_aspects,
    find_aspect,
)
from astrosearch.core.aspects import AspectKind
from tests.helpers import chart


def _pairs(aspects):
    return {(a.body_a, a.body_b, a.kind.value) for a in aspects}


def test_compute_aspects_sorted_by_orb():
    aspects = compute_aspects(chart(sun=0.0, moon=92.0, mars=121.0), 8.0)

    assert [(a.body_a, a.body_b) for a in aspects] == [("sun", "mars"), ("sun", "moon")]
    assert [a.kind for a in aspects] == [AspectKind.TRINE, AspectKind.SQUARE]
    assert aspects[0].orb == pytest.approx(1.0)


def test_node_axis_is_not_reported():
    positions = chart(north_node=10.0, south_node=190.0, sun=10.5)

    aspects = compute_aspects(positions)
    assert _pairs(aspects) == {
        ("north_node", "sun", "conjunction"),
        ("south_node", "sun", "opposition"),
    }

    everything = compute_aspects(positions, skip_pairs=())
    assert ("north_node", "south_node", "opposition") in _pairs(everything)


def test_malformed_positions_are_dropped():
    raw = {
        "sun": 0.0,
        "moon": None,
        "mars": {"speed": 1.0},
        "venus": float("nan"),
        "jupiter": {"longitude": 120.5, "speed": 0.1},
        "ceres": "not a number",
    }

    assert set(clean_positions(raw)) == {"sun", "jupiter"}
    aspects = compute_aspects(raw)
    assert _pairs(aspects) == {("sun", "jupiter", "trine")}


def test_labels_outside_the_catalogue_are_accepted():
    aspects = compute_aspects({"Natal Sun": 0.0, "Part of Fortune": 60.5}, 1.0)
    assert _pairs(aspects) == {("Natal Sun", "Part of Fortune", "sextile")}


def test_minor_aspects_only_when_requested():
    positions = chart(venus=0.0, saturn=150.5)

    assert compute_aspects(positions, 2.0) == []
    minors = compute_aspects(positions, 2.0, include_minor=True)
    assert [a.kind for a in minors] == [AspectKind.QUINCUNX]


def test_cross_aspects_keep_the_moving_side_first():
    transit = chart(saturn=345.0)
    natal = chart(sun=255.0, saturn=345.0, moon=40.0)

    aspects = compute_cross_aspects(transit, natal, 1.0)

    assert [(a.body_a, a.body_b, a.kind.value) for a in aspects] == [
        ("saturn", "saturn", "conjunction"),
        ("saturn", "sun", "square"),
    ]


def test_graph_keeps_the_tighter_edge():
    loose = find_aspect(0.0, 95.0, orb=6.0, body_a="sun", body_b="moon")
    tight = find_aspect(0.0, 118.0, orb=6.0, body_a="moon", body_b="sun")

    graph = AspectGraph([loose, tight], bodies=["mars"])

    assert len(graph) == 1
    assert graph.edge("sun", "moon") is tight
    assert graph.edge("sun", "moon", "square") is None
    assert graph.edge("moon", "sun", AspectKind.TRINE) is tight
    assert "mars" in graph
    assert graph.bodies == ("mars", "moon", "sun")
    assert graph.neighbors("sun") == ("moon",)
    assert graph.neighbors("mars") == ()


def test_graph_edges_of_kind():
    aspects = compute_aspects(chart(sun=0.0, moon=120.0, mars=240.0, venus=90.0))
    graph = AspectGraph(aspects)

    trines = graph.edges_of_kind("trine")
    assert len(trines) == 3
    assert graph.neighbors("venus", "square") == ("sun",)
    assert sorted(graph.neighbors("sun", AspectKind.TRINE)) == ["mars", "moon"]
