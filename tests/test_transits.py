from __future__ import annotations

import logging
from datetime import timedelta

import pytest

from astrosearch.core.aspects import AspectKind, UnknownAspectError, aspect_definition
from astrosearch.core.bodies import UnknownBodyError
from astrosearch.core.cancel import CancellationToken, SearchCancelled
from astrosearch.detectors.transits import (
    NatalChart,
    aspect_points,
    find_database_impact,
    find_transit_hits,
)
from astrosearch.providers import Position
from tests.helpers import CountingProvider, LinearEphemeris, OscillatingEphemeris, days


@pytest.mark.parametrize("strategy", ["cooldown", "crossing"])
def test_saturn_conjunction_single_hit(saturn_provider, strategy):
    hits = find_transit_hits(
        saturn_provider,
        "saturn",
        "conjunction",
        345.0,
        days(0),
        days(10),
        max_orb=2.0,
        strategy=strategy,
    )

    assert len(hits) == 1
    hit = hits[0]
    assert abs((hit.ts - days(5)).total_seconds()) <= 1.0
    assert hit.orb == pytest.approx(0.0, abs=1e-6)
    assert hit.aspect is AspectKind.CONJUNCTION
    assert hit.position.longitude == pytest.approx(345.0, abs=1e-6)
    assert hit.retrograde is False


def test_skipped_sample_does_not_lose_the_hit(caplog):
    provider = LinearEphemeris(
        base={"saturn": 340.0}, rates={"saturn": 1.0}, failures={days(3)}
    )
    with caplog.at_level(logging.WARNING, logger="astrosearch.detectors.transits"):
        hits = find_transit_hits(
            provider, "saturn", "conjunction", 345.0, days(0), days(10), max_orb=2.0
        )

    assert len(hits) == 1
    assert any(getattr(r, "err_code", None) == "SYNTHETIC" for r in caplog.records)


def test_square_tracks_both_aspect_points():
    provider = LinearEphemeris(base={"mars": 0.0}, rates={"mars": 0.5})
    hits = find_transit_hits(
        provider,
        "mars",
        "square",
        45.0,
        days(0),
        days(700),
        max_orb=1.0,
        strategy="crossing",
    )
    points = sorted(round(hit.aspect_point, 6) for hit in hits)
    assert points == [135.0, 315.0]


def test_aspect_points_for_symmetric_aspects():
    assert aspect_points(10.0, aspect_definition("conjunction")) == (10.0,)
    assert aspect_points(10.0, aspect_definition("opposition")) == (190.0,)
    assert sorted(aspect_points(10.0, aspect_definition("trine"))) == [130.0, 250.0]


def test_repeated_station_passes():
    # Swings ±3° around 100° with crossings at days 8.25, 16.25, 24.25, 32.25.
    provider = OscillatingEphemeris(center=100.0, amplitude=3.0, period_days=16.0, phase_days=0.25)

    per_crossing = find_transit_hits(
        provider, "mars", "conjunction", 100.0, days(1), days(39), strategy="crossing"
    )
    with_cooldown = find_transit_hits(
        provider, "mars", "conjunction", 100.0, days(1), days(39), strategy="cooldown"
    )

    assert len(per_crossing) == 4
    for hit, expected in zip(per_crossing, (8.25, 16.25, 24.25, 32.25)):
        assert abs((hit.ts - days(expected)).total_seconds()) < 60.0
    assert [hit.retrograde for hit in per_crossing] == [True, False, True, False]
    assert len(with_cooldown) == 1


def test_unknown_identifiers_fail_before_provider_calls(saturn_provider):
    with pytest.raises(UnknownAspectError):
        find_transit_hits(saturn_provider, "saturn", "biquintile", 0.0, days(0), days(1))
    with pytest.raises(UnknownBodyError):
        find_transit_hits(saturn_provider, "nibiru", "square", 0.0, days(0), days(1))
    assert saturn_provider.calls == []


def test_invalid_window_and_options(saturn_provider):
    with pytest.raises(ValueError):
        find_transit_hits(saturn_provider, "saturn", "square", 0.0, days(5), days(1))
    with pytest.raises(ValueError):
        find_transit_hits(saturn_provider, "saturn", "square", 0.0, days(0), days(1), max_orb=-1)
    with pytest.raises(ValueError):
        find_transit_hits(
            saturn_provider, "saturn", "square", 0.0, days(0), days(1), strategy="newton"
        )
    with pytest.raises(ValueError):
        find_transit_hits(
            saturn_provider, "saturn", "square", 0.0, days(0), days(1), step=timedelta(0)
        )


def test_cancelled_before_start(saturn_provider):
    token = CancellationToken()
    token.cancel()
    with pytest.raises(SearchCancelled) as excinfo:
        find_transit_hits(
            saturn_provider, "saturn", "conjunction", 345.0, days(0), days(10), cancel=token
        )
    assert excinfo.value.partial == []


def test_cancelled_mid_scan_keeps_partial_hits(saturn_provider):
    token = CancellationToken()

    def cancel_late(ts):
        if ts >= days(7):
            token.cancel()

    provider = CountingProvider(saturn_provider, cancel_late)
    with pytest.raises(SearchCancelled) as excinfo:
        find_transit_hits(
            provider,
            "saturn",
            "conjunction",
            345.0,
            days(0),
            days(30),
            max_orb=2.0,
            cancel=token,
        )
    assert len(excinfo.value.partial) == 1
    assert provider.calls < 31


def test_database_impact_matches_charts(saturn_provider):
    charts = [
        {"id": 1, "name": "Square", "planets": {"sun": {"longitude": 255.0}, "moon": 12.0}},
        {"id": 2, "name": "Miss", "planets": {"sun": {"longitude": 10.0}}},
        NatalChart(chart_id=3, name="Typed", positions={"mars": Position(75.5)}),
    ]

    impacts = find_database_impact(saturn_provider, "saturn", days(5), "square", 1.0, charts)

    assert [impact.chart.chart_id for impact in impacts] == [1, 3]
    assert impacts[0].matches[0].natal_body == "sun"
    assert impacts[0].matches[0].orb == pytest.approx(0.0)
    assert impacts[1].matches[0].orb == pytest.approx(0.5)

    only_moon = find_database_impact(
        saturn_provider, "saturn", days(5), "square", 1.0, charts, natal_body="moon"
    )
    assert only_moon == []


def test_cooldown_interpolates_the_bracketing_pair():
    # Sun crosses 0° at day 0.3, between the first two half-day samples;
    # the pass is only recognised at day 1 once the distance grows again.
    provider = LinearEphemeris(base={"sun": 359.7}, rates={"sun": 1.0})

    hits = find_transit_hits(
        provider, "sun", "conjunction", 0.0, days(0), days(3), max_orb=1.0
    )

    assert len(hits) == 1
    assert abs((hits[0].ts - days(0.3)).total_seconds()) <= 1.0
    assert hits[0].orb == pytest.approx(0.0, abs=1e-6)
