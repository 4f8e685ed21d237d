from __future__ import annotations

import logging
import math
import random
from datetime import UTC, datetime, timedelta

import pytest

from astrosearch.core.cancel import CancellationToken, SearchCancelled
from astrosearch.providers import CallableProvider, Position
from astrosearch.scanner import (
    AspectCriterion,
    ConfigurationCriteria,
    EclipseCriteria,
    EclipseCriterion,
    PlacementCriterion,
    RetrogradeCriterion,
    Sample,
    consolidate_ranges,
    sample_series,
    samples_from_rows,
    scan_range,
)
from tests.helpers import EPOCH, LinearEphemeris, chart, days

EPOCH_MS = 1704067200000
DAY_MS = 86_400_000


def _hours(*offsets: float) -> list[Sample]:
    return [Sample(ts=EPOCH + timedelta(hours=h)) for h in offsets]


def test_gap_equal_to_threshold_stays_contiguous():
    gap = timedelta(hours=72)

    joined = consolidate_ranges(_hours(0, 72, 144), gap)
    split = consolidate_ranges(_hours(0, 72, 145), gap)

    assert len(joined) == 1
    assert joined[0].duration == timedelta(hours=144)
    assert [(r.start, r.end) for r in split] == [
        (EPOCH, EPOCH + timedelta(hours=72)),
        (EPOCH + timedelta(hours=145), EPOCH + timedelta(hours=145)),
    ]


def test_consolidate_rejects_negative_gap():
    assert consolidate_ranges([], timedelta(hours=1)) == []
    with pytest.raises(ValueError):
        consolidate_ranges(_hours(0), timedelta(hours=-1))


def test_scan_over_provider_samples():
    provider = LinearEphemeris(base={"saturn": 340.0}, rates={"saturn": 1.0})
    criteria = ConfigurationCriteria(
        aspects=[AspectCriterion("conjunction", body_a="saturn", fixed_b=345.0, orb=2.0)]
    )

    samples = list(sample_series(provider, ["saturn"], days(0), days(30), timedelta(hours=12)))
    result = scan_range(samples, criteria)

    assert len(samples) == 61
    assert result.range_count == 1
    assert result.total_matches == 9
    only = result.ranges[0]
    assert (only.start, only.end) == (days(3), days(7))
    assert only.contains(days(5))
    assert only.start_sample.position("saturn").longitude == pytest.approx(343.0)


def test_scan_is_idempotent_and_order_free():
    samples = [
        Sample(ts=days(i), positions=chart(mars=10.0 * i)) for i in range(30)
    ]
    criteria = ConfigurationCriteria(
        placements=[PlacementCriterion("mars", min_degree=100.0, max_degree=160.0)]
    )
    shuffled = list(samples)
    random.Random(7).shuffle(shuffled)

    first = scan_range(samples, criteria)
    assert scan_range(samples, criteria) == first
    assert scan_range(shuffled, criteria) == first
    assert first.total_matches == 7


def test_scan_gap_override():
    samples = [Sample(ts=days(i), positions=chart(sun=1.0)) for i in (0, 2, 6)]
    criteria = ConfigurationCriteria(
        placements=[PlacementCriterion("sun", sign="aries")]
    )

    assert scan_range(samples, criteria).range_count == 2
    assert scan_range(samples, criteria, max_gap=timedelta(days=4)).range_count == 1
    assert scan_range(samples, criteria, max_gap=timedelta(0)).range_count == 3


def test_placement_sign_slices_and_wrapping_ranges():
    def at(lon):
        return Sample(ts=EPOCH, positions=chart(uranus=lon, sun=lon))

    slice_ = PlacementCriterion("uranus", sign="Gemini", sign_min_degree=5, sign_max_degree=10)
    whole = PlacementCriterion("uranus", sign="gemini")
    wrapping = PlacementCriterion("sun", min_degree=350.0, max_degree=10.0)

    assert slice_.matches(at(67.0))
    assert not slice_.matches(at(71.0))
    assert whole.matches(at(89.9))
    assert not whole.matches(at(90.0))
    assert wrapping.matches(at(355.0))
    assert wrapping.matches(at(5.0))
    assert not wrapping.matches(at(20.0))
    assert not wrapping.matches(Sample(ts=EPOCH))


def test_criteria_validation():
    with pytest.raises(ValueError):
        AspectCriterion("square", body_a="saturn", fixed_a=10.0, body_b="pluto")
    with pytest.raises(ValueError):
        AspectCriterion("square", body_a="saturn")
    with pytest.raises(ValueError):
        PlacementCriterion("mars")
    with pytest.raises(ValueError):
        PlacementCriterion("mars", sign="leo", sign_max_degree=31)
    with pytest.raises(ValueError):
        PlacementCriterion("mars", sign="serpentarius")
    with pytest.raises(ValueError):
        EclipseCriterion(kind_type="annular")


def test_retrograde_criterion():
    sample = Sample(ts=EPOCH, positions={"mercury": Position(265.0, -0.4)})
    assert RetrogradeCriterion("Mercury").matches(sample)
    assert not RetrogradeCriterion("mercury", retrograde=False).matches(sample)
    assert not RetrogradeCriterion("venus").matches(sample)


def test_configuration_from_saved_search():
    criteria = ConfigurationCriteria.from_mapping(
        {
            "aspects": [
                {"planet1": "saturn", "planet2": "pluto", "aspect": "square", "orb": 2},
                {"planet1": "jupiter", "planet2FixedDegree": 0, "aspect": "conjunction", "orb": 0},
            ],
            "placements": [{"planet": "uranus", "sign": "gemini", "signMinDegree": 0}],
            "retrograde": [{"planet": "mercury", "isRetrograde": True}],
            "max_gap_hours": 24,
        }
    )

    assert criteria.max_gap == timedelta(hours=24)
    assert criteria.aspects[1].fixed_b == 0.0
    assert criteria.aspects[1].orb == 0.0

    hit = Sample(
        ts=EPOCH,
        positions={
            "saturn": Position(300.0),
            "pluto": Position(31.0),
            "jupiter": Position(0.0),
            "uranus": Position(62.0),
            "mercury": Position(200.0, -1.0),
        },
    )
    miss = Sample(ts=EPOCH, positions={**hit.positions, "jupiter": Position(0.5)})
    assert criteria.matches(hit)
    assert not criteria.matches(miss)


def test_empty_configuration_matches_everything():
    samples = [Sample(ts=days(i)) for i in range(4)]
    result = scan_range(samples, ConfigurationCriteria())
    assert result.total_matches == 4
    assert result.range_count == 1


ECLIPSE_ROWS = [
    {"datetime": EPOCH_MS, "type": "Solar", "kind": "total", "longitude": 15.2},
    {"datetime": EPOCH_MS + 14 * DAY_MS, "type": "lunar", "kind": "partial", "longitude": 195.0},
    {"datetime": EPOCH_MS + 180 * DAY_MS, "type": "solar", "kind": "annular", "longitude": 25.5},
]


def test_eclipse_filters():
    samples = samples_from_rows(ECLIPSE_ROWS)
    aries_solar = EclipseCriteria([EclipseCriterion(kind_type="solar", sign="aries", max_degree=20)])

    assert scan_range(samples, EclipseCriteria()).total_matches == 3
    result = scan_range(samples, aries_solar)
    assert result.total_matches == 1
    assert result.ranges[0].start == EPOCH

    lunar = scan_range(samples, EclipseCriteria([EclipseCriterion(kind_type="lunar")]))
    assert lunar.ranges[0].start_sample.eclipse.sign.title == "Libra"


def test_eclipse_gap_default_is_one_day():
    rows = [
        {"datetime": EPOCH_MS + offset * DAY_MS // 24, "type": "solar", "longitude": 10.0}
        for offset in (0, 24, 49)
    ]
    assert scan_range(samples_from_rows(rows), EclipseCriteria()).range_count == 2


def test_samples_from_rows_reads_columns(caplog):
    rows = [
        {
            "datetime": EPOCH_MS,
            "sun_lon": 280.5,
            "sun_speed": 1.01,
            "Mercury_lon": 265.0,
            "Mercury_speed": -0.2,
            "custom_lon": 12.0,
            "broken_lon": "n/a",
        },
        {"datetime": "2024-01-02T00:00:00Z", "sun_lon": 281.5},
        {"sun_lon": 1.0},
        {"datetime": "yesterday"},
    ]

    with caplog.at_level(logging.WARNING, logger="astrosearch.scanner.ranges"):
        samples = samples_from_rows(rows)

    assert [s.ts for s in samples] == [EPOCH, datetime(2024, 1, 2, tzinfo=UTC)]
    first = samples[0]
    assert set(first.positions) == {"sun", "mercury", "custom"}
    assert first.position("Mercury").retrograde is True
    assert samples[1].position("sun").speed == 0.0
    assert len(caplog.records) == 2


def test_sample_series_skips_failed_instants(caplog):
    provider = LinearEphemeris(
        base={"sun": 0.0, "moon": 0.0}, rates={"sun": 1.0, "moon": 13.0}, failures={days(2)}
    )

    with caplog.at_level(logging.WARNING, logger="astrosearch.scanner.ranges"):
        samples = list(sample_series(provider, ["sun", "moon"], days(0), days(4), timedelta(days=1)))

    assert [s.ts for s in samples] == [days(0), days(1), days(3), days(4)]
    assert any(getattr(r, "err_code", None) == "SYNTHETIC" for r in caplog.records)


def test_sample_series_validates_eagerly():
    provider = LinearEphemeris(base={"sun": 0.0}, rates={"sun": 1.0})
    with pytest.raises(ValueError):
        sample_series(provider, ["sun"], days(0), days(1), timedelta(0))
    with pytest.raises(ValueError):
        sample_series(provider, ["sun"], days(2), days(1), timedelta(hours=1))
    assert provider.calls == []


def test_scan_cancellation_keeps_partial_matches():
    token = CancellationToken()
    criteria = ConfigurationCriteria()

    def samples():
        for i in range(10):
            if i == 3:
                token.cancel()
            yield Sample(ts=days(i))

    with pytest.raises(SearchCancelled) as excinfo:
        scan_range(samples(), criteria, cancel=token)
    # Samples are sorted before scanning, so every sample was drawn first.
    assert len(excinfo.value.partial) == 0


def test_sample_series_cancellation():
    provider = LinearEphemeris(base={"sun": 0.0}, rates={"sun": 1.0})
    token = CancellationToken()
    series = sample_series(provider, ["sun"], days(0), days(10), timedelta(days=1), cancel=token)

    assert next(series).ts == days(0)
    token.cancel()
    with pytest.raises(SearchCancelled):
        next(series)


def test_scan_result_serialises():
    samples = [Sample(ts=days(i)) for i in (0, 1)]
    payload = scan_range(samples, ConfigurationCriteria()).as_dict()

    assert payload["total_matches"] == 2
    assert payload["range_count"] == 1
    assert payload["ranges"][0]["duration_hours"] == 24.0


def test_scan_survives_arbitrary_provider_failures(caplog):
    def engine(body, ts):
        if ts == days(2):
            raise RuntimeError("engine blew up")
        if ts == days(3):
            return (math.nan, -0.5)
        return (100.0, -0.5)

    provider = CallableProvider(engine, provider_id="flaky")
    criteria = ConfigurationCriteria(retrograde=[RetrogradeCriterion("mercury")])

    with caplog.at_level(logging.WARNING, logger="astrosearch.scanner.ranges"):
        samples = sample_series(provider, ["mercury"], days(0), days(5), timedelta(days=1))
        result = scan_range(samples, criteria)

    assert result.total_matches == 4
    codes = {getattr(r, "err_code", None) for r in caplog.records}
    assert {"CALLABLE_ERROR", "INVALID_POSITION"} <= codes


def test_malformed_eclipse_longitude_is_dropped():
    rows = [
        {"datetime": EPOCH_MS, "type": "solar", "longitude": "n/a", "sun_lon": 10.0},
        {"datetime": EPOCH_MS + DAY_MS, "type": "lunar", "longitude": "nan"},
    ]

    samples = samples_from_rows(rows)

    assert [s.eclipse for s in samples] == [None, None]
    assert samples[0].position("sun").longitude == 10.0
    assert scan_range(samples, EclipseCriteria()).total_matches == 0
