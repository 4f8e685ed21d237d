"""Transit exactitude search: when does a moving body aspect a natal point."""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Literal

from ..core.angles import normalize_degrees, shortest_arc, signed_delta, wrap_lerp
from ..core.aspects import AspectDefinition, AspectKind, aspect_definition
from ..core.bodies import canonical_name, transit_step
from ..core.cancel import CancellationToken, check_cancelled
from ..core.time import coerce_instant, validate_window
from ..events import ExactHit
from ..observability import REFINE_ITERATIONS, SCAN_SAMPLES_SKIPPED
from ..providers import EphemerisProvider, Position, ProviderError, fetch_position
from ..refine import (
    DEFAULT_MAX_ITER,
    DEFAULT_PRECISION,
    DEFAULT_TOLERANCE_DEG,
    interpolate_exact,
    refine_crossing,
)

LOG = logging.getLogger(__name__)

__all__ = [
    "ChartImpact",
    "ImpactMatch",
    "NatalChart",
    "TransitStrategy",
    "aspect_points",
    "find_database_impact",
    "find_transit_hits",
]


TransitStrategy = Literal["cooldown", "crossing"]

DEFAULT_COOLDOWN = timedelta(days=30)
DEFAULT_TIGHT_THRESHOLD_DEG = 0.5


def aspect_points(target_longitude: float, definition: AspectDefinition) -> tuple[float, ...]:
    """Return the longitudes that form ``definition`` with ``target_longitude``.

    Conjunction and opposition have a single point; every other aspect has
    a waxing and a waning point.
    """

    forward = normalize_degrees(target_longitude + definition.angle)
    backward = normalize_degrees(target_longitude - definition.angle)
    if shortest_arc(forward, backward) < 1e-9:
        return (forward,)
    return (forward, backward)


@dataclass
class _PointState:
    point: float
    prev_ts: datetime | None = None
    prev_offset: float | None = None
    before_ts: datetime | None = None
    before_offset: float | None = None
    last_hit: datetime | None = None


def _check_orb(value: float, name: str) -> float:
    numeric = float(value)
    if not math.isfinite(numeric) or numeric < 0.0:
        raise ValueError(f"{name} must be a non-negative number, got {value!r}")
    return numeric


def find_transit_hits(
    provider: EphemerisProvider,
    body: str,
    aspect: str | AspectKind,
    target_longitude: float,
    start: datetime | str,
    end: datetime | str,
    max_orb: float = 1.0,
    *,
    strategy: TransitStrategy = "cooldown",
    step: timedelta | None = None,
    cooldown: timedelta = DEFAULT_COOLDOWN,
    tight_threshold: float = DEFAULT_TIGHT_THRESHOLD_DEG,
    tolerance_deg: float = DEFAULT_TOLERANCE_DEG,
    precision: timedelta = DEFAULT_PRECISION,
    max_iter: int = DEFAULT_MAX_ITER,
    cancel: CancellationToken | None = None,
) -> list[ExactHit]:
    """Return the instants in ``[start, end]`` when ``body`` perfects ``aspect``.

    The window is sampled every ``step`` (one day for Jupiter and slower
    bodies, half a day otherwise).  Two ways of turning samples into hits
    are offered:

    ``"cooldown"``
        A hit is emitted when the distance to the aspect point starts to
        grow again after the previous sample came within ``tight_threshold``
        degrees; the sample pair bracketing the sign change is interpolated
        linearly.  Further hits on the same aspect point are suppressed for
        ``cooldown``, which also hides genuine repeat passes made inside
        that interval (retrograde stations close to the point).
    ``"crossing"``
        Each sign change of the signed offset between consecutive samples is
        refined by bisection.  Every pass is reported, with no cooldown.

    Samples the provider fails on are logged and skipped.  A failure while
    refining a detected pass propagates.
    """

    name = canonical_name(body)
    definition = aspect_definition(aspect)
    target = normalize_degrees(target_longitude)
    lo, hi = validate_window(start, end)
    orb_limit = _check_orb(max_orb, "max_orb")
    tight = _check_orb(tight_threshold, "tight_threshold")
    if strategy not in ("cooldown", "crossing"):
        raise ValueError(f"unknown transit strategy {strategy!r}")
    cadence = step if step is not None else transit_step(name)
    if cadence <= timedelta(0):
        raise ValueError("step must be positive")

    states = [_PointState(point) for point in aspect_points(target, definition)]
    hits: list[ExactHit] = []

    def make_hit(ts: datetime, point: float, position: Position | None = None) -> ExactHit:
        pos = position or fetch_position(provider, name, ts)
        return ExactHit(
            ts=ts,
            body=name,
            aspect=definition.kind,
            target_longitude=target,
            aspect_point=point,
            orb=abs(signed_delta(pos.longitude, point)),
            position=pos,
        )

    current = lo
    while current <= hi:
        check_cancelled(cancel, hits)
        try:
            position = fetch_position(provider, name, current)
        except ProviderError as exc:
            SCAN_SAMPLES_SKIPPED.labels(component="transits").inc()
            LOG.warning(
                "skipping %s sample at %s: %s",
                name,
                current.isoformat(),
                exc,
                extra={"err_code": exc.error_code or "PROVIDER_ERROR"},
            )
            current += cadence
            continue

        for state in states:
            offset = signed_delta(position.longitude, state.point)
            if strategy == "cooldown":
                _cooldown_step(state, current, offset, orb_limit, tight, cooldown, hits, make_hit)
            else:

                def error(ts: datetime, point: float = state.point) -> float:
                    return signed_delta(fetch_position(provider, name, ts).longitude, point)

                if offset == 0.0:
                    hits.append(make_hit(current, state.point, position))
                elif _crosses(state.prev_offset, offset):
                    result = refine_crossing(
                        error,
                        state.prev_ts,
                        current,
                        f_lo=state.prev_offset,
                        tolerance_deg=tolerance_deg,
                        precision=precision,
                        max_iter=max_iter,
                    )
                    REFINE_ITERATIONS.labels(mode="transit").observe(result.iterations)
                    hit = make_hit(result.instant, state.point)
                    if hit.orb <= orb_limit:
                        hits.append(hit)
            state.before_ts, state.before_offset = state.prev_ts, state.prev_offset
            state.prev_ts = current
            state.prev_offset = offset
        current += cadence

    hits.sort(key=lambda h: h.ts)
    LOG.debug(
        "%d %s %s hits to %.4f° between %s and %s",
        len(hits),
        name,
        definition.kind.value,
        target,
        lo.isoformat(),
        hi.isoformat(),
    )
    return hits


def _cooldown_step(
    state: _PointState,
    ts: datetime,
    offset: float,
    orb_limit: float,
    tight: float,
    cooldown: timedelta,
    hits: list[ExactHit],
    make_hit,
) -> None:
    distance = abs(offset)
    if state.prev_offset is None or distance > orb_limit:
        return
    prev_distance = abs(state.prev_offset)
    if distance <= prev_distance or prev_distance >= tight:
        return
    if state.last_hit is not None and ts - state.last_hit < cooldown:
        return
    exact = _bracketed_instant(state, ts, offset)
    hits.append(make_hit(exact, state.point))
    state.last_hit = ts


def _crosses(v1: float | None, v2: float) -> bool:
    return v1 is not None and v1 * v2 < 0.0 and abs(v1 - v2) < 180.0


def _bracketed_instant(state: _PointState, ts: datetime, offset: float) -> datetime:
    # The sign change may sit one sample back: the growing-distance test
    # only fires once the body is already past the point.
    if state.prev_offset == 0.0:
        return state.prev_ts
    if _crosses(state.before_offset, state.prev_offset):
        return wrap_lerp(state.before_ts, state.prev_ts, state.before_offset, state.prev_offset)
    if _crosses(state.prev_offset, offset):
        return wrap_lerp(state.prev_ts, ts, state.prev_offset, offset)
    return interpolate_exact(state.prev_ts, ts, state.prev_offset, offset)


@dataclass(frozen=True)
class NatalChart:
    """A stored chart reduced to what transit impact checks need."""

    chart_id: Any
    name: str
    positions: Mapping[str, Position]
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> NatalChart:
        """Build a chart from ``{"id", "name", "planets": {body: {...}}}``."""

        planets = payload.get("planets") or payload.get("positions") or {}
        positions: dict[str, Position] = {}
        for key, value in planets.items():
            try:
                positions[key] = Position.coerce(value)
            except (TypeError, ValueError):
                LOG.debug("chart %s: ignoring malformed position for %s", payload.get("id"), key)
        extra = {k: v for k, v in payload.items() if k not in {"id", "name", "planets", "positions"}}
        return cls(chart_id=payload.get("id"), name=str(payload.get("name", "")), positions=positions, metadata=extra)


@dataclass(frozen=True)
class ImpactMatch:
    natal_body: str
    natal_longitude: float
    orb: float


@dataclass(frozen=True)
class ChartImpact:
    chart: NatalChart
    body: str
    aspect: AspectKind
    ts: datetime
    transit_longitude: float
    matches: tuple[ImpactMatch, ...]


def find_database_impact(
    provider: EphemerisProvider,
    body: str,
    when: datetime | str,
    aspect: str | AspectKind,
    orb: float,
    charts: Iterable[NatalChart | Mapping[str, Any]],
    natal_body: str = "any",
) -> list[ChartImpact]:
    """Return the stored charts whose natal points ``body`` aspects at ``when``."""

    name = canonical_name(body)
    definition = aspect_definition(aspect)
    limit = _check_orb(orb, "orb")
    moment = coerce_instant(when, field="when")
    wanted = None if natal_body == "any" else canonical_name(natal_body)
    transit = fetch_position(provider, name, moment)

    impacts: list[ChartImpact] = []
    for raw in charts:
        chart = raw if isinstance(raw, NatalChart) else NatalChart.from_mapping(raw)
        matches: list[ImpactMatch] = []
        for key, natal in chart.positions.items():
            if wanted is not None:
                try:
                    if canonical_name(key) != wanted:
                        continue
                except KeyError:
                    continue
            distance = abs(shortest_arc(transit.longitude, natal.longitude) - definition.angle)
            if distance <= limit:
                matches.append(ImpactMatch(natal_body=key, natal_longitude=natal.longitude, orb=distance))
        if matches:
            impacts.append(
                ChartImpact(
                    chart=chart,
                    body=name,
                    aspect=definition.kind,
                    ts=moment,
                    transit_longitude=transit.longitude,
                    matches=tuple(sorted(matches, key=lambda m: m.orb)),
                )
            )
    return impacts
