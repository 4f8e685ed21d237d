"""Batch scan over discrete samples and consolidation into date ranges."""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from ..core.bodies import UnknownBodyError, canonical_name
from ..core.cancel import CancellationToken, check_cancelled
from ..core.time import coerce_instant, validate_window
from ..observability import SCAN_MATCHES, SCAN_SAMPLES_SKIPPED
from ..providers import EphemerisProvider, Position, ProviderError, fetch_position
from .criteria import DEFAULT_CONFIGURATION_GAP, Criterion, EclipseRecord, Sample

LOG = logging.getLogger(__name__)

__all__ = [
    "DateRange",
    "ScanResult",
    "consolidate_ranges",
    "sample_series",
    "samples_from_rows",
    "scan_range",
]


@dataclass(frozen=True)
class DateRange:
    """A maximal run of matching samples no further apart than the gap."""

    start: datetime
    end: datetime
    start_sample: Sample
    end_sample: Sample

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end

    def as_dict(self) -> dict[str, Any]:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "duration_hours": self.duration.total_seconds() / 3600.0,
        }


@dataclass(frozen=True)
class ScanResult:
    ranges: tuple[DateRange, ...]
    total_matches: int
    range_count: int

    def as_dict(self) -> dict[str, Any]:
        return {
            "ranges": [item.as_dict() for item in self.ranges],
            "total_matches": self.total_matches,
            "range_count": self.range_count,
        }


def consolidate_ranges(matches: Sequence[Sample], max_gap: timedelta) -> list[DateRange]:
    """Merge time-ordered matches into disjoint ranges in one left-to-right pass.

    Two neighbours separated by exactly ``max_gap`` belong to the same range.
    """

    if max_gap < timedelta(0):
        raise ValueError("max_gap must not be negative")
    if not matches:
        return []

    ranges: list[DateRange] = []
    first = last = matches[0]
    for sample in matches[1:]:
        if sample.ts - last.ts <= max_gap:
            last = sample
            continue
        ranges.append(DateRange(first.ts, last.ts, first, last))
        first = last = sample
    ranges.append(DateRange(first.ts, last.ts, first, last))
    return ranges


def scan_range(
    samples: Iterable[Sample],
    criteria: Criterion,
    *,
    max_gap: timedelta | None = None,
    cancel: CancellationToken | None = None,
) -> ScanResult:
    """Filter ``samples`` through ``criteria`` and consolidate the matches.

    ``max_gap`` defaults to the criteria's own ``max_gap``, then to its
    ``default_gap`` (72 hours for configurations, 24 hours for eclipses).
    Samples are ordered by timestamp first, so the result does not depend
    on input order.
    """

    gap = max_gap if max_gap is not None else getattr(criteria, "max_gap", None)
    if gap is None:
        gap = getattr(criteria, "default_gap", DEFAULT_CONFIGURATION_GAP)
    matches: list[Sample] = []
    for sample in sorted(samples, key=lambda s: s.ts):
        check_cancelled(cancel, matches)
        if criteria.matches(sample):
            matches.append(sample)

    ranges = consolidate_ranges(matches, gap)
    SCAN_MATCHES.labels(criteria=getattr(criteria, "name", type(criteria).__name__)).inc(
        len(matches)
    )
    LOG.debug("scan matched %d samples in %d ranges", len(matches), len(ranges))
    return ScanResult(ranges=tuple(ranges), total_matches=len(matches), range_count=len(ranges))


def sample_series(
    provider: EphemerisProvider,
    bodies: Iterable[str],
    start: datetime | str,
    end: datetime | str,
    step: timedelta,
    *,
    cancel: CancellationToken | None = None,
) -> Iterator[Sample]:
    """Return an iterator of fixed-step samples from ``start`` to ``end`` inclusive.

    A sample for which the provider fails on any body is logged and
    skipped; the series continues with the next step.
    """

    names = [canonical_name(body) for body in bodies]
    lo, hi = validate_window(start, end)
    if step <= timedelta(0):
        raise ValueError("step must be positive")

    return _iter_samples(provider, names, lo, hi, step, cancel)


def _iter_samples(
    provider: EphemerisProvider,
    names: list[str],
    lo: datetime,
    hi: datetime,
    step: timedelta,
    cancel: CancellationToken | None,
) -> Iterator[Sample]:
    current = lo
    while current <= hi:
        check_cancelled(cancel)
        try:
            positions = {name: fetch_position(provider, name, current) for name in names}
        except ProviderError as exc:
            SCAN_SAMPLES_SKIPPED.labels(component="scanner").inc()
            LOG.warning(
                "skipping sample at %s: %s",
                current.isoformat(),
                exc,
                extra={"err_code": exc.error_code or "PROVIDER_ERROR"},
            )
        else:
            yield Sample(ts=current, positions=positions)
        current += step


def _row_instant(value: Any) -> datetime:
    if isinstance(value, bool):
        raise ValueError("datetime column cannot be a boolean")
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000.0, tz=UTC)
    return coerce_instant(value, field="datetime")


def _row_body(column: str) -> str:
    try:
        return canonical_name(column)
    except UnknownBodyError:
        return column.lower()


def samples_from_rows(rows: Iterable[Mapping[str, Any]]) -> list[Sample]:
    """Adapt stored ephemeris / eclipse rows into samples.

    ``datetime`` holds epoch milliseconds (or an ISO string); each body has
    a ``<body>_lon`` column and optionally ``<body>_speed``.  Rows with a
    ``type`` column (``solar`` / ``lunar``) carry an eclipse record.
    Rows without a usable timestamp are skipped.
    """

    samples: list[Sample] = []
    for row in rows:
        try:
            ts = _row_instant(row["datetime"])
        except (KeyError, TypeError, ValueError, OverflowError) as exc:
            LOG.warning("skipping row without a usable datetime: %s", exc)
            continue

        positions: dict[str, Position] = {}
        for column, value in row.items():
            if not column.endswith("_lon") or value is None:
                continue
            prefix = column[: -len("_lon")]
            speed = row.get(f"{prefix}_speed") or 0.0
            try:
                positions[_row_body(prefix)] = Position(float(value), float(speed))
            except (TypeError, ValueError):
                LOG.debug("ignoring malformed %s at %s", column, ts.isoformat())

        eclipse = None
        if row.get("type") and row.get("longitude") is not None:
            try:
                longitude = float(row["longitude"])
            except (TypeError, ValueError):
                longitude = math.nan
            if math.isfinite(longitude):
                eclipse = EclipseRecord(
                    kind_type=str(row["type"]).lower(),
                    kind=str(row.get("kind") or ""),
                    longitude=longitude,
                )
            else:
                LOG.debug("ignoring malformed eclipse longitude at %s", ts.isoformat())
        samples.append(Sample(ts=ts, positions=positions, eclipse=eclipse))
    return samples
