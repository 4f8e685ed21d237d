"""Cardinal ingress detection (equinoxes and solstices)."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime, timedelta
from enum import Enum

from ..core.time import coerce_instant
from ..events import IngressEvent
from ..providers import EphemerisProvider, fetch_position
from ..refine import (
    DEFAULT_MAX_ITER,
    DEFAULT_PRECISION,
    DEFAULT_TOLERANCE_DEG,
    find_exact_crossing,
)

LOG = logging.getLogger(__name__)

__all__ = [
    "IngressKind",
    "IngressNotFoundError",
    "active_ingress",
    "annual_ingress_calendar",
    "calculate_ingress",
    "ingress_calendars",
    "ingress_expiry",
]


class IngressNotFoundError(RuntimeError):
    """Raised when the Sun does not cross the target inside the search window."""


class IngressKind(Enum):
    """Cardinal ingresses with their target longitude and approximate date."""

    ARIES = ("aries", 0.0, 3, 20)
    CANCER = ("cancer", 90.0, 6, 21)
    LIBRA = ("libra", 180.0, 9, 22)
    CAPRICORN = ("capricorn", 270.0, 12, 21)

    def __init__(self, label: str, longitude: float, month: int, day: int) -> None:
        self.label = label
        self.longitude = longitude
        self.month = month
        self.day = day

    @classmethod
    def parse(cls, value: str | IngressKind) -> IngressKind:
        if isinstance(value, IngressKind):
            return value
        key = str(value).strip().upper()
        try:
            return cls[key]
        except KeyError:
            raise ValueError(
                f"Invalid ingress type: {value!r}. Must be one of: "
                + ", ".join(kind.label for kind in cls)
            ) from None

    def approximate_instant(self, year: int) -> datetime:
        return datetime(year, self.month, self.day, 12, 0, 0, tzinfo=UTC)

    def following(self) -> IngressKind:
        members = list(IngressKind)
        return members[(members.index(self) + 1) % len(members)]


def calculate_ingress(
    provider: EphemerisProvider,
    year: int,
    kind: str | IngressKind,
    *,
    body: str = "sun",
    window: timedelta = timedelta(days=2),
    tolerance_deg: float = DEFAULT_TOLERANCE_DEG,
    precision: timedelta = DEFAULT_PRECISION,
    max_iter: int = DEFAULT_MAX_ITER,
) -> IngressEvent:
    """Return the exact ingress of ``kind`` in ``year``.

    The search starts from the approximate calendar date (12:00 UTC) padded
    by ``window`` on both sides.
    """

    ingress = IngressKind.parse(kind)
    if isinstance(year, bool) or not isinstance(year, int):
        raise ValueError(f"year must be an integer, got {year!r}")
    instant = find_exact_crossing(
        provider,
        body,
        ingress.longitude,
        ingress.approximate_instant(year),
        window=window,
        tolerance_deg=tolerance_deg,
        precision=precision,
        max_iter=max_iter,
    )
    if instant is None:
        raise IngressNotFoundError(
            f"{body} does not reach {ingress.longitude:.0f}° within {window} of "
            f"{ingress.approximate_instant(year).date()}"
        )
    position = fetch_position(provider, body, instant)
    LOG.debug("%s ingress %d at %s", ingress.label, year, instant.isoformat())
    return IngressEvent(
        kind=ingress.label,
        year=year,
        ts=instant,
        target_longitude=ingress.longitude,
        longitude=position.longitude,
    )


def ingress_expiry(
    provider: EphemerisProvider, year: int, kind: str | IngressKind, **kwargs
) -> IngressEvent:
    """Return the next ingress, which ends the season opened by ``kind``."""

    ingress = IngressKind.parse(kind)
    next_year = year + 1 if ingress is IngressKind.CAPRICORN else year
    return calculate_ingress(provider, next_year, ingress.following(), **kwargs)


def annual_ingress_calendar(provider: EphemerisProvider, year: int, **kwargs) -> dict[str, IngressEvent]:
    return {
        kind.label: calculate_ingress(provider, year, kind, **kwargs) for kind in IngressKind
    }


def active_ingress(provider: EphemerisProvider, when: datetime | str, **kwargs) -> IngressEvent:
    """Return the most recent ingress at or before ``when``."""

    moment = coerce_instant(when, field="when")
    calendar = annual_ingress_calendar(provider, moment.year, **kwargs)
    for kind in reversed(list(IngressKind)):
        event = calendar[kind.label]
        if moment >= event.ts:
            return event
    return calculate_ingress(provider, moment.year - 1, IngressKind.CAPRICORN, **kwargs)


def ingress_calendars(
    provider: EphemerisProvider,
    years: Iterable[int],
    *,
    max_workers: int = 1,
    **kwargs,
) -> dict[int, dict[str, IngressEvent]]:
    """Return annual calendars for ``years``.

    Years are independent searches, so with ``max_workers > 1`` they run on a
    thread pool; the provider must then be safe to call from several threads.
    """

    ordered = sorted(set(years))
    if max_workers > 1 and len(ordered) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = {
                year: executor.submit(annual_ingress_calendar, provider, year, **kwargs)
                for year in ordered
            }
            return {year: future.result() for year, future in futures.items()}
    return {year: annual_ingress_calendar(provider, year, **kwargs) for year in ordered}
