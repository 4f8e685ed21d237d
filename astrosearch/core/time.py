"""Time helpers shared by the providers and the search layers.

Every public search accepts timezone-aware ``datetime`` values (naive
inputs are read as UTC) or ISO-8601 strings.  Inputs are validated here,
before any provider call, so malformed dates fail fast.
"""

from __future__ import annotations

import datetime as _dt

__all__ = [
    "coerce_instant",
    "ensure_utc",
    "validate_window",
]


def ensure_utc(moment: _dt.datetime) -> _dt.datetime:
    """Return ``moment`` converted to UTC."""

    tzinfo = moment.tzinfo
    if tzinfo is None:
        return moment.replace(tzinfo=_dt.UTC)
    return moment.astimezone(_dt.UTC)


def coerce_instant(value: _dt.datetime | _dt.date | str, *, field: str = "instant") -> _dt.datetime:
    """Return ``value`` as an aware UTC ``datetime``.

    Raises ``ValueError`` naming ``field`` when the input cannot be read.
    """

    if isinstance(value, _dt.datetime):
        return ensure_utc(value)
    if isinstance(value, _dt.date):
        return _dt.datetime(value.year, value.month, value.day, tzinfo=_dt.UTC)
    if isinstance(value, str):
        try:
            parsed = _dt.datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError as exc:
            raise ValueError(f"{field} is not an ISO-8601 timestamp: {value!r}") from exc
        return ensure_utc(parsed)
    raise ValueError(f"{field} must be a datetime or ISO-8601 string, got {type(value).__name__}")


def validate_window(
    start: _dt.datetime | str, end: _dt.datetime | str
) -> tuple[_dt.datetime, _dt.datetime]:
    """Coerce a search window and reject ``end`` before ``start``."""

    lo = coerce_instant(start, field="start")
    hi = coerce_instant(end, field="end")
    if hi < lo:
        raise ValueError(f"end ({hi.isoformat()}) precedes start ({lo.isoformat()})")
    return lo, hi

