"""Angular utilities shared across search and aspect calculations.

Degree normalisation, shortest-arc separation and the directional delta
used by the root finder to decide which way a body still has to travel.
All of them accept any finite input and wrap across 0° Aries.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Final, TypeVar

from .aspects import ZodiacSign

__all__ = [
    "EPSILON_DEG",
    "degree_in_sign",
    "normalize_degrees",
    "shortest_arc",
    "sign_index",
    "sign_name",
    "signed_delta",
    "wrap_lerp",
]


EPSILON_DEG: Final[float] = 1e-9

_T = TypeVar("_T", float, datetime)


def normalize_degrees(angle: float) -> float:
    """Return ``angle`` normalised to the ``[0, 360)`` interval.

    Parameters
    ----------
    angle:
        Value in **degrees**. Inputs outside the canonical range, negative
        values included, are wrapped by multiples of 360°.

    Returns
    -------
    float
        A degree value in ``[0, 360)``. Values within ``1e-9`` of ``360``
        are coerced to ``0`` so ``normalize_degrees`` is idempotent.
    """

    value = float(angle)
    if not math.isfinite(value):
        raise ValueError(f"angle must be finite, got {angle!r}")
    wrapped = math.fmod(value, 360.0)
    if wrapped < 0.0:
        wrapped += 360.0
    if wrapped >= 360.0 - EPSILON_DEG:
        wrapped = 0.0
    return wrapped


def shortest_arc(a: float, b: float) -> float:
    """Return the absolute circular separation of ``a`` and ``b`` in ``[0, 180]``."""

    d = abs(normalize_degrees(a) - normalize_degrees(b))
    if d > 180.0:
        d = 360.0 - d
    return d


def signed_delta(from_deg: float, to_deg: float) -> float:
    """Smallest signed delta from ``from_deg`` to ``to_deg`` in ``(-180, 180]``.

    A positive result means ``to_deg`` lies ahead in zodiacal order, so a
    direct-moving body at ``from_deg`` still has to advance to reach it.
    ``signed_delta(359, 1)`` is ``+2`` rather than ``-358``.
    """

    delta = normalize_degrees(to_deg) - normalize_degrees(from_deg)
    if delta > 180.0:
        delta -= 360.0
    elif delta <= -180.0:
        delta += 360.0
    return delta


def wrap_lerp(t1: _T, t2: _T, v1: float, v2: float) -> _T:
    """Interpolate the instant where a linearly varying error reaches zero.

    ``(t1, v1)`` and ``(t2, v2)`` bracket the zero (opposite signs, or one of
    them near zero): ``t* = t1 + v1 / (v1 - v2) * (t2 - t1)``.  Both
    ``float`` and :class:`~datetime.datetime` instants are accepted.
    """

    denominator = float(v1) - float(v2)
    if denominator == 0.0:
        return t1
    ratio = float(v1) / denominator
    return t1 + (t2 - t1) * ratio


def sign_index(longitude: float) -> int:
    """Return the zero-based zodiac sign index for ``longitude`` (0 = Aries)."""

    return int(normalize_degrees(longitude) // 30.0) % 12


def sign_name(longitude: float) -> str:
    """Return the sign name containing ``longitude``."""

    return ZodiacSign.from_index(sign_index(longitude)).title


def degree_in_sign(longitude: float) -> float:
    return normalize_degrees(longitude) % 30.0
