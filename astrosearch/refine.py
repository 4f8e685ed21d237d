"""Exact-instant refinement by bisection.

The searches in :mod:`astrosearch.detectors` reduce every question to a
scalar error ``f(t) = signed_delta(longitude(t), target)`` that changes sign
once inside a bracket; only the sign of the error steers each step.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from .core.angles import normalize_degrees, signed_delta, wrap_lerp
from .core.bodies import canonical_name
from .core.time import coerce_instant
from .observability import REFINE_ITERATIONS
from .providers import EphemerisProvider, fetch_position

LOG = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_MAX_ITER",
    "DEFAULT_PRECISION",
    "DEFAULT_TOLERANCE_DEG",
    "RefineResult",
    "bisect_crossing",
    "find_exact_crossing",
    "interpolate_exact",
    "refine_crossing",
]


DEFAULT_TOLERANCE_DEG = 1e-4
DEFAULT_PRECISION = timedelta(seconds=1)
DEFAULT_MAX_ITER = 64


@dataclass(frozen=True)
class RefineResult:
    """Outcome of a bisection run.

    ``converged`` is ``False`` only when ``max_iter`` ran out before the
    bracket narrowed below the precision floor; ``instant`` is then the
    midpoint of the narrowest bracket reached.
    """

    instant: datetime
    value: float
    iterations: int
    converged: bool


def bisect_crossing(
    f: Callable[[datetime], float],
    lo: datetime,
    hi: datetime,
    *,
    direction: int = 1,
    tolerance_deg: float = DEFAULT_TOLERANCE_DEG,
    precision: timedelta = DEFAULT_PRECISION,
    max_iter: int = DEFAULT_MAX_ITER,
) -> RefineResult:
    """Bisect ``[lo, hi]`` for the instant where ``f`` crosses zero.

    ``direction=1`` means ``f`` is positive before the crossing (the target
    still lies ahead of a direct-moving body), so a positive midpoint moves
    the search into the later half and a negative one into the earlier half.
    ``direction=-1`` mirrors this for retrograde crossings.  Exceptions from
    ``f`` propagate: a failed evaluation invalidates the step.
    """

    if hi < lo:
        lo, hi = hi, lo
    if precision <= timedelta(0):
        raise ValueError("precision must be positive")
    if direction not in (1, -1):
        raise ValueError("direction must be 1 or -1")

    iterations = 0
    while hi - lo > precision and iterations < max_iter:
        iterations += 1
        mid = lo + (hi - lo) / 2
        value = f(mid)
        if abs(value) < tolerance_deg:
            return RefineResult(instant=mid, value=value, iterations=iterations, converged=True)
        if value * direction > 0:
            lo = mid
        else:
            hi = mid

    mid = lo + (hi - lo) / 2
    converged = hi - lo <= precision
    if not converged:
        LOG.warning(
            "bisection stopped after %d iterations with bracket %s",
            iterations,
            hi - lo,
            extra={"err_code": "REFINE_MAX_ITER"},
        )
    return RefineResult(instant=mid, value=f(mid), iterations=iterations, converged=converged)


def refine_crossing(
    f: Callable[[datetime], float],
    lo: datetime,
    hi: datetime,
    *,
    f_lo: float | None = None,
    tolerance_deg: float = DEFAULT_TOLERANCE_DEG,
    precision: timedelta = DEFAULT_PRECISION,
    max_iter: int = DEFAULT_MAX_ITER,
) -> RefineResult:
    """Bisect a bracket whose crossing direction is read from ``f(lo)``."""

    start_value = f(lo) if f_lo is None else f_lo
    direction = 1 if start_value > 0 else -1
    return bisect_crossing(
        f,
        lo,
        hi,
        direction=direction,
        tolerance_deg=tolerance_deg,
        precision=precision,
        max_iter=max_iter,
    )


def interpolate_exact(t1: datetime, t2: datetime, d1: float, d2: float) -> datetime:
    """Linear estimate of the exact instant between two unsigned distances.

    ``d1`` and ``d2`` lie on opposite sides of the exact point, so the second
    one is mirrored before handing the pair to :func:`wrap_lerp`.
    """

    return wrap_lerp(t1, t2, abs(d1), -abs(d2))


def find_exact_crossing(
    provider: EphemerisProvider,
    body: str,
    target_longitude: float,
    approximate_instant: datetime | str,
    *,
    window: timedelta = timedelta(days=2),
    tolerance_deg: float = DEFAULT_TOLERANCE_DEG,
    precision: timedelta = DEFAULT_PRECISION,
    max_iter: int = DEFAULT_MAX_ITER,
) -> datetime | None:
    """Return the instant ``body`` crosses ``target_longitude`` near ``approximate_instant``.

    The bracket is ``approximate_instant ± window``.  ``None`` is returned
    when both ends of the bracket fall on the same side of the target, i.e.
    the window holds no crossing.  Provider failures propagate.
    """

    name = canonical_name(body)
    target = normalize_degrees(target_longitude)
    approx = coerce_instant(approximate_instant, field="approximate_instant")
    if window <= timedelta(0):
        raise ValueError("window must be positive")

    def error(ts: datetime) -> float:
        return signed_delta(fetch_position(provider, name, ts).longitude, target)

    lo = approx - window
    hi = approx + window
    f_lo = error(lo)
    if abs(f_lo) < tolerance_deg:
        return lo
    f_hi = error(hi)
    if abs(f_hi) < tolerance_deg:
        return hi
    # Opposite signs 180° away from the target are the wrap seam, not a crossing.
    if f_lo * f_hi > 0 or abs(f_lo - f_hi) > 180.0:
        LOG.info(
            "no %s crossing of %.4f° between %s and %s",
            name,
            target,
            lo.isoformat(),
            hi.isoformat(),
        )
        return None

    result = refine_crossing(
        error,
        lo,
        hi,
        f_lo=f_lo,
        tolerance_deg=tolerance_deg,
        precision=precision,
        max_iter=max_iter,
    )
    REFINE_ITERATIONS.labels(mode="crossing").observe(result.iterations)
    LOG.debug(
        "%s crosses %.4f° at %s after %d iterations (residual %.2e°)",
        name,
        target,
        result.instant.isoformat(),
        result.iterations,
        result.value,
    )
    return result.instant
