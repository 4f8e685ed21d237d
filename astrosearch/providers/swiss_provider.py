"""Swiss Ephemeris backed :class:`~astrosearch.providers.EphemerisProvider`."""

from __future__ import annotations

import importlib
import importlib.util
import logging
import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Final

from ..core.bodies import canonical_name
from ..core.time import ensure_utc
from ..observability import PROVIDER_FAILURES
from . import Position, ProviderError

LOG = logging.getLogger(__name__)

__all__ = ["EphemerisConfig", "SwissProvider", "has_swe"]


PROVIDER_ID: Final[str] = "swiss_ephemeris"

# Swiss Ephemeris body codes; see swephexp.h.
_BODY_IDS: dict[str, int] = {
    "sun": 0,
    "moon": 1,
    "mercury": 2,
    "venus": 3,
    "mars": 4,
    "jupiter": 5,
    "saturn": 6,
    "uranus": 7,
    "neptune": 8,
    "pluto": 9,
    "mean_node": 10,
    "true_node": 11,
    "mean_lilith": 12,
    "true_lilith": 13,
    "chiron": 15,
    "ceres": 17,
    "pallas": 18,
    "juno": 19,
    "vesta": 20,
}

# Bodies derived from another code by adding 180°.
_DERIVED: dict[str, str] = {
    "south_node": "mean_node",
    "true_south_node": "true_node",
}


def has_swe() -> bool:
    """Return ``True`` if pyswisseph is importable."""

    return importlib.util.find_spec("swisseph") is not None


def _load_swe() -> Any:
    try:
        return importlib.import_module("swisseph")
    except ImportError as exc:  # pragma: no cover - import errors depend on env
        raise ProviderError(
            "Swiss Ephemeris not available. Install pyswisseph (package: 'pyswisseph').",
            provider_id=PROVIDER_ID,
            error_code="SWISS_IMPORT",
        ) from exc


@dataclass(frozen=True, slots=True)
class EphemerisConfig:
    """Configuration passed explicitly to :class:`SwissProvider`.

    ``ephemeris_path`` defaults to ``SE_EPHE_PATH`` from the environment;
    with no data files available ``prefer_moshier`` selects the built-in
    analytical Moshier ephemeris.
    """

    ephemeris_path: str | None = None
    prefer_moshier: bool = False

    def resolved_path(self) -> str | None:
        candidate = self.ephemeris_path or os.environ.get("SE_EPHE_PATH")
        if not candidate:
            return None
        path = Path(candidate).expanduser()
        if not path.is_dir():
            raise ValueError(f"ephemeris path does not exist: {path}")
        return str(path)


class SwissProvider:
    """Return longitude and longitude speed via ``swisseph.calc_ut``."""

    provider_id = PROVIDER_ID

    def __init__(self, config: EphemerisConfig | None = None) -> None:
        self._config = config or EphemerisConfig()
        self._swe = _load_swe()
        path = self._config.resolved_path()
        if path:
            self._swe.set_ephe_path(path)
            LOG.debug("Swiss Ephemeris path configured: %s", path)
        base = self._swe.FLG_MOSEPH if self._config.prefer_moshier else self._swe.FLG_SWIEPH
        self._flags = base | self._swe.FLG_SPEED

    @property
    def config(self) -> EphemerisConfig:
        return self._config

    def _julian_day(self, ts: datetime) -> float:
        moment = ensure_utc(ts)
        hour = (
            moment.hour
            + moment.minute / 60.0
            + (moment.second + moment.microsecond / 1e6) / 3600.0
        )
        return self._swe.julday(moment.year, moment.month, moment.day, hour, self._swe.GREG_CAL)

    def position(self, body: str, ts: datetime) -> Position:
        canonical = canonical_name(body)
        source = _DERIVED.get(canonical, canonical)
        code = _BODY_IDS.get(source)
        if code is None:
            PROVIDER_FAILURES.labels(provider_id=PROVIDER_ID, error_code="BODY_UNSUPPORTED").inc()
            raise ProviderError(
                f"body {body!r} has no Swiss Ephemeris code",
                provider_id=PROVIDER_ID,
                error_code="BODY_UNSUPPORTED",
                context={"body": canonical},
            )
        jd_ut = self._julian_day(ts)
        try:
            values, _flags = self._swe.calc_ut(jd_ut, code, self._flags)
        except self._swe.Error as exc:
            PROVIDER_FAILURES.labels(provider_id=PROVIDER_ID, error_code="SWISS_CALC").inc()
            raise ProviderError(
                f"Swiss Ephemeris error calculating {canonical}: {exc}",
                provider_id=PROVIDER_ID,
                error_code="SWISS_CALC",
                retriable=False,
                context={"body": canonical, "jd_ut": jd_ut},
            ) from exc
        longitude = float(values[0])
        if canonical in _DERIVED:
            longitude += 180.0
        return Position(longitude=longitude, speed=float(values[3]))
