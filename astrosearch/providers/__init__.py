"""Ephemeris provider contract, position value object and registry."""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from ..core.angles import normalize_degrees
from ..observability import PROVIDER_FAILURES, PROVIDER_QUERIES

LOG = logging.getLogger(__name__)

__all__ = [
    "CallableProvider",
    "EphemerisProvider",
    "Position",
    "ProviderError",
    "fetch_position",
    "get_provider",
    "list_providers",
    "register_provider",
]


class ProviderError(RuntimeError):
    """Structured error raised when a provider cannot satisfy a request."""

    def __init__(
        self,
        message: str,
        *,
        provider_id: str | None = None,
        error_code: str | None = None,
        retriable: bool = False,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.provider_id = provider_id
        self.error_code = error_code
        self.retriable = retriable
        self.context = dict(context or {})


@dataclass(frozen=True, slots=True)
class Position:
    """Ecliptic longitude (degrees) and signed longitude speed (degrees/day)."""

    longitude: float
    speed: float = 0.0

    def __post_init__(self) -> None:
        speed = float(self.speed)
        if not math.isfinite(speed):
            raise ValueError(f"speed must be finite, got {self.speed!r}")
        object.__setattr__(self, "longitude", normalize_degrees(self.longitude))
        object.__setattr__(self, "speed", speed)

    @property
    def retrograde(self) -> bool:
        return self.speed < 0.0

    @classmethod
    def coerce(cls, value: Position | Mapping[str, Any] | float | tuple) -> Position:
        """Build a position from the loose shapes callers tend to pass around.

        Accepts a :class:`Position`, a bare longitude, a ``(lon, speed)``
        tuple, or a mapping with ``longitude``/``lon`` and an optional
        ``speed``/``velocity``/``speed_lon`` key.
        """

        if isinstance(value, Position):
            return value
        if isinstance(value, Mapping):
            lon = value.get("longitude", value.get("lon"))
            speed = value.get("speed", value.get("velocity", value.get("speed_lon", 0.0)))
            if lon is None:
                raise ValueError("position mapping has no longitude")
            return cls(float(lon), float(speed or 0.0))
        if isinstance(value, tuple):
            lon, *rest = value
            return cls(float(lon), float(rest[0]) if rest else 0.0)
        if isinstance(value, bool):
            raise ValueError("position cannot be a boolean")
        return cls(float(value))


@runtime_checkable
class EphemerisProvider(Protocol):
    """Provider contract returning one body position per call."""

    def position(self, body: str, ts: datetime) -> Position:
        """Return the position of ``body`` at the UTC instant ``ts``."""

        ...


class CallableProvider:
    """Adapt a plain ``(body, ts) -> Position | (lon, speed)`` callable."""

    def __init__(self, fn: Callable[[str, datetime], Any], *, provider_id: str = "callable") -> None:
        self._fn = fn
        self.provider_id = provider_id

    def position(self, body: str, ts: datetime) -> Position:
        try:
            raw = self._fn(body, ts)
        except ProviderError:
            raise
        except Exception as exc:
            PROVIDER_FAILURES.labels(provider_id=self.provider_id, error_code="CALLABLE_ERROR").inc()
            raise ProviderError(
                f"{self.provider_id} failed for {body!r}: {exc}",
                provider_id=self.provider_id,
                error_code="CALLABLE_ERROR",
                context={"body": body, "ts": ts.isoformat()},
            ) from exc
        return _coerce(raw, self.provider_id, body)


def _coerce(raw: Any, provider_id: str, body: str) -> Position:
    try:
        return Position.coerce(raw)
    except (TypeError, ValueError) as exc:
        PROVIDER_FAILURES.labels(provider_id=provider_id, error_code="INVALID_POSITION").inc()
        raise ProviderError(
            f"{provider_id} returned an unusable position for {body!r}: {exc}",
            provider_id=provider_id,
            error_code="INVALID_POSITION",
            context={"body": body, "value": repr(raw)},
        ) from exc


def fetch_position(provider: EphemerisProvider, body: str, ts: datetime) -> Position:
    """Query ``provider`` and record the lookup in the provider metrics.

    A result that cannot be read as a position raises :class:`ProviderError`
    with ``error_code="INVALID_POSITION"``.
    """

    provider_id = getattr(provider, "provider_id", type(provider).__name__)
    PROVIDER_QUERIES.labels(provider_id=provider_id).inc()
    return _coerce(provider.position(body, ts), provider_id, body)


_REGISTRY: dict[str, EphemerisProvider] = {}


def register_provider(name: str, provider: EphemerisProvider, *, overwrite: bool = False) -> None:
    """Register ``provider`` under ``name``."""

    if not overwrite and name in _REGISTRY:
        raise ValueError(f"provider name already registered: {name!r}")
    _REGISTRY[name] = provider
    LOG.debug("registered ephemeris provider %s", name)


def get_provider(name: str = "swiss") -> EphemerisProvider:
    try:
        return _REGISTRY[name]
    except KeyError as exc:
        raise KeyError(
            f"provider '{name}' not registered; available={list(_REGISTRY)}"
        ) from exc


def list_providers() -> Iterable[str]:
    return sorted(_REGISTRY)
