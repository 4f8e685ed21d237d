"""Facade wiring :class:`~astrosearch.config.Settings` into every search."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from typing import Any

from .aspects import AspectInstance, compute_aspects, compute_cross_aspects
from .config import Settings, default_settings
from .core.cancel import CancellationToken
from .detectors import (
    IngressKind,
    calculate_ingress,
    find_database_impact,
    find_transit_hits,
    ingress_calendars,
)
from .detectors.transits import ChartImpact, NatalChart
from .events import ExactHit, IngressEvent
from .patterns import PatternSet, detect_patterns
from .providers import EphemerisProvider
from .refine import find_exact_crossing
from .scanner import (
    ConfigurationCriteria,
    Criterion,
    EclipseCriteria,
    Sample,
    ScanResult,
    sample_series,
    scan_range,
)

LOG = logging.getLogger(__name__)

__all__ = ["SearchEngine", "TransitRequest"]


TransitRequest = tuple[str, str, float]


class SearchEngine:
    """Run searches against one provider with one set of settings."""

    def __init__(self, provider: EphemerisProvider, settings: Settings | None = None) -> None:
        self.provider = provider
        self.settings = settings or default_settings()
        self._orb_policy = self.settings.orbs.to_policy()
        LOG.debug(
            "search engine ready (provider=%s)",
            getattr(provider, "provider_id", type(provider).__name__),
        )

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> SearchEngine:
        """Build an engine backed by the Swiss Ephemeris provider."""

        from .providers.swiss_provider import SwissProvider

        settings = settings or default_settings()
        return cls(SwissProvider(settings.ephemeris.to_provider_config()), settings)

    def _refine_kwargs(self) -> dict[str, Any]:
        refine = self.settings.refine
        return {
            "tolerance_deg": refine.tolerance_deg,
            "precision": refine.precision,
            "max_iter": refine.max_iter,
        }

    # -- exact instants ---------------------------------------------------

    def exact_crossing(
        self, body: str, target_longitude: float, approximate_instant: datetime | str
    ) -> datetime | None:
        return find_exact_crossing(
            self.provider,
            body,
            target_longitude,
            approximate_instant,
            window=self.settings.refine.ingress_window,
            **self._refine_kwargs(),
        )

    def ingress(self, year: int, kind: str | IngressKind) -> IngressEvent:
        return calculate_ingress(
            self.provider,
            year,
            kind,
            window=self.settings.refine.ingress_window,
            **self._refine_kwargs(),
        )

    def ingress_calendars(self, years: Iterable[int]) -> dict[int, dict[str, IngressEvent]]:
        return ingress_calendars(
            self.provider,
            years,
            max_workers=self.settings.scan.max_workers,
            window=self.settings.refine.ingress_window,
            **self._refine_kwargs(),
        )

    def transit_hits(
        self,
        body: str,
        aspect: str,
        target_longitude: float,
        start: datetime | str,
        end: datetime | str,
        max_orb: float | None = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> list[ExactHit]:
        cfg = self.settings.transits
        return find_transit_hits(
            self.provider,
            body,
            aspect,
            target_longitude,
            start,
            end,
            cfg.max_orb if max_orb is None else max_orb,
            strategy=cfg.strategy,
            step=cfg.step,
            cooldown=cfg.cooldown,
            tight_threshold=cfg.tight_threshold_deg,
            cancel=cancel,
            **self._refine_kwargs(),
        )

    def transit_hits_many(
        self,
        requests: Sequence[TransitRequest],
        start: datetime | str,
        end: datetime | str,
        *,
        cancel: CancellationToken | None = None,
    ) -> dict[TransitRequest, list[ExactHit]]:
        """Search several ``(body, aspect, target)`` triples over one window.

        The searches are independent and run on a thread pool sized by
        ``settings.scan.max_workers``; each one stays sequential.
        """

        workers = self.settings.scan.max_workers
        if workers <= 1 or len(requests) <= 1:
            return {
                request: self.transit_hits(*request, start, end, cancel=cancel)
                for request in requests
            }
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {
                request: executor.submit(self.transit_hits, *request, start, end, cancel=cancel)
                for request in requests
            }
            return {request: future.result() for request, future in futures.items()}

    def database_impact(
        self,
        body: str,
        when: datetime | str,
        aspect: str,
        charts: Iterable[NatalChart | Mapping[str, Any]],
        *,
        orb: float | None = None,
        natal_body: str = "any",
    ) -> list[ChartImpact]:
        limit = self.settings.transits.max_orb if orb is None else orb
        return find_database_impact(self.provider, body, when, aspect, limit, charts, natal_body)

    # -- snapshots --------------------------------------------------------

    def aspects(self, body_positions: Mapping[str, Any]) -> list[AspectInstance]:
        cfg = self.settings.aspects
        return compute_aspects(
            body_positions,
            self._orb_policy,
            include_minor=cfg.include_minor,
            tie_break=cfg.tie_break,
            max_orb=cfg.max_orb,
        )

    def cross_aspects(
        self, moving: Mapping[str, Any], fixed: Mapping[str, Any]
    ) -> list[AspectInstance]:
        cfg = self.settings.aspects
        return compute_cross_aspects(
            moving,
            fixed,
            self._orb_policy,
            include_minor=cfg.include_minor,
            tie_break=cfg.tie_break,
            max_orb=cfg.max_orb,
        )

    def patterns(self, body_positions: Mapping[str, Any]) -> PatternSet:
        if not self.settings.aspects.detect_patterns:
            LOG.debug("pattern detection disabled in settings")
            return PatternSet()
        # Quincunxes are minor aspects but Yods need them.
        found = compute_aspects(
            body_positions,
            self._orb_policy,
            include_minor=True,
            tie_break=self.settings.aspects.tie_break,
        )
        return detect_patterns(found, body_positions)

    # -- range scans ------------------------------------------------------

    def scan(
        self,
        samples: Iterable[Sample],
        criteria: Criterion,
        *,
        cancel: CancellationToken | None = None,
    ) -> ScanResult:
        # A gap set on the criteria wins over the configured default.
        gap = getattr(criteria, "max_gap", None)
        if gap is None and isinstance(criteria, EclipseCriteria):
            gap = self.settings.scan.eclipse_gap
        elif gap is None and isinstance(criteria, ConfigurationCriteria):
            gap = self.settings.scan.configuration_gap
        return scan_range(samples, criteria, max_gap=gap, cancel=cancel)

    def scan_provider(
        self,
        bodies: Iterable[str],
        start: datetime | str,
        end: datetime | str,
        step: timedelta,
        criteria: Criterion,
        *,
        cancel: CancellationToken | None = None,
    ) -> ScanResult:
        series = sample_series(self.provider, bodies, start, end, step, cancel=cancel)
        return self.scan(series, criteria, cancel=cancel)
