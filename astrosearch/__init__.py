"""astrosearch: astronomical event search and aspect-pattern engine."""

from __future__ import annotations

import logging
from importlib.metadata import PackageNotFoundError, version as _get_version

LOG = logging.getLogger(__name__)

try:
    __version__ = _get_version("astrosearch")
except PackageNotFoundError:  # pragma: no cover - running from a source checkout
    __version__ = "0.0.0"


def get_version() -> str:
    """Return the resolved astrosearch package version."""

    return __version__


from .aspects import (  # noqa: E402
    AspectGraph,
    AspectInstance,
    OrbPolicy,
    applying_state,
    compute_aspects,
    compute_cross_aspects,
    find_aspect,
)
from .config import Settings, load_settings, save_settings  # noqa: E402
from .core import (  # noqa: E402
    ASPECT_TABLE,
    AspectDefinition,
    AspectKind,
    CancellationToken,
    SearchCancelled,
    UnknownAspectError,
    UnknownBodyError,
    normalize_degrees,
    shortest_arc,
    signed_delta,
    wrap_lerp,
)
from .detectors import (  # noqa: E402
    IngressKind,
    IngressNotFoundError,
    calculate_ingress,
    find_database_impact,
    find_transit_hits,
)
from .engine import SearchEngine  # noqa: E402
from .events import ExactHit, IngressEvent  # noqa: E402
from .patterns import PatternSet, detect_patterns  # noqa: E402
from .providers import (  # noqa: E402
    CallableProvider,
    EphemerisProvider,
    Position,
    ProviderError,
)
from .refine import bisect_crossing, find_exact_crossing  # noqa: E402
from .scanner import (  # noqa: E402
    ConfigurationCriteria,
    DateRange,
    EclipseCriteria,
    Sample,
    ScanResult,
    consolidate_ranges,
    scan_range,
)

__all__ = [
    "ASPECT_TABLE",
    "AspectDefinition",
    "AspectGraph",
    "AspectInstance",
    "AspectKind",
    "CallableProvider",
    "CancellationToken",
    "ConfigurationCriteria",
    "DateRange",
    "EclipseCriteria",
    "EphemerisProvider",
    "ExactHit",
    "IngressEvent",
    "IngressKind",
    "IngressNotFoundError",
    "OrbPolicy",
    "PatternSet",
    "Position",
    "ProviderError",
    "Sample",
    "ScanResult",
    "SearchCancelled",
    "SearchEngine",
    "Settings",
    "UnknownAspectError",
    "UnknownBodyError",
    "__version__",
    "applying_state",
    "bisect_crossing",
    "calculate_ingress",
    "compute_aspects",
    "compute_cross_aspects",
    "consolidate_ranges",
    "detect_patterns",
    "find_aspect",
    "find_database_impact",
    "find_exact_crossing",
    "find_transit_hits",
    "get_version",
    "load_settings",
    "normalize_degrees",
    "save_settings",
    "scan_range",
    "shortest_arc",
    "signed_delta",
    "wrap_lerp",
]
