"""Core primitives shared by the search and aspect layers."""

from __future__ import annotations

from .angles import (
    degree_in_sign,
    normalize_degrees,
    shortest_arc,
    sign_index,
    sign_name,
    signed_delta,
    wrap_lerp,
)
from .aspects import (
    ASPECT_TABLE,
    MAJOR_ASPECTS,
    MINOR_ASPECTS,
    AspectDefinition,
    AspectKind,
    UnknownAspectError,
    ZodiacSign,
    aspect_definition,
    resolve_aspects,
)
from .bodies import UnknownBodyError, canonical_name, is_fixed_axis_pair, transit_step
from .cancel import CancellationToken, SearchCancelled

__all__ = [
    "ASPECT_TABLE",
    "MAJOR_ASPECTS",
    "MINOR_ASPECTS",
    "AspectDefinition",
    "AspectKind",
    "CancellationToken",
    "SearchCancelled",
    "UnknownAspectError",
    "UnknownBodyError",
    "ZodiacSign",
    "aspect_definition",
    "canonical_name",
    "degree_in_sign",
    "is_fixed_axis_pair",
    "normalize_degrees",
    "resolve_aspects",
    "shortest_arc",
    "sign_index",
    "sign_name",
    "signed_delta",
    "transit_step",
    "wrap_lerp",
]
