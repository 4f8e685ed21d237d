"""Aspect evaluation, orb policies and aspect graphs."""

from __future__ import annotations

from .evaluator import AspectInstance, TieBreak, applying_state, find_aspect
from .graph import AspectGraph, clean_positions, compute_aspects, compute_cross_aspects
from .orb_policy import DEFAULT_ORB, OrbPolicy, OrbSpec, resolve_orb_policy

__all__ = [
    "DEFAULT_ORB",
    "AspectGraph",
    "AspectInstance",
    "OrbPolicy",
    "OrbSpec",
    "TieBreak",
    "applying_state",
    "clean_positions",
    "compute_aspects",
    "compute_cross_aspects",
    "find_aspect",
    "resolve_orb_policy",
]
