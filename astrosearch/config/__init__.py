"""Configuration helpers exposed at :mod:`astrosearch.config`."""

from __future__ import annotations

from .settings import (
    AspectsCfg,
    EphemerisCfg,
    OrbsCfg,
    RefineCfg,
    ScanCfg,
    Settings,
    TransitCfg,
    config_path,
    default_settings,
    get_config_home,
    load_settings,
    save_settings,
)

__all__ = [
    "AspectsCfg",
    "EphemerisCfg",
    "OrbsCfg",
    "RefineCfg",
    "ScanCfg",
    "Settings",
    "TransitCfg",
    "config_path",
    "default_settings",
    "get_config_home",
    "load_settings",
    "save_settings",
]
