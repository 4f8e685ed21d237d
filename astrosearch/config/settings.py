"""Configuration models and helpers for astrosearch settings."""

from __future__ import annotations

import os
from datetime import timedelta
from pathlib import Path
from typing import Dict, Literal, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from ..aspects.orb_policy import OrbPolicy
from ..core.aspects import aspect_definition
from ..providers.swiss_provider import EphemerisConfig

CURRENT_SETTINGS_SCHEMA_VERSION = 1

# -------------------- Settings Schema --------------------


class EphemerisCfg(BaseModel):
    """Swiss Ephemeris data location and backend choice."""

    path: Optional[str] = None
    prefer_moshier: bool = False

    def to_provider_config(self) -> EphemerisConfig:
        return EphemerisConfig(ephemeris_path=self.path, prefer_moshier=self.prefer_moshier)


class OrbsCfg(BaseModel):
    """Orb budget shared by the aspect evaluator and the graph builder."""

    default: float = 8.0
    per_aspect: Dict[str, float] = Field(default_factory=dict)
    per_body: Dict[str, float] = Field(default_factory=dict)
    luminaries_factor: float = 1.0
    outers_factor: float = 1.0
    minor_aspect_factor: float = 1.0

    @field_validator("default", mode="before")
    @classmethod
    def _cap_default(cls, value: float) -> float:
        return max(0.0, min(30.0, float(value)))

    @field_validator("per_aspect", mode="before")
    @classmethod
    def _check_aspects(cls, data: Dict[str, float] | object) -> Dict[str, float] | object:
        if not isinstance(data, dict):
            return data
        cleaned: Dict[str, float] = {}
        for key, value in data.items():
            try:
                name = aspect_definition(key).kind.value
            except KeyError as exc:
                raise ValueError(str(exc)) from None
            cleaned[name] = max(0.0, min(30.0, float(value)))
        return cleaned

    @field_validator("per_body", mode="before")
    @classmethod
    def _cap_orbs_by_body(cls, data: Dict[str, float] | object) -> Dict[str, float] | object:
        if not isinstance(data, dict):
            return data
        return {key: max(0.0, min(30.0, float(value))) for key, value in data.items()}

    @field_validator("luminaries_factor", "outers_factor", "minor_aspect_factor", mode="before")
    @classmethod
    def _cap_factor(cls, value: float) -> float:
        return max(0.0, min(3.0, float(value)))

    def to_policy(self) -> OrbPolicy:
        return OrbPolicy(
            default=self.default,
            per_aspect=self.per_aspect,
            per_body=self.per_body,
            luminaries_factor=self.luminaries_factor,
            outers_factor=self.outers_factor,
            minor_aspect_factor=self.minor_aspect_factor,
        )


class AspectsCfg(BaseModel):
    """Aspect selection and matching rules."""

    include_minor: bool = False
    tie_break: Literal["closest", "table"] = "closest"
    max_orb: Optional[float] = Field(default=None, ge=0.0, le=30.0)
    detect_patterns: bool = True


class RefineCfg(BaseModel):
    """Bisection tolerances for exact-instant searches."""

    tolerance_deg: float = Field(default=1e-4, gt=0.0, le=1.0)
    precision_seconds: float = Field(default=1.0, gt=0.0)
    max_iter: int = Field(default=64, ge=1, le=200)
    ingress_window_days: float = Field(default=2.0, gt=0.0, le=15.0)

    @property
    def precision(self) -> timedelta:
        return timedelta(seconds=self.precision_seconds)

    @property
    def ingress_window(self) -> timedelta:
        return timedelta(days=self.ingress_window_days)


class TransitCfg(BaseModel):
    """Transit-exactitude scan defaults."""

    strategy: Literal["cooldown", "crossing"] = "cooldown"
    max_orb: float = Field(default=1.0, ge=0.0, le=30.0)
    cooldown_days: float = Field(default=30.0, ge=0.0)
    tight_threshold_deg: float = Field(default=0.5, ge=0.0, le=10.0)
    step_hours: Optional[float] = Field(default=None, gt=0.0)

    @property
    def cooldown(self) -> timedelta:
        return timedelta(days=self.cooldown_days)

    @property
    def step(self) -> Optional[timedelta]:
        return None if self.step_hours is None else timedelta(hours=self.step_hours)


class ScanCfg(BaseModel):
    """Range-scan consolidation gaps and worker pool size."""

    configuration_gap_hours: float = Field(default=72.0, ge=0.0)
    eclipse_gap_hours: float = Field(default=24.0, ge=0.0)
    max_workers: int = 1

    @field_validator("max_workers", mode="before")
    @classmethod
    def _cap_workers(cls, value: int) -> int:
        return max(1, min(32, int(value)))

    @property
    def configuration_gap(self) -> timedelta:
        return timedelta(hours=self.configuration_gap_hours)

    @property
    def eclipse_gap(self) -> timedelta:
        return timedelta(hours=self.eclipse_gap_hours)


class Settings(BaseModel):
    """Top-level astrosearch configuration."""

    schema_version: int = CURRENT_SETTINGS_SCHEMA_VERSION
    ephemeris: EphemerisCfg = Field(default_factory=EphemerisCfg)
    orbs: OrbsCfg = Field(default_factory=OrbsCfg)
    aspects: AspectsCfg = Field(default_factory=AspectsCfg)
    refine: RefineCfg = Field(default_factory=RefineCfg)
    transits: TransitCfg = Field(default_factory=TransitCfg)
    scan: ScanCfg = Field(default_factory=ScanCfg)


# -------------------- I/O Helpers --------------------

CONFIG_FILENAME = "config.yaml"


def get_config_home() -> Path:
    """Return the directory where settings should be stored."""

    return Path(os.environ.get("ASTROSEARCH_HOME", str(Path.home() / ".astrosearch")))


def config_path() -> Path:
    """Return the full path to the configuration file, creating directories as needed."""

    home = get_config_home()
    home.mkdir(parents=True, exist_ok=True)
    return home / CONFIG_FILENAME


def default_settings() -> Settings:
    return Settings()


def save_settings(settings: Settings, path: Optional[Path] = None) -> Path:
    """Persist the given settings to disk as YAML."""

    target_path = Path(path) if path else config_path()
    target_path.parent.mkdir(parents=True, exist_ok=True)
    data = settings.model_dump()
    with target_path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(data, handle, sort_keys=False, allow_unicode=True)
    return target_path


def load_settings(path: Optional[Path] = None) -> Settings:
    """Load settings from disk, creating defaults if missing.

    Invalid values raise :class:`pydantic.ValidationError`.
    """

    source_path = Path(path) if path else config_path()
    if not source_path.exists():
        settings = default_settings()
        save_settings(settings, source_path)
        return settings
    with source_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    if not isinstance(raw, dict):
        raw = {}
    raw.setdefault("schema_version", CURRENT_SETTINGS_SCHEMA_VERSION)
    return Settings(**raw)
