from __future__ import annotations

import importlib.util
import warnings

import pytest

from tests.helpers import LinearEphemeris

if importlib.util.find_spec("swisseph") is None:
    warnings.warn(
        "pyswisseph not installed; Swiss Ephemeris tests will be skipped.",
        RuntimeWarning,
        stacklevel=1,
    )


@pytest.fixture
def saturn_provider() -> LinearEphemeris:
    """Saturn at 340° on day 0 moving 1°/day."""

    return LinearEphemeris(base={"saturn": 340.0}, rates={"saturn": 1.0})


@pytest.fixture(autouse=True)
def _isolated_config_home(tmp_path, monkeypatch):
    monkeypatch.setenv("ASTROSEARCH_HOME", str(tmp_path / "astrosearch-home"))
