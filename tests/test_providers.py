from __future__ import annotations

import math

import pytest
from prometheus_client import CollectorRegistry

from astrosearch.observability import PROVIDER_QUERIES, ensure_metrics_registered
from astrosearch.providers import (
    CallableProvider,
    EphemerisProvider,
    Position,
    ProviderError,
    fetch_position,
    get_provider,
    list_providers,
    register_provider,
)
from astrosearch.providers.swiss_provider import EphemerisConfig
from tests.helpers import LinearEphemeris, days


def test_position_normalises_longitude():
    position = Position(-30.0, -0.25)

    assert position.longitude == 330.0
    assert position.retrograde is True
    assert Position(725.0).longitude == 5.0
    assert Position(10.0).retrograde is False


def test_position_rejects_non_finite_values():
    with pytest.raises(ValueError):
        Position(math.nan)
    with pytest.raises(ValueError):
        Position(10.0, math.inf)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (12.5, Position(12.5)),
        ((370.0, 1.2), Position(10.0, 1.2)),
        ({"longitude": 45.0, "speed": -0.1}, Position(45.0, -0.1)),
        ({"lon": 45.0, "velocity": 0.3}, Position(45.0, 0.3)),
        ({"lon": 45.0, "speed_lon": 0.4}, Position(45.0, 0.4)),
    ],
)
def test_coerce_accepts_loose_shapes(raw, expected):
    assert Position.coerce(raw) == expected


def test_coerce_rejects_garbage():
    with pytest.raises(ValueError):
        Position.coerce(True)
    with pytest.raises(ValueError):
        Position.coerce({"speed": 1.0})
    with pytest.raises(ValueError):
        Position.coerce("north")


def test_provider_error_carries_context():
    error = ProviderError(
        "boom", provider_id="x", error_code="E1", retriable=True, context={"body": "sun"}
    )

    assert isinstance(error, RuntimeError)
    assert error.error_code == "E1"
    assert error.retriable is True
    assert error.context == {"body": "sun"}


def test_callable_provider_and_protocol():
    provider = CallableProvider(lambda body, ts: (100.0, -0.5), provider_id="fixed")

    assert isinstance(provider, EphemerisProvider)
    assert isinstance(LinearEphemeris({}, {}), EphemerisProvider)
    assert provider.position("mars", days(0)) == Position(100.0, -0.5)


def test_registry_round_trip():
    provider = LinearEphemeris({"sun": 0.0}, {"sun": 1.0})
    register_provider("synthetic-test", provider, overwrite=True)

    assert get_provider("synthetic-test") is provider
    assert "synthetic-test" in list_providers()
    with pytest.raises(ValueError):
        register_provider("synthetic-test", provider)
    with pytest.raises(KeyError, match="not registered"):
        get_provider("missing-provider")


def test_fetch_position_counts_queries():
    registry = CollectorRegistry()
    ensure_metrics_registered(registry)
    ensure_metrics_registered(registry)

    labels = {"provider_id": "linear"}
    before = registry.get_sample_value("astrosearch_provider_queries_total", labels) or 0.0
    fetch_position(LinearEphemeris({"sun": 0.0}, {"sun": 1.0}), "sun", days(1))
    after = registry.get_sample_value("astrosearch_provider_queries_total", labels)

    assert after == before + 1.0
    assert PROVIDER_QUERIES.labels(**labels) is not None


def test_ephemeris_config_paths(tmp_path, monkeypatch):
    monkeypatch.delenv("SE_EPHE_PATH", raising=False)

    assert EphemerisConfig().resolved_path() is None
    assert EphemerisConfig(ephemeris_path=str(tmp_path)).resolved_path() == str(tmp_path)
    with pytest.raises(ValueError):
        EphemerisConfig(ephemeris_path=str(tmp_path / "missing")).resolved_path()

    monkeypatch.setenv("SE_EPHE_PATH", str(tmp_path))
    assert EphemerisConfig().resolved_path() == str(tmp_path)


def test_callable_failures_become_provider_errors():
    def broken(body, ts):
        raise ZeroDivisionError("division by zero")

    with pytest.raises(ProviderError) as excinfo:
        CallableProvider(broken, provider_id="broken").position("sun", days(0))
    assert excinfo.value.error_code == "CALLABLE_ERROR"
    assert excinfo.value.provider_id == "broken"
    assert isinstance(excinfo.value.__cause__, ZeroDivisionError)

    with pytest.raises(ProviderError) as excinfo:
        CallableProvider(lambda body, ts: "north").position("sun", days(0))
    assert excinfo.value.error_code == "INVALID_POSITION"


def test_fetch_position_rejects_unusable_results():
    class Garbage:
        provider_id = "garbage"

        def position(self, body, ts):
            return {"speed": 1.0}

    with pytest.raises(ProviderError) as excinfo:
        fetch_position(Garbage(), "sun", days(0))
    assert excinfo.value.error_code == "INVALID_POSITION"
    assert excinfo.value.context["body"] == "sun"
