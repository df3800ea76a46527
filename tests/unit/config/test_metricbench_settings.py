# Copyright (c)
# SPDX-License-Identifier: MIT

from __future__ import annotations

from collections.abc import Iterator

import pytest
from pydantic import ValidationError

from metricbench.config import Environment, Settings, get_settings
from metricbench.infrastructure.external_apis.benchmarks.settings import BenchmarkApiSettings

_ENV_KEYS = (
    "ENVIRONMENT",
    "LOG_LEVEL",
    "DEFINITION_CACHE_TTL_S",
    "RESULT_CACHE_TTL_S",
    "DISTRIBUTION_CACHE_TTL_S",
    "CACHE_SWEEP_INTERVAL_S",
    "BATCH_SIZE",
    "FETCH_TIMEOUT_S",
    "BENCHMARK_API_BASE_URL",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_defaults() -> None:
    settings = Settings(_env_file=None)
    assert settings.environment is Environment.DEVELOPMENT
    assert settings.definition_cache_ttl_ms == 900_000
    assert settings.result_cache_ttl_ms == 450_000
    assert settings.distribution_cache_ttl_ms == 900_000
    assert settings.cache_sweep_interval_s == 300
    assert settings.batch_size == 10
    assert settings.fetch_timeout_s == 8.0
    assert settings.benchmark_api_base_url is None


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENVIRONMENT", "production")
    monkeypatch.setenv("BATCH_SIZE", "25")
    monkeypatch.setenv("FETCH_TIMEOUT_S", "2.5")
    monkeypatch.setenv("BENCHMARK_API_BASE_URL", "https://bench.example.test")

    settings = Settings(_env_file=None)
    assert settings.environment is Environment.PRODUCTION
    assert settings.batch_size == 25
    assert settings.fetch_timeout_s == 2.5
    assert settings.benchmark_api_base_url == "https://bench.example.test"


@pytest.mark.parametrize(
    "overrides",
    [
        {"RESULT_CACHE_TTL_S": 900, "DEFINITION_CACHE_TTL_S": 900},
        {"RESULT_CACHE_TTL_S": 1000, "DEFINITION_CACHE_TTL_S": 900},
        {"BATCH_SIZE": 0},
        {"BATCH_SIZE": 101},
        {"FETCH_TIMEOUT_S": 0},
        {"CACHE_SWEEP_INTERVAL_S": -1},
    ],
)
def test_rejects_invalid_values(overrides) -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **overrides)


def test_get_settings_is_cached() -> None:
    assert get_settings() is get_settings()


def test_get_settings_wraps_validation_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RESULT_CACHE_TTL_S", "1200")
    with pytest.raises(RuntimeError, match="Invalid configuration"):
        get_settings()


def test_benchmark_api_settings_use_prefix(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BENCHMARK_API_BASE_URL", "https://bench.example.test/api")
    monkeypatch.setenv("BENCHMARK_API_API_KEY", "token")
    monkeypatch.setenv("BENCHMARK_API_MAX_RETRIES", "2")

    settings = BenchmarkApiSettings()
    assert settings.base_url == "https://bench.example.test/api"
    assert settings.api_key is not None
    assert settings.api_key.get_secret_value() == "token"
    assert settings.max_retries == 2
    assert settings.breaker_failure_threshold == 5
