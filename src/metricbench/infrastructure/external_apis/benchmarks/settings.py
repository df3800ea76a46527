# Copyright (c)
# SPDX-License-Identifier: MIT
"""Pydantic settings for the benchmark provider transport client."""

from __future__ import annotations

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class BenchmarkApiSettings(BaseSettings):
    """Configuration for the benchmark provider client.

    Environment variables (with ``model_config.env_prefix``):

    * ``BENCHMARK_API_BASE_URL``
    * ``BENCHMARK_API_API_KEY``
    * ``BENCHMARK_API_TIMEOUT_S``
    * ``BENCHMARK_API_MAX_RETRIES``
    * ``BENCHMARK_API_BREAKER_FAILURE_THRESHOLD``
    * ``BENCHMARK_API_BREAKER_RECOVERY_S``
    """

    base_url: str = Field(
        "http://127.0.0.1:8080/api",
        description="Base URL of the benchmark provider API.",
    )
    api_key: SecretStr | None = Field(
        None,
        description="Optional bearer token sent as ``Authorization``.",
    )
    timeout_s: float = Field(
        8.0,
        gt=0,
        description="Per-request timeout in seconds for the transport client.",
    )
    max_retries: int = Field(
        0,
        ge=0,
        le=10,
        description="Transport-level retries for retryable failures (0 disables).",
    )
    breaker_failure_threshold: int = Field(
        5,
        ge=1,
        description="Consecutive failures before the circuit opens.",
    )
    breaker_recovery_s: float = Field(
        30.0,
        gt=0,
        description="Seconds the circuit stays open before a half-open probe.",
    )

    model_config: SettingsConfigDict = SettingsConfigDict(
        env_prefix="BENCHMARK_API_",
        extra="ignore",
    )
