# Copyright (c)
# SPDX-License-Identifier: MIT
"""Metricbench Configuration (Pydantic Settings, v2)

Summary:
    Typed, validated configuration for the benchmark engine: cache TTLs,
    sweep cadence, batch sizing, fetch timeout and the optional benchmark
    provider base URL. Safe to import from any layer; only the composition
    root (CLI / engine factory) should read the process environment. Other
    components receive plain values through their constructors.

Design:
    - Pydantic v2 BaseSettings with explicit ``validation_alias`` env names.
    - Constrained numeric fields (``ge`` / ``le``) for early failure.
    - Cross-field invariant: result TTL is strictly shorter than the
      definition TTL, so a cached result never outlives the rules it was
      validated against.
    - Singleton accessor ``get_settings()`` with LRU cache.
    - Safe, structured logging (no secrets).
"""

from __future__ import annotations

import logging
from enum import Enum
from functools import lru_cache

from pydantic import Field, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Environment(str, Enum):
    """Logical deployment environment."""

    DEVELOPMENT = "development"
    TEST = "test"
    CI = "ci"
    STAGING = "staging"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """Typed engine configuration.

    All durations are in seconds; the engine converts to milliseconds where
    the cache API expects them.
    """

    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Logical deployment environment.",
        validation_alias="ENVIRONMENT",
    )
    log_level: str = Field(
        default="INFO",
        description="Root log level used by the CLI bootstrap.",
        validation_alias="LOG_LEVEL",
    )

    # ---------------------------
    # Caching
    # ---------------------------
    definition_cache_ttl_s: float = Field(
        default=900.0,
        gt=0,
        le=24 * 60 * 60,
        description="TTL of the metric definition catalog cache.",
        validation_alias="DEFINITION_CACHE_TTL_S",
    )
    result_cache_ttl_s: float = Field(
        default=450.0,
        gt=0,
        le=24 * 60 * 60,
        description="TTL of calculated results; must be shorter than the definition TTL.",
        validation_alias="RESULT_CACHE_TTL_S",
    )
    distribution_cache_ttl_s: float = Field(
        default=900.0,
        gt=0,
        le=24 * 60 * 60,
        description="TTL of peer distributions used by single comparisons.",
        validation_alias="DISTRIBUTION_CACHE_TTL_S",
    )
    cache_sweep_interval_s: float = Field(
        default=300.0,
        gt=0,
        le=24 * 60 * 60,
        description="Period of the background sweep that drops expired entries.",
        validation_alias="CACHE_SWEEP_INTERVAL_S",
    )

    # ---------------------------
    # Batching / fetching
    # ---------------------------
    batch_size: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Maximum number of requests fetched concurrently per chunk.",
        validation_alias="BATCH_SIZE",
    )
    fetch_timeout_s: float = Field(
        default=8.0,
        gt=0,
        le=120.0,
        description="Timeout applied to each distribution/trend fetch.",
        validation_alias="FETCH_TIMEOUT_S",
    )

    # ---------------------------
    # Provider
    # ---------------------------
    benchmark_api_base_url: str | None = Field(
        default=None,
        description=(
            "Base URL of the benchmark provider. When unset, the in-memory "
            "provider seeded with the built-in catalog is used."
        ),
        validation_alias="BENCHMARK_API_BASE_URL",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        case_sensitive=False,
        populate_by_name=True,
    )

    @model_validator(mode="after")
    def _check_ttl_ordering(self) -> Settings:
        """Ensure cached results expire before the definitions they depend on.

        Raises:
            ValueError: If ``RESULT_CACHE_TTL_S >= DEFINITION_CACHE_TTL_S``.
        """
        if self.result_cache_ttl_s >= self.definition_cache_ttl_s:
            raise ValueError(
                "RESULT_CACHE_TTL_S must be shorter than DEFINITION_CACHE_TTL_S "
                f"({self.result_cache_ttl_s} >= {self.definition_cache_ttl_s})."
            )
        return self

    @property
    def definition_cache_ttl_ms(self) -> float:
        return self.definition_cache_ttl_s * 1000.0

    @property
    def result_cache_ttl_ms(self) -> float:
        return self.result_cache_ttl_s * 1000.0

    @property
    def distribution_cache_ttl_ms(self) -> float:
        return self.distribution_cache_ttl_s * 1000.0


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached singleton `Settings` instance.

    Returns:
        Settings: Validated engine settings.

    Raises:
        RuntimeError: If configuration is invalid.
    """
    try:
        settings = Settings()
        logger.info(
            "Settings initialized",
            extra={
                "extra": {
                    "environment": settings.environment.value,
                    "caching": {
                        "definition_ttl_s": settings.definition_cache_ttl_s,
                        "result_ttl_s": settings.result_cache_ttl_s,
                        "distribution_ttl_s": settings.distribution_cache_ttl_s,
                        "sweep_interval_s": settings.cache_sweep_interval_s,
                    },
                    "batch_size": settings.batch_size,
                    "fetch_timeout_s": settings.fetch_timeout_s,
                    "benchmark_api_base_url_set": bool(settings.benchmark_api_base_url),
                }
            },
        )
        return settings
    except ValidationError as exc:
        logger.exception("Invalid application configuration")
        raise RuntimeError(f"Invalid configuration: {exc}") from exc
