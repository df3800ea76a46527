# Copyright (c)
# SPDX-License-Identifier: MIT
"""Service: single value vs. peer distribution.

Synopsis:
    The unchunked special case of a batch calculation: validate one value,
    resolve its peer distribution (distribution cache first, provider on
    miss) and interpolate its percentile. Unlike a batch, failures raise.
"""

from __future__ import annotations

import time
from collections.abc import Callable

from metricbench.domain.entities.calculation import ComparisonResult, ensure_identifier, ensure_numeric
from metricbench.domain.entities.distribution import DistributionPoint
from metricbench.domain.exceptions.metrics import (
    DistributionFetchError,
    UnknownMetricError,
    ValidationFailed,
)
from metricbench.domain.interfaces.gateways.benchmark_providers import DistributionProvider
from metricbench.domain.services.percentile_interpolator import percentile_for_distribution
from metricbench.domain.services.validation_engine import NEAR_THRESHOLD_RATIO, validate
from metricbench.infrastructure.caching.expiring_cache import (
    DEFAULT_SWEEP_INTERVAL_S,
    CacheStatus,
    ExpiringCache,
)
from metricbench.infrastructure.logging.logger import get_json_logger
from metricbench.infrastructure.observability.tracing import traced

from .definition_registry import DefinitionRegistry
from .fetching import DEFAULT_FETCH_TIMEOUT_S, fetch_with_timeout

#: Default distribution TTL (15 minutes).
DEFAULT_DISTRIBUTION_TTL_MS = 15 * 60 * 1000.0

logger = get_json_logger(__name__)


class ComparisonService:
    """Compares one value to its peer group; owns the distribution cache."""

    def __init__(
        self,
        registry: DefinitionRegistry,
        distributions: DistributionProvider,
        *,
        distribution_ttl_ms: float = DEFAULT_DISTRIBUTION_TTL_MS,
        fetch_timeout_s: float = DEFAULT_FETCH_TIMEOUT_S,
        near_threshold_ratio: float = NEAR_THRESHOLD_RATIO,
        clock: Callable[[], float] = time.monotonic,
        sweep_interval_s: float = DEFAULT_SWEEP_INTERVAL_S,
    ) -> None:
        if distribution_ttl_ms <= 0:
            raise ValueError("distribution_ttl_ms must be positive")
        if fetch_timeout_s <= 0:
            raise ValueError("fetch_timeout_s must be positive")
        self._registry = registry
        self._distributions = distributions
        self._ttl_ms = float(distribution_ttl_ms)
        self._fetch_timeout_s = float(fetch_timeout_s)
        self._near_threshold_ratio = near_threshold_ratio
        self._cache: ExpiringCache[tuple[str, str], DistributionPoint] = ExpiringCache(
            name="distributions", clock=clock, sweep_interval_s=sweep_interval_s
        )

    async def compare(self, value: float, metric_id: str, peer_group_id: str) -> ComparisonResult:
        """Return the percentile of ``value`` within ``peer_group_id``.

        Raises:
            InvalidInputError: Non-numeric value or blank identifiers.
            UnknownMetricError: ``metric_id`` is not in the catalog.
            ValidationFailed: ``value`` violates the metric's rules.
            DefinitionFetchError: Catalog unavailable.
            DistributionFetchError: Distribution unavailable or invalid.
            FetchTimeoutError: The distribution fetch timed out.
        """
        number = ensure_numeric(value)
        metric_id = ensure_identifier(metric_id, field_name="metric_id")
        peer_group_id = ensure_identifier(peer_group_id, field_name="peer_group_id")

        await self._registry.get_definitions()
        definition = self._registry.get_definition(metric_id)
        rules = self._registry.get_rules(metric_id)
        if definition is None or rules is None:
            raise UnknownMetricError(f"Unknown metric: {metric_id}", details={"metric_id": metric_id})

        verdict = validate(
            number,
            rules,
            {"metric_id": metric_id, "peer_group_id": peer_group_id},
            near_threshold_ratio=self._near_threshold_ratio,
        )
        if not verdict.is_valid:
            raise ValidationFailed(
                verdict.errors[0],
                errors=verdict.errors,
                details={"metric_id": metric_id, "value": number},
            )

        distribution = await self._distribution(metric_id, peer_group_id)
        return ComparisonResult(
            metric=definition,
            value=number,
            percentile=percentile_for_distribution(number, distribution),
            distribution=distribution,
            warnings=verdict.warnings,
        )

    async def _distribution(self, metric_id: str, peer_group_id: str) -> DistributionPoint:
        key = (metric_id, peer_group_id)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        async with traced("compare.fetch_distribution", metric_id=metric_id, peer_group_id=peer_group_id):
            distribution = await fetch_with_timeout(
                lambda: self._distributions.fetch_distribution(metric_id, peer_group_id),
                timeout_s=self._fetch_timeout_s,
                endpoint="distribution",
                wrap=DistributionFetchError,
                details={"metric_id": metric_id, "peer_group_id": peer_group_id},
            )
        self._cache.put(key, distribution, self._ttl_ms)
        logger.debug("compare.distribution_cached", extra={"extra": {"metric_id": metric_id}})
        return distribution

    def cache_status(self) -> CacheStatus:
        return self._cache.status()

    def start(self) -> None:
        self._cache.start()

    async def stop(self) -> None:
        await self._cache.stop()


__all__ = ["DEFAULT_DISTRIBUTION_TTL_MS", "ComparisonService"]
