# Copyright (c)
# SPDX-License-Identifier: MIT
"""Service: metric definition registry.

Synopsis:
    Owns the definition cache and the per-metric rule index that the
    validation step reads. The catalog is fetched as a whole and swapped in
    atomically: either every definition and every rule list is replaced, or
    nothing changes.

Responsibilities:
    * Serve definitions from the cache while it holds live entries.
    * On miss (or forced refresh), fetch once and repopulate cache + index.
    * Collapse concurrent refreshes into one provider call.
    * Wrap provider failures in :class:`DefinitionFetchError` (chained) and
      keep the previous snapshot untouched.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable

from metricbench.domain.entities.metric_definition import MetricDefinition
from metricbench.domain.entities.validation_rule import ValidationRule
from metricbench.domain.exceptions.metrics import DefinitionFetchError
from metricbench.domain.interfaces.gateways.benchmark_providers import DefinitionProvider
from metricbench.infrastructure.caching.expiring_cache import (
    DEFAULT_SWEEP_INTERVAL_S,
    CacheStatus,
    ExpiringCache,
)
from metricbench.infrastructure.logging.logger import get_json_logger
from metricbench.infrastructure.observability.tracing import traced

#: Default definition TTL (15 minutes).
DEFAULT_DEFINITION_TTL_MS = 15 * 60 * 1000.0

logger = get_json_logger(__name__)


class DefinitionRegistry:
    """Cached view over a :class:`DefinitionProvider`."""

    def __init__(
        self,
        provider: DefinitionProvider,
        *,
        ttl_ms: float = DEFAULT_DEFINITION_TTL_MS,
        clock: Callable[[], float] = time.monotonic,
        sweep_interval_s: float = DEFAULT_SWEEP_INTERVAL_S,
    ) -> None:
        if ttl_ms <= 0:
            raise ValueError("ttl_ms must be positive")
        self._provider = provider
        self._ttl_ms = float(ttl_ms)
        self._cache: ExpiringCache[str, MetricDefinition] = ExpiringCache(
            name="definitions", clock=clock, sweep_interval_s=sweep_interval_s
        )
        self._rules: dict[str, tuple[ValidationRule, ...]] = {}
        self._refresh_lock = asyncio.Lock()

    @property
    def ttl_ms(self) -> float:
        return self._ttl_ms

    async def get_definitions(self, force_refresh: bool = False) -> list[MetricDefinition]:
        """Return every metric definition, fetching the catalog on miss.

        Args:
            force_refresh: Bypass live cache entries and refetch.

        Raises:
            DefinitionFetchError: If the provider call fails. The previous
                cache contents and rule index are left as they were.
        """
        if not force_refresh:
            cached = self._cache.values()
            if cached:
                return cached

        async with self._refresh_lock:
            # Another caller may have refreshed while we waited.
            if not force_refresh:
                cached = self._cache.values()
                if cached:
                    return cached
            return await self._refresh()

    async def _refresh(self) -> list[MetricDefinition]:
        logger.info("definitions.refresh", extra={"extra": {"cached": self._cache.size()}})
        try:
            async with traced("definitions.fetch"):
                fetched = list(await self._provider.fetch_definitions())
        except DefinitionFetchError:
            logger.warning("definitions.fetch_failed", exc_info=True)
            raise
        except Exception as exc:
            logger.warning("definitions.fetch_failed", exc_info=True)
            raise DefinitionFetchError(
                "Metric definitions could not be fetched",
                details={"error": type(exc).__name__},
            ) from exc

        by_id: dict[str, MetricDefinition] = {d.metric_id: d for d in fetched}
        rules = {metric_id: d.validation_rules for metric_id, d in by_id.items()}

        # Swap in the new snapshot in one synchronous block.
        self._cache.clear()
        for metric_id, definition in by_id.items():
            self._cache.put(metric_id, definition, self._ttl_ms)
        self._rules = rules

        logger.info("definitions.refreshed", extra={"extra": {"count": len(by_id)}})
        return list(by_id.values())

    def get_definition(self, metric_id: str) -> MetricDefinition | None:
        """Return the cached definition for ``metric_id``; ``None`` if absent or expired."""
        return self._cache.get(metric_id)

    def get_rules(self, metric_id: str) -> tuple[ValidationRule, ...] | None:
        """Return the indexed rules for ``metric_id``.

        Rules live exactly as long as their definition's cache entry: once the
        definition expires this returns ``None`` until the next refresh.
        """
        if self._cache.get(metric_id) is None:
            return None
        return self._rules.get(metric_id)

    def cache_status(self) -> CacheStatus:
        return self._cache.status()

    def start(self) -> None:
        self._cache.start()

    async def stop(self) -> None:
        await self._cache.stop()


__all__ = ["DEFAULT_DEFINITION_TTL_MS", "DefinitionRegistry"]
