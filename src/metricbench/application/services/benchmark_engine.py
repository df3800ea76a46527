# Copyright (c)
# SPDX-License-Identifier: MIT
"""Service: caller-facing benchmark engine facade.

Synopsis:
    Single entry point wiring the definition registry, the calculation
    engine and the comparison service over one provider (or three separate
    ones). Exposes validation, comparison, batch calculation, explicit retry
    of failed items, aggregated cache status and the sweep lifecycle.

Usage:
    async with BenchmarkEngine.from_settings(get_settings(), provider) as engine:
        outcome = await engine.calculate_batch(requests)
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from types import TracebackType
from typing import Any

from metricbench.config.settings import Settings
from metricbench.domain.entities.calculation import (
    BatchOutcome,
    CalculationRequest,
    ComparisonResult,
    ensure_identifier,
    ensure_numeric,
)
from metricbench.domain.entities.metric_definition import MetricDefinition
from metricbench.domain.entities.validation_result import ValidationResult
from metricbench.domain.entities.validation_rule import ValidationRule
from metricbench.domain.exceptions.metrics import (
    InvalidInputError,
    UnknownMetricError,
    ValidationFailed,
)
from metricbench.domain.interfaces.gateways.benchmark_providers import (
    BenchmarkProvider,
    DefinitionProvider,
    DistributionProvider,
    TrendProvider,
)
from metricbench.domain.services.validation_engine import NEAR_THRESHOLD_RATIO, validate
from metricbench.infrastructure.caching.expiring_cache import DEFAULT_SWEEP_INTERVAL_S, CacheStatus
from metricbench.infrastructure.logging.logger import get_json_logger

from .calculation_engine import DEFAULT_BATCH_SIZE, CalculationEngine, ProgressCallback
from .comparison_service import DEFAULT_DISTRIBUTION_TTL_MS, ComparisonService
from .definition_registry import DEFAULT_DEFINITION_TTL_MS, DefinitionRegistry
from .fetching import DEFAULT_FETCH_TIMEOUT_S

logger = get_json_logger(__name__)


class BenchmarkEngine:
    """Facade over registry, calculation engine and comparison service."""

    def __init__(
        self,
        definitions: DefinitionProvider,
        distributions: DistributionProvider,
        trends: TrendProvider,
        *,
        definition_ttl_ms: float = DEFAULT_DEFINITION_TTL_MS,
        result_ttl_ms: float | None = None,
        distribution_ttl_ms: float = DEFAULT_DISTRIBUTION_TTL_MS,
        batch_size: int = DEFAULT_BATCH_SIZE,
        fetch_timeout_s: float = DEFAULT_FETCH_TIMEOUT_S,
        near_threshold_ratio: float = NEAR_THRESHOLD_RATIO,
        clock: Callable[[], float] = time.monotonic,
        sweep_interval_s: float = DEFAULT_SWEEP_INTERVAL_S,
    ) -> None:
        self._near_threshold_ratio = near_threshold_ratio
        self.registry = DefinitionRegistry(
            definitions, ttl_ms=definition_ttl_ms, clock=clock, sweep_interval_s=sweep_interval_s
        )
        self.calculator = CalculationEngine(
            self.registry,
            distributions,
            trends,
            result_ttl_ms=result_ttl_ms,
            batch_size=batch_size,
            fetch_timeout_s=fetch_timeout_s,
            near_threshold_ratio=near_threshold_ratio,
            clock=clock,
            sweep_interval_s=sweep_interval_s,
        )
        self.comparisons = ComparisonService(
            self.registry,
            distributions,
            distribution_ttl_ms=distribution_ttl_ms,
            fetch_timeout_s=fetch_timeout_s,
            near_threshold_ratio=near_threshold_ratio,
            clock=clock,
            sweep_interval_s=sweep_interval_s,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        provider: BenchmarkProvider,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> BenchmarkEngine:
        """Build an engine over one provider serving all three endpoints."""
        return cls(
            provider,
            provider,
            provider,
            definition_ttl_ms=settings.definition_cache_ttl_ms,
            result_ttl_ms=settings.result_cache_ttl_ms,
            distribution_ttl_ms=settings.distribution_cache_ttl_ms,
            batch_size=settings.batch_size,
            fetch_timeout_s=settings.fetch_timeout_s,
            clock=clock,
            sweep_interval_s=settings.cache_sweep_interval_s,
        )

    # ------------------------------------------------------------------ #
    # Catalog & validation
    # ------------------------------------------------------------------ #

    async def list_definitions(self, force_refresh: bool = False) -> list[MetricDefinition]:
        return await self.registry.get_definitions(force_refresh=force_refresh)

    async def _require_rules(self, metric_id: str) -> tuple[ValidationRule, ...]:
        metric_id = ensure_identifier(metric_id, field_name="metric_id")
        await self.registry.get_definitions()
        rules = self.registry.get_rules(metric_id)
        if rules is not None:
            return rules
        raise UnknownMetricError(f"Unknown metric: {metric_id}", details={"metric_id": metric_id})

    async def validate(
        self,
        value: float | None,
        metric_id: str,
        context: Mapping[str, Any] | None = None,
    ) -> ValidationResult:
        """Validate ``value`` against the rules of ``metric_id``.

        ``None`` means "not supplied" and fails only when a rule is required.

        Raises:
            InvalidInputError: Non-numeric value or blank id.
            UnknownMetricError: ``metric_id`` is not in the catalog.
            DefinitionFetchError: Catalog unavailable.
        """
        number = None if value is None else ensure_numeric(value)
        rules = await self._require_rules(metric_id)
        return validate(
            number,
            rules,
            context,
            near_threshold_ratio=self._near_threshold_ratio,
        )

    async def validate_or_raise(
        self,
        value: float | None,
        metric_id: str,
        context: Mapping[str, Any] | None = None,
    ) -> ValidationResult:
        """Like :meth:`validate` but raise :class:`ValidationFailed` when invalid."""
        result = await self.validate(value, metric_id, context)
        if not result.is_valid:
            raise ValidationFailed(
                result.errors[0],
                errors=result.errors,
                details={"metric_id": metric_id, "value": value},
            )
        return result

    async def validate_batch(
        self, items: Iterable[tuple[str, float | None]]
    ) -> list[ValidationResult]:
        """Validate many ``(metric_id, value)`` pairs against one catalog snapshot.

        Unknown metric ids and non-numeric values are reported as invalid
        results instead of raising.
        """
        await self.registry.get_definitions()
        results: list[ValidationResult] = []
        for metric_id, value in items:
            rules = self.registry.get_rules(metric_id)
            if rules is None:
                results.append(
                    ValidationResult(is_valid=False, errors=(f"Unknown metric: {metric_id}",))
                )
                continue
            try:
                number = None if value is None else ensure_numeric(value)
            except InvalidInputError as exc:
                results.append(ValidationResult(is_valid=False, errors=(exc.message,)))
                continue
            results.append(
                validate(
                    number,
                    rules,
                    near_threshold_ratio=self._near_threshold_ratio,
                )
            )
        return results

    # ------------------------------------------------------------------ #
    # Comparison & calculation
    # ------------------------------------------------------------------ #

    async def compare(self, value: float, metric_id: str, peer_group_id: str) -> ComparisonResult:
        return await self.comparisons.compare(value, metric_id, peer_group_id)

    async def calculate_batch(
        self,
        requests: Sequence[CalculationRequest],
        on_progress: ProgressCallback | None = None,
    ) -> BatchOutcome:
        return await self.calculator.calculate_batch(requests, on_progress=on_progress)

    async def retry_failed(
        self,
        outcome: BatchOutcome,
        on_progress: ProgressCallback | None = None,
    ) -> BatchOutcome:
        return await self.calculator.retry_failed(outcome, on_progress=on_progress)

    # ------------------------------------------------------------------ #
    # Caches & lifecycle
    # ------------------------------------------------------------------ #

    def get_cache_status(self) -> CacheStatus:
        """Aggregate size and oldest-entry age across every owned cache."""
        return CacheStatus.combine(
            self.registry.cache_status(),
            self.calculator.cache_status(),
            self.comparisons.cache_status(),
        )

    def start(self) -> None:
        """Start the sweep task of every owned cache (idempotent)."""
        self.registry.start()
        self.calculator.start()
        self.comparisons.start()
        logger.info("engine.started")

    async def stop(self) -> None:
        """Stop every sweep task (idempotent)."""
        await self.registry.stop()
        await self.calculator.stop()
        await self.comparisons.stop()
        logger.info("engine.stopped")

    async def __aenter__(self) -> BenchmarkEngine:
        self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.stop()


__all__ = ["BenchmarkEngine"]
