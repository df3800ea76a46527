# Copyright (c)
# SPDX-License-Identifier: MIT
"""Service: chunked batch calculation engine.

Synopsis:
    Turns a batch of :class:`CalculationRequest` items into terminal
    :class:`CalculationResult` items, in input order.

Flow:
    1. Live result-cache entries are returned as ``CACHE_HIT``.
    2. Remaining requests are validated against the registry's catalog;
       unknown metrics and rule failures become ``INVALID``.
    3. Valid requests are split into chunks of ``batch_size`` and processed
       one chunk wave at a time. Inside a chunk, every request fetches its
       distribution and trend concurrently, each under the fetch timeout.
    4. Fetched pairs are interpolated, cached and reported ``COMPLETED``;
       per-item fetch errors and timeouts become ``FAILED``.
    5. Progress (``completed / total``) is reported after each chunk.

Failure policy:
    * A catalog failure (:class:`DefinitionFetchError`) rejects the call.
    * Per-item failures never raise, unless every fetched item in every
      chunk failed because the providers could not be reached (timeouts,
      transport errors). Then :class:`BatchUnavailableError` carries the
      per-item results. Items the provider answered with "not found" or an
      unusable payload fail on their own and never reject the batch.
    * Nothing is retried automatically; :meth:`CalculationEngine.retry_failed`
      re-runs the ``FAILED`` items of an earlier outcome on request.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, cast

from metricbench.domain.entities.calculation import (
    BatchOutcome,
    BatchProgress,
    CalculationRequest,
    CalculationResult,
    RequestTransition,
)
from metricbench.domain.entities.distribution import DistributionPoint
from metricbench.domain.entities.trend import TrendSeries
from metricbench.domain.entities.validation_rule import ValidationRule
from metricbench.domain.enums.calculation_status import CalculationStatus
from metricbench.domain.exceptions.metrics import (
    BatchUnavailableError,
    DistributionFetchError,
    FetchTimeoutError,
    InvalidDistributionError,
    MetricbenchError,
    TrendFetchError,
    UnknownMetricError,
    ValidationFailed,
)
from metricbench.domain.exceptions.provider import ProviderNotFoundError, ProviderPayloadError
from metricbench.domain.interfaces.gateways.benchmark_providers import (
    DistributionProvider,
    TrendProvider,
)
from metricbench.domain.services.percentile_interpolator import percentile_for_distribution
from metricbench.domain.services.validation_engine import NEAR_THRESHOLD_RATIO, validate
from metricbench.infrastructure.caching.expiring_cache import (
    DEFAULT_SWEEP_INTERVAL_S,
    CacheStatus,
    ExpiringCache,
)
from metricbench.infrastructure.logging.logger import get_json_logger
from metricbench.infrastructure.observability.metrics import (
    get_batch_duration_seconds,
    get_batch_items_total,
)
from metricbench.infrastructure.observability.tracing import traced

from .definition_registry import DefinitionRegistry
from .fetching import DEFAULT_FETCH_TIMEOUT_S, fetch_with_timeout

#: Default number of requests fetched concurrently per chunk.
DEFAULT_BATCH_SIZE = 10

ProgressCallback = Callable[[BatchProgress], Any]

logger = get_json_logger(__name__)


@dataclass(slots=True)
class _PendingFetch:
    index: int
    tracker: RequestTransition
    warnings: tuple[str, ...]
    unreachable: bool = False


def _provider_unreachable(error: MetricbenchError) -> bool:
    """Return ``True`` unless the provider answered and the answer was unusable.

    Timeouts and transport failures count as unreachable. Bad payloads,
    non-monotonic distributions and "not found" replies do not.
    """
    if isinstance(error, FetchTimeoutError):
        return True
    if isinstance(error, InvalidDistributionError):
        return False
    return not isinstance(error.__cause__, ProviderNotFoundError | ProviderPayloadError)


class CalculationEngine:
    """Batch calculator that owns the result cache."""

    def __init__(
        self,
        registry: DefinitionRegistry,
        distributions: DistributionProvider,
        trends: TrendProvider,
        *,
        result_ttl_ms: float | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        fetch_timeout_s: float = DEFAULT_FETCH_TIMEOUT_S,
        near_threshold_ratio: float = NEAR_THRESHOLD_RATIO,
        clock: Callable[[], float] = time.monotonic,
        sweep_interval_s: float = DEFAULT_SWEEP_INTERVAL_S,
    ) -> None:
        """Initialize the engine.

        Args:
            registry: Definition registry supplying the catalog and rules.
            distributions: Peer distribution provider.
            trends: Trend provider.
            result_ttl_ms: Result cache TTL; defaults to half the registry's
                definition TTL and must be shorter than it.
            batch_size: Requests per chunk wave.
            fetch_timeout_s: Timeout applied to each provider fetch.
            near_threshold_ratio: Forwarded to the validation step.
            clock: Time source for the result cache.
            sweep_interval_s: Result cache sweep period.

        Raises:
            ValueError: On a non-positive batch size or timeout, or a result
                TTL not shorter than the definition TTL.
        """
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if fetch_timeout_s <= 0:
            raise ValueError("fetch_timeout_s must be positive")
        ttl = registry.ttl_ms / 2 if result_ttl_ms is None else float(result_ttl_ms)
        if not 0 < ttl < registry.ttl_ms:
            raise ValueError("result_ttl_ms must be positive and shorter than the definition TTL")

        self._registry = registry
        self._distributions = distributions
        self._trends = trends
        self._result_ttl_ms = ttl
        self._batch_size = batch_size
        self._fetch_timeout_s = float(fetch_timeout_s)
        self._near_threshold_ratio = near_threshold_ratio
        self._cache: ExpiringCache[str, CalculationResult] = ExpiringCache(
            name="results", clock=clock, sweep_interval_s=sweep_interval_s
        )

    @property
    def batch_size(self) -> int:
        return self._batch_size

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    async def calculate_batch(
        self,
        requests: Sequence[CalculationRequest],
        on_progress: ProgressCallback | None = None,
    ) -> BatchOutcome:
        """Calculate every request and return results in input order.

        Args:
            requests: Pre-validated request objects.
            on_progress: Called with the running :class:`BatchProgress` after
                each chunk wave.

        Raises:
            DefinitionFetchError: The catalog was needed and unavailable.
            BatchUnavailableError: Every fetched item failed with the
                providers unreachable.
        """
        total = len(requests)
        results: list[CalculationResult | None] = [None] * total
        trackers = [RequestTransition(request) for request in requests]
        started = time.perf_counter()

        async with traced("calculate_batch", total=total, batch_size=self._batch_size):
            uncached: list[int] = []
            for index, tracker in enumerate(trackers):
                tracker.advance(CalculationStatus.VALIDATING)
                cached = self._cache.get(tracker.request.cache_key)
                if cached is None:
                    uncached.append(index)
                    continue
                tracker.advance(CalculationStatus.CACHE_HIT)
                results[index] = cached.as_cache_hit()

            pending: list[_PendingFetch] = []
            if uncached:
                await self._registry.get_definitions()
                for index in uncached:
                    tracker = trackers[index]
                    outcome = self._validate(
                        tracker, self._registry.get_rules(tracker.request.metric_id)
                    )
                    if isinstance(outcome, CalculationResult):
                        results[index] = outcome
                    else:
                        pending.append(_PendingFetch(index, tracker, outcome))

            completed = total - len(pending)
            chunks = [
                pending[start : start + self._batch_size]
                for start in range(0, len(pending), self._batch_size)
            ]
            unreachable = 0
            for chunk in chunks:
                chunk_results = await asyncio.gather(*(self._fetch_one(item) for item in chunk))
                for item, result in zip(chunk, chunk_results, strict=True):
                    results[item.index] = result
                    if item.unreachable:
                        unreachable += 1
                completed += len(chunk)
                if on_progress is not None:
                    on_progress(BatchProgress(completed=completed, total=total))

        ordered = tuple(r for r in results if r is not None)
        self._record(ordered, pending_count=len(pending), chunks=len(chunks), started=started)

        if pending and unreachable == len(pending):
            raise BatchUnavailableError(
                details={"failed": unreachable, "chunks": len(chunks)},
                results=ordered,
            )
        return BatchOutcome(
            results=ordered,
            progress=BatchProgress(completed=completed, total=total),
            chunks=len(chunks),
        )

    async def retry_failed(
        self,
        outcome: BatchOutcome,
        on_progress: ProgressCallback | None = None,
    ) -> BatchOutcome:
        """Re-run only the ``FAILED`` items of ``outcome``.

        Returns:
            A new outcome where each previously failed slot holds its retried
            result; every other slot is carried over unchanged. Items that
            fail again stay ``FAILED`` in place, even when the providers are
            still unreachable.

        Raises:
            DefinitionFetchError: The catalog was needed and unavailable.
        """
        failed_slots = [
            i for i, r in enumerate(outcome.results) if r.status is CalculationStatus.FAILED
        ]
        if not failed_slots:
            return outcome

        logger.info("batch.retry_failed", extra={"extra": {"items": len(failed_slots)}})
        try:
            retried = await self.calculate_batch(
                [outcome.results[i].request for i in failed_slots], on_progress=on_progress
            )
            retried_results, chunks = retried.results, retried.chunks
        except BatchUnavailableError as exc:
            logger.warning(
                "batch.retry_unavailable", extra={"extra": {"items": len(failed_slots)}}
            )
            retried_results, chunks = exc.results, int(exc.details.get("chunks", 0))

        merged = list(outcome.results)
        for slot, result in zip(failed_slots, retried_results, strict=True):
            merged[slot] = result
        return BatchOutcome(
            results=tuple(merged),
            progress=BatchProgress(completed=len(merged), total=len(merged)),
            chunks=chunks,
        )

    def cache_status(self) -> CacheStatus:
        return self._cache.status()

    def invalidate(self, request: CalculationRequest) -> bool:
        """Drop the cached result for ``request``, if any."""
        return self._cache.invalidate(request.cache_key)

    def start(self) -> None:
        self._cache.start()

    async def stop(self) -> None:
        await self._cache.stop()

    # ------------------------------------------------------------------ #
    # Steps
    # ------------------------------------------------------------------ #

    def _validate(
        self, tracker: RequestTransition, rules: Sequence[ValidationRule] | None
    ) -> CalculationResult | tuple[str, ...]:
        """Return an ``INVALID`` result, or the warnings of a valid request.

        ``rules`` is ``None`` when the metric is not in the registry's index.
        """
        request = tracker.request
        if rules is None:
            tracker.advance(CalculationStatus.INVALID)
            message = f"Unknown metric: {request.metric_id}"
            return CalculationResult.invalid(
                request, errors=(message,), reason=message, error_code=UnknownMetricError.code
            )

        verdict = validate(
            request.value,
            rules,
            {
                "metric_id": request.metric_id,
                "peer_group_id": request.peer_group_id,
                "timeframe": request.timeframe.value,
            },
            near_threshold_ratio=self._near_threshold_ratio,
        )
        if not verdict.is_valid:
            tracker.advance(CalculationStatus.INVALID)
            return CalculationResult.invalid(
                request,
                errors=verdict.errors,
                warnings=verdict.warnings,
                reason=verdict.errors[0],
                error_code=ValidationFailed.code,
            )
        tracker.advance(CalculationStatus.FETCHING)
        return verdict.warnings

    async def _fetch_one(self, item: _PendingFetch) -> CalculationResult:
        request = item.tracker.request
        ids = {"metric_id": request.metric_id, "peer_group_id": request.peer_group_id}
        distribution, trend = await asyncio.gather(
            fetch_with_timeout(
                lambda: self._distributions.fetch_distribution(
                    request.metric_id, request.peer_group_id
                ),
                timeout_s=self._fetch_timeout_s,
                endpoint="distribution",
                wrap=DistributionFetchError,
                details=ids,
            ),
            fetch_with_timeout(
                lambda: self._trends.fetch_trend(request.metric_id, request.timeframe),
                timeout_s=self._fetch_timeout_s,
                endpoint="trend",
                wrap=TrendFetchError,
                details=ids,
            ),
            return_exceptions=True,
        )

        error = next(
            (outcome for outcome in (distribution, trend) if isinstance(outcome, BaseException)),
            None,
        )
        if error is not None:
            if not isinstance(error, MetricbenchError):
                raise error
            item.tracker.advance(CalculationStatus.FAILED)
            item.unreachable = _provider_unreachable(error)
            logger.warning(
                "batch.item_failed",
                extra={"extra": {**ids, "error_code": error.code, "reason": error.message}},
            )
            reason = "timeout" if isinstance(error, FetchTimeoutError) else error.message
            return CalculationResult.failed(request, reason=reason, error_code=error.code)

        point = cast(DistributionPoint, distribution)
        result = CalculationResult.completed(
            request,
            percentile=percentile_for_distribution(request.value, point),
            distribution=point,
            trend=cast(TrendSeries, trend),
            warnings=item.warnings,
        )
        item.tracker.advance(CalculationStatus.COMPLETED)
        self._cache.put(request.cache_key, result, self._result_ttl_ms)
        return result

    def _record(
        self,
        results: Sequence[CalculationResult],
        *,
        pending_count: int,
        chunks: int,
        started: float,
    ) -> None:
        counts: dict[str, int] = {}
        for result in results:
            counts[result.status.value] = counts.get(result.status.value, 0) + 1
        try:
            items = get_batch_items_total()
            for status, count in counts.items():
                items.labels(status=status).inc(count)
            get_batch_duration_seconds().observe(time.perf_counter() - started)
        except Exception:  # noqa: BLE001
            logger.debug("batch.metrics_failed", exc_info=True)
        logger.info(
            "batch.completed",
            extra={
                "extra": {
                    "total": len(results),
                    "fetched": pending_count,
                    "chunks": chunks,
                    "statuses": counts,
                }
            },
        )


__all__ = ["DEFAULT_BATCH_SIZE", "CalculationEngine", "ProgressCallback"]
