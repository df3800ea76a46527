# Copyright (c)
# SPDX-License-Identifier: MIT
"""
Metric Benchmarking Domain Exceptions

Purpose:
    Error taxonomy for validation, catalog lookups and peer-benchmark fetches.

Propagation:
    * Per-item errors (validation, distribution/trend fetch, timeouts) are
      captured on the item's result inside a batch and never thrown there.
    * ``DefinitionFetchError`` and ``BatchUnavailableError`` reject the whole
      enclosing call.
    * ``InvalidInputError`` is raised before any I/O happens.

Layer: domain/exceptions
"""
from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from .base import DomainError

if TYPE_CHECKING:
    from metricbench.domain.entities.calculation import CalculationResult


class MetricbenchError(DomainError):
    """Root of the metric benchmarking error hierarchy."""

    code = "METRICBENCH_ERROR"


class InvalidInputError(MetricbenchError):
    """Caller supplied a non-numeric or out-of-domain input."""

    code = "INVALID_INPUT"


class UnknownMetricError(InvalidInputError):
    """The metric id is not present in the definition catalog."""

    code = "UNKNOWN_METRIC"


class ValidationFailed(MetricbenchError):
    """A value violated one or more of its metric's validation rules."""

    code = "VALIDATION_FAILED"

    def __init__(
        self,
        message: str = "Validation failed",
        *,
        errors: Sequence[str] = (),
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details=details)
        self.errors: tuple[str, ...] = tuple(errors)


class DefinitionFetchError(MetricbenchError):
    """The definition catalog could not be fetched."""

    code = "DEFINITION_FETCH_FAILED"


class DistributionFetchError(MetricbenchError):
    """The peer distribution for a (metric, peer group) pair could not be fetched."""

    code = "DISTRIBUTION_FETCH_FAILED"


class InvalidDistributionError(DistributionFetchError):
    """A distribution's percentile values are not non-decreasing."""

    code = "INVALID_DISTRIBUTION"


class TrendFetchError(MetricbenchError):
    """The historical trend for a metric could not be fetched."""

    code = "TREND_FETCH_FAILED"


class FetchTimeoutError(MetricbenchError, TimeoutError):
    """An external fetch exceeded its configured timeout."""

    code = "FETCH_TIMEOUT"


class BatchUnavailableError(MetricbenchError):
    """Every fetched item of every chunk failed with the providers unreachable.

    Attributes:
        results: Per-item results that were produced before rejecting.
    """

    code = "BATCH_UNAVAILABLE"

    def __init__(
        self,
        message: str = "External benchmark providers unreachable",
        *,
        results: Sequence[CalculationResult] = (),
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details=details)
        self.results: tuple[CalculationResult, ...] = tuple(results)


__all__ = [
    "BatchUnavailableError",
    "DefinitionFetchError",
    "DistributionFetchError",
    "FetchTimeoutError",
    "InvalidDistributionError",
    "InvalidInputError",
    "MetricbenchError",
    "TrendFetchError",
    "UnknownMetricError",
    "ValidationFailed",
]
