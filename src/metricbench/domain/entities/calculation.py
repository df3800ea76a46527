# Copyright (c)
# SPDX-License-Identifier: MIT
"""
Calculation Entities

Purpose:
    Request/result shapes for batch calculation and single-pair comparison,
    plus progress reporting for chunked batches.

Notes:
    * :class:`CalculationRequest` rejects bad input at construction with
      :class:`InvalidInputError`, so nothing malformed ever reaches I/O.
    * :class:`CalculationResult` always carries its terminal
      :class:`CalculationStatus`; failures carry a reason and error code
      instead of raising.

Layer: domain/entities
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from numbers import Real
from typing import Any

from metricbench.domain.enums.calculation_status import CalculationStatus
from metricbench.domain.enums.metric import MetricTimeframe
from metricbench.domain.exceptions.metrics import InvalidInputError

from .base import BaseEntity
from .distribution import DistributionPoint
from .metric_definition import MetricDefinition
from .trend import TrendSeries


def ensure_numeric(value: Any, *, field_name: str = "value") -> float:
    """Return ``value`` as a finite float or raise :class:`InvalidInputError`.

    Booleans are rejected even though they are ``int`` subclasses.
    """
    if isinstance(value, bool) or not isinstance(value, Real):
        raise InvalidInputError(
            f"{field_name} must be a number",
            details={"field": field_name, "type": type(value).__name__},
        )
    as_float = float(value)
    if not math.isfinite(as_float):
        raise InvalidInputError(
            f"{field_name} must be finite",
            details={"field": field_name, "value": str(value)},
        )
    return as_float


def ensure_identifier(value: Any, *, field_name: str) -> str:
    """Return a stripped, non-empty identifier or raise :class:`InvalidInputError`."""
    if not isinstance(value, str) or not value.strip():
        raise InvalidInputError(
            f"{field_name} must be a non-empty string",
            details={"field": field_name},
        )
    return value.strip()


@dataclass(frozen=True, slots=True)
class CalculationRequest(BaseEntity):
    """A (metric, value, peer group, timeframe) tuple to be benchmarked.

    Raises:
        InvalidInputError: On non-numeric/non-finite values, blank ids or an
            unknown timeframe.
    """

    metric_id: str
    value: float
    peer_group_id: str
    timeframe: MetricTimeframe = MetricTimeframe.ANNUAL

    def __post_init__(self) -> None:
        object.__setattr__(self, "metric_id", ensure_identifier(self.metric_id, field_name="metric_id"))
        object.__setattr__(
            self, "peer_group_id", ensure_identifier(self.peer_group_id, field_name="peer_group_id")
        )
        object.__setattr__(self, "value", ensure_numeric(self.value))
        if not isinstance(self.timeframe, MetricTimeframe):
            try:
                object.__setattr__(self, "timeframe", MetricTimeframe(str(self.timeframe).upper()))
            except ValueError as exc:
                raise InvalidInputError(
                    "timeframe is not recognised",
                    details={"field": "timeframe", "value": str(self.timeframe)},
                ) from exc

    @property
    def cache_key(self) -> str:
        """Composite key over every request field."""
        return f"{self.metric_id}:{self.peer_group_id}:{self.timeframe.value}:{self.value!r}"


@dataclass(frozen=True, slots=True)
class CalculationResult(BaseEntity):
    """Terminal outcome for one calculation request."""

    request: CalculationRequest
    status: CalculationStatus
    percentile: float | None = None
    distribution: DistributionPoint | None = None
    trend: TrendSeries | None = None
    warnings: tuple[str, ...] = ()
    errors: tuple[str, ...] = ()
    reason: str | None = None
    error_code: str | None = None

    def __post_init__(self) -> None:
        if not self.status.is_terminal:
            raise ValueError(f"result status must be terminal, got {self.status.value}")

    @property
    def metric_id(self) -> str:
        return self.request.metric_id

    @property
    def value(self) -> float:
        return self.request.value

    @property
    def ok(self) -> bool:
        """True when the result carries a percentile."""
        return self.status.is_success

    @classmethod
    def completed(
        cls,
        request: CalculationRequest,
        *,
        percentile: float,
        distribution: DistributionPoint,
        trend: TrendSeries,
        warnings: tuple[str, ...] = (),
    ) -> CalculationResult:
        return cls(
            request=request,
            status=CalculationStatus.COMPLETED,
            percentile=percentile,
            distribution=distribution,
            trend=trend,
            warnings=warnings,
        )

    @classmethod
    def invalid(
        cls,
        request: CalculationRequest,
        *,
        errors: tuple[str, ...],
        reason: str,
        error_code: str,
        warnings: tuple[str, ...] = (),
    ) -> CalculationResult:
        return cls(
            request=request,
            status=CalculationStatus.INVALID,
            errors=errors,
            warnings=warnings,
            reason=reason,
            error_code=error_code,
        )

    @classmethod
    def failed(cls, request: CalculationRequest, *, reason: str, error_code: str) -> CalculationResult:
        return cls(
            request=request,
            status=CalculationStatus.FAILED,
            errors=(reason,),
            reason=reason,
            error_code=error_code,
        )

    def as_cache_hit(self) -> CalculationResult:
        """Return a copy of a cached result tagged ``CACHE_HIT``."""
        return replace(self, status=CalculationStatus.CACHE_HIT)


@dataclass(frozen=True, slots=True)
class BatchProgress(BaseEntity):
    """``completed / total`` counter reported after each chunk wave."""

    completed: int
    total: int

    @property
    def fraction(self) -> float:
        """Completion ratio in ``[0, 1]``; an empty batch counts as done."""
        if self.total <= 0:
            return 1.0
        return self.completed / self.total

    @property
    def percent(self) -> float:
        return self.fraction * 100.0


@dataclass(frozen=True, slots=True)
class BatchOutcome(BaseEntity):
    """Results of a batch call, in input order, plus final progress."""

    results: tuple[CalculationResult, ...]
    progress: BatchProgress
    chunks: int = 0

    def by_status(self, status: CalculationStatus) -> tuple[CalculationResult, ...]:
        return tuple(r for r in self.results if r.status is status)

    @property
    def failed(self) -> tuple[CalculationResult, ...]:
        return self.by_status(CalculationStatus.FAILED)

    @property
    def invalid(self) -> tuple[CalculationResult, ...]:
        return self.by_status(CalculationStatus.INVALID)

    @property
    def succeeded(self) -> tuple[CalculationResult, ...]:
        return tuple(r for r in self.results if r.ok)


@dataclass(frozen=True, slots=True)
class ComparisonResult(BaseEntity):
    """Single value compared to its peer-group distribution."""

    metric: MetricDefinition
    value: float
    percentile: float
    distribution: DistributionPoint
    warnings: tuple[str, ...] = field(default=())


class IllegalTransitionError(RuntimeError):
    """Raised when a request is moved to a state not reachable from its current one."""


@dataclass(slots=True)
class RequestTransition:
    """Mutable per-request state tracker enforcing :class:`CalculationStatus` edges.

    The engine walks each request ``PENDING -> VALIDATING -> ...`` through
    this guard; the final state is what lands on the :class:`CalculationResult`.
    """

    request: CalculationRequest
    status: CalculationStatus = CalculationStatus.PENDING
    history: list[CalculationStatus] = field(default_factory=list)

    def advance(self, target: CalculationStatus) -> CalculationStatus:
        if not self.status.can_transition_to(target):
            raise IllegalTransitionError(f"{self.status.value} -> {target.value} is not allowed")
        self.history.append(self.status)
        self.status = target
        return target
