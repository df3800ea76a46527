# Copyright (c)
# SPDX-License-Identifier: MIT
"""
Trend Series Entity

Purpose:
    Historical values for a metric over a timeframe, as returned by the trend
    provider. Used as supporting data on calculation results.

Layer: domain/entities
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date

from metricbench.domain.enums.metric import MetricTimeframe

from .base import BaseEntity


@dataclass(frozen=True, slots=True)
class TrendPoint(BaseEntity):
    """A single observation in a trend series."""

    period: date
    value: float


@dataclass(frozen=True, slots=True)
class TrendSeries(BaseEntity):
    """Ordered historical observations for a metric.

    Args:
        metric_id: Metric identifier.
        timeframe: Granularity of the series.
        points: Observations; sorted by period on construction.
        growth_rate: Provider-reported growth rate, if any.
        seasonality: Provider-reported seasonal factors keyed by label.
    """

    metric_id: str
    timeframe: MetricTimeframe
    points: tuple[TrendPoint, ...] = ()
    growth_rate: float | None = None
    seasonality: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        ordered = tuple(sorted(self.points, key=lambda p: p.period))
        object.__setattr__(self, "points", ordered)

    @property
    def latest(self) -> TrendPoint | None:
        """Most recent observation, if any."""
        return self.points[-1] if self.points else None
