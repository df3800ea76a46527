# Copyright (c)
# SPDX-License-Identifier: MIT
"""Metric classification enumerations.

Purpose:
    Stable string identifiers for metric categories, units and timeframes.
    Values are suitable for JSON payloads exchanged with the catalog and
    benchmark providers.

Layer:
    domain
"""

from __future__ import annotations

from enum import Enum


class MetricCategory(str, Enum):
    """High-level business category of a metric."""

    RETENTION = "RETENTION"
    EFFICIENCY = "EFFICIENCY"
    SALES = "SALES"
    FINANCIAL = "FINANCIAL"


class MetricUnit(str, Enum):
    """Unit of measurement for a metric value."""

    PERCENTAGE = "PERCENTAGE"
    CURRENCY = "CURRENCY"
    RATIO = "RATIO"
    MONTHS = "MONTHS"


class MetricTimeframe(str, Enum):
    """Period over which a metric is measured."""

    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    ANNUAL = "ANNUAL"

    @property
    def months(self) -> int:
        """Number of months covered by the timeframe."""
        return _TIMEFRAME_MONTHS[self]


_TIMEFRAME_MONTHS: dict[MetricTimeframe, int] = {
    MetricTimeframe.MONTHLY: 1,
    MetricTimeframe.QUARTERLY: 3,
    MetricTimeframe.ANNUAL: 12,
}


__all__ = ["MetricCategory", "MetricTimeframe", "MetricUnit"]
