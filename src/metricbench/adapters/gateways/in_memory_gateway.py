# Copyright (c)
# SPDX-License-Identifier: MIT
"""Adapter Gateway: deterministic in-memory benchmark provider.

Serves the built-in metric catalog plus seeded peer distributions for four
ARR revenue bands, and synthesizes a short trend series from each metric's
median. Used for local CLI runs when no provider URL is configured, and as a
fixture in tests.

Peer groups:
    ``ARR_0_1M``, ``ARR_1M_5M``, ``ARR_5M_20M``, ``ARR_20M_50M``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import date
from typing import Final

from metricbench.domain.entities.distribution import DistributionPoint
from metricbench.domain.entities.metric_definition import MetricDefinition
from metricbench.domain.entities.trend import TrendPoint, TrendSeries
from metricbench.domain.enums.metric import MetricTimeframe
from metricbench.domain.exceptions.metrics import DistributionFetchError, TrendFetchError
from metricbench.domain.exceptions.provider import ProviderNotFoundError
from metricbench.domain.services.metric_catalog import BUILTIN_DEFINITIONS

PEER_GROUPS: Final[tuple[str, ...]] = ("ARR_0_1M", "ARR_1M_5M", "ARR_5M_20M", "ARR_20M_50M")

# p10, p25, p50, p75, p90 for the $1M-$5M band; other bands are derived.
_BASE_PERCENTILES: Final[dict[str, tuple[float, float, float, float, float]]] = {
    "NDR": (85.0, 95.0, 104.0, 115.0, 130.0),
    "CAC_PAYBACK": (8.0, 12.0, 18.0, 24.0, 32.0),
    "MAGIC_NUMBER": (0.3, 0.5, 0.7, 1.0, 1.4),
    "PIPELINE_COVERAGE": (150.0, 220.0, 300.0, 380.0, 480.0),
    "GROSS_MARGINS": (55.0, 65.0, 72.0, 78.0, 84.0),
    "ARR": (1_200_000.0, 1_800_000.0, 2_600_000.0, 3_600_000.0, 4_500_000.0),
    "GROWTH_RATE": (10.0, 25.0, 45.0, 75.0, 110.0),
    "CAC": (4_000.0, 8_000.0, 15_000.0, 28_000.0, 45_000.0),
    "LOGO_RETENTION": (70.0, 78.0, 85.0, 90.0, 94.0),
}

# Scale applied to currency metrics per band; ratios/percentages shift mildly.
_BAND_SCALE: Final[dict[str, float]] = {
    "ARR_0_1M": 0.25,
    "ARR_1M_5M": 1.0,
    "ARR_5M_20M": 4.0,
    "ARR_20M_50M": 12.0,
}
_BAND_SHIFT: Final[dict[str, float]] = {
    "ARR_0_1M": -0.05,
    "ARR_1M_5M": 0.0,
    "ARR_5M_20M": 0.03,
    "ARR_20M_50M": 0.05,
}
_SCALED_METRICS: Final[frozenset[str]] = frozenset({"ARR", "CAC"})

_TREND_ANCHOR: Final[date] = date(2024, 12, 1)
_TREND_POINTS: Final[int] = 4


def _seed_distribution(metric_id: str, peer_group_id: str) -> DistributionPoint:
    base = _BASE_PERCENTILES[metric_id]
    if metric_id in _SCALED_METRICS:
        factor = _BAND_SCALE[peer_group_id]
    else:
        factor = 1.0 + _BAND_SHIFT[peer_group_id]
    p10, p25, p50, p75, p90 = (round(v * factor, 4) for v in base)
    return DistributionPoint(
        metric_id=metric_id,
        peer_group_id=peer_group_id,
        p10=p10,
        p25=p25,
        p50=p50,
        p75=p75,
        p90=p90,
        source="seed",
    )


def _shift_months(anchor: date, months: int) -> date:
    index = anchor.year * 12 + (anchor.month - 1) - months
    return date(index // 12, index % 12 + 1, 1)


def _seed_trend(metric_id: str, timeframe: MetricTimeframe) -> TrendSeries:
    median = _BASE_PERCENTILES[metric_id][2]
    growth = 0.02 * timeframe.months
    points = tuple(
        TrendPoint(
            period=_shift_months(_TREND_ANCHOR, step * timeframe.months),
            value=round(median / (1 + growth) ** step, 4),
        )
        for step in range(_TREND_POINTS)
    )
    return TrendSeries(
        metric_id=metric_id,
        timeframe=timeframe,
        points=points,
        growth_rate=round(growth * 100, 2),
    )


class InMemoryBenchmarkGateway:
    """Provider serving fixed definitions, distributions and trends.

    Args:
        definitions: Catalog to serve; defaults to the built-in catalog.
        distributions: Extra or overriding distributions keyed by
            ``(metric_id, peer_group_id)``.
        trends: Extra or overriding trends keyed by ``(metric_id, timeframe)``.
        seed: When True, built-in metrics get seeded distributions/trends for
            every band in :data:`PEER_GROUPS`.
    """

    def __init__(
        self,
        *,
        definitions: Iterable[MetricDefinition] = BUILTIN_DEFINITIONS,
        distributions: Mapping[tuple[str, str], DistributionPoint] | None = None,
        trends: Mapping[tuple[str, MetricTimeframe], TrendSeries] | None = None,
        seed: bool = True,
    ) -> None:
        self._definitions = tuple(definitions)
        self._distributions: dict[tuple[str, str], DistributionPoint] = {}
        self._trends: dict[tuple[str, MetricTimeframe], TrendSeries] = {}
        if seed:
            for metric_id in _BASE_PERCENTILES:
                for group in PEER_GROUPS:
                    self._distributions[(metric_id, group)] = _seed_distribution(metric_id, group)
                for timeframe in MetricTimeframe:
                    self._trends[(metric_id, timeframe)] = _seed_trend(metric_id, timeframe)
        self._distributions.update(distributions or {})
        self._trends.update(trends or {})

    async def fetch_definitions(self) -> list[MetricDefinition]:
        return list(self._definitions)

    async def fetch_distribution(self, metric_id: str, peer_group_id: str) -> DistributionPoint:
        try:
            return self._distributions[(metric_id, peer_group_id)]
        except KeyError:
            ids = {"metric_id": metric_id, "peer_group_id": peer_group_id}
            raise DistributionFetchError(
                "No distribution for metric and peer group", details=ids
            ) from ProviderNotFoundError("no_data", details=ids)

    async def fetch_trend(self, metric_id: str, timeframe: MetricTimeframe) -> TrendSeries:
        try:
            return self._trends[(metric_id, timeframe)]
        except KeyError:
            ids = {"metric_id": metric_id, "timeframe": timeframe.value}
            raise TrendFetchError(
                "No trend for metric and timeframe", details=ids
            ) from ProviderNotFoundError("no_data", details=ids)


__all__ = ["InMemoryBenchmarkGateway", "PEER_GROUPS"]
