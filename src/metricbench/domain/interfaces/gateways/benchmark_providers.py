# Copyright (c)
# SPDX-License-Identifier: MIT
"""Benchmark Provider Protocols.

Synopsis:
    Domain-level Protocols (PEP 544) for the three external collaborators the
    engine consumes: the metric definition catalog, the peer distribution
    provider and the historical trend provider. Concrete implementations live
    in the adapters layer (HTTP and in-memory) and must satisfy this contract.

Design:
    * No HTTP, infrastructure or vendor types cross these signatures.
    * Implementations translate transport failures into domain exceptions:
      ``DefinitionFetchError``, ``DistributionFetchError``,
      ``TrendFetchError``. Any other exception escaping a provider is wrapped
      by the engine.

Layer:
    domain/interfaces/gateways
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from metricbench.domain.entities.distribution import DistributionPoint
from metricbench.domain.entities.metric_definition import MetricDefinition
from metricbench.domain.entities.trend import TrendSeries
from metricbench.domain.enums.metric import MetricTimeframe


class DefinitionProvider(Protocol):
    """Source of the metric definition catalog."""

    async def fetch_definitions(self) -> Sequence[MetricDefinition]:
        """Return every metric definition.

        Raises:
            DefinitionFetchError: Catalog unreachable or payload invalid.
        """
        ...


class DistributionProvider(Protocol):
    """Source of peer-group percentile distributions."""

    async def fetch_distribution(self, metric_id: str, peer_group_id: str) -> DistributionPoint:
        """Return the distribution for ``metric_id`` within ``peer_group_id``.

        Raises:
            DistributionFetchError: Provider unreachable or payload invalid.
        """
        ...


class TrendProvider(Protocol):
    """Source of historical trend series."""

    async def fetch_trend(self, metric_id: str, timeframe: MetricTimeframe) -> TrendSeries:
        """Return the trend series for ``metric_id`` at ``timeframe`` granularity.

        Raises:
            TrendFetchError: Provider unreachable or payload invalid.
        """
        ...


class BenchmarkProvider(DefinitionProvider, DistributionProvider, TrendProvider, Protocol):
    """Convenience union for gateways that serve all three endpoints."""


__all__ = [
    "BenchmarkProvider",
    "DefinitionProvider",
    "DistributionProvider",
    "TrendProvider",
]
