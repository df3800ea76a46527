# Copyright (c)
# SPDX-License-Identifier: MIT
"""
Peer Distribution Entity

Purpose:
    Five-point percentile summary (p10/p25/p50/p75/p90) of a metric within a
    peer group, plus provenance (source tag and collection timestamp).

Invariant:
    p10 <= p25 <= p50 <= p75 <= p90. Violations are rejected with
    :class:`InvalidDistributionError`; values are never reordered or clipped.

Layer: domain/entities
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import UTC, datetime

from metricbench.domain.exceptions.metrics import InvalidDistributionError

from .base import BaseEntity

PERCENTILE_LEVELS: tuple[int, ...] = (10, 25, 50, 75, 90)


@dataclass(frozen=True, slots=True)
class PercentileBracket(BaseEntity):
    """A single (percentile, value) reference point."""

    percentile: float
    value: float


@dataclass(frozen=True, slots=True)
class DistributionPoint(BaseEntity):
    """Peer-group distribution for one (metric, peer group) pair.

    Args:
        metric_id: Metric identifier.
        peer_group_id: Peer group (cohort) identifier, e.g. a revenue band.
        p10: 10th percentile value.
        p25: 25th percentile value.
        p50: Median value.
        p75: 75th percentile value.
        p90: 90th percentile value.
        source: Provider/source tag.
        collected_at: When the data was collected (UTC; naive values are
            interpreted as UTC).

    Raises:
        InvalidDistributionError: If any value is not finite or the values
            are not non-decreasing.
    """

    metric_id: str
    peer_group_id: str
    p10: float
    p25: float
    p50: float
    p75: float
    p90: float
    source: str = "unknown"
    collected_at: datetime | None = None

    def __post_init__(self) -> None:
        values = self.values()
        if any(not math.isfinite(v) for v in values):
            raise InvalidDistributionError(
                "Distribution values must be finite numbers",
                details={"metric_id": self.metric_id, "peer_group_id": self.peer_group_id},
            )
        pairs = list(zip(PERCENTILE_LEVELS, values, strict=True))
        for (lo_level, lo), (hi_level, hi) in zip(pairs, pairs[1:]):
            if lo > hi:
                raise InvalidDistributionError(
                    f"p{lo_level} ({lo}) exceeds p{hi_level} ({hi})",
                    details={
                        "metric_id": self.metric_id,
                        "peer_group_id": self.peer_group_id,
                        "values": list(values),
                    },
                )
        if self.collected_at is not None and self.collected_at.tzinfo is None:
            object.__setattr__(self, "collected_at", self.collected_at.replace(tzinfo=UTC))

    def values(self) -> tuple[float, float, float, float, float]:
        """Return the five percentile values in ascending percentile order."""
        return (self.p10, self.p25, self.p50, self.p75, self.p90)

    def brackets(self) -> tuple[PercentileBracket, ...]:
        """Return the distribution as ascending percentile brackets."""
        return tuple(
            PercentileBracket(percentile=float(level), value=float(value))
            for level, value in zip(PERCENTILE_LEVELS, self.values(), strict=True)
        )

    def as_dict(self) -> dict[str, float]:
        """Return ``{"p10": ..., "p90": ...}`` for presentation layers."""
        return {f"p{level}": value for level, value in zip(PERCENTILE_LEVELS, self.values(), strict=True)}
