# Copyright (c)
# SPDX-License-Identifier: MIT
"""Piecewise-linear percentile interpolation.

Purpose:
    Map a value onto the 0-100 percentile scale of a peer distribution given
    its ascending percentile brackets (p10..p90).

Algorithm:
    1. ``value <= first bracket value`` -> 0.
    2. ``value >= last bracket value`` -> 100.
    3. Otherwise locate the adjacent pair ``[i, i + 1]`` with
       ``v_i <= value <= v_{i+1}`` and interpolate linearly between
       ``p_i`` and ``p_{i+1}``.

Edge cases:
    * A value equal to a bracket boundary resolves to that bracket's exact
      percentile.
    * Adjacent brackets with equal values return the lower percentile
      without dividing.

Layer:
    domain

Notes:
    Pure domain logic: no logging, no I/O.
"""

from __future__ import annotations

from collections.abc import Sequence

from metricbench.domain.entities.distribution import DistributionPoint, PercentileBracket
from metricbench.domain.exceptions.metrics import InvalidInputError

PERCENTILE_FLOOR = 0.0
PERCENTILE_CEILING = 100.0


def interpolate(value: float, brackets: Sequence[PercentileBracket]) -> float:
    """Return the percentile of ``value`` within ascending ``brackets``.

    Args:
        value: Value to position.
        brackets: Percentile brackets sorted ascending by value.

    Returns:
        Percentile in ``[0, 100]``.

    Raises:
        InvalidInputError: If ``brackets`` is empty.
    """
    if not brackets:
        raise InvalidInputError("At least one percentile bracket is required")

    if value <= brackets[0].value:
        return PERCENTILE_FLOOR
    if value >= brackets[-1].value:
        return PERCENTILE_CEILING

    for lower, upper in zip(brackets, brackets[1:]):
        if lower.value <= value <= upper.value:
            if value == lower.value:
                return lower.percentile
            if value == upper.value:
                return upper.percentile
            span = upper.value - lower.value
            if span == 0:
                return lower.percentile
            return lower.percentile + (value - lower.value) / span * (
                upper.percentile - lower.percentile
            )

    # Unreachable for ascending brackets; unsorted input lands here.
    raise InvalidInputError(
        "Percentile brackets must be sorted ascending by value",
        details={"values": [b.value for b in brackets]},
    )


def percentile_for_distribution(value: float, distribution: DistributionPoint) -> float:
    """Interpolate ``value`` against the five brackets of ``distribution``."""
    return interpolate(value, distribution.brackets())


__all__ = [
    "PERCENTILE_CEILING",
    "PERCENTILE_FLOOR",
    "interpolate",
    "percentile_for_distribution",
]
