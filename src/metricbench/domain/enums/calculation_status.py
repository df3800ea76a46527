# Copyright (c)
# SPDX-License-Identifier: MIT
"""Lifecycle states of a single calculation request.

Transitions::

    PENDING -> VALIDATING -> INVALID            (terminal failure)
                          -> CACHE_HIT          (terminal success)
                          -> FETCHING -> COMPLETED (terminal success)
                                      -> FAILED    (terminal failure)

Layer:
    domain
"""

from __future__ import annotations

from enum import Enum


class CalculationStatus(str, Enum):
    """State of a calculation request within a batch."""

    PENDING = "PENDING"
    VALIDATING = "VALIDATING"
    INVALID = "INVALID"
    CACHE_HIT = "CACHE_HIT"
    FETCHING = "FETCHING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        """Return True when no further transition is possible."""
        return self in _TERMINAL

    @property
    def is_success(self) -> bool:
        """Return True for terminal states that carry a computed result."""
        return self in (CalculationStatus.COMPLETED, CalculationStatus.CACHE_HIT)

    def can_transition_to(self, target: CalculationStatus) -> bool:
        """Return True if ``target`` is a legal next state."""
        return target in _TRANSITIONS[self]


_TERMINAL = frozenset(
    {
        CalculationStatus.INVALID,
        CalculationStatus.CACHE_HIT,
        CalculationStatus.COMPLETED,
        CalculationStatus.FAILED,
    }
)

_TRANSITIONS: dict[CalculationStatus, frozenset[CalculationStatus]] = {
    CalculationStatus.PENDING: frozenset({CalculationStatus.VALIDATING}),
    CalculationStatus.VALIDATING: frozenset(
        {CalculationStatus.INVALID, CalculationStatus.CACHE_HIT, CalculationStatus.FETCHING}
    ),
    CalculationStatus.FETCHING: frozenset({CalculationStatus.COMPLETED, CalculationStatus.FAILED}),
    CalculationStatus.INVALID: frozenset(),
    CalculationStatus.CACHE_HIT: frozenset(),
    CalculationStatus.COMPLETED: frozenset(),
    CalculationStatus.FAILED: frozenset(),
}


__all__ = ["CalculationStatus"]
