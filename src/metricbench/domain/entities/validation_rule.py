# Copyright (c)
# SPDX-License-Identifier: MIT
"""Validation rule variants.

Purpose:
    Closed set of rule shapes attached to a metric definition:

        * :class:`RangeRule` - value must lie within ``[min_value, max_value]``.
        * :class:`MinRule`   - value must be ``>= min_value``.
        * :class:`MaxRule`   - value must be ``<= max_value``.
        * :class:`CustomRule` - ``predicate(value, context)`` must return True.

    Every variant carries ``priority`` (higher runs first), ``required`` and
    an optional ``error_message``. Consumers dispatch with ``match`` over the
    :data:`ValidationRule` union and close it with ``assert_never``.

Layer:
    domain/entities
"""

from __future__ import annotations

import math
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, TypeAlias

from .base import BaseEntity

RulePredicate: TypeAlias = Callable[[float, Mapping[str, Any]], bool]

REQUIRED_FIELD_MESSAGE = "This field is required"
CUSTOM_VALIDATION_FAILED_MESSAGE = "Value does not meet validation requirements"


def _fmt(bound: float) -> str:
    """Render a bound without a trailing ``.0`` for whole numbers."""
    return str(int(bound)) if float(bound).is_integer() else str(bound)


def _check_bound(name: str, bound: float) -> None:
    if isinstance(bound, bool) or not isinstance(bound, int | float) or math.isnan(bound):
        raise ValueError(f"{name} must be a number")


@dataclass(frozen=True, slots=True, kw_only=True)
class _RuleOptions(BaseEntity):
    """Fields shared by every rule variant."""

    priority: int = 0
    required: bool = False
    error_message: str = ""

    @property
    def is_critical(self) -> bool:
        """Critical rules halt evaluation when they fail."""
        return self.priority > 0


@dataclass(frozen=True, slots=True)
class RangeRule(_RuleOptions):
    """Value must fall inside the closed interval ``[min_value, max_value]``."""

    min_value: float
    max_value: float

    def __post_init__(self) -> None:
        _check_bound("min_value", self.min_value)
        _check_bound("max_value", self.max_value)
        if self.min_value > self.max_value:
            raise ValueError("min_value must be <= max_value")

    @property
    def message(self) -> str:
        """Configured message, or the default range message."""
        return self.error_message or (
            f"Value must be between {_fmt(self.min_value)} and {_fmt(self.max_value)}"
        )


@dataclass(frozen=True, slots=True)
class MinRule(_RuleOptions):
    """Value must not be below ``min_value``."""

    min_value: float

    def __post_init__(self) -> None:
        _check_bound("min_value", self.min_value)

    @property
    def message(self) -> str:
        """Configured message, or the default lower-bound message."""
        return self.error_message or f"Value must be greater than {_fmt(self.min_value)}"


@dataclass(frozen=True, slots=True)
class MaxRule(_RuleOptions):
    """Value must not exceed ``max_value``."""

    max_value: float

    def __post_init__(self) -> None:
        _check_bound("max_value", self.max_value)

    @property
    def message(self) -> str:
        """Configured message, or the default upper-bound message."""
        return self.error_message or f"Value must be less than {_fmt(self.max_value)}"


@dataclass(frozen=True, slots=True)
class CustomRule(_RuleOptions):
    """Value must satisfy an arbitrary predicate over ``(value, context)``."""

    predicate: RulePredicate = field(compare=False)
    name: str = "custom"

    @property
    def message(self) -> str:
        """Configured message, or the generic custom-rule message."""
        return self.error_message or CUSTOM_VALIDATION_FAILED_MESSAGE


ValidationRule: TypeAlias = RangeRule | MinRule | MaxRule | CustomRule


__all__ = [
    "CUSTOM_VALIDATION_FAILED_MESSAGE",
    "CustomRule",
    "MaxRule",
    "MinRule",
    "REQUIRED_FIELD_MESSAGE",
    "RangeRule",
    "RulePredicate",
    "ValidationRule",
]
