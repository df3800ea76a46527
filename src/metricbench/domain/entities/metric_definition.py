# Copyright (c)
# SPDX-License-Identifier: MIT
"""
Metric Definition Entity

Purpose:
    Immutable description of a benchmarkable metric: identity, display name,
    category, unit, timeframe, formula text and its ordered validation rules.
    Definitions are replaced wholesale when the catalog is refreshed.

Layer: domain/entities
"""
from __future__ import annotations

from dataclasses import dataclass

from metricbench.domain.enums.metric import MetricCategory, MetricTimeframe, MetricUnit

from .base import BaseEntity
from .validation_rule import ValidationRule


@dataclass(frozen=True, slots=True)
class MetricDefinition(BaseEntity):
    """Catalog entry for a single metric.

    Args:
        metric_id: Stable identifier (e.g. ``"NDR"``).
        name: Human-readable name.
        category: Business category.
        unit: Unit of measurement.
        timeframe: Default measurement timeframe.
        formula: Formula text for display.
        validation_rules: Rules in catalog order (evaluation order is derived
            from priority, not from this ordering).
        description: Optional long-form description.

    Raises:
        ValueError: If ``metric_id`` or ``name`` is blank.
    """

    metric_id: str
    name: str
    category: MetricCategory
    unit: MetricUnit
    timeframe: MetricTimeframe
    formula: str = ""
    validation_rules: tuple[ValidationRule, ...] = ()
    description: str = ""

    def __post_init__(self) -> None:
        if not self.metric_id or not self.metric_id.strip():
            raise ValueError("metric_id must be non-empty")
        if not self.name or not self.name.strip():
            raise ValueError("name must be non-empty")
        if not isinstance(self.validation_rules, tuple):
            object.__setattr__(self, "validation_rules", tuple(self.validation_rules))

    @property
    def has_required_rule(self) -> bool:
        """Return True if any rule marks the value as required."""
        return any(rule.required for rule in self.validation_rules)
