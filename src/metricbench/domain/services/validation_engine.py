# Copyright (c)
# SPDX-License-Identifier: MIT
"""Priority-ordered validation of metric values.

Purpose:
    Evaluate a value against a metric's validation rules and produce a
    structured :class:`ValidationResult` with hard errors and soft warnings.

Rules of evaluation:
    * If any rule is ``required`` and the value is ``None``, the result is a
      single "required field" error and nothing else runs.
    * Rules run in descending ``priority`` order (stable for ties).
    * A failing rule with ``priority > 0`` is critical: it is recorded and
      evaluation stops. Failing rules with ``priority <= 0`` are recorded and
      evaluation continues.
    * When the value passes, every :class:`RangeRule` within 10% of its range
      width of a bound contributes a "near threshold" warning.

Layer:
    domain

Notes:
    The function is pure; callers may memoize on
    ``(metric_id, value, context)``.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Final, assert_never

from metricbench.domain.entities.validation_rule import (
    REQUIRED_FIELD_MESSAGE,
    CustomRule,
    MaxRule,
    MinRule,
    RangeRule,
    ValidationRule,
)
from metricbench.domain.entities.validation_result import ValidationResult

#: Fraction of a range's width treated as "near" either bound.
NEAR_THRESHOLD_RATIO: Final[float] = 0.10

_EMPTY_CONTEXT: Final[Mapping[str, Any]] = {}


def order_rules(rules: Sequence[ValidationRule]) -> list[ValidationRule]:
    """Return ``rules`` sorted by priority, highest first (stable)."""
    return sorted(rules, key=lambda rule: rule.priority, reverse=True)


def rule_passes(rule: ValidationRule, value: float, context: Mapping[str, Any]) -> bool:
    """Return True if ``value`` satisfies ``rule``.

    A custom predicate that raises is treated as a failed rule.
    """
    match rule:
        case RangeRule(min_value=lo, max_value=hi):
            return not (value < lo or value > hi)
        case MinRule(min_value=lo):
            return value >= lo
        case MaxRule(max_value=hi):
            return value <= hi
        case CustomRule(predicate=predicate):
            try:
                return bool(predicate(value, context))
            except Exception:  # noqa: BLE001 - predicate failure is a rule failure
                return False
        case _:
            assert_never(rule)


def _near_threshold_warnings(
    value: float, rules: Sequence[ValidationRule], ratio: float
) -> list[str]:
    warnings: list[str] = []
    for rule in rules:
        if not isinstance(rule, RangeRule):
            continue
        margin = (rule.max_value - rule.min_value) * ratio
        if value <= rule.min_value + margin:
            warnings.append(f"Value is near the lower threshold of {rule.min_value:g}")
        elif value >= rule.max_value - margin:
            warnings.append(f"Value is near the upper threshold of {rule.max_value:g}")
    return warnings


def validate(
    value: float | None,
    rules: Sequence[ValidationRule],
    context: Mapping[str, Any] | None = None,
    *,
    near_threshold_ratio: float = NEAR_THRESHOLD_RATIO,
) -> ValidationResult:
    """Validate ``value`` against ``rules``.

    Args:
        value: Candidate value; ``None`` means "not supplied".
        rules: The metric's validation rules in any order.
        context: Extra inputs forwarded to custom predicates.
        near_threshold_ratio: Fraction of a range width that counts as
            "near" a bound for warnings.

    Returns:
        The structured validation outcome.
    """
    ctx = context if context is not None else _EMPTY_CONTEXT

    if value is None:
        if any(rule.required for rule in rules):
            return ValidationResult(is_valid=False, errors=(REQUIRED_FIELD_MESSAGE,))
        return ValidationResult.ok()

    errors: list[str] = []
    for rule in order_rules(rules):
        if rule_passes(rule, value, ctx):
            continue
        errors.append(rule.message)
        if rule.is_critical:
            break

    if errors:
        return ValidationResult(is_valid=False, errors=tuple(errors))
    warnings = _near_threshold_warnings(value, rules, near_threshold_ratio)
    return ValidationResult.ok(warnings=tuple(warnings))


__all__ = ["NEAR_THRESHOLD_RATIO", "order_rules", "rule_passes", "validate"]
