# Copyright (c)
# SPDX-License-Identifier: MIT
"""Built-in metric catalog.

Purpose:
    Default definitions for the SaaS metrics the platform benchmarks, with
    their documented validation ranges and messages. Used by the in-memory
    provider and as seed data for tests and local runs.

Layer:
    domain

Notes:
    - Pure domain data; no I/O.
    - Rule priorities are 1 (critical) so a value outside the documented
      range halts evaluation for that metric.
"""

from __future__ import annotations

from typing import Final

from metricbench.domain.entities.metric_definition import MetricDefinition
from metricbench.domain.entities.validation_rule import MinRule, RangeRule
from metricbench.domain.enums.metric import MetricCategory, MetricTimeframe, MetricUnit

BUILTIN_DEFINITIONS: Final[tuple[MetricDefinition, ...]] = (
    MetricDefinition(
        metric_id="NDR",
        name="Net Dollar Retention",
        category=MetricCategory.RETENTION,
        unit=MetricUnit.PERCENTAGE,
        timeframe=MetricTimeframe.ANNUAL,
        formula="(Starting ARR + Expansions - Contractions - Churn) / Starting ARR x 100",
        description="Revenue retained from existing customers including expansion.",
        validation_rules=(
            RangeRule(
                min_value=0,
                max_value=200,
                priority=1,
                required=True,
                error_message="NDR must be between 0% and 200%",
            ),
        ),
    ),
    MetricDefinition(
        metric_id="CAC_PAYBACK",
        name="CAC Payback Period",
        category=MetricCategory.EFFICIENCY,
        unit=MetricUnit.MONTHS,
        timeframe=MetricTimeframe.MONTHLY,
        formula="CAC / (ARR x Gross Margin) x 12",
        description="Months of gross margin needed to recover acquisition cost.",
        validation_rules=(
            RangeRule(
                min_value=0,
                max_value=60,
                priority=1,
                required=True,
                error_message="CAC Payback Period must be between 0 and 60 months",
            ),
        ),
    ),
    MetricDefinition(
        metric_id="MAGIC_NUMBER",
        name="Magic Number",
        category=MetricCategory.SALES,
        unit=MetricUnit.RATIO,
        timeframe=MetricTimeframe.QUARTERLY,
        formula="Net New ARR / Previous Quarter S&M Spend",
        validation_rules=(
            RangeRule(
                min_value=0,
                max_value=10,
                priority=1,
                error_message="Magic Number must be between 0 and 10",
            ),
        ),
    ),
    MetricDefinition(
        metric_id="PIPELINE_COVERAGE",
        name="Pipeline Coverage",
        category=MetricCategory.SALES,
        unit=MetricUnit.PERCENTAGE,
        timeframe=MetricTimeframe.QUARTERLY,
        formula="Pipeline Value / Sales Target x 100",
        validation_rules=(
            RangeRule(
                min_value=0,
                max_value=1000,
                priority=1,
                error_message="Pipeline Coverage must be between 0% and 1000%",
            ),
        ),
    ),
    MetricDefinition(
        metric_id="GROSS_MARGINS",
        name="Gross Margins",
        category=MetricCategory.FINANCIAL,
        unit=MetricUnit.PERCENTAGE,
        timeframe=MetricTimeframe.ANNUAL,
        formula="(Revenue - COGS) / Revenue x 100",
        validation_rules=(
            RangeRule(
                min_value=-100,
                max_value=100,
                priority=1,
                error_message="Gross Margins must be between -100% and 100%",
            ),
        ),
    ),
    MetricDefinition(
        metric_id="ARR",
        name="Annual Recurring Revenue",
        category=MetricCategory.FINANCIAL,
        unit=MetricUnit.CURRENCY,
        timeframe=MetricTimeframe.ANNUAL,
        formula="Sum of annualized subscription revenue",
        validation_rules=(
            MinRule(min_value=0, priority=1, required=True, error_message="ARR cannot be negative"),
        ),
    ),
    MetricDefinition(
        metric_id="GROWTH_RATE",
        name="Growth Rate",
        category=MetricCategory.FINANCIAL,
        unit=MetricUnit.PERCENTAGE,
        timeframe=MetricTimeframe.ANNUAL,
        formula="(Current ARR - Prior ARR) / Prior ARR x 100",
        validation_rules=(
            MinRule(
                min_value=-100,
                priority=1,
                error_message="Growth Rate cannot be less than -100%",
            ),
        ),
    ),
    MetricDefinition(
        metric_id="CAC",
        name="Customer Acquisition Cost",
        category=MetricCategory.EFFICIENCY,
        unit=MetricUnit.CURRENCY,
        timeframe=MetricTimeframe.QUARTERLY,
        formula="S&M Spend / New Customers",
        validation_rules=(
            MinRule(min_value=0, priority=1, error_message="CAC cannot be negative"),
        ),
    ),
    MetricDefinition(
        metric_id="LOGO_RETENTION",
        name="Logo Retention",
        category=MetricCategory.RETENTION,
        unit=MetricUnit.PERCENTAGE,
        timeframe=MetricTimeframe.ANNUAL,
        formula="Customers Retained / Starting Customers x 100",
        validation_rules=(
            RangeRule(
                min_value=0,
                max_value=100,
                priority=1,
                error_message="Logo Retention must be between 0% and 100%",
            ),
        ),
    ),
)


def builtin_definition(metric_id: str) -> MetricDefinition | None:
    """Return the built-in definition for ``metric_id``, if any."""
    for definition in BUILTIN_DEFINITIONS:
        if definition.metric_id == metric_id:
            return definition
    return None


__all__ = ["BUILTIN_DEFINITIONS", "builtin_definition"]
