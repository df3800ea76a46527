# Copyright (c)
# SPDX-License-Identifier: MIT
"""Metric formulas and presentation helpers.

Purpose:
    Derive metric values from their raw business inputs (ARR movements,
    acquisition cost, spend, revenue) and render values for display.

Conventions:
    * Inputs must be finite and non-negative; otherwise
      :class:`InvalidInputError` is raised.
    * A zero denominator raises :class:`InvalidInputError` rather than
      returning ``inf``/``nan``.
    * Results are rounded to two decimal places.

Layer:
    domain
"""

from __future__ import annotations

from typing import Final

from metricbench.domain.entities.calculation import ensure_numeric
from metricbench.domain.enums.metric import MetricTimeframe, MetricUnit
from metricbench.domain.exceptions.metrics import InvalidInputError

_PRECISION: Final[int] = 2


def _non_negative(**inputs: float) -> dict[str, float]:
    checked: dict[str, float] = {}
    for name, raw in inputs.items():
        value = ensure_numeric(raw, field_name=name)
        if value < 0:
            raise InvalidInputError(
                "Input parameters cannot be negative",
                details={"field": name, "value": value},
            )
        checked[name] = value
    return checked


def _require_nonzero(name: str, value: float) -> None:
    if value == 0:
        raise InvalidInputError("Denominator cannot be zero", details={"field": name})


def net_dollar_retention(
    starting_arr: float,
    expansions: float,
    contractions: float,
    churn: float,
) -> float:
    """Return NDR as a percentage of starting ARR."""
    v = _non_negative(
        starting_arr=starting_arr,
        expansions=expansions,
        contractions=contractions,
        churn=churn,
    )
    _require_nonzero("starting_arr", v["starting_arr"])
    ending = v["starting_arr"] + v["expansions"] - v["contractions"] - v["churn"]
    return round(ending / v["starting_arr"] * 100, _PRECISION)


def cac_payback_months(cac: float, arr: float, gross_margin_pct: float) -> float:
    """Return the months of gross margin needed to recover ``cac``."""
    v = _non_negative(cac=cac, arr=arr, gross_margin_pct=gross_margin_pct)
    if v["gross_margin_pct"] > 100:
        raise InvalidInputError(
            "Gross margin must be between 0-100%",
            details={"field": "gross_margin_pct", "value": v["gross_margin_pct"]},
        )
    _require_nonzero("arr", v["arr"])
    monthly_margin = v["arr"] * v["gross_margin_pct"] / (100 * 12)
    _require_nonzero("gross_margin_pct", monthly_margin)
    return round(v["cac"] / monthly_margin, _PRECISION)


def magic_number(net_new_arr: float, previous_quarter_sm_spend: float) -> float:
    """Return net new ARR per unit of prior-quarter sales & marketing spend."""
    v = _non_negative(
        net_new_arr=net_new_arr,
        previous_quarter_sm_spend=previous_quarter_sm_spend,
    )
    _require_nonzero("previous_quarter_sm_spend", v["previous_quarter_sm_spend"])
    return round(v["net_new_arr"] / v["previous_quarter_sm_spend"], _PRECISION)


def gross_margin(revenue: float, cogs: float) -> float:
    """Return gross margin as a percentage of revenue."""
    v = _non_negative(revenue=revenue, cogs=cogs)
    _require_nonzero("revenue", v["revenue"])
    return round((v["revenue"] - v["cogs"]) / v["revenue"] * 100, _PRECISION)


def pipeline_coverage(pipeline_value: float, sales_target: float) -> float:
    """Return pipeline value as a percentage of the sales target."""
    v = _non_negative(pipeline_value=pipeline_value, sales_target=sales_target)
    _require_nonzero("sales_target", v["sales_target"])
    return round(v["pipeline_value"] / v["sales_target"] * 100, _PRECISION)


def normalize_timeframe(
    value: float,
    current: MetricTimeframe,
    target: MetricTimeframe,
) -> float:
    """Rescale a flow value measured over ``current`` to ``target``.

    Example:
        ``normalize_timeframe(10, MONTHLY, ANNUAL) == 120``.
    """
    return ensure_numeric(value) * target.months / current.months


def format_metric_value(value: float, unit: MetricUnit) -> str:
    """Render ``value`` for display according to ``unit``."""
    match unit:
        case MetricUnit.PERCENTAGE:
            return f"{value:,.1f}%"
        case MetricUnit.CURRENCY:
            sign = "-" if value < 0 else ""
            return f"{sign}${abs(value):,.0f}"
        case MetricUnit.RATIO:
            return f"{value:,.2f}"
        case MetricUnit.MONTHS:
            return f"{value:,.1f} mo"
    return str(value)


__all__ = [
    "cac_payback_months",
    "format_metric_value",
    "gross_margin",
    "magic_number",
    "net_dollar_retention",
    "normalize_timeframe",
    "pipeline_coverage",
]
