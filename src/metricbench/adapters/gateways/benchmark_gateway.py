# Copyright (c)
# SPDX-License-Identifier: MIT
"""Adapter Gateway: benchmark provider HTTP API -> domain entities.

This gateway sits on top of :class:`BenchmarkApiClient` and implements the
three provider protocols consumed by the engine:

* ``fetch_definitions()`` -> :class:`MetricDefinition` list
* ``fetch_distribution()`` -> :class:`DistributionPoint`
* ``fetch_trend()`` -> :class:`TrendSeries`

Design principles:
    * Validate provider payloads deterministically; a malformed row fails
      the whole call rather than being skipped.
    * Accept both short (``p10``, ``min``) and long (``p10Value``,
      ``minValue``) field spellings.
    * Translate transport errors into the per-endpoint domain fetch errors,
      chaining the cause.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import date, datetime
from typing import Any

from metricbench.domain.entities.distribution import DistributionPoint
from metricbench.domain.entities.metric_definition import MetricDefinition
from metricbench.domain.entities.trend import TrendPoint, TrendSeries
from metricbench.domain.entities.validation_rule import MaxRule, MinRule, RangeRule, ValidationRule
from metricbench.domain.enums.metric import MetricCategory, MetricTimeframe, MetricUnit
from metricbench.domain.exceptions.base import DomainError
from metricbench.domain.exceptions.metrics import (
    DefinitionFetchError,
    DistributionFetchError,
    InvalidDistributionError,
    TrendFetchError,
)
from metricbench.domain.exceptions.provider import ProviderPayloadError
from metricbench.infrastructure.external_apis.benchmarks.client import BenchmarkApiClient


def _pick(row: Mapping[str, Any], *names: str, default: Any = None) -> Any:
    """Return the first present key among ``names``."""
    for name in names:
        if name in row and row[name] is not None:
            return row[name]
    return default


def _number(row: Mapping[str, Any], *names: str) -> float:
    raw = _pick(row, *names)
    if isinstance(raw, bool) or not isinstance(raw, int | float | str):
        raise ProviderPayloadError("bad_field", details={"field": names[0], "value": raw})
    try:
        return float(raw)
    except ValueError as exc:
        raise ProviderPayloadError("bad_field", details={"field": names[0], "value": raw}) from exc


def _parse_rule(row: Mapping[str, Any]) -> ValidationRule:
    kind = str(_pick(row, "type", default="range")).lower()
    options: dict[str, Any] = {
        "priority": int(_pick(row, "priority", default=0)),
        "required": bool(_pick(row, "required", default=False)),
        "error_message": str(_pick(row, "message", "errorMessage", default="")),
    }
    match kind:
        case "range":
            try:
                return RangeRule(
                    min_value=_number(row, "min", "minValue"),
                    max_value=_number(row, "max", "maxValue"),
                    **options,
                )
            except ValueError as exc:
                raise ProviderPayloadError("bad_rule", details={"rule": dict(row)}) from exc
        case "min":
            return MinRule(min_value=_number(row, "min", "minValue"), **options)
        case "max":
            return MaxRule(max_value=_number(row, "max", "maxValue"), **options)
        case _:
            raise ProviderPayloadError("unsupported_rule", details={"type": kind})


def map_definition(row: Mapping[str, Any]) -> MetricDefinition:
    """Map one ``/metrics`` row to a :class:`MetricDefinition`.

    Raises:
        ProviderPayloadError: On missing/invalid fields or unsupported rules.
    """
    try:
        rules = tuple(_parse_rule(r) for r in _pick(row, "validationRules", "rules", default=()))
        return MetricDefinition(
            metric_id=str(_pick(row, "id", "metricId", default="")),
            name=str(_pick(row, "name", default="")),
            category=MetricCategory(str(_pick(row, "category", default="")).upper()),
            unit=MetricUnit(str(_pick(row, "unit", "valueType", default="")).upper()),
            timeframe=MetricTimeframe(str(_pick(row, "timeframe", default="ANNUAL")).upper()),
            formula=str(_pick(row, "formula", default="")),
            description=str(_pick(row, "description", default="")),
            validation_rules=rules,
        )
    except (ValueError, TypeError) as exc:
        raise ProviderPayloadError("bad_definition", details={"id": row.get("id")}) from exc


def map_distribution(metric_id: str, peer_group_id: str, row: Mapping[str, Any]) -> DistributionPoint:
    """Map a ``/benchmarks/{metric_id}`` body to a :class:`DistributionPoint`.

    Raises:
        ProviderPayloadError: On missing/non-numeric percentile values.
        InvalidDistributionError: If the percentiles are not non-decreasing.
    """
    collected_raw = _pick(row, "collectedAt", "collectionDate")
    collected_at: datetime | None = None
    if isinstance(collected_raw, str):
        try:
            collected_at = datetime.fromisoformat(collected_raw.replace("Z", "+00:00"))
        except ValueError as exc:
            raise ProviderPayloadError("bad_field", details={"field": "collectedAt"}) from exc
    return DistributionPoint(
        metric_id=metric_id,
        peer_group_id=peer_group_id,
        p10=_number(row, "p10", "p10Value"),
        p25=_number(row, "p25", "p25Value"),
        p50=_number(row, "p50", "p50Value"),
        p75=_number(row, "p75", "p75Value"),
        p90=_number(row, "p90", "p90Value"),
        source=str(_pick(row, "source", "sourceId", default="benchmark_api")),
        collected_at=collected_at,
    )


def map_trend(metric_id: str, timeframe: MetricTimeframe, row: Mapping[str, Any]) -> TrendSeries:
    """Map a ``/benchmarks/trends/{metric_id}`` body to a :class:`TrendSeries`."""
    raw_points = _pick(row, "points", "trend", default=())
    if not isinstance(raw_points, Sequence) or isinstance(raw_points, str):
        raise ProviderPayloadError("bad_shape", details={"expected": "points:list"})
    points: list[TrendPoint] = []
    for item in raw_points:
        if not isinstance(item, Mapping):
            raise ProviderPayloadError("bad_shape", details={"expected": "point:object"})
        try:
            period = date.fromisoformat(str(_pick(item, "period", "date", default="")))
        except ValueError as exc:
            raise ProviderPayloadError("bad_field", details={"field": "period"}) from exc
        points.append(TrendPoint(period=period, value=_number(item, "value")))

    growth = _pick(row, "growthRate")
    seasonality = _pick(row, "seasonality", default={})
    if not isinstance(seasonality, Mapping):
        raise ProviderPayloadError("bad_shape", details={"expected": "seasonality:object"})
    try:
        factors = {str(k): float(v) for k, v in seasonality.items()}
    except (TypeError, ValueError) as exc:
        raise ProviderPayloadError("bad_field", details={"field": "seasonality"}) from exc
    return TrendSeries(
        metric_id=metric_id,
        timeframe=timeframe,
        points=tuple(points),
        growth_rate=None if growth is None else _number(row, "growthRate"),
        seasonality=factors,
    )


class HttpBenchmarkGateway:
    """Benchmark provider adapter over the HTTP transport client."""

    def __init__(self, client: BenchmarkApiClient) -> None:
        self._client = client

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch_definitions(self) -> list[MetricDefinition]:
        try:
            rows = await self._client.list_metrics()
            return [map_definition(row) for row in rows]
        except DomainError as exc:
            raise DefinitionFetchError(
                "Metric definitions could not be fetched",
                details={"cause": exc.code, "reason": exc.message, **exc.details},
            ) from exc

    async def fetch_distribution(self, metric_id: str, peer_group_id: str) -> DistributionPoint:
        try:
            row = await self._client.get_distribution(metric_id, peer_group_id)
            return map_distribution(metric_id, peer_group_id, row)
        except InvalidDistributionError:
            raise
        except DomainError as exc:
            raise DistributionFetchError(
                "Peer distribution could not be fetched",
                details={
                    "metric_id": metric_id,
                    "peer_group_id": peer_group_id,
                    "cause": exc.code,
                    "reason": exc.message,
                },
            ) from exc

    async def fetch_trend(self, metric_id: str, timeframe: MetricTimeframe) -> TrendSeries:
        try:
            row = await self._client.get_trend(metric_id, timeframe.value)
            return map_trend(metric_id, timeframe, row)
        except DomainError as exc:
            raise TrendFetchError(
                "Trend data could not be fetched",
                details={
                    "metric_id": metric_id,
                    "timeframe": timeframe.value,
                    "cause": exc.code,
                    "reason": exc.message,
                },
            ) from exc


__all__ = ["HttpBenchmarkGateway", "map_definition", "map_distribution", "map_trend"]
