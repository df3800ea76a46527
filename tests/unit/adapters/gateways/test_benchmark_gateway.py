# Copyright (c)
# SPDX-License-Identifier: MIT

from __future__ import annotations

from datetime import UTC, date, datetime

import httpx
import pytest
import respx

from metricbench.adapters.gateways.benchmark_gateway import (
    HttpBenchmarkGateway,
    map_definition,
    map_distribution,
    map_trend,
)
from metricbench.domain.entities.validation_rule import MaxRule, MinRule, RangeRule
from metricbench.domain.enums.metric import MetricCategory, MetricTimeframe, MetricUnit
from metricbench.domain.exceptions.metrics import (
    DefinitionFetchError,
    DistributionFetchError,
    InvalidDistributionError,
    TrendFetchError,
)
from metricbench.domain.exceptions.provider import ProviderPayloadError
from metricbench.infrastructure.external_apis.benchmarks.client import BenchmarkApiClient
from metricbench.infrastructure.external_apis.benchmarks.settings import BenchmarkApiSettings

_BASE_URL = "https://bench.example.test/api"

_NDR_ROW = {
    "id": "NDR",
    "name": "Net Dollar Retention",
    "category": "retention",
    "unit": "percentage",
    "timeframe": "annual",
    "formula": "(Start + Expansion - Churn) / Start",
    "validationRules": [
        {"type": "range", "min": 0, "max": 200, "priority": 1, "required": True,
         "message": "NDR must be between 0% and 200%"},
    ],
}

_DISTRIBUTION = {
    "p10": 60, "p25": 80, "p50": 100, "p75": 120, "p90": 140,
    "source": "survey-2024", "collectedAt": "2024-06-30T00:00:00Z",
}


@pytest.fixture
def settings() -> BenchmarkApiSettings:
    return BenchmarkApiSettings(base_url=_BASE_URL, timeout_s=2.0, max_retries=0)


# --------------------------------------------------------------------------- #
# Row mapping
# --------------------------------------------------------------------------- #


def test_map_definition_reads_rules_and_enums() -> None:
    definition = map_definition(_NDR_ROW)
    assert definition.metric_id == "NDR"
    assert definition.category is MetricCategory.RETENTION
    assert definition.unit is MetricUnit.PERCENTAGE
    assert definition.validation_rules == (
        RangeRule(min_value=0, max_value=200, priority=1, required=True,
                  error_message="NDR must be between 0% and 200%"),
    )


def test_map_definition_accepts_alternate_spellings() -> None:
    row = {
        "metricId": "CAC",
        "name": "CAC",
        "category": "EFFICIENCY",
        "valueType": "CURRENCY",
        "rules": [
            {"type": "min", "minValue": 0, "errorMessage": "CAC cannot be negative"},
            {"type": "max", "maxValue": 1e6},
        ],
    }
    definition = map_definition(row)
    assert definition.timeframe is MetricTimeframe.ANNUAL
    min_rule, max_rule = definition.validation_rules
    assert isinstance(min_rule, MinRule) and min_rule.message == "CAC cannot be negative"
    assert isinstance(max_rule, MaxRule) and max_rule.max_value == 1e6


@pytest.mark.parametrize(
    "row",
    [
        {**_NDR_ROW, "category": "MYSTERY"},
        {**_NDR_ROW, "id": ""},
        {**_NDR_ROW, "validationRules": [{"type": "regex"}]},
        {**_NDR_ROW, "validationRules": [{"type": "range", "min": "low", "max": 1}]},
        {**_NDR_ROW, "validationRules": [{"type": "range", "min": 5, "max": 1}]},
    ],
)
def test_map_definition_rejects_bad_rows(row) -> None:
    with pytest.raises(ProviderPayloadError):
        map_definition(row)


def test_map_distribution_parses_timestamp() -> None:
    point = map_distribution("NDR", "ARR_1M_5M", _DISTRIBUTION)
    assert (point.p10, point.p90) == (60.0, 140.0)
    assert point.source == "survey-2024"
    assert point.collected_at == datetime(2024, 6, 30, tzinfo=UTC)


def test_map_distribution_rejects_descending_values() -> None:
    with pytest.raises(InvalidDistributionError):
        map_distribution("NDR", "ARR_1M_5M", {**_DISTRIBUTION, "p50": 130})


def test_map_trend_reads_points_and_factors() -> None:
    trend = map_trend(
        "NDR",
        MetricTimeframe.MONTHLY,
        {
            "points": [{"period": "2024-02-01", "value": 2}, {"date": "2024-01-01", "value": 1}],
            "growthRate": 0.05,
            "seasonality": {"Q4": 1.2},
        },
    )
    assert [p.period for p in trend.points] == [date(2024, 1, 1), date(2024, 2, 1)]
    assert trend.growth_rate == 0.05
    assert trend.seasonality == {"Q4": 1.2}


@pytest.mark.parametrize(
    "row",
    [
        {"points": "nope"},
        {"points": [{"period": "not-a-date", "value": 1}]},
        {"points": [], "seasonality": {"Q1": "high"}},
    ],
)
def test_map_trend_rejects_bad_payloads(row) -> None:
    with pytest.raises(ProviderPayloadError):
        map_trend("NDR", MetricTimeframe.ANNUAL, row)


# --------------------------------------------------------------------------- #
# Gateway over HTTP
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio
@respx.mock
async def test_fetch_definitions_happy_path(settings: BenchmarkApiSettings) -> None:
    respx.get(f"{_BASE_URL}/metrics").mock(
        return_value=httpx.Response(200, json={"data": [_NDR_ROW]}),
    )
    async with httpx.AsyncClient() as http:
        gateway = HttpBenchmarkGateway(BenchmarkApiClient(settings, http=http))
        definitions = await gateway.fetch_definitions()
    assert [d.metric_id for d in definitions] == ["NDR"]


@pytest.mark.asyncio
@respx.mock
async def test_fetch_definitions_wraps_provider_errors(settings: BenchmarkApiSettings) -> None:
    respx.get(f"{_BASE_URL}/metrics").mock(return_value=httpx.Response(503))
    async with httpx.AsyncClient() as http:
        gateway = HttpBenchmarkGateway(BenchmarkApiClient(settings, http=http))
        with pytest.raises(DefinitionFetchError) as exc_info:
            await gateway.fetch_definitions()
    assert exc_info.value.details["cause"] == "PROVIDER_UNAVAILABLE"
    assert exc_info.value.details["reason"] == "upstream_error"


@pytest.mark.asyncio
@respx.mock
async def test_fetch_distribution_sends_peer_group(settings: BenchmarkApiSettings) -> None:
    route = respx.get(f"{_BASE_URL}/benchmarks/NDR").mock(
        return_value=httpx.Response(200, json={"data": _DISTRIBUTION}),
    )
    async with httpx.AsyncClient() as http:
        gateway = HttpBenchmarkGateway(BenchmarkApiClient(settings, http=http))
        point = await gateway.fetch_distribution("NDR", "ARR_1M_5M")
    assert route.calls.last.request.url.params["peerGroupId"] == "ARR_1M_5M"
    assert point.peer_group_id == "ARR_1M_5M"


@pytest.mark.asyncio
@respx.mock
async def test_fetch_distribution_error_mapping(settings: BenchmarkApiSettings) -> None:
    respx.get(f"{_BASE_URL}/benchmarks/NDR").mock(return_value=httpx.Response(404))
    respx.get(f"{_BASE_URL}/benchmarks/CAC").mock(
        return_value=httpx.Response(200, json={"data": {**_DISTRIBUTION, "p90": 1}}),
    )
    async with httpx.AsyncClient() as http:
        gateway = HttpBenchmarkGateway(BenchmarkApiClient(settings, http=http))
        with pytest.raises(DistributionFetchError) as missing:
            await gateway.fetch_distribution("NDR", "ARR_1M_5M")
        with pytest.raises(InvalidDistributionError):
            await gateway.fetch_distribution("CAC", "ARR_1M_5M")
    assert type(missing.value) is DistributionFetchError
    assert missing.value.details["cause"] == "PROVIDER_NOT_FOUND"


@pytest.mark.asyncio
@respx.mock
async def test_fetch_trend_maps_and_wraps(settings: BenchmarkApiSettings) -> None:
    route = respx.get(f"{_BASE_URL}/benchmarks/trends/NDR").mock(
        return_value=httpx.Response(200, json={"data": {"points": [{"period": "2024-01-01", "value": 3}]}}),
    )
    respx.get(f"{_BASE_URL}/benchmarks/trends/ARR").mock(
        return_value=httpx.Response(200, json={"data": []}),
    )
    async with httpx.AsyncClient() as http:
        gateway = HttpBenchmarkGateway(BenchmarkApiClient(settings, http=http))
        trend = await gateway.fetch_trend("NDR", MetricTimeframe.QUARTERLY)
        with pytest.raises(TrendFetchError):
            await gateway.fetch_trend("ARR", MetricTimeframe.QUARTERLY)
    assert route.calls.last.request.url.params["timeframe"] == "QUARTERLY"
    assert trend.points[0].value == 3.0
