# Copyright (c)
# SPDX-License-Identifier: MIT

from __future__ import annotations

import httpx
import pytest
import respx

from metricbench.domain.exceptions.provider import (
    ProviderNotFoundError,
    ProviderPayloadError,
    ProviderUnavailableError,
)
from metricbench.infrastructure.external_apis.benchmarks.client import BenchmarkApiClient
from metricbench.infrastructure.external_apis.benchmarks.settings import BenchmarkApiSettings
from metricbench.infrastructure.logging.logger import set_request_context
from metricbench.infrastructure.resilience.circuit_breaker import CircuitBreaker
from metricbench.infrastructure.resilience.retry import RetryPolicy

_BASE_URL = "https://bench.example.test/api"
_METRICS_URL = f"{_BASE_URL}/metrics"


@pytest.fixture
def settings() -> BenchmarkApiSettings:
    return BenchmarkApiSettings(base_url=_BASE_URL, api_key="s3cret", timeout_s=2.0, max_retries=0)


@pytest.mark.asyncio
@respx.mock
async def test_list_metrics_sends_auth_and_context_headers(settings: BenchmarkApiSettings) -> None:
    route = respx.get(_METRICS_URL).mock(return_value=httpx.Response(200, json={"data": []}))
    set_request_context(request_id="req-1", trace_id="trace-1")
    client = BenchmarkApiClient(settings)
    assert await client.list_metrics() == []
    await client.aclose()

    request = route.calls.last.request
    assert request.headers["Authorization"] == "Bearer s3cret"
    assert request.headers["X-Request-ID"] == "req-1"
    assert request.headers["x-trace-id"] == "trace-1"


@pytest.mark.asyncio
@respx.mock
async def test_shared_client_is_not_closed(settings: BenchmarkApiSettings) -> None:
    async with httpx.AsyncClient() as http:
        client = BenchmarkApiClient(settings, http=http)
        await client.aclose()
        assert not http.is_closed


@pytest.mark.asyncio
@respx.mock
@pytest.mark.parametrize(
    ("response", "error", "reason"),
    [
        (httpx.Response(404), ProviderNotFoundError, "not_found"),
        (httpx.Response(429), ProviderUnavailableError, "rate_limited"),
        (httpx.Response(502), ProviderUnavailableError, "upstream_error"),
        (
            httpx.Response(400, json={"error": {"code": "bad_peer", "message": "unknown peer group"}}),
            ProviderPayloadError,
            "bad_request",
        ),
        (httpx.Response(200, text="<html>"), ProviderPayloadError, "non_json"),
        (httpx.Response(200, json=[1, 2]), ProviderPayloadError, "bad_shape"),
        (httpx.Response(200, json={"data": {}}), ProviderPayloadError, "bad_shape"),
    ],
)
async def test_status_and_body_mapping(
    settings: BenchmarkApiSettings, response: httpx.Response, error: type[Exception], reason: str
) -> None:
    respx.get(_METRICS_URL).mock(return_value=response)
    async with httpx.AsyncClient() as http:
        client = BenchmarkApiClient(settings, http=http)
        with pytest.raises(error) as exc_info:
            await client.list_metrics()
    assert exc_info.value.message == reason


@pytest.mark.asyncio
@respx.mock
async def test_bad_request_carries_upstream_error_details(settings: BenchmarkApiSettings) -> None:
    respx.get(f"{_BASE_URL}/benchmarks/NDR").mock(
        return_value=httpx.Response(400, json={"error": {"code": "bad_peer", "message": "nope"}}),
    )
    async with httpx.AsyncClient() as http:
        client = BenchmarkApiClient(settings, http=http)
        with pytest.raises(ProviderPayloadError) as exc_info:
            await client.get_distribution("NDR", "X")
    assert exc_info.value.details == {"status": 400, "code": "bad_peer", "message": "nope"}


@pytest.mark.asyncio
@respx.mock
async def test_transport_failures_become_unavailable(settings: BenchmarkApiSettings) -> None:
    respx.get(_METRICS_URL).mock(side_effect=httpx.ConnectTimeout("slow"))
    respx.get(f"{_BASE_URL}/benchmarks/NDR").mock(side_effect=httpx.ConnectError("refused"))
    async with httpx.AsyncClient() as http:
        client = BenchmarkApiClient(settings, http=http)
        with pytest.raises(ProviderUnavailableError) as timeout:
            await client.list_metrics()
        with pytest.raises(ProviderUnavailableError) as transport:
            await client.get_distribution("NDR", "X")
    assert timeout.value.message == "timeout"
    assert transport.value.message == "transport_error"


@pytest.mark.asyncio
@respx.mock
async def test_retries_unavailable_then_succeeds(settings: BenchmarkApiSettings) -> None:
    route = respx.get(_METRICS_URL).mock(
        side_effect=[httpx.Response(503), httpx.Response(200, json={"data": []})],
    )
    policy = RetryPolicy(total=2, base=0.0, cap=0.0, jitter=False)
    async with httpx.AsyncClient() as http:
        client = BenchmarkApiClient(settings, http=http, retry_policy=policy)
        assert await client.list_metrics() == []
    assert route.call_count == 2


@pytest.mark.asyncio
@respx.mock
async def test_not_found_is_not_retried(settings: BenchmarkApiSettings) -> None:
    route = respx.get(_METRICS_URL).mock(return_value=httpx.Response(404))
    policy = RetryPolicy(total=3, base=0.0, cap=0.0, jitter=False)
    async with httpx.AsyncClient() as http:
        client = BenchmarkApiClient(settings, http=http, retry_policy=policy)
        with pytest.raises(ProviderNotFoundError):
            await client.list_metrics()
    assert route.call_count == 1


@pytest.mark.asyncio
@respx.mock
async def test_open_breaker_short_circuits(settings: BenchmarkApiSettings) -> None:
    route = respx.get(_METRICS_URL).mock(return_value=httpx.Response(500))
    breaker = CircuitBreaker(failure_threshold=2, recovery_timeout_s=60.0)
    async with httpx.AsyncClient() as http:
        client = BenchmarkApiClient(settings, http=http, breaker=breaker)
        for _ in range(2):
            with pytest.raises(ProviderUnavailableError):
                await client.list_metrics()
        with pytest.raises(ProviderUnavailableError) as exc_info:
            await client.list_metrics()
    assert exc_info.value.message == "circuit_open"
    assert route.call_count == 2


@pytest.mark.asyncio
@respx.mock
async def test_trend_path_and_params(settings: BenchmarkApiSettings) -> None:
    route = respx.get(f"{_BASE_URL}/benchmarks/trends/NDR").mock(
        return_value=httpx.Response(200, json={"data": {"points": []}}),
    )
    async with httpx.AsyncClient() as http:
        client = BenchmarkApiClient(settings, http=http)
        assert await client.get_trend("NDR", "MONTHLY") == {"points": []}
    assert route.calls.last.request.url.params["timeframe"] == "MONTHLY"
