# Copyright (c)
# SPDX-License-Identifier: MIT
"""Benchmark Provider Transport Client (async, instrumented).

This transport is framework-agnostic and provides:

* Async HTTP (httpx) with per-request timeout.
* Optional jittered exponential retries (bounded, off by default).
* Circuit breaker (CLOSED / OPEN / HALF-OPEN).
* Request/trace id propagation on outbound calls.
* Deterministic mapping of HTTP statuses to provider errors.
* Prometheus latency histogram + OpenTelemetry spans.

Endpoints:
* ``GET /metrics`` -> ``{"data": [definition, ...]}``
* ``GET /benchmarks/{metric_id}?peerGroupId=`` -> ``{"data": distribution}``
* ``GET /benchmarks/trends/{metric_id}?timeframe=`` -> ``{"data": trend}``

Payloads are returned as parsed mappings; entity mapping belongs to the
gateway adapter.
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from contextlib import suppress
from typing import Any, Final
from urllib.parse import quote

import httpx

from metricbench.domain.exceptions.provider import (
    ProviderNotFoundError,
    ProviderPayloadError,
    ProviderUnavailableError,
)
from metricbench.infrastructure.external_apis.benchmarks.settings import BenchmarkApiSettings
from metricbench.infrastructure.logging.logger import get_json_logger, get_request_id, get_trace_id
from metricbench.infrastructure.observability.metrics import get_provider_fetch_seconds
from metricbench.infrastructure.observability.tracing import traced
from metricbench.infrastructure.resilience.circuit_breaker import CircuitBreaker, CircuitOpenError
from metricbench.infrastructure.resilience.retry import RetryPolicy, retry_async

_PROVIDER: Final[str] = "benchmarks"
_DEFAULT_BASE_BACKOFF: Final[float] = 0.25
_DEFAULT_MAX_BACKOFF: Final[float] = 2.5

_DEFAULT_HEADERS: Final[dict[str, str]] = {
    "Accept": "application/json",
    "User-Agent": "metricbench-client/1.0",
}

logger = get_json_logger(__name__)


class BenchmarkApiClient:
    """Resilient, instrumented transport client for the benchmark provider."""

    def __init__(
        self,
        settings: BenchmarkApiSettings,
        *,
        http: httpx.AsyncClient | None = None,
        retry_policy: RetryPolicy | None = None,
        breaker: CircuitBreaker | None = None,
    ) -> None:
        """Initialize the transport client.

        Args:
            settings: Provider settings loaded from environment or DI.
            http: Optional shared ``httpx.AsyncClient``. If omitted, a client
                is created and owned by this instance.
            retry_policy: Optional retry configuration. When omitted, a
                jittered exponential policy is built from
                ``settings.max_retries`` (0 means a single attempt).
            breaker: Circuit breaker instance to use; created if omitted.
        """
        self._settings = settings
        self._base_url = str(settings.base_url).rstrip("/")
        self._timeout = float(settings.timeout_s)

        headers = _DEFAULT_HEADERS.copy()
        if settings.api_key is not None:
            headers["Authorization"] = f"Bearer {settings.api_key.get_secret_value()}"

        self._owns_client = http is None
        self._client = http or httpx.AsyncClient(timeout=self._timeout, headers=headers)
        if http is not None:
            for key, value in headers.items():
                self._client.headers.setdefault(key, value)

        self._retry = retry_policy or RetryPolicy(
            total=int(settings.max_retries),
            base=_DEFAULT_BASE_BACKOFF,
            cap=_DEFAULT_MAX_BACKOFF,
            jitter=True,
        )
        self._breaker = breaker or CircuitBreaker(
            failure_threshold=settings.breaker_failure_threshold,
            recovery_timeout_s=settings.breaker_recovery_s,
            half_open_max_calls=1,
        )
        self._latency = get_provider_fetch_seconds()

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance owns it."""
        if self._owns_client and not self._client.is_closed:
            await self._client.aclose()

    # ---------------------------- Public API ----------------------------- #

    async def list_metrics(self) -> list[Mapping[str, Any]]:
        """Call ``GET /metrics`` and return the definition rows.

        Raises:
            ProviderPayloadError: If the body has no ``data`` list.
        """
        payload = await self._get_json(endpoint="definitions", path="/metrics")
        data = payload.get("data")
        if not isinstance(data, list):
            raise ProviderPayloadError("bad_shape", details={"expected": "data:list"})
        return data

    async def get_distribution(self, metric_id: str, peer_group_id: str) -> Mapping[str, Any]:
        """Call ``GET /benchmarks/{metric_id}`` for one peer group."""
        payload = await self._get_json(
            endpoint="distribution",
            path=f"/benchmarks/{quote(metric_id, safe='')}",
            params={"peerGroupId": peer_group_id},
        )
        return self._data_object(payload)

    async def get_trend(self, metric_id: str, timeframe: str) -> Mapping[str, Any]:
        """Call ``GET /benchmarks/trends/{metric_id}`` at ``timeframe`` granularity."""
        payload = await self._get_json(
            endpoint="trend",
            path=f"/benchmarks/trends/{quote(metric_id, safe='')}",
            params={"timeframe": timeframe},
        )
        return self._data_object(payload)

    # --------------------------- Internal helpers ------------------------- #

    @staticmethod
    def _data_object(payload: Mapping[str, Any]) -> Mapping[str, Any]:
        data = payload.get("data")
        if not isinstance(data, Mapping):
            raise ProviderPayloadError("bad_shape", details={"expected": "data:object"})
        return data

    async def _get_json(
        self,
        *,
        endpoint: str,
        path: str,
        params: Mapping[str, Any] | None = None,
    ) -> Mapping[str, Any]:
        """Wrap a GET call with breaker, retry, metrics, and tracing."""
        url = f"{self._base_url}{path}"

        headers: dict[str, str] = {}
        request_id = get_request_id()
        trace_id = get_trace_id()
        if request_id:
            headers["X-Request-ID"] = request_id
        if trace_id:
            headers["x-trace-id"] = trace_id

        async def _call() -> Mapping[str, Any]:
            """Execute a single HTTP GET under breaker control."""
            try:
                async with self._breaker.guard(_PROVIDER):
                    response = await self._client.get(
                        url,
                        params=dict(params or {}),
                        headers=headers,
                        timeout=self._timeout,
                    )
                    # 5xx counts against the breaker; 4xx does not.
                    if response.status_code >= 500:
                        raise ProviderUnavailableError(
                            "upstream_error", details={"status": response.status_code}
                        )
            except CircuitOpenError as exc:
                raise ProviderUnavailableError(
                    "circuit_open", details={"state": exc.state, "endpoint": endpoint}
                ) from exc
            except httpx.TimeoutException as exc:
                raise ProviderUnavailableError("timeout", details={"endpoint": endpoint}) from exc
            except httpx.RequestError as exc:
                raise ProviderUnavailableError("transport_error", details={"error": str(exc)}) from exc
            return self._handle_response(response)

        start = time.perf_counter()
        outcome = "success"
        try:
            async with traced(f"{_PROVIDER}.{endpoint}", provider=_PROVIDER, endpoint=endpoint):
                return await retry_async(
                    _call,
                    policy=self._retry,
                    retry_on=lambda exc: isinstance(exc, ProviderUnavailableError),
                )
        except ProviderUnavailableError as exc:
            outcome = "timeout" if exc.message == "timeout" else "error"
            logger.warning(
                "provider.unavailable",
                extra={"extra": {"endpoint": endpoint, "reason": exc.message, **exc.details}},
            )
            raise
        except (ProviderNotFoundError, ProviderPayloadError):
            outcome = "error"
            raise
        finally:
            with suppress(Exception):
                self._latency.labels(provider=_PROVIDER, endpoint=endpoint, outcome=outcome).observe(
                    time.perf_counter() - start
                )

    @staticmethod
    def _handle_response(response: httpx.Response) -> Mapping[str, Any]:
        """Map status codes to provider errors and parse the JSON body."""
        status = response.status_code
        if status == 404:
            raise ProviderNotFoundError("not_found", details={"status": status})
        if status == 429:
            raise ProviderUnavailableError("rate_limited", details={"status": status})
        if status >= 400:
            details: dict[str, Any] = {"status": status}
            with suppress(Exception):
                body = response.json()
                if isinstance(body, dict) and isinstance(body.get("error"), dict):
                    err = body["error"]
                    details.update({"code": err.get("code"), "message": err.get("message")})
            raise ProviderPayloadError("bad_request", details=details)

        try:
            payload = response.json()
        except ValueError as exc:
            raise ProviderPayloadError("non_json", details={"error": str(exc)}) from exc
        if not isinstance(payload, Mapping):
            raise ProviderPayloadError("bad_shape", details={"expected": "object"})
        return payload


__all__ = ["BenchmarkApiClient"]
