# tests/conftest.py
from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from datetime import date
from typing import Any

import pytest

from metricbench.application.services.benchmark_engine import BenchmarkEngine
from metricbench.domain.entities.distribution import DistributionPoint
from metricbench.domain.entities.metric_definition import MetricDefinition
from metricbench.domain.entities.trend import TrendPoint, TrendSeries
from metricbench.domain.enums.metric import MetricTimeframe
from metricbench.domain.exceptions.metrics import DistributionFetchError, TrendFetchError
from metricbench.domain.services.metric_catalog import BUILTIN_DEFINITIONS

PEER_GROUP = "ARR_1M_5M"


class FakeClock:
    """Manually advanced clock returning seconds."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance_ms(self, ms: float) -> None:
        self.now += ms / 1000.0


def make_distribution(
    metric_id: str = "NDR",
    peer_group_id: str = PEER_GROUP,
    values: tuple[float, float, float, float, float] = (60.0, 80.0, 100.0, 120.0, 140.0),
) -> DistributionPoint:
    p10, p25, p50, p75, p90 = values
    return DistributionPoint(
        metric_id=metric_id,
        peer_group_id=peer_group_id,
        p10=p10,
        p25=p25,
        p50=p50,
        p75=p75,
        p90=p90,
        source="test",
    )


class RecordingProvider:
    """Provider stub recording every call.

    * ``distribution_errors`` / ``trend_errors`` map a metric id (or
      ``(metric_id, peer_group_id)``) to an exception raised for it.
    * ``delay_s`` maps a metric id to an artificial fetch delay.
    * ``definition_error`` is raised by ``fetch_definitions`` when set.
    """

    def __init__(self, definitions: Sequence[MetricDefinition] = BUILTIN_DEFINITIONS) -> None:
        self.definitions: list[MetricDefinition] = list(definitions)
        self.definition_error: Exception | None = None
        self.distribution_errors: dict[Any, Exception] = {}
        self.trend_errors: dict[str, Exception] = {}
        self.delay_s: dict[str, float] = {}
        self.distribution_values: dict[str, tuple[float, float, float, float, float]] = {}
        self.definition_calls = 0
        self.distribution_calls: list[tuple[str, str]] = []
        self.trend_calls: list[tuple[str, MetricTimeframe]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def fetch_definitions(self) -> list[MetricDefinition]:
        self.definition_calls += 1
        if self.definition_error is not None:
            raise self.definition_error
        return list(self.definitions)

    async def fetch_distribution(self, metric_id: str, peer_group_id: str) -> DistributionPoint:
        self.distribution_calls.append((metric_id, peer_group_id))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay_s.get(metric_id, 0))
            error = self.distribution_errors.get(
                (metric_id, peer_group_id), self.distribution_errors.get(metric_id)
            )
            if error is not None:
                raise error
            values = self.distribution_values.get(metric_id)
            if values is not None:
                return make_distribution(metric_id, peer_group_id, values)
            return make_distribution(metric_id, peer_group_id)
        finally:
            self.in_flight -= 1

    async def fetch_trend(self, metric_id: str, timeframe: MetricTimeframe) -> TrendSeries:
        self.trend_calls.append((metric_id, timeframe))
        error = self.trend_errors.get(metric_id)
        if error is not None:
            raise error
        return TrendSeries(
            metric_id=metric_id,
            timeframe=timeframe,
            points=(TrendPoint(period=date(2024, 1, 1), value=1.0),),
        )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def provider() -> RecordingProvider:
    return RecordingProvider()


@pytest.fixture
def make_engine(
    provider: RecordingProvider, clock: FakeClock
) -> Callable[..., BenchmarkEngine]:
    """Factory building a :class:`BenchmarkEngine` over the recording provider."""

    def _make(**overrides: Any) -> BenchmarkEngine:
        kwargs: dict[str, Any] = {"clock": clock, "fetch_timeout_s": 1.0}
        kwargs.update(overrides)
        return BenchmarkEngine(provider, provider, provider, **kwargs)

    return _make


@pytest.fixture
def distribution_error() -> Callable[[str], DistributionFetchError]:
    return lambda metric_id: DistributionFetchError("upstream down", details={"metric_id": metric_id})


@pytest.fixture
def trend_error() -> Callable[[str], TrendFetchError]:
    return lambda metric_id: TrendFetchError("trend down", details={"metric_id": metric_id})


@pytest.fixture
def distribution_factory() -> Callable[..., DistributionPoint]:
    return make_distribution
