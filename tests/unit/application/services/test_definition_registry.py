from __future__ import annotations

import asyncio

import pytest

from metricbench.application.services.definition_registry import DefinitionRegistry
from metricbench.domain.entities.metric_definition import MetricDefinition
from metricbench.domain.entities.validation_rule import RangeRule
from metricbench.domain.enums.metric import MetricCategory, MetricTimeframe, MetricUnit
from metricbench.domain.exceptions.metrics import DefinitionFetchError


def _definition(metric_id: str, max_value: float = 100) -> MetricDefinition:
    return MetricDefinition(
        metric_id=metric_id,
        name=metric_id.title(),
        category=MetricCategory.FINANCIAL,
        unit=MetricUnit.PERCENTAGE,
        timeframe=MetricTimeframe.ANNUAL,
        validation_rules=(RangeRule(min_value=0, max_value=max_value, priority=1),),
    )


@pytest.mark.asyncio
async def test_second_call_is_served_from_cache(provider, clock) -> None:
    registry = DefinitionRegistry(provider, ttl_ms=1000, clock=clock)

    first = await registry.get_definitions()
    second = await registry.get_definitions()

    assert provider.definition_calls == 1
    assert [d.metric_id for d in first] == [d.metric_id for d in second]
    assert registry.get_rules("NDR") == registry.get_definition("NDR").validation_rules


@pytest.mark.asyncio
async def test_expired_cache_and_force_refresh_refetch(provider, clock) -> None:
    registry = DefinitionRegistry(provider, ttl_ms=1000, clock=clock)
    await registry.get_definitions()

    clock.advance_ms(1001)
    await registry.get_definitions()
    assert provider.definition_calls == 2

    await registry.get_definitions(force_refresh=True)
    assert provider.definition_calls == 3


@pytest.mark.asyncio
async def test_rules_expire_with_their_definition(provider, clock) -> None:
    registry = DefinitionRegistry(provider, ttl_ms=1000, clock=clock)
    await registry.get_definitions()
    assert registry.get_rules("NDR") is not None

    clock.advance_ms(1001)

    assert registry.get_definition("NDR") is None
    assert registry.get_rules("NDR") is None

    await registry.get_definitions()
    assert registry.get_rules("NDR") == registry.get_definition("NDR").validation_rules


@pytest.mark.asyncio
async def test_refresh_replaces_cache_and_index_wholesale(provider, clock) -> None:
    provider.definitions = [_definition("A"), _definition("B")]
    registry = DefinitionRegistry(provider, ttl_ms=1000, clock=clock)
    await registry.get_definitions()

    provider.definitions = [_definition("B", max_value=50)]
    refreshed = await registry.get_definitions(force_refresh=True)

    assert [d.metric_id for d in refreshed] == ["B"]
    assert registry.get_definition("A") is None
    assert registry.get_rules("A") is None
    assert registry.get_rules("B")[0].max_value == 50


@pytest.mark.asyncio
async def test_failed_refresh_keeps_previous_snapshot(provider, clock) -> None:
    provider.definitions = [_definition("A")]
    registry = DefinitionRegistry(provider, ttl_ms=1000, clock=clock)
    await registry.get_definitions()

    provider.definition_error = ConnectionError("catalog down")
    with pytest.raises(DefinitionFetchError) as exc_info:
        await registry.get_definitions(force_refresh=True)

    assert isinstance(exc_info.value.__cause__, ConnectionError)
    assert registry.get_definition("A") is not None
    assert registry.get_rules("A") is not None
    assert registry.cache_status().size == 1


@pytest.mark.asyncio
async def test_provider_domain_error_passes_through_unwrapped(provider, clock) -> None:
    registry = DefinitionRegistry(provider, ttl_ms=1000, clock=clock)
    original = DefinitionFetchError("bad payload")
    provider.definition_error = original
    with pytest.raises(DefinitionFetchError) as exc_info:
        await registry.get_definitions()
    assert exc_info.value is original


@pytest.mark.asyncio
async def test_concurrent_misses_share_one_fetch(provider, clock) -> None:
    registry = DefinitionRegistry(provider, ttl_ms=1000, clock=clock)
    results = await asyncio.gather(*(registry.get_definitions() for _ in range(5)))
    assert provider.definition_calls == 1
    assert all(len(r) == len(results[0]) for r in results)


def test_rejects_non_positive_ttl(provider) -> None:
    with pytest.raises(ValueError):
        DefinitionRegistry(provider, ttl_ms=0)
