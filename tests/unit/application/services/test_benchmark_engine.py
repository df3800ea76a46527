from __future__ import annotations

import pytest

from metricbench.application.services.benchmark_engine import BenchmarkEngine
from metricbench.config.settings import Settings
from metricbench.domain.entities.calculation import CalculationRequest
from metricbench.domain.enums.calculation_status import CalculationStatus
from metricbench.domain.exceptions.metrics import (
    DefinitionFetchError,
    DistributionFetchError,
    FetchTimeoutError,
    InvalidInputError,
    UnknownMetricError,
    ValidationFailed,
)

PEER = "ARR_1M_5M"


# --------------------------------------------------------------------------- #
# compare
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio
async def test_compare_interpolates_between_brackets(make_engine) -> None:
    engine = make_engine()
    result = await engine.compare(130, "NDR", PEER)
    assert result.percentile == pytest.approx(82.5)
    assert result.metric.metric_id == "NDR"
    assert result.value == 130.0


@pytest.mark.asyncio
async def test_compare_caches_distribution_per_pair(make_engine, provider, clock) -> None:
    engine = make_engine(distribution_ttl_ms=1000)
    await engine.compare(110, "NDR", PEER)
    await engine.compare(120, "NDR", PEER)
    await engine.compare(120, "NDR", "ARR_0_1M")
    assert provider.distribution_calls == [("NDR", PEER), ("NDR", "ARR_0_1M")]

    clock.advance_ms(1001)
    await engine.compare(120, "NDR", PEER)
    assert len(provider.distribution_calls) == 3


@pytest.mark.asyncio
async def test_compare_surfaces_near_threshold_warning(make_engine) -> None:
    result = await make_engine().compare(5, "NDR", PEER)
    assert result.warnings == ("Value is near the lower threshold of 0",)
    assert result.percentile == 0


@pytest.mark.asyncio
async def test_compare_unknown_metric(make_engine, provider) -> None:
    with pytest.raises(UnknownMetricError) as exc_info:
        await make_engine().compare(1, "NOPE", PEER)
    assert exc_info.value.message == "Unknown metric: NOPE"
    assert provider.distribution_calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize("value", ["12", float("nan"), True, None])
async def test_compare_rejects_non_numeric_before_io(make_engine, provider, value) -> None:
    with pytest.raises(InvalidInputError):
        await make_engine().compare(value, "NDR", PEER)
    assert provider.definition_calls == 0


@pytest.mark.asyncio
async def test_compare_rejects_rule_violation(make_engine, provider) -> None:
    with pytest.raises(ValidationFailed) as exc_info:
        await make_engine().compare(250, "NDR", PEER)
    assert exc_info.value.errors == ("NDR must be between 0% and 200%",)
    assert provider.distribution_calls == []


@pytest.mark.asyncio
async def test_compare_propagates_fetch_failures(make_engine, provider, distribution_error) -> None:
    provider.distribution_errors["NDR"] = distribution_error("NDR")
    with pytest.raises(DistributionFetchError):
        await make_engine().compare(110, "NDR", PEER)


@pytest.mark.asyncio
async def test_compare_times_out(make_engine, provider) -> None:
    provider.delay_s["NDR"] = 0.5
    with pytest.raises(FetchTimeoutError):
        await make_engine(fetch_timeout_s=0.05).compare(110, "NDR", PEER)


# --------------------------------------------------------------------------- #
# validate
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio
async def test_validate_reports_rule_failure(make_engine) -> None:
    result = await make_engine().validate(250, "NDR")
    assert not result.is_valid
    assert result.errors == ("NDR must be between 0% and 200%",)


@pytest.mark.asyncio
async def test_validate_missing_required_value(make_engine) -> None:
    engine = make_engine()
    assert (await engine.validate(None, "NDR")).errors == ("This field is required",)
    assert (await engine.validate(None, "MAGIC_NUMBER")).is_valid


@pytest.mark.asyncio
async def test_validate_unknown_metric_raises(make_engine) -> None:
    with pytest.raises(UnknownMetricError):
        await make_engine().validate(1, "NOPE")


@pytest.mark.asyncio
async def test_validate_or_raise(make_engine) -> None:
    engine = make_engine()
    assert (await engine.validate_or_raise(110, "NDR")).is_valid
    with pytest.raises(ValidationFailed) as exc_info:
        await engine.validate_or_raise(-1, "ARR")
    assert exc_info.value.message == "ARR cannot be negative"


@pytest.mark.asyncio
async def test_validate_batch_never_raises_per_item(make_engine, provider) -> None:
    results = await make_engine().validate_batch(
        [("NDR", 110), ("NOPE", 1), ("NDR", "abc"), ("NDR", 250)]
    )
    assert [r.is_valid for r in results] == [True, False, False, False]
    assert results[1].errors == ("Unknown metric: NOPE",)
    assert results[2].errors == ("value must be a number",)
    assert provider.definition_calls == 1


@pytest.mark.asyncio
async def test_catalog_failure_propagates(make_engine, provider) -> None:
    provider.definition_error = RuntimeError("boom")
    with pytest.raises(DefinitionFetchError):
        await make_engine().validate(1, "NDR")


# --------------------------------------------------------------------------- #
# batch, caches, lifecycle
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio
async def test_batch_and_retry_through_facade(make_engine, provider, distribution_error) -> None:
    provider.distribution_errors[("NDR", "ARR_0_1M")] = distribution_error("NDR")
    engine = make_engine()
    requests = [
        CalculationRequest(metric_id="NDR", value=110, peer_group_id=PEER),
        CalculationRequest(metric_id="NDR", value=110, peer_group_id="ARR_0_1M"),
    ]
    outcome = await engine.calculate_batch(requests)
    assert [r.status for r in outcome.results] == [
        CalculationStatus.COMPLETED,
        CalculationStatus.FAILED,
    ]

    provider.distribution_errors.clear()
    retried = await engine.retry_failed(outcome)
    assert [r.status for r in retried.results] == [CalculationStatus.COMPLETED] * 2


@pytest.mark.asyncio
async def test_cache_status_aggregates_every_cache(make_engine, clock) -> None:
    engine = make_engine()
    empty = engine.get_cache_status()
    assert empty.size == 0
    assert empty.oldest_entry_age_ms is None

    await engine.list_definitions()
    clock.advance_ms(250)
    await engine.compare(110, "NDR", PEER)
    await engine.calculate_batch([CalculationRequest(metric_id="NDR", value=110, peer_group_id=PEER)])

    status = engine.get_cache_status()
    # Nine definitions, one distribution, one result.
    assert status.size == 11
    assert status.oldest_entry_age_ms == pytest.approx(250)


@pytest.mark.asyncio
async def test_lifecycle_starts_and_stops_sweepers(make_engine) -> None:
    engine = make_engine()
    async with engine:
        assert engine.registry._cache.running
        assert engine.calculator._cache.running
        assert engine.comparisons._cache.running
        engine.start()
    assert not engine.registry._cache.running
    await engine.stop()


def test_from_settings_wires_ttls(provider) -> None:
    settings = Settings(
        DEFINITION_CACHE_TTL_S=60,
        RESULT_CACHE_TTL_S=30,
        DISTRIBUTION_CACHE_TTL_S=120,
        BATCH_SIZE=3,
    )
    engine = BenchmarkEngine.from_settings(settings, provider)
    assert engine.registry.ttl_ms == 60_000
    assert engine.calculator.batch_size == 3


def test_result_ttl_must_be_shorter_than_definition_ttl(provider) -> None:
    with pytest.raises(ValueError):
        BenchmarkEngine(provider, provider, provider, definition_ttl_ms=1000, result_ttl_ms=1000)
