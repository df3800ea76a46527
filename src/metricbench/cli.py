# Copyright (c)
# SPDX-License-Identifier: MIT
"""Metricbench CLI: catalog, validation, comparison and batch calculation.

Commands:
    catalog                          List metric definitions.
    validate METRIC_ID VALUE         Validate a value against its metric rules.
    compare METRIC_ID VALUE          Percentile of a value within a peer group.
    calculate FILE                   Run a JSON batch of calculation requests.

Environment:
    BENCHMARK_API_BASE_URL   Provider base URL; unset means the built-in
                             in-memory provider.
    BENCHMARK_API_API_KEY    Optional bearer token for the provider.
    LOG_LEVEL                Root log level (default INFO).
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TypeVar

import typer

from metricbench.adapters.gateways.benchmark_gateway import HttpBenchmarkGateway
from metricbench.adapters.gateways.in_memory_gateway import InMemoryBenchmarkGateway
from metricbench.application.services.benchmark_engine import BenchmarkEngine
from metricbench.config.settings import Settings, get_settings
from metricbench.domain.entities.calculation import BatchProgress, CalculationRequest
from metricbench.domain.exceptions.metrics import (
    BatchUnavailableError,
    InvalidInputError,
    MetricbenchError,
    ValidationFailed,
)
from metricbench.domain.services.metric_formulas import format_metric_value
from metricbench.infrastructure.external_apis.benchmarks.client import BenchmarkApiClient
from metricbench.infrastructure.external_apis.benchmarks.settings import BenchmarkApiSettings
from metricbench.infrastructure.logging.logger import configure_root_logging, get_json_logger

log = get_json_logger(__name__)

app = typer.Typer(add_completion=False, no_args_is_help=True)

T = TypeVar("T")


@app.callback()
def main() -> None:
    """Benchmark SaaS metrics against peer-group distributions."""
    configure_root_logging(get_settings().log_level.upper())


def _run(settings: Settings, work: Callable[[BenchmarkEngine], Awaitable[T]]) -> T:
    """Build an engine over the configured provider, run ``work`` and clean up."""

    async def _go() -> T:
        client: BenchmarkApiClient | None = None
        if settings.benchmark_api_base_url:
            api_settings = BenchmarkApiSettings(base_url=settings.benchmark_api_base_url)
            client = BenchmarkApiClient(api_settings)
            provider: Any = HttpBenchmarkGateway(client)
        else:
            provider = InMemoryBenchmarkGateway()
        try:
            async with BenchmarkEngine.from_settings(settings, provider) as engine:
                return await work(engine)
        finally:
            if client is not None:
                await client.aclose()

    try:
        return asyncio.run(_go())
    except InvalidInputError as exc:
        typer.echo(f"error: {exc.message}", err=True)
        raise typer.Exit(code=2) from exc
    except MetricbenchError as exc:
        log.error("cli.failed", extra={"extra": {"code": exc.code, "details": exc.details}})
        typer.echo(f"error [{exc.code}]: {exc.message}", err=True)
        raise typer.Exit(code=1) from exc


def _load_requests(path: Path) -> list[CalculationRequest]:
    try:
        rows = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise typer.BadParameter(f"cannot read {path}: {exc}") from exc
    if not isinstance(rows, list):
        raise typer.BadParameter("expected a JSON list of requests")
    requests: list[CalculationRequest] = []
    for position, row in enumerate(rows, start=1):
        if not isinstance(row, dict):
            raise typer.BadParameter(f"item {position} is not an object")
        try:
            requests.append(
                CalculationRequest(
                    metric_id=row.get("metricId", row.get("metric_id")),
                    value=row.get("value"),
                    peer_group_id=row.get("peerGroupId", row.get("peer_group_id")),
                    timeframe=row.get("timeframe", "ANNUAL"),
                )
            )
        except InvalidInputError as exc:
            raise typer.BadParameter(f"item {position}: {exc.message}") from exc
    return requests


@app.command("catalog")
def catalog() -> None:
    """List every metric definition with its unit and rules."""
    definitions = _run(get_settings(), lambda engine: engine.list_definitions())
    for d in definitions:
        rules = ", ".join(type(rule).__name__ for rule in d.validation_rules) or "-"
        typer.echo(f"{d.metric_id:<18} {d.name:<28} {d.unit.value:<10} {d.timeframe.value:<9} {rules}")


@app.command("validate")
def validate_value(
    metric_id: str = typer.Argument(..., help="Metric id, e.g. NDR."),  # noqa: B008
    value: float = typer.Argument(..., help="Metric value."),  # noqa: B008
) -> None:
    """Validate VALUE against the rules of METRIC_ID."""
    result = _run(get_settings(), lambda engine: engine.validate(value, metric_id))
    for warning in result.warnings:
        typer.echo(f"warning: {warning}")
    if not result.is_valid:
        for error in result.errors:
            typer.echo(f"invalid: {error}")
        raise typer.Exit(code=1)
    typer.echo("valid")


@app.command("compare")
def compare(
    metric_id: str = typer.Argument(..., help="Metric id, e.g. NDR."),  # noqa: B008
    value: float = typer.Argument(..., help="Metric value."),  # noqa: B008
    peer_group: str = typer.Option(..., "--peer-group", "-p", help="Peer group id."),  # noqa: B008
) -> None:
    """Report the percentile of VALUE within the peer group's distribution."""
    try:
        result = _run(get_settings(), lambda engine: engine.compare(value, metric_id, peer_group))
    except typer.Exit as exc:
        if isinstance(exc.__cause__, ValidationFailed):
            for error in exc.__cause__.errors[1:]:
                typer.echo(f"invalid: {error}", err=True)
        raise
    unit = result.metric.unit
    typer.echo(
        f"{result.metric.name}: {format_metric_value(result.value, unit)} "
        f"is at the {result.percentile:.1f}th percentile of {peer_group}"
    )
    brackets = "  ".join(
        f"{label}={format_metric_value(v, unit)}" for label, v in result.distribution.as_dict().items()
    )
    typer.echo(brackets)
    for warning in result.warnings:
        typer.echo(f"warning: {warning}")


@app.command("calculate")
def calculate(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON list of requests."),  # noqa: B008
    retry_failed: bool = typer.Option(False, "--retry-failed", help="Retry failed items once."),  # noqa: B008
) -> None:
    """Calculate a batch of requests read from FILE.

    Each item is an object with ``metricId``, ``value``, ``peerGroupId`` and
    an optional ``timeframe`` (MONTHLY / QUARTERLY / ANNUAL).
    """
    requests = _load_requests(file)

    def _progress(progress: BatchProgress) -> None:
        typer.echo(f"progress {progress.completed}/{progress.total} ({progress.percent:.0f}%)")

    async def _work(engine: BenchmarkEngine) -> Any:
        try:
            outcome = await engine.calculate_batch(requests, on_progress=_progress)
        except BatchUnavailableError as exc:
            for result in exc.results:
                typer.echo(f"{result.metric_id:<18} {result.status.value:<10} {result.reason or ''}")
            raise
        if retry_failed and outcome.failed:
            outcome = await engine.retry_failed(outcome, on_progress=_progress)
        return outcome

    outcome = _run(get_settings(), _work)
    for result in outcome.results:
        if result.ok and result.percentile is not None:
            detail = f"p={result.percentile:.1f}"
        else:
            detail = "; ".join(result.errors) or (result.reason or "")
        typer.echo(f"{result.metric_id:<18} {result.status.value:<10} {detail}")
    typer.echo(
        f"done: {len(outcome.succeeded)} ok, {len(outcome.invalid)} invalid, "
        f"{len(outcome.failed)} failed"
    )


if __name__ == "__main__":
    app()
