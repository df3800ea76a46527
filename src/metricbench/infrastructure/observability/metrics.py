# Copyright (c)
# SPDX-License-Identifier: MIT
"""Prometheus metrics utilities (registry-aware, hot-reload safe).

Every collector is obtained through a ``get_*`` accessor that returns a
singleton bound to the **current** ``prometheus_client.REGISTRY``:

    * Safe under tests that swap the default registry.
    * No duplicate-registration errors on re-import.
    * The module cache resets automatically when the active registry changes.

Collectors:
    * ``metricbench_cache_operations_total`` (cache, operation, hit)
    * ``metricbench_cache_evictions_total`` (cache, reason)
    * ``metricbench_provider_fetch_seconds`` (provider, endpoint, outcome)
    * ``metricbench_batch_items_total`` (status)
    * ``metricbench_batch_duration_seconds``

Example:
    get_cache_operations_total().labels(cache="results", operation="get", hit="true").inc()
"""

from __future__ import annotations

import logging
import threading
from contextlib import suppress
from typing import Final

import prometheus_client as prom
from prometheus_client import Counter, Histogram

_log = logging.getLogger(__name__)

_BUCKETS: Final[tuple[float, ...]] = (
    0.005,
    0.010,
    0.025,
    0.050,
    0.100,
    0.250,
    0.500,
    1.000,
    2.500,
    5.000,
    10.000,
)

_registry_id: int | None = None
_hist_cache: dict[str, Histogram] = {}
_counter_cache: dict[str, Counter] = {}
_lock = threading.RLock()


def _ensure_registry() -> None:
    """Reset caches if the active registry changed."""
    global _registry_id
    with _lock:
        rid = id(prom.REGISTRY)
        if _registry_id != rid:
            _hist_cache.clear()
            _counter_cache.clear()
            _registry_id = rid


def _lookup_existing(name: str, kind: type[Counter] | type[Histogram]) -> Counter | Histogram | None:
    """Return a previously-registered collector of ``kind`` from the active registry."""
    with _lock, suppress(Exception):
        mapping = getattr(prom.REGISTRY, "_names_to_collectors", None)
        if isinstance(mapping, dict):
            col = mapping.get(name)
            if isinstance(col, kind):
                return col
    return None


def _get_or_create_hist(
    name: str,
    help_text: str,
    *,
    buckets: tuple[float, ...] = _BUCKETS,
    labelnames: tuple[str, ...] = (),
) -> Histogram:
    """Get or create a registry-bound ``Histogram`` with stable identity."""
    _ensure_registry()
    with _lock:
        cached = _hist_cache.get(name)
        if cached is not None:
            return cached

        existing = _lookup_existing(name, Histogram)
        if isinstance(existing, Histogram):
            _hist_cache[name] = existing
            return existing

        try:
            hist = Histogram(name, help_text, labelnames, buckets=buckets, registry=prom.REGISTRY)
        except ValueError as exc:
            if "Duplicated timeseries" in str(exc):
                again = _lookup_existing(name, Histogram)
                if isinstance(again, Histogram):
                    _hist_cache[name] = again
                    return again
            _log.exception("Failed to register Prometheus histogram %s", name)
            raise
        _hist_cache[name] = hist
        return hist


def _get_or_create_counter(
    name: str,
    help_text: str,
    *,
    labelnames: tuple[str, ...] = (),
) -> Counter:
    """Get or create a registry-bound ``Counter`` with stable identity."""
    _ensure_registry()
    with _lock:
        cached = _counter_cache.get(name)
        if cached is not None:
            return cached

        existing = _lookup_existing(name, Counter)
        if isinstance(existing, Counter):
            _counter_cache[name] = existing
            return existing

        try:
            counter = Counter(name, help_text, labelnames, registry=prom.REGISTRY)
        except ValueError as exc:
            if "Duplicated timeseries" in str(exc):
                again = _lookup_existing(name, Counter)
                if isinstance(again, Counter):
                    _counter_cache[name] = again
                    return again
            _log.exception("Failed to register Prometheus counter %s", name)
            raise
        _counter_cache[name] = counter
        return counter


# ---------------------------------------------------------------------------
# Cache metrics
# ---------------------------------------------------------------------------


def get_cache_operations_total() -> Counter:
    """Return counter for in-memory cache operations.

    Labels:
        cache: Cache name (``definitions`` / ``results`` / ``distributions``).
        operation: ``get`` / ``put`` / ``invalidate``.
        hit: ``true`` / ``false`` / ``n/a``.
    """
    return _get_or_create_counter(
        name="metricbench_cache_operations_total",
        help_text="Total in-memory cache operations by cache/operation/outcome.",
        labelnames=("cache", "operation", "hit"),
    )


def get_cache_evictions_total() -> Counter:
    """Return counter for evicted cache entries.

    Labels:
        cache: Cache name.
        reason: ``lazy`` (expired on read) or ``sweep`` (periodic sweep).
    """
    return _get_or_create_counter(
        name="metricbench_cache_evictions_total",
        help_text="Expired cache entries removed, by cache and eviction path.",
        labelnames=("cache", "reason"),
    )


# ---------------------------------------------------------------------------
# Provider / engine metrics
# ---------------------------------------------------------------------------


def get_provider_fetch_seconds() -> Histogram:
    """Return histogram for external provider fetch latency.

    Labels:
        provider: Logical provider name (e.g. ``benchmarks``).
        endpoint: ``definitions`` / ``distribution`` / ``trend``.
        outcome: ``success`` / ``error`` / ``timeout``.
    """
    return _get_or_create_hist(
        name="metricbench_provider_fetch_seconds",
        help_text="Latency (seconds) of external benchmark provider fetches.",
        labelnames=("provider", "endpoint", "outcome"),
    )


def get_batch_items_total() -> Counter:
    """Return counter for batch items by terminal status.

    Labels:
        status: Terminal :class:`CalculationStatus` value.
    """
    return _get_or_create_counter(
        name="metricbench_batch_items_total",
        help_text="Calculation batch items by terminal status.",
        labelnames=("status",),
    )


def get_batch_duration_seconds() -> Histogram:
    """Return histogram for end-to-end ``calculate_batch`` latency."""
    return _get_or_create_hist(
        name="metricbench_batch_duration_seconds",
        help_text="Latency (seconds) of calculate_batch calls.",
    )


__all__ = [
    "get_batch_duration_seconds",
    "get_batch_items_total",
    "get_cache_evictions_total",
    "get_cache_operations_total",
    "get_provider_fetch_seconds",
]
