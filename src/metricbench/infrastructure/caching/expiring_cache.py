# Copyright (c)
# SPDX-License-Identifier: MIT
"""In-process expiring cache.

Synopsis:
    Keyed store where every entry carries an absolute expiry instant. Reads
    evict lazily (an expired entry is deleted on ``get`` and reported as a
    miss); an optional background asyncio task sweeps expired entries on a
    fixed interval so memory is reclaimed for keys nobody reads again.

Design:
    * Clock is injectable (``clock() -> seconds``) so expiry is testable
      without sleeping. Defaults to ``time.monotonic``.
    * TTLs are given in milliseconds; ``ttl_ms <= 0`` is rejected.
    * No locking: access is single-threaded and cooperative (asyncio).
    * The sweep task is owned by the cache: ``start()`` / ``stop()`` are
      idempotent and the cache is also an async context manager.
    * Hits, misses and evictions are counted in Prometheus under the cache's
      ``name`` label.

Layer:
    infrastructure/caching
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Hashable
from contextlib import suppress
from dataclasses import dataclass
from types import TracebackType
from typing import Generic, TypeVar

from metricbench.infrastructure.logging.logger import get_json_logger
from metricbench.infrastructure.observability.metrics import (
    get_cache_evictions_total,
    get_cache_operations_total,
)

__all__ = ["CacheEntry", "CacheStatus", "ExpiringCache", "DEFAULT_SWEEP_INTERVAL_S"]

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

#: Default period of the background sweep (5 minutes).
DEFAULT_SWEEP_INTERVAL_S = 300.0

logger = get_json_logger(__name__)


@dataclass(frozen=True, slots=True)
class CacheEntry(Generic[V]):
    """A cached value with its creation and expiry instants (clock seconds)."""

    value: V
    created_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at


@dataclass(frozen=True, slots=True)
class CacheStatus:
    """Point-in-time summary of one or more caches."""

    size: int
    oldest_entry_age_ms: float | None

    @classmethod
    def combine(cls, *statuses: CacheStatus) -> CacheStatus:
        """Aggregate several statuses: sizes add up, the oldest age wins."""
        ages = [s.oldest_entry_age_ms for s in statuses if s.oldest_entry_age_ms is not None]
        return cls(size=sum(s.size for s in statuses), oldest_entry_age_ms=max(ages) if ages else None)


class ExpiringCache(Generic[K, V]):
    """Single-process TTL cache with lazy expiry and an optional sweep task."""

    def __init__(
        self,
        *,
        name: str = "default",
        clock: Callable[[], float] = time.monotonic,
        sweep_interval_s: float = DEFAULT_SWEEP_INTERVAL_S,
    ) -> None:
        """Initialize the cache.

        Args:
            name: Label used in logs and metrics.
            clock: Returns the current time in seconds.
            sweep_interval_s: Period of the background sweep started by
                :meth:`start`.

        Raises:
            ValueError: If ``sweep_interval_s`` is not positive.
        """
        if sweep_interval_s <= 0:
            raise ValueError("sweep_interval_s must be positive")
        self._name = name
        self._clock = clock
        self._sweep_interval_s = float(sweep_interval_s)
        self._entries: dict[K, CacheEntry[V]] = {}
        self._sweeper: asyncio.Task[None] | None = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def running(self) -> bool:
        """True while the background sweep task is alive."""
        return self._sweeper is not None and not self._sweeper.done()

    # ------------------------------------------------------------------ #
    # Core operations
    # ------------------------------------------------------------------ #

    def put(self, key: K, value: V, ttl_ms: float) -> None:
        """Store ``value`` under ``key`` for ``ttl_ms`` milliseconds, overwriting."""
        if ttl_ms <= 0:
            raise ValueError("ttl_ms must be positive")
        now = self._clock()
        self._entries[key] = CacheEntry(value=value, created_at=now, expires_at=now + ttl_ms / 1000.0)
        with suppress(Exception):
            get_cache_operations_total().labels(cache=self._name, operation="put", hit="n/a").inc()

    def get(self, key: K) -> V | None:
        """Return the live value for ``key`` or ``None``; expired entries are dropped."""
        entry = self._entries.get(key)
        hit = False
        if entry is not None:
            if entry.is_expired(self._clock()):
                del self._entries[key]
                with suppress(Exception):
                    get_cache_evictions_total().labels(cache=self._name, reason="lazy").inc()
            else:
                hit = True
        with suppress(Exception):
            get_cache_operations_total().labels(
                cache=self._name, operation="get", hit="true" if hit else "false"
            ).inc()
        return entry.value if hit and entry is not None else None

    def invalidate(self, key: K) -> bool:
        """Remove ``key``; returns True if an entry was present."""
        removed = self._entries.pop(key, None) is not None
        with suppress(Exception):
            get_cache_operations_total().labels(
                cache=self._name, operation="invalidate", hit="true" if removed else "false"
            ).inc()
        return removed

    def clear(self) -> None:
        self._entries.clear()

    def size(self) -> int:
        """Number of stored entries, expired-but-unswept ones included."""
        return len(self._entries)

    def oldest_entry_timestamp(self) -> float | None:
        """Clock reading at which the oldest stored entry was written."""
        if not self._entries:
            return None
        return min(entry.created_at for entry in self._entries.values())

    def oldest_entry_age_ms(self) -> float | None:
        oldest = self.oldest_entry_timestamp()
        if oldest is None:
            return None
        return (self._clock() - oldest) * 1000.0

    def values(self) -> list[V]:
        """Live (non-expired) values in insertion order."""
        now = self._clock()
        return [entry.value for entry in self._entries.values() if not entry.is_expired(now)]

    def status(self) -> CacheStatus:
        return CacheStatus(size=self.size(), oldest_entry_age_ms=self.oldest_entry_age_ms())

    def sweep(self) -> int:
        """Remove every expired entry and return how many were removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        if expired:
            with suppress(Exception):
                get_cache_evictions_total().labels(cache=self._name, reason="sweep").inc(len(expired))
            logger.debug(
                "cache.sweep",
                extra={"extra": {"cache": self._name, "evicted": len(expired), "size": len(self._entries)}},
            )
        return len(expired)

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def _sweep_forever(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval_s)
            try:
                self.sweep()
            except Exception:  # noqa: BLE001
                logger.exception("cache.sweep_failed", extra={"extra": {"cache": self._name}})

    def start(self) -> None:
        """Schedule the periodic sweep on the running loop (idempotent)."""
        if self.running:
            return
        self._sweeper = asyncio.get_running_loop().create_task(
            self._sweep_forever(), name=f"expiring-cache-sweep:{self._name}"
        )
        logger.debug(
            "cache.sweep_started",
            extra={"extra": {"cache": self._name, "interval_s": self._sweep_interval_s}},
        )

    async def stop(self) -> None:
        """Cancel and await the sweep task (idempotent)."""
        task, self._sweeper = self._sweeper, None
        if task is None:
            return
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task
        logger.debug("cache.sweep_stopped", extra={"extra": {"cache": self._name}})

    async def __aenter__(self) -> ExpiringCache[K, V]:
        self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.stop()

    def __len__(self) -> int:
        return self.size()

    def __repr__(self) -> str:
        return f"ExpiringCache(name={self._name!r}, size={len(self._entries)})"

