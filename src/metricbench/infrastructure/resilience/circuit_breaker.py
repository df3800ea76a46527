# Copyright (c)
# SPDX-License-Identifier: MIT
"""Minimal async circuit breaker (in-memory).

State machine:
    - CLOSED -> count failures; when threshold reached, go OPEN.
    - OPEN   -> fail-fast until recovery timeout expires; then HALF-OPEN.
    - HALF-OPEN -> allow limited calls; on success -> CLOSED; on failure -> OPEN.

Process-local; guards the benchmark provider HTTP client.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field


class CircuitOpenError(RuntimeError):
    """Raised when the breaker rejects a call without attempting it."""

    def __init__(self, key: str, state: str) -> None:
        super().__init__(f"circuit_{state.lower()}")
        self.key = key
        self.state = state


@dataclass
class CircuitBreaker:
    """Simple circuit breaker suitable for HTTP client protection."""

    failure_threshold: int
    recovery_timeout_s: float
    half_open_max_calls: int = 1
    clock: Callable[[], float] = time.monotonic

    _state: str = "CLOSED"  # CLOSED|OPEN|HALF_OPEN
    _failures: int = 0
    _opened_at: float = 0.0
    _half_open_calls: int = 0
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    @property
    def state(self) -> str:
        return self._state

    def _trip(self) -> None:
        self._state = "OPEN"
        self._opened_at = self.clock()

    @asynccontextmanager
    async def guard(self, key: str) -> AsyncIterator[None]:
        """Guard an async call with the breaker.

        Raises:
            CircuitOpenError: When OPEN, or HALF_OPEN with no probe slots left.
        """
        async with self._lock:
            if self._state == "OPEN":
                if self.clock() - self._opened_at >= self.recovery_timeout_s:
                    self._state = "HALF_OPEN"
                    self._half_open_calls = 0
                else:
                    raise CircuitOpenError(key, "OPEN")
            if self._state == "HALF_OPEN":
                if self._half_open_calls >= self.half_open_max_calls:
                    raise CircuitOpenError(key, "HALF_OPEN_LIMIT")
                self._half_open_calls += 1

        try:
            yield
        except Exception:
            async with self._lock:
                if self._state == "HALF_OPEN":
                    self._trip()
                else:
                    self._failures += 1
                    if self._failures >= self.failure_threshold:
                        self._trip()
            raise
        else:
            async with self._lock:
                self._state = "CLOSED"
                self._failures = 0
