# Copyright (c)
# SPDX-License-Identifier: MIT
"""Retry utilities (async) with jittered exponential backoff.

Used only by the provider transport; the calculation engine itself never
retries.
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Configuration for retry attempts."""

    total: int  # retries after the first attempt
    base: float  # base backoff seconds
    cap: float  # max backoff seconds
    jitter: bool = True

    def backoff(self, attempt: int) -> float:
        """Return the sleep before retry number ``attempt + 1``."""
        delay = min(self.cap, self.base * (2**attempt))
        if self.jitter:
            delay = random.uniform(0, delay)  # noqa: S311
        return delay


NO_RETRY = RetryPolicy(total=0, base=0.0, cap=0.0, jitter=False)


async def retry_async(
    fn: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy,
    retry_on: Callable[[Exception], bool],
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Call ``fn`` until it succeeds or the retries run out.

    Args:
        fn: Zero-arg async function to execute.
        policy: Retry count and backoff shape.
        retry_on: Predicate returning True for retryable exceptions.
        sleep: Awaitable sleep, injectable for tests.

    Returns:
        The return value of ``fn``.

    Raises:
        The last exception once retries are exhausted or it is not retryable.
    """
    attempt = 0
    while True:
        try:
            return await fn()
        except Exception as exc:  # noqa: BLE001
            if attempt >= policy.total or not retry_on(exc):
                raise
        await sleep(policy.backoff(attempt))
        attempt += 1
