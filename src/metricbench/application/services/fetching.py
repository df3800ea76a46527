# Copyright (c)
# SPDX-License-Identifier: MIT
"""Timeout-bounded provider calls shared by the calculation and comparison services."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from metricbench.domain.exceptions.metrics import FetchTimeoutError, MetricbenchError

T = TypeVar("T")

#: Default per-fetch timeout in seconds.
DEFAULT_FETCH_TIMEOUT_S = 8.0


async def fetch_with_timeout(
    fetch: Callable[[], Awaitable[T]],
    *,
    timeout_s: float,
    endpoint: str,
    wrap: type[MetricbenchError],
    details: dict[str, str],
) -> T:
    """Await ``fetch()`` under ``asyncio.timeout``.

    Args:
        fetch: Zero-arg provider call.
        timeout_s: Deadline in seconds.
        endpoint: ``distribution`` / ``trend``; recorded on errors.
        wrap: Domain error used for unexpected provider exceptions.
        details: Identifiers attached to any raised error.

    Raises:
        FetchTimeoutError: The deadline passed.
        MetricbenchError: Provider domain errors pass through; anything else
            is wrapped in ``wrap``.
    """
    try:
        async with asyncio.timeout(timeout_s):
            return await fetch()
    except FetchTimeoutError:
        raise
    except TimeoutError as exc:
        raise FetchTimeoutError(
            f"{endpoint} fetch timed out after {timeout_s:g}s",
            details={**details, "endpoint": endpoint, "timeout_s": timeout_s},
        ) from exc
    except MetricbenchError:
        raise
    except Exception as exc:
        raise wrap(
            f"{endpoint} fetch failed: {type(exc).__name__}",
            details={**details, "endpoint": endpoint, "error": str(exc)},
        ) from exc


__all__ = ["DEFAULT_FETCH_TIMEOUT_S", "fetch_with_timeout"]
