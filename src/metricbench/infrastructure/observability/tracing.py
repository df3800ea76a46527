# Copyright (c)
# SPDX-License-Identifier: MIT
"""OpenTelemetry span helper.

Provides ``traced(name, **attrs)``, an async context manager wrapping an
operation in an OTEL span. Exceptions are recorded on the span and re-raised.
Without a configured SDK the API tracer is a no-op, so call sites never
need to check whether tracing is enabled.

Layer:
    infrastructure/observability
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from opentelemetry import trace

_tracer = trace.get_tracer("metricbench")


@asynccontextmanager
async def traced(span_name: str, **attrs: Any) -> AsyncIterator[trace.Span]:
    """Run the wrapped block inside a span named ``span_name``.

    Args:
        span_name: Logical span name (e.g. ``"engine.calculate_batch"``).
        **attrs: Span attributes; ``None`` values are dropped and other
            non-primitive values are stringified.

    Yields:
        The active span.
    """
    clean = {
        k: (v if isinstance(v, str | bool | int | float) else str(v))
        for k, v in attrs.items()
        if v is not None
    }
    with _tracer.start_as_current_span(span_name, attributes=clean) as span:
        yield span
