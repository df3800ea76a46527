# Copyright (c)
# SPDX-License-Identifier: MIT

from __future__ import annotations

import json
import logging
import sys

import pytest

from metricbench.infrastructure.logging.logger import (
    _JsonFormatter,
    configure_root_logging,
    set_request_context,
)


def _render(msg: str, *, exc_info=None, **attrs) -> dict:
    record = logging.getLogger("test.metricbench").makeRecord(
        name="test.metricbench",
        level=logging.INFO,
        fn="test_json_logger",
        lno=1,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )
    for key, value in attrs.items():
        setattr(record, key, value)
    return json.loads(_JsonFormatter().format(record))


def test_configure_root_logging_is_idempotent(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LOG_LEVEL", "debug")
    root = logging.getLogger()
    saved = list(root.handlers)
    root.handlers.clear()
    try:
        configure_root_logging()
        configure_root_logging()
        assert root.level == logging.DEBUG
        assert sum(isinstance(h.formatter, _JsonFormatter) for h in root.handlers) == 1
    finally:
        root.handlers[:] = saved


def test_structured_extra_is_merged() -> None:
    payload = _render("batch.completed", extra={"total": 3, "chunks": 1})
    assert payload["message"] == "batch.completed"
    assert payload["level"] == "INFO"
    assert payload["total"] == 3
    assert payload["chunks"] == 1


def test_request_id_prefers_record_then_context(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("REQUEST_ID", raising=False)
    assert _render("x", request_id="rec-1")["request_id"] == "rec-1"


@pytest.mark.asyncio
async def test_context_ids_are_task_local() -> None:
    set_request_context(request_id="ctx-1", trace_id="abc")
    payload = _render("x")
    assert payload["request_id"] == "ctx-1"
    assert payload["trace_id"] == "abc"


def test_exception_info_is_rendered() -> None:
    try:
        raise ValueError("boom")
    except ValueError:
        payload = _render("failure", exc_info=sys.exc_info())
    assert payload["exc_type"] == "ValueError"
    assert payload["exc_message"] == "boom"
