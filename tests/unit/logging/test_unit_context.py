# tests/unit/logging/test_unit_context.py — v1
"""Tests for logging/context.py — per-request context variables."""

from __future__ import annotations

from rapidval.logging.context import (
    clear_context,
    get_context,
    set_idempotency_context,
    set_operation_context,
    set_request_context,
)


class TestContext:
    def test_empty_by_default(self):
        assert get_context().as_dict() == {}

    def test_request_and_operation(self):
        set_request_context("req-1")
        set_operation_context("csv.timeseries.v1")
        ctx = get_context()
        assert ctx.request_id == "req-1"
        assert ctx.as_dict() == {
            "request_id": "req-1",
            "operation_type": "csv.timeseries.v1",
        }

    def test_caller_hash_truncated(self):
        set_idempotency_context("tok", "f" * 64)
        ctx = get_context()
        assert ctx.idempotency_key == "tok"
        assert ctx.caller == "f" * 12

    def test_clear(self):
        set_request_context("req-1")
        set_idempotency_context("tok", "a" * 64)
        clear_context()
        assert get_context().as_dict() == {}
