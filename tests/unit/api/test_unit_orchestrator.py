# tests/unit/api/test_unit_orchestrator.py — v1
"""Tests for api/orchestrator.py — run, replay, conflict sequencing."""

from __future__ import annotations

import asyncio
import json
from unittest.mock import MagicMock

import pytest

from rapidval.api.models import Completed, Conflict, ValidationRequest
from rapidval.api.orchestrator import ValidationOrchestrator
from rapidval.cache.idempotency_store import IdempotencyStore
from rapidval.core.errors import (
    ConfigurationError,
    RequestError,
    StoreUnavailableError,
    UnsupportedTypeError,
)

CALLER = "api-key-1"


def _req(content: str, /, **overrides) -> ValidationRequest:
    fields = dict(operation_type="csv.timeseries.ga4.v1", content=content)
    fields.update(overrides)
    return ValidationRequest(**fields)


def _spy_engine(orchestrator: ValidationOrchestrator) -> MagicMock:
    """Wrap engine.run so calls can be counted."""
    engine = orchestrator.engine
    spy = MagicMock(wraps=engine.run)
    engine.run = spy  # type: ignore[method-assign]
    return spy


class TestWithoutToken:
    @pytest.mark.asyncio
    async def test_runs_engine_without_marker(self, orchestrator, valid_request, memory_backend):
        outcome = await orchestrator.handle(valid_request)
        assert isinstance(outcome, Completed)
        assert outcome.replayed is False
        assert "idempotency" not in outcome.to_payload()
        assert await memory_backend.list_prefix("") == []

    @pytest.mark.asyncio
    async def test_blank_token_is_absent(self, orchestrator, valid_request):
        outcome = await orchestrator.handle(valid_request, idempotency_key="   ")
        assert outcome.idempotency_key is None

    @pytest.mark.asyncio
    async def test_no_store_needed(self, engine, valid_request):
        outcome = await ValidationOrchestrator(engine=engine).handle(valid_request)
        assert outcome.result.valid is True


class TestReplay:
    @pytest.mark.asyncio
    async def test_second_call_replays(self, orchestrator, valid_request):
        spy = _spy_engine(orchestrator)
        first = await orchestrator.handle(valid_request, "tok-1", CALLER)
        second = await orchestrator.handle(valid_request, "tok-1", CALLER)

        assert isinstance(first, Completed) and isinstance(second, Completed)
        assert first.replayed is False
        assert second.replayed is True
        assert spy.call_count == 1
        assert first.result == second.result

    @pytest.mark.asyncio
    async def test_payload_identical_except_marker(self, orchestrator, valid_request):
        first = (await orchestrator.handle(valid_request, "tok-1", CALLER)).to_payload()
        second = (await orchestrator.handle(valid_request, "tok-1", CALLER)).to_payload()
        assert first.pop("idempotency") == {"key": "tok-1", "replayed": False}
        assert second.pop("idempotency") == {"key": "tok-1", "replayed": True}
        assert json.dumps(first) == json.dumps(second)

    @pytest.mark.asyncio
    async def test_options_key_order_still_replays(self, orchestrator, valid_csv):
        a = _req(valid_csv, options={"maxRows": 10, "allowDuplicateDates": True})
        b = _req(valid_csv, options={"allowDuplicateDates": True, "maxRows": 10})
        await orchestrator.handle(a, "tok", CALLER)
        outcome = await orchestrator.handle(b, "tok", CALLER)
        assert isinstance(outcome, Completed) and outcome.replayed is True

    @pytest.mark.asyncio
    async def test_invalid_result_also_replays(self, orchestrator, missing_users_csv):
        req = _req(missing_users_csv)
        await orchestrator.handle(req, "tok", CALLER)
        outcome = await orchestrator.handle(req, "tok", CALLER)
        assert outcome.replayed is True
        assert outcome.result.valid is False
        assert outcome.result.findings[0].code == "MISSING_REQUIRED_HEADERS"

    @pytest.mark.asyncio
    async def test_cold_orchestrator_replays(self, engine, memory_backend, valid_request):
        """No in-process state: a fresh orchestrator over the same backend replays."""
        first = ValidationOrchestrator(engine=engine, store=IdempotencyStore(memory_backend))
        await first.handle(valid_request, "tok", CALLER)
        second = ValidationOrchestrator(engine=engine, store=IdempotencyStore(memory_backend))
        outcome = await second.handle(valid_request, "tok", CALLER)
        assert outcome.replayed is True


class TestConflict:
    @pytest.mark.parametrize(
        "overrides",
        [
            {"operation_type": "csv.timeseries.v1"},
            {"content": "text:date,sessions,users\n2024-01-09,1,1"},
            {"options": {"maxRows": 2}},
            {"context": {"source": "other"}},
        ],
    )
    @pytest.mark.asyncio
    async def test_changed_request_conflicts(self, orchestrator, valid_csv, overrides):
        spy = _spy_engine(orchestrator)
        await orchestrator.handle(_req(valid_csv), "tok", CALLER)
        outcome = await orchestrator.handle(_req(valid_csv, **overrides), "tok", CALLER)
        assert isinstance(outcome, Conflict)
        assert outcome.to_payload()["error"]["code"] == "IDEMPOTENCY_KEY_REUSE_MISMATCH"
        assert "findings" not in outcome.to_payload()
        assert spy.call_count == 1

    @pytest.mark.asyncio
    async def test_conflict_does_not_overwrite(self, orchestrator, valid_csv, missing_users_csv):
        await orchestrator.handle(_req(valid_csv), "tok", CALLER)
        await orchestrator.handle(_req(missing_users_csv), "tok", CALLER)
        outcome = await orchestrator.handle(_req(valid_csv), "tok", CALLER)
        assert outcome.replayed is True
        assert outcome.result.valid is True


class TestTokenScoping:
    @pytest.mark.asyncio
    async def test_different_tokens_independent(self, orchestrator, valid_request):
        spy = _spy_engine(orchestrator)
        a = await orchestrator.handle(valid_request, "tok-a", CALLER)
        b = await orchestrator.handle(valid_request, "tok-b", CALLER)
        assert a.replayed is False and b.replayed is False
        assert spy.call_count == 2

    @pytest.mark.asyncio
    async def test_same_token_different_callers(self, orchestrator, valid_csv, missing_users_csv):
        await orchestrator.handle(_req(valid_csv), "tok", "caller-a")
        outcome = await orchestrator.handle(_req(missing_users_csv), "tok", "caller-b")
        assert isinstance(outcome, Completed)
        assert outcome.replayed is False

    @pytest.mark.asyncio
    async def test_raw_credential_not_in_keys(self, orchestrator, valid_request, memory_backend):
        await orchestrator.handle(valid_request, "tok", "super-secret-key")
        keys = await memory_backend.list_prefix("")
        assert keys
        assert all("super-secret-key" not in k for k in keys)


class TestErrors:
    @pytest.mark.asyncio
    async def test_unsupported_type_before_store(self, orchestrator, memory_backend, valid_csv):
        with pytest.raises(UnsupportedTypeError):
            await orchestrator.handle(_req(valid_csv, operation_type="nope"), "tok", CALLER)
        assert await memory_backend.list_prefix("") == []

    @pytest.mark.asyncio
    async def test_invalid_options_before_store(self, orchestrator, memory_backend, valid_csv):
        with pytest.raises(RequestError) as exc:
            await orchestrator.handle(_req(valid_csv, options={"maxRows": "x"}), "tok", CALLER)
        assert exc.value.code == "INVALID_OPTIONS"
        assert await memory_backend.list_prefix("") == []

    @pytest.mark.asyncio
    async def test_token_without_caller(self, orchestrator, valid_request):
        with pytest.raises(RequestError) as exc:
            await orchestrator.handle(valid_request, "tok", None)
        assert exc.value.code == "MISSING_CALLER_IDENTITY"

    @pytest.mark.asyncio
    async def test_token_too_long(self, orchestrator, valid_request):
        with pytest.raises(RequestError) as exc:
            await orchestrator.handle(valid_request, "x" * 256, CALLER)
        assert exc.value.code == "INVALID_IDEMPOTENCY_KEY"

    @pytest.mark.asyncio
    async def test_token_without_store(self, engine, valid_request):
        with pytest.raises(ConfigurationError):
            await ValidationOrchestrator(engine=engine).handle(valid_request, "tok", CALLER)

    @pytest.mark.asyncio
    async def test_store_outage_is_not_a_miss(self, orchestrator, memory_backend, valid_request):
        spy = _spy_engine(orchestrator)

        async def _down(*args, **kwargs):
            raise StoreUnavailableError("kv down")

        memory_backend.get = _down  # type: ignore[method-assign]
        with pytest.raises(StoreUnavailableError):
            await orchestrator.handle(valid_request, "tok", CALLER)
        assert spy.call_count == 0

    @pytest.mark.asyncio
    async def test_engine_failure_commits_nothing(self, orchestrator, memory_backend, valid_request):
        orchestrator.engine.run = MagicMock(side_effect=RuntimeError("boom"))  # type: ignore[method-assign]
        with pytest.raises(RuntimeError):
            await orchestrator.handle(valid_request, "tok", CALLER)
        keys = await memory_backend.list_prefix("")
        # Only the fingerprint claim exists, no result record.
        assert len(keys) == 1
        assert keys[0].count(":") == 2

    @pytest.mark.asyncio
    async def test_retry_after_engine_failure_runs_again(self, orchestrator, valid_request):
        real_run = orchestrator.engine.run
        orchestrator.engine.run = MagicMock(side_effect=RuntimeError("boom"))  # type: ignore[method-assign]
        with pytest.raises(RuntimeError):
            await orchestrator.handle(valid_request, "tok", CALLER)
        orchestrator.engine.run = real_run  # type: ignore[method-assign]
        outcome = await orchestrator.handle(valid_request, "tok", CALLER)
        assert isinstance(outcome, Completed)
        assert outcome.replayed is False

    @pytest.mark.asyncio
    async def test_cancellation_before_commit(
        self, orchestrator, idempotency_store, memory_backend, valid_request
    ):
        async def _cancelled(*args, **kwargs):
            raise asyncio.CancelledError

        idempotency_store.commit = _cancelled  # type: ignore[method-assign]
        with pytest.raises(asyncio.CancelledError):
            await orchestrator.handle(valid_request, "tok", CALLER)
        keys = await memory_backend.list_prefix("")
        assert all(k.count(":") == 2 for k in keys)
