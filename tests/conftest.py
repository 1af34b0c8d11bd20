# tests/conftest.py — v2
"""Shared test fixtures for all unit and integration tests.

Provides sample CSV payloads, a controllable clock, in-memory key-value
backends and wired orchestrators. No external services.
"""

from __future__ import annotations

import pytest

from rapidval.api.models import ValidationRequest
from rapidval.api.orchestrator import ValidationOrchestrator
from rapidval.cache.idempotency_store import IdempotencyStore
from rapidval.cache.memory_store import MemoryKeyValueStore
from rapidval.logging.context import clear_context
from rapidval.validation.engine import ValidationEngine, create_default_engine

TIMESERIES = "csv.timeseries.ga4.v1"

VALID_CSV = (
    "text:date,sessions,users,pageviews\n"
    "2024-01-01,100,50,200\n"
    "2024-01-02,120,60,240\n"
    "2024-01-03,110,55,220"
)

MISSING_USERS_CSV = (
    "text:date,sessions,pageviews\n"
    "2024-01-01,100,200\n"
    "2024-01-02,120,240"
)


class FakeClock:
    """Monotonic test clock in epoch seconds."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def _reset_log_context():
    clear_context()
    yield
    clear_context()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def engine() -> ValidationEngine:
    return create_default_engine()


@pytest.fixture
def memory_backend(clock: FakeClock) -> MemoryKeyValueStore:
    return MemoryKeyValueStore(clock=clock)


@pytest.fixture
def idempotency_store(memory_backend: MemoryKeyValueStore) -> IdempotencyStore:
    return IdempotencyStore(backend=memory_backend)


@pytest.fixture
def orchestrator(
    engine: ValidationEngine, idempotency_store: IdempotencyStore
) -> ValidationOrchestrator:
    return ValidationOrchestrator(engine=engine, store=idempotency_store)


@pytest.fixture
def valid_csv() -> str:
    return VALID_CSV


@pytest.fixture
def missing_users_csv() -> str:
    return MISSING_USERS_CSV


@pytest.fixture
def valid_request() -> ValidationRequest:
    return ValidationRequest(operation_type=TIMESERIES, content=VALID_CSV)
