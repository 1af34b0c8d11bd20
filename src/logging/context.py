# src/logging/context.py — v2
"""Contextual logging support: attach request_id, operation type, idempotency
key and caller hash to log records.
"""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

# Context variables for structured logging, set per request.
_request_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "request_id", default=None
)
_operation_type: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "operation_type", default=None
)
_idempotency_key: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "idempotency_key", default=None
)
_caller: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "caller", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    request_id: str | None = None
    operation_type: str | None = None
    idempotency_key: str | None = None
    caller: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        request_id=_request_id.get(),
        operation_type=_operation_type.get(),
        idempotency_key=_idempotency_key.get(),
        caller=_caller.get(),
    )


def set_request_context(request_id: str | None) -> None:
    """Set request-level context (called once per dispatched request)."""
    _request_id.set(request_id)


def set_operation_context(operation_type: str) -> None:
    _operation_type.set(operation_type)


def set_idempotency_context(idempotency_key: str, caller_hash: str) -> None:
    """Only a short prefix of the caller hash is logged."""
    _idempotency_key.set(idempotency_key)
    _caller.set(caller_hash[:12])


def clear_context() -> None:
    """Reset all context variables."""
    _request_id.set(None)
    _operation_type.set(None)
    _idempotency_key.set(None)
    _caller.set(None)
