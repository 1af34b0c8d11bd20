# src/cache/models.py — v2
"""Idempotency domain models: IdempotencyRecord and store outcomes.

Outcomes are explicit tagged values (``kind``) rather than exceptions, so a
conflict is never confused with a store failure.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict


class IdempotencyRecord(BaseModel):
    """Stored result of the first execution under a token."""

    model_config = ConfigDict(frozen=True)

    token: str
    fingerprint: str
    stored_result: dict[str, Any]
    created_at: datetime


class LookupHit(BaseModel):
    """A record with the same fingerprint exists; replay it."""

    kind: Literal["hit"] = "hit"
    record: IdempotencyRecord


class LookupMiss(BaseModel):
    """No record under this token and fingerprint."""

    kind: Literal["miss"] = "miss"


class Reserved(BaseModel):
    """No conflicting record; the caller may run the engine and commit."""

    kind: Literal["reserved"] = "reserved"
    atomic: bool = False


class ReservationConflict(BaseModel):
    """The token was first used with a different fingerprint."""

    kind: Literal["conflict"] = "conflict"
    stored_fingerprint: str | None = None


LookupResult = Union[LookupHit, LookupMiss]
ReservationResult = Union[Reserved, LookupHit, ReservationConflict]
