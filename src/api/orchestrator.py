# src/api/orchestrator.py — v1
"""Validation orchestrator: run fresh, replay cached, or reject as conflict.

The orchestrator is the only component that talks to both the fingerprint
generator and the idempotency store. Sequencing per request:

    1. resolve validator + parse options (request errors, no store access)
    2. no token -> run engine, return result without idempotency marker
    3. fingerprint -> lookup -> hit: replay without running the engine
    4. reserve_or_conflict -> conflict: reject, no result payload
    5. run engine -> commit -> return fresh result

Store failures propagate; they are never read as "no prior record". An
engine exception or a cancellation before step 5's commit leaves nothing
committed.
"""

from __future__ import annotations

import logging

from rapidval.api.models import Completed, Conflict, Outcome, ValidationRequest
from rapidval.cache.fingerprint import compute_fingerprint, hash_caller_identity
from rapidval.cache.idempotency_store import IdempotencyStore
from rapidval.cache.models import LookupHit, ReservationConflict
from rapidval.core.errors import ConfigurationError, RequestError
from rapidval.logging.context import set_idempotency_context, set_operation_context
from rapidval.validation.engine import ValidationEngine
from rapidval.validation.models import ValidationResult

logger = logging.getLogger(__name__)

DEFAULT_KEY_MAX_LENGTH = 255


class ValidationOrchestrator:
    """Sequences fingerprinting, store access and engine invocation."""

    def __init__(
        self,
        engine: ValidationEngine,
        store: IdempotencyStore | None = None,
        key_max_length: int = DEFAULT_KEY_MAX_LENGTH,
    ) -> None:
        self._engine = engine
        self._store = store
        self._key_max_length = key_max_length

    @property
    def engine(self) -> ValidationEngine:
        return self._engine

    async def handle(
        self,
        request: ValidationRequest,
        idempotency_key: str | None = None,
        caller_identity: str | None = None,
    ) -> Outcome:
        """Handle one validation request.

        Raises:
            RequestError: Unsupported type, invalid options, bad token or a
                token without caller identity.
            ConfigurationError: Token supplied but no store configured.
            StoreUnavailableError: Backend failure at any store step.
        """
        set_operation_context(request.operation_type)
        options = self._engine.parse_options(request.operation_type, request.options)

        token = self._normalize_token(idempotency_key)
        if token is None:
            result = self._engine.run(request.operation_type, request.content, options)
            logger.info("Validated without idempotency: valid=%s", result.valid)
            return Completed(result=result, replayed=False)

        if not caller_identity:
            raise RequestError(
                "Idempotency key requires an authenticated caller",
                code="MISSING_CALLER_IDENTITY",
            )
        if self._store is None:
            raise ConfigurationError("Idempotency key supplied but no store is configured")

        caller_hash = hash_caller_identity(caller_identity)
        set_idempotency_context(token, caller_hash)
        fingerprint = compute_fingerprint(request)

        lookup = await self._store.lookup(caller_hash, token, fingerprint)
        if isinstance(lookup, LookupHit):
            logger.info("Replaying stored result")
            return self._replay(lookup, token)

        reservation = await self._store.reserve_or_conflict(caller_hash, token, fingerprint)
        if isinstance(reservation, ReservationConflict):
            logger.info("Rejected idempotency key reuse with different parameters")
            return Conflict(idempotency_key=token)
        if isinstance(reservation, LookupHit):
            logger.info("Replaying stored result found during reservation")
            return self._replay(reservation, token)

        result = self._engine.run(request.operation_type, request.content, options)
        await self._store.commit(caller_hash, token, fingerprint, result.to_payload())
        logger.info("Validated and stored: valid=%s", result.valid)
        return Completed(result=result, replayed=False, idempotency_key=token)

    def _normalize_token(self, idempotency_key: str | None) -> str | None:
        if idempotency_key is None:
            return None
        token = idempotency_key.strip()
        if not token:
            return None
        if len(token) > self._key_max_length:
            raise RequestError(
                f"Idempotency key exceeds {self._key_max_length} characters",
                code="INVALID_IDEMPOTENCY_KEY",
            )
        return token

    @staticmethod
    def _replay(hit: LookupHit, token: str) -> Completed:
        result = ValidationResult.from_payload(hit.record.stored_result)
        return Completed(result=result, replayed=True, idempotency_key=token)
