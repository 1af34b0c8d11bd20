# src/cache/idempotency_store.py — v1
"""Idempotency store over a key-value backend.

Keys are namespaced by the caller identity hash, never the raw credential:

    {prefix}:{caller_hash}:{token}                 -> fingerprint
    {prefix}:{caller_hash}:{token}:{fingerprint}   -> IdempotencyRecord JSON

The token is percent-encoded so a ':' inside it cannot alias another key.

Conflict detection is exact when the backend supports atomic create: the
fingerprint key is claimed with a single conditional write. On the
read-compare path two first writers racing with different fingerprints can
both succeed; the next reader sees whichever fingerprint key landed last.
That window is an accepted limitation of eventually consistent backends.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

from pydantic import ValidationError

from rapidval.cache.models import (
    IdempotencyRecord,
    LookupHit,
    LookupMiss,
    LookupResult,
    ReservationConflict,
    ReservationResult,
    Reserved,
)
from rapidval.core.errors import StoreUnavailableError

if TYPE_CHECKING:
    from rapidval.cache.base_kv_store import BaseKeyValueStore
    from rapidval.config.settings import Settings

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 24 * 60 * 60
_FINGERPRINT_RE = re.compile(r"^[0-9a-f]{64}$")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IdempotencyStore:
    """Lookup, conflict detection and write-once storage of results."""

    def __init__(
        self,
        backend: BaseKeyValueStore,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        key_prefix: str = "idem",
        atomic_reservation: bool = True,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._backend = backend
        self._ttl = ttl_seconds
        self._prefix = key_prefix
        self._atomic = atomic_reservation and backend.supports_atomic_create
        self._clock = clock

    @classmethod
    def from_settings(
        cls, settings: Settings, backend: BaseKeyValueStore | None = None
    ) -> IdempotencyStore:
        if backend is None:
            from rapidval.cache.kv_factory import create_kv_store
            backend = create_kv_store(settings)
        return cls(
            backend=backend,
            ttl_seconds=settings.idempotency_ttl_seconds,
            key_prefix=settings.idempotency_key_prefix,
            atomic_reservation=settings.idempotency_atomic_reservation,
        )

    @property
    def atomic(self) -> bool:
        return self._atomic

    def fingerprint_key(self, caller_hash: str, token: str) -> str:
        return f"{self._prefix}:{caller_hash}:{quote(token, safe='')}"

    def record_key(self, caller_hash: str, token: str, fingerprint: str) -> str:
        return f"{self.fingerprint_key(caller_hash, token)}:{fingerprint}"

    async def lookup(
        self, caller_hash: str, token: str, fingerprint: str
    ) -> LookupResult:
        """Return the stored record for exactly this token and fingerprint."""
        record = await self._read_record(caller_hash, token, fingerprint)
        if record is None or record.fingerprint != fingerprint:
            return LookupMiss()
        logger.debug("Idempotency hit for caller %s", caller_hash[:12])
        return LookupHit(record=record)

    async def reserve_or_conflict(
        self, caller_hash: str, token: str, fingerprint: str
    ) -> ReservationResult:
        """Establish that no record with another fingerprint holds the token.

        Returns ``LookupHit`` when a record with the same fingerprint turns
        up, ``ReservationConflict`` when the token belongs to another
        fingerprint, ``Reserved`` otherwise. Nothing is written on the
        read-compare path; the atomic path claims the fingerprint key.
        """
        fp_key = self.fingerprint_key(caller_hash, token)

        if self._atomic:
            stored = await self._claim(fp_key, fingerprint)
            if stored is None:
                return Reserved(atomic=True)
        else:
            stored = await self._backend.get(fp_key)
            if stored is None:
                stored = await self._scan_record_fingerprints(fp_key, fingerprint)
                if stored is None:
                    return Reserved(atomic=False)

        if stored != fingerprint:
            logger.debug(
                "Idempotency conflict for caller %s: stored fingerprint %s",
                caller_hash[:12], stored[:12],
            )
            return ReservationConflict(stored_fingerprint=stored)

        record = await self._read_record(caller_hash, token, fingerprint)
        if record is not None:
            return LookupHit(record=record)
        # Same fingerprint claimed but no result yet: an earlier run failed
        # before commit or a concurrent twin is still running.
        return Reserved(atomic=self._atomic)

    async def commit(
        self,
        caller_hash: str,
        token: str,
        fingerprint: str,
        result: dict[str, Any],
    ) -> IdempotencyRecord:
        """Persist the engine result for this token and fingerprint."""
        record = IdempotencyRecord(
            token=token,
            fingerprint=fingerprint,
            stored_result=result,
            created_at=self._clock(),
        )
        await self._backend.put(
            self.record_key(caller_hash, token, fingerprint),
            record.model_dump_json(),
            self._ttl,
        )
        if not self._atomic:
            await self._backend.put(
                self.fingerprint_key(caller_hash, token), fingerprint, self._ttl
            )
        logger.debug("Committed idempotency record for caller %s", caller_hash[:12])
        return record

    async def _claim(self, fp_key: str, fingerprint: str) -> str | None:
        """Atomically claim ``fp_key``. Returns None if claimed, else the holder."""
        for _ in range(2):
            if await self._backend.put_if_absent(fp_key, fingerprint, self._ttl):
                return None
            stored = await self._backend.get(fp_key)
            if stored is not None:
                return stored
            # Holder expired between the two calls; try once more.
        raise StoreUnavailableError(
            f"Could not establish idempotency reservation for {fp_key}"
        )

    async def _scan_record_fingerprints(
        self, fp_key: str, fingerprint: str
    ) -> str | None:
        """Find a result record under the token when its fingerprint key lags."""
        prefix = f"{fp_key}:"
        found: str | None = None
        for key in await self._backend.list_prefix(prefix):
            suffix = key[len(prefix):]
            if not _FINGERPRINT_RE.match(suffix):
                continue
            if suffix != fingerprint:
                return suffix
            found = suffix
        return found

    async def _read_record(
        self, caller_hash: str, token: str, fingerprint: str
    ) -> IdempotencyRecord | None:
        key = self.record_key(caller_hash, token, fingerprint)
        raw = await self._backend.get(key)
        if raw is None:
            return None
        try:
            return IdempotencyRecord.model_validate_json(raw)
        except ValidationError as e:
            raise StoreUnavailableError(f"Corrupt idempotency record at {key}") from e
