# src/cache/memory_store.py — v1
"""In-process key-value store (KV_BACKEND=memory).

For tests and single-process development only: records do not survive a
restart and are not shared between processes.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable

from rapidval.cache.base_kv_store import BaseKeyValueStore


class MemoryKeyValueStore(BaseKeyValueStore):
    """Dict-backed store with per-key expiry."""

    supports_atomic_create = True

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._data: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()

    async def get(self, key: str) -> str | None:
        with self._lock:
            return self._live_value(key)

    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        with self._lock:
            self._data[key] = (value, self._clock() + ttl_seconds)

    async def put_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        with self._lock:
            if self._live_value(key) is not None:
                return False
            self._data[key] = (value, self._clock() + ttl_seconds)
            return True

    async def list_prefix(self, prefix: str) -> list[str]:
        with self._lock:
            return sorted(
                k for k in list(self._data)
                if k.startswith(prefix) and self._live_value(k) is not None
            )

    def _live_value(self, key: str) -> str | None:
        item = self._data.get(key)
        if item is None:
            return None
        value, expires_at = item
        if self._clock() >= expires_at:
            del self._data[key]
            return None
        return value
