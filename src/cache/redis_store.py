# src/cache/redis_store.py — v2
"""Redis-based key-value store (KV_BACKEND=redis).

Requires 'redis' package: pip install redis.
Suitable for distributed/multi-instance deployments. Expiry is delegated to
Redis (``EX``) and atomic create maps to ``SET NX``.
"""

from __future__ import annotations

import logging
import re

from rapidval.cache.base_kv_store import BaseKeyValueStore
from rapidval.core.errors import StoreUnavailableError

logger = logging.getLogger(__name__)

_KEY_PREFIX = "rapidval:kv:"
_GLOB_SPECIALS = re.compile(r"([*?\[\]\\])")


class RedisKeyValueStore(BaseKeyValueStore):
    """Redis-backed key-value store for distributed deployments."""

    supports_atomic_create = True

    def __init__(self, redis_url: str) -> None:
        try:
            import redis
        except ImportError as e:
            raise ImportError(
                "redis package required: pip install redis"
            ) from e

        self._errors: tuple[type[BaseException], ...] = (redis.RedisError,)
        self._client = redis.Redis.from_url(redis_url, decode_responses=True)

    async def get(self, key: str) -> str | None:
        try:
            return self._client.get(f"{_KEY_PREFIX}{key}")
        except self._errors as e:
            raise StoreUnavailableError(f"Redis get failed for {key}: {e}") from e

    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            self._client.set(f"{_KEY_PREFIX}{key}", value, ex=ttl_seconds)
        except self._errors as e:
            raise StoreUnavailableError(f"Redis set failed for {key}: {e}") from e

    async def put_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        try:
            created = self._client.set(
                f"{_KEY_PREFIX}{key}", value, ex=ttl_seconds, nx=True
            )
        except self._errors as e:
            raise StoreUnavailableError(f"Redis set-nx failed for {key}: {e}") from e
        return bool(created)

    async def list_prefix(self, prefix: str) -> list[str]:
        pattern = f"{_KEY_PREFIX}{_escape_glob(prefix)}*"
        try:
            keys = list(self._client.scan_iter(match=pattern))
        except self._errors as e:
            raise StoreUnavailableError(f"Redis scan failed for {prefix}: {e}") from e
        return sorted(k[len(_KEY_PREFIX):] for k in keys)

    def close(self) -> None:
        """Close the Redis connection."""
        self._client.close()


def _escape_glob(text: str) -> str:
    """Escape SCAN MATCH metacharacters so the prefix matches literally."""
    return _GLOB_SPECIALS.sub(r"\\\1", text)
