# src/cache/kv_factory.py — v1
"""Factory for key-value backend instantiation."""

from __future__ import annotations

from rapidval.cache.base_kv_store import BaseKeyValueStore
from rapidval.config.settings import ConfigurationError, Settings


def create_kv_store(settings: Settings | None = None) -> BaseKeyValueStore:
    """Instantiate the configured key-value backend.

    Args:
        settings: Application settings. Defaults to the JSON backend.

    Returns:
        Configured BaseKeyValueStore implementation.
    """
    backend = "json" if settings is None else settings.kv_backend
    kv_root = "~/.rapidval/kv" if settings is None else str(settings.kv_root)

    if backend == "memory":
        from rapidval.cache.memory_store import MemoryKeyValueStore
        return MemoryKeyValueStore()

    if backend == "json":
        from rapidval.cache.json_store import JsonKeyValueStore
        return JsonKeyValueStore(root=kv_root)

    if backend == "sqlite":
        from rapidval.cache.sqlite_store import SqliteKeyValueStore
        return SqliteKeyValueStore(db_path=f"{kv_root}/rapidval_kv.db")

    if backend == "redis":
        from rapidval.cache.redis_store import RedisKeyValueStore
        if settings is None or not settings.kv_redis_url:
            raise ConfigurationError(
                "KV_REDIS_URL must be set when KV_BACKEND=redis"
            )
        return RedisKeyValueStore(redis_url=settings.kv_redis_url)

    raise ConfigurationError(f"Unsupported key-value backend: {backend!r}")
