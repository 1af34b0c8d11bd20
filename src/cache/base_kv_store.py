# src/cache/base_kv_store.py — v1
"""Abstract key-value backend interface.

The idempotency layer relies on nothing beyond these operations and assumes
reads may lag writes. Backends that can create a key atomically advertise it
through ``supports_atomic_create``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class BaseKeyValueStore(ABC):
    """Unified interface for key-value storage backends.

    All methods raise ``StoreUnavailableError`` on backend failure. A missing
    or expired key is ``None``, never an error.
    """

    supports_atomic_create: bool = False

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the value for ``key`` or None if absent/expired."""

    @abstractmethod
    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store ``value`` under ``key``, overwriting, expiring after ``ttl_seconds``."""

    @abstractmethod
    async def list_prefix(self, prefix: str) -> list[str]:
        """Return live keys starting with ``prefix``, sorted."""

    async def put_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        """Create ``key`` only if no live value exists. Returns True if written.

        Only meaningful when ``supports_atomic_create`` is True.
        """
        raise NotImplementedError(
            f"{type(self).__name__} does not support atomic create"
        )

    def close(self) -> None:
        """Release backend resources."""
