# src/cache/json_store.py — v2
"""JSON file-based key-value store (default KV_BACKEND=json).

One JSON file per key under KV_ROOT, named by the SHA-256 of the key so that
arbitrary key characters are safe on every filesystem. Atomic create relies
on exclusive file creation.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

from rapidval.cache.base_kv_store import BaseKeyValueStore
from rapidval.core.errors import StoreUnavailableError

logger = logging.getLogger(__name__)


class JsonKeyValueStore(BaseKeyValueStore):
    """File-based key-value store using JSON files."""

    supports_atomic_create = True

    def __init__(
        self, root: Path | str, clock: Callable[[], float] = time.time
    ) -> None:
        self._root = Path(root).expanduser()
        self._clock = clock
        try:
            self._root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreUnavailableError(f"Cannot create store root {self._root}: {e}") from e

    async def get(self, key: str) -> str | None:
        data = self._read(self._entry_path(key))
        if data is None or self._expired(data):
            return None
        return data["value"]

    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        path = self._entry_path(key)
        tmp_name: str | None = None
        try:
            # Unique temp file per write so concurrent writers never share one.
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=self._root, suffix=".tmp", delete=False
            ) as fh:
                tmp_name = fh.name
                fh.write(self._serialize(key, value, ttl_seconds))
            os.replace(tmp_name, path)
        except OSError as e:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            raise StoreUnavailableError(f"Failed to write key {key}: {e}") from e

    async def put_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        path = self._entry_path(key)
        existing = self._read(path)
        if existing is not None:
            if not self._expired(existing):
                return False
            # Expired leftovers must not block a fresh claim.
            path.unlink(missing_ok=True)
        try:
            with path.open("x", encoding="utf-8") as fh:
                fh.write(self._serialize(key, value, ttl_seconds))
        except FileExistsError:
            return False
        except OSError as e:
            raise StoreUnavailableError(f"Failed to create key {key}: {e}") from e
        return True

    async def list_prefix(self, prefix: str) -> list[str]:
        keys: list[str] = []
        try:
            paths = sorted(self._root.glob("*.json"))
        except OSError as e:
            raise StoreUnavailableError(f"Cannot scan store root: {e}") from e
        for path in paths:
            data = self._read(path)
            if data is None or self._expired(data):
                continue
            if data["key"].startswith(prefix):
                keys.append(data["key"])
        return sorted(keys)

    def _read(self, path: Path) -> dict[str, Any] | None:
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StoreUnavailableError(f"Failed to read {path.name}: {e}") from e
        try:
            data = json.loads(text)
            if not {"key", "value", "expires_at"} <= data.keys():
                raise ValueError("missing fields")
            data["expires_at"] = float(data["expires_at"])
        except (json.JSONDecodeError, AttributeError, TypeError, ValueError) as e:
            raise StoreUnavailableError(f"Corrupt store entry {path.name}: {e}") from e
        return data

    def _serialize(self, key: str, value: str, ttl_seconds: int) -> str:
        return json.dumps(
            {"key": key, "value": value, "expires_at": self._clock() + ttl_seconds}
        )

    def _expired(self, data: dict[str, Any]) -> bool:
        return self._clock() >= data["expires_at"]

    def _entry_path(self, key: str) -> Path:
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self._root / f"{digest}.json"
