# tests/unit/cache/test_unit_sqlite_store.py — v2
"""Tests for cache/sqlite_store.py — full functional tests (stdlib sqlite3)."""

from __future__ import annotations

import pytest

from rapidval.cache.sqlite_store import SqliteKeyValueStore
from rapidval.core.errors import StoreUnavailableError


@pytest.fixture
def store(tmp_path, clock):
    s = SqliteKeyValueStore(db_path=tmp_path / "kv.db", clock=clock)
    yield s
    s.close()


class TestSqliteKeyValueStore:
    @pytest.mark.asyncio
    async def test_put_and_get(self, store):
        await store.put("key1", "value1", 60)
        assert await store.get("key1") == "value1"

    @pytest.mark.asyncio
    async def test_get_missing(self, store):
        assert await store.get("nonexistent") is None

    @pytest.mark.asyncio
    async def test_expiry(self, store, clock):
        await store.put("key1", "value1", 30)
        clock.advance(30)
        assert await store.get("key1") is None

    @pytest.mark.asyncio
    async def test_put_if_absent(self, store, clock):
        assert await store.put_if_absent("k", "a", 30) is True
        assert await store.put_if_absent("k", "b", 30) is False
        assert await store.get("k") == "a"

    @pytest.mark.asyncio
    async def test_put_if_absent_replaces_expired(self, store, clock):
        await store.put("k", "old", 5)
        clock.advance(6)
        assert await store.put_if_absent("k", "new", 30) is True
        assert await store.get("k") == "new"

    @pytest.mark.asyncio
    async def test_list_prefix_is_literal(self, store):
        await store.put("idem:h:a%_b:1", "x", 60)
        await store.put("idem:h:aXYb:1", "x", 60)
        assert await store.list_prefix("idem:h:a%_b:") == ["idem:h:a%_b:1"]

    @pytest.mark.asyncio
    async def test_closed_connection_is_store_error(self, tmp_path, clock):
        s = SqliteKeyValueStore(db_path=tmp_path / "closed.db", clock=clock)
        s.close()
        with pytest.raises(StoreUnavailableError):
            await s.get("k")
