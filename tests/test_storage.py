"""Tests for the two-scope SQLite key-value store."""

from __future__ import annotations

import asyncio

import pytest

from siteblock.errors import StoreUnavailable
from siteblock.storage.kvstore import Storage


class TestReadWrite:
    async def test_missing_key_returns_default(self, storage):
        assert await storage.local.get("nothing", {"a": 1}) == {"a": 1}

    async def test_default_is_not_shared_between_calls(self, storage):
        default = {"a": []}
        first = await storage.local.get("nothing", default)
        first["a"].append(1)
        assert default == {"a": []}

    async def test_value_persists_across_instances(self, tmp_path):
        db = tmp_path / "kv.db"
        await Storage(db).sync.set("blockList", ["a.com"])
        assert await Storage(db).sync.get("blockList", []) == ["a.com"]

    async def test_scopes_are_isolated(self, storage):
        await storage.sync.set("k", 1)
        await storage.local.set("k", 2)
        assert await storage.sync.get("k") == 1
        assert await storage.local.get("k") == 2

    async def test_get_many_fills_defaults(self, storage):
        await storage.local.set("nextRuleId", 7)
        data = await storage.local.get_many({"nextRuleId": 1, "domainIdMap": {}})
        assert data == {"nextRuleId": 7, "domainIdMap": {}}

    async def test_version_increments_on_every_write(self, storage):
        assert await storage.local.get_versioned("v", 0) == (0, 0)
        await storage.local.set("v", 1)
        await storage.local.set("v", 2)
        value, version = await storage.local.get_versioned("v")
        assert value == 2
        assert version == 2

    async def test_remove(self, storage):
        await storage.local.set("gone", True)
        await storage.local.remove("gone")
        assert await storage.local.get("gone", "default") == "default"

    def test_unknown_scope_rejected(self, storage):
        with pytest.raises(ValueError):
            storage.area("cloud")
        with pytest.raises(ValueError):
            storage.on_change("cloud", lambda *a: None)

    def test_unreadable_database_raises_store_unavailable(self, tmp_path):
        bad = tmp_path / "not-a-db.db"
        bad.write_bytes(b"this is definitely not sqlite" * 100)
        with pytest.raises(StoreUnavailable):
            Storage(bad)


class TestChangeNotification:
    async def test_listener_receives_old_and_new(self, storage):
        seen = []
        storage.on_change("sync", lambda key, old, new: seen.append((key, old, new)))
        await storage.sync.set("blockList", ["a.com"])
        await storage.sync.set("blockList", ["a.com", "b.com"])
        assert seen == [
            ("blockList", None, ["a.com"]),
            ("blockList", ["a.com"], ["a.com", "b.com"]),
        ]

    async def test_unchanged_write_does_not_notify(self, storage):
        seen = []
        storage.on_change("local", lambda *args: seen.append(args))
        await storage.local.set("x", {"a": 1})
        await storage.local.set("x", {"a": 1})
        assert len(seen) == 1

    async def test_listener_only_sees_its_scope(self, storage):
        seen = []
        storage.on_change("sync", lambda *args: seen.append(args))
        await storage.local.set("x", 1)
        assert seen == []

    async def test_async_listener_is_awaited(self, storage):
        seen = []

        async def listener(key, old, new):
            await asyncio.sleep(0)
            seen.append(new)

        storage.on_change("local", listener)
        await storage.local.set("x", 5)
        assert seen == [5]

    async def test_failing_listener_does_not_fail_the_write(self, storage):
        def boom(key, old, new):
            raise RuntimeError("listener bug")

        storage.on_change("local", boom)
        await storage.local.set("x", 1)
        assert await storage.local.get("x") == 1

    async def test_set_many_notifies_each_changed_key(self, storage):
        seen = []
        storage.on_change("local", lambda key, old, new: seen.append(key))
        await storage.local.set_many({"a": 1, "b": 2})
        assert sorted(seen) == ["a", "b"]


class TestLocking:
    async def test_locked_read_modify_write_loses_no_update(self, storage):
        area = storage.local

        async def increment():
            async with area.lock("counter"):
                value = await area.get("counter", 0)
                await asyncio.sleep(0)
                await area.set("counter", value + 1)

        await asyncio.gather(*(increment() for _ in range(20)))
        assert await area.get("counter") == 20

    async def test_locks_are_per_key(self, storage):
        area = storage.local
        async with area.lock("a"):
            assert area.locked("a")
            assert not area.locked("b")
        assert not area.locked("a")
