"""Tests for the rule id allocator."""

from __future__ import annotations

import asyncio

from siteblock.blocking.rule_ids import FALLBACK_ID_RANGE, RuleIdAllocator, fallback_rule_id
from siteblock.errors import StoreUnavailable


def _break_store(monkeypatch, area):
    async def unavailable(*args, **kwargs):
        raise StoreUnavailable("disk gone")

    monkeypatch.setattr(area, "get", unavailable)
    monkeypatch.setattr(area, "get_many", unavailable)
    monkeypatch.setattr(area, "set_many", unavailable)


class TestAllocation:
    async def test_ids_start_at_one_and_grow(self, storage):
        alloc = RuleIdAllocator(storage.local)
        assert await alloc.id_for("a.com") == 1
        assert await alloc.id_for("b.com") == 2
        assert await storage.local.get("nextRuleId") == 3

    async def test_same_domain_same_id(self, storage):
        alloc = RuleIdAllocator(storage.local)
        first = await alloc.id_for("a.com")
        assert await alloc.id_for("a.com") == first
        assert await storage.local.get("nextRuleId") == 2

    async def test_ids_survive_restart(self, storage):
        await RuleIdAllocator(storage.local).id_for("a.com")
        await RuleIdAllocator(storage.local).id_for("b.com")
        fresh = RuleIdAllocator(storage.local)
        assert await fresh.id_for("a.com") == 1
        assert await fresh.id_for("c.com") == 3

    async def test_id_kept_after_domain_removed_and_readded(self, storage):
        alloc = RuleIdAllocator(storage.local)
        old = await alloc.id_for("a.com")
        # the block list no longer contains a.com; another domain arrives meanwhile
        other = await alloc.id_for("b.com")
        assert other != old
        assert await alloc.id_for("a.com") == old
        assert await alloc.known_ids() == {"a.com": 1, "b.com": 2}


class TestConcurrency:
    async def test_concurrent_requests_for_one_new_domain_agree(self, storage):
        alloc = RuleIdAllocator(storage.local)
        ids = await asyncio.gather(*(alloc.id_for("a.com") for _ in range(10)))
        assert set(ids) == {1}
        assert await storage.local.get("nextRuleId") == 2

    async def test_concurrent_new_domains_lose_no_reservation(self, storage):
        alloc = RuleIdAllocator(storage.local)
        domains = [f"site{i}.com" for i in range(15)]
        ids = await asyncio.gather(*(alloc.id_for(d) for d in domains))
        assert sorted(ids) == list(range(1, 16))
        id_map = await storage.local.get("domainIdMap")
        assert set(id_map) == set(domains)
        assert await storage.local.get("nextRuleId") == 16

    async def test_two_allocators_share_the_store_lock(self, storage):
        a, b = RuleIdAllocator(storage.local), RuleIdAllocator(storage.local)
        ids = await asyncio.gather(a.id_for("x.com"), b.id_for("y.com"), a.id_for("y.com"))
        assert ids[1] == ids[2]
        assert ids[0] != ids[1]


class TestFallback:
    def test_known_values(self):
        assert fallback_rule_id("a") == 98
        assert fallback_rule_id("ab") == 3106

    def test_range_and_determinism(self):
        for domain in ["reddit.com", "a-very-long-subdomain.example.co.uk", "x.io"]:
            rid = fallback_rule_id(domain)
            assert 1 <= rid <= FALLBACK_ID_RANGE
            assert fallback_rule_id(domain) == rid

    async def test_store_failure_uses_fallback(self, storage, monkeypatch):
        alloc = RuleIdAllocator(storage.local)
        _break_store(monkeypatch, storage.local)
        assert await alloc.id_for("reddit.com") == fallback_rule_id("reddit.com")
