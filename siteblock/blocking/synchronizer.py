"""
Rule Synchronizer — materialises an effective block set as matching-engine
rules.

Every sync is a full replace: remove every rule the engine currently holds
and add one rule per domain, in a single update. The engine either applies
the whole update or none of it, so a failed sync leaves the previous rule
set in force until the next trigger reconciles again.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, List

from ..errors import EngineRejected, StoreUnavailable
from .rule_engine import RuleEngine
from .rule_ids import RuleIdAllocator
from .rules import Rule

logger = logging.getLogger(__name__)


class RuleSynchronizer:

    def __init__(
        self,
        engine: RuleEngine,
        allocator: RuleIdAllocator,
        block_page_path: str = "/blocked.html",
    ):
        self._engine = engine
        self._allocator = allocator
        self._block_page_path = block_page_path
        self._lock = asyncio.Lock()

    async def build_rules(self, domains: Iterable[str]) -> List[Rule]:
        ordered = sorted(set(domains))
        ids = await asyncio.gather(*(self._allocator.id_for(d) for d in ordered))
        return [
            Rule.for_domain(rule_id, domain, self._block_page_path)
            for rule_id, domain in zip(ids, ordered)
        ]

    async def sync(self, effective: Iterable[str]) -> bool:
        """Reconcile the engine with *effective*. Returns False if nothing was applied."""
        async with self._lock:
            try:
                existing = await self._engine.list_rules()
                remove_ids = [r.id for r in existing]
                new_rules = await self.build_rules(effective)
                await self._engine.replace_rules(remove_ids, new_rules)
            except (StoreUnavailable, EngineRejected) as e:
                logger.error("Rule sync failed, keeping previous rules: %s", e)
                return False
        logger.info("Rules synced: %d site(s) blocked.", len(new_rules))
        return True

    async def rules(self) -> List[Rule]:
        return await self._engine.list_rules()
