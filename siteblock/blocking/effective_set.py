"""
Effective Block-Set Calculator.

effective = blockList − {d : temporaryAllows[d] > now}

An allowance whose expiry has passed counts as absent whether or not it has
been pruned yet; compute() prunes such entries as a side effect.
"""

from __future__ import annotations

import logging
from typing import Dict, Set

from ..scheduling.clock import Clock, now_ms
from ..storage.keys import BLOCK_LIST, TEMPORARY_ALLOWS
from ..storage.kvstore import Storage

logger = logging.getLogger(__name__)


def live_allowances(allows: Dict[str, int], now: int) -> Dict[str, int]:
    return {d: int(exp) for d, exp in allows.items() if int(exp) > now}


class EffectiveBlockSet:

    def __init__(self, storage: Storage, clock: Clock = now_ms):
        self._storage = storage
        self._clock = clock

    async def compute(self) -> Set[str]:
        block_list = await self._storage.sync.get(BLOCK_LIST, [])
        allows = await self.prune_expired()
        return {d for d in block_list if d not in allows}

    async def prune_expired(self) -> Dict[str, int]:
        """Drop expired allowances from the store; return the live ones."""
        local = self._storage.local
        async with local.lock(TEMPORARY_ALLOWS):
            allows = await local.get(TEMPORARY_ALLOWS, {})
            live = live_allowances(allows, self._clock())
            if live != allows:
                await local.set(TEMPORARY_ALLOWS, live)
                logger.info(
                    "Pruned %d expired allowance(s): %s",
                    len(allows) - len(live),
                    ", ".join(sorted(set(allows) - set(live))),
                )
        return live

    async def live_allows(self) -> Dict[str, int]:
        """Read-only view of the unexpired allowances."""
        allows = await self._storage.local.get(TEMPORARY_ALLOWS, {})
        return live_allowances(allows, self._clock())
