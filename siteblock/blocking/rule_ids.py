"""
Rule ID Allocator — stable small integer per domain.

Ids are handed out from a persisted counter and recorded in domainIdMap.
An id is never reassigned: removing a domain from the block list leaves its
map entry in place, so re-adding the domain gets its old id back and no
other domain can ever collide with a stale rule.
"""

from __future__ import annotations

import logging

from ..errors import StoreUnavailable
from ..storage.keys import DOMAIN_ID_MAP, NEXT_RULE_ID
from ..storage.kvstore import StorageArea

logger = logging.getLogger(__name__)

FALLBACK_ID_RANGE = 1 << 30


def fallback_rule_id(domain: str) -> int:
    """Deterministic hash of *domain* in [1, 2**30].

    Degraded mode only, used when the store is unreachable. Not collision-free.
    """
    h = 0
    for ch in domain:
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:  # fold to signed 32-bit
        h -= 0x100000000
    return abs(h) % FALLBACK_ID_RANGE + 1


class RuleIdAllocator:

    def __init__(self, area: StorageArea):
        self._area = area

    async def id_for(self, domain: str) -> int:
        try:
            id_map = await self._area.get(DOMAIN_ID_MAP, {})
            if domain in id_map:
                return int(id_map[domain])
            return await self._reserve(domain)
        except StoreUnavailable:
            rule_id = fallback_rule_id(domain)
            logger.warning(
                "Store unavailable; using fallback rule id %d for %s", rule_id, domain
            )
            return rule_id

    async def _reserve(self, domain: str) -> int:
        # the lock covers both domainIdMap and nextRuleId
        async with self._area.lock(DOMAIN_ID_MAP):
            data = await self._area.get_many({DOMAIN_ID_MAP: {}, NEXT_RULE_ID: 1})
            id_map = data[DOMAIN_ID_MAP]
            # another caller may have reserved this domain while we waited
            if domain in id_map:
                return int(id_map[domain])

            new_id = int(data[NEXT_RULE_ID])
            id_map[domain] = new_id
            await self._area.set_many({DOMAIN_ID_MAP: id_map, NEXT_RULE_ID: new_id + 1})
            logger.debug("Assigned rule id %d to %s", new_id, domain)
            return new_id

    async def known_ids(self) -> dict:
        """Snapshot of the persisted domain → id map."""
        return await self._area.get(DOMAIN_ID_MAP, {})
