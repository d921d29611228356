"""
Block list editing — the add/remove actions of the popup.

The blocker core only reads blockList; these edits reach it through the
sync-scope change watcher.
"""

from __future__ import annotations

from typing import List

from ..errors import DomainAlreadyBlocked
from ..storage.keys import BLOCK_LIST
from ..storage.kvstore import StorageArea
from .domains import normalize_domain, parse_user_domain


class BlockList:

    def __init__(self, area: StorageArea):
        self._area = area

    async def domains(self) -> List[str]:
        return await self._area.get(BLOCK_LIST, [])

    async def add(self, raw: str) -> str:
        """Normalize, validate and add; returns the stored domain."""
        domain = parse_user_domain(raw)
        async with self._area.lock(BLOCK_LIST):
            sites = await self._area.get(BLOCK_LIST, [])
            if domain in sites:
                raise DomainAlreadyBlocked(domain)
            sites.append(domain)
            sites.sort()
            await self._area.set(BLOCK_LIST, sites)
        return domain

    async def remove(self, raw: str) -> bool:
        domain = normalize_domain(raw)
        async with self._area.lock(BLOCK_LIST):
            sites = await self._area.get(BLOCK_LIST, [])
            if domain not in sites:
                return False
            await self._area.set(BLOCK_LIST, [d for d in sites if d != domain])
        return True
