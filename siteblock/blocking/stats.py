"""
Block statistics — the increment point only.

blockStats holds {domain: {YYYY-MM-DD: count}} for the local calendar day of
each block event, pruned to a rolling retention window. Rolling the counters
up for display is left to the stats page.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Callable, Dict

from ..storage.keys import BLOCK_STATS
from ..storage.kvstore import StorageArea

DEFAULT_RETENTION_DAYS = 30


class BlockStats:

    def __init__(
        self,
        area: StorageArea,
        retention_days: int = DEFAULT_RETENTION_DAYS,
        today: Callable[[], date] = date.today,
    ):
        self._area = area
        self.retention_days = retention_days
        self._today = today

    async def record(self, domain: str) -> bool:
        """Count one block event for *domain* today. Blank domains are ignored."""
        if not isinstance(domain, str) or not domain.strip():
            return False
        domain = domain.strip()
        today = self._today()
        cutoff = (today - timedelta(days=self.retention_days)).isoformat()
        day = today.isoformat()

        async with self._area.lock(BLOCK_STATS):
            stats: Dict[str, Dict[str, int]] = await self._area.get(BLOCK_STATS, {})
            per_day = stats.setdefault(domain, {})
            per_day[day] = per_day.get(day, 0) + 1

            # ISO dates compare correctly as strings
            for d in list(stats):
                stats[d] = {k: v for k, v in stats[d].items() if k >= cutoff}
                if not stats[d]:
                    del stats[d]

            await self._area.set(BLOCK_STATS, stats)
        return True

    async def raw(self) -> Dict[str, Dict[str, int]]:
        return await self._area.get(BLOCK_STATS, {})
