"""
Temporary allowances ("five more minutes").

TemporaryAllowGranter records a fixed-duration exception for one domain and
re-synchronises rules straight away. ReblockScheduler keeps exactly one
"reblock" wake-up pending, at the earliest upcoming expiry.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional

from ..scheduling.clock import Clock, now_ms
from ..scheduling.wakeups import WakeUpScheduler
from ..storage.keys import TEMPORARY_ALLOWS
from ..storage.kvstore import StorageArea
from .domains import parse_bare_hostname

logger = logging.getLogger(__name__)

REBLOCK = "reblock"
DEFAULT_ALLOW_SECONDS = 300


class ReblockScheduler:

    def __init__(self, area: StorageArea, scheduler: WakeUpScheduler, clock: Clock = now_ms):
        self._area = area
        self._scheduler = scheduler
        self._clock = clock

    async def reschedule(self) -> Optional[int]:
        """Point the reblock wake-up at the earliest live expiry, or cancel it.

        Returns the scheduled timestamp (epoch ms) or None.
        """
        async with self._area.lock(TEMPORARY_ALLOWS):
            allows = await self._area.get(TEMPORARY_ALLOWS, {})
            now = self._clock()
            upcoming = [int(exp) for exp in allows.values() if int(exp) > now]
            if not upcoming:
                self._scheduler.cancel(REBLOCK)
                return None
            at = min(upcoming)
            self._scheduler.schedule(REBLOCK, at=at)
        logger.debug("Reblock wake-up scheduled at %d", at)
        return at


class TemporaryAllowGranter:

    def __init__(
        self,
        area: StorageArea,
        reblock: ReblockScheduler,
        reconcile: Callable[[], Awaitable[bool]],
        clock: Clock = now_ms,
        default_seconds: int = DEFAULT_ALLOW_SECONDS,
    ):
        self._area = area
        self._reblock = reblock
        self._reconcile = reconcile
        self._clock = clock
        self.default_seconds = default_seconds

    async def grant(self, domain: str, duration_seconds: Optional[int] = None) -> int:
        """Allow *domain* for *duration_seconds*; return the expiry in epoch ms.

        A second grant for the same domain overwrites the expiry.
        Raises InvalidDomain before touching any state.
        """
        domain = parse_bare_hostname(domain)
        if duration_seconds is None:
            duration_seconds = self.default_seconds
        if duration_seconds <= 0:
            raise ValueError("duration_seconds must be positive")

        async with self._area.lock(TEMPORARY_ALLOWS):
            allows = await self._area.get(TEMPORARY_ALLOWS, {})
            expiry = self._clock() + int(duration_seconds * 1000)
            allows[domain] = expiry
            await self._area.set(TEMPORARY_ALLOWS, allows)

        logger.info("Temporarily allowing %s for %ss", domain, duration_seconds)
        await self._reblock.reschedule()
        await self._reconcile()
        return expiry
