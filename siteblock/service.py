"""
Blocker Service — wires the store, scheduler and rule engine to the
blocking components and the timer.

Store mutation → watcher → effective set → rule reconciliation. Wake-ups
either advance the timer or expire allowances; both write back through the
store, so every observer converges on the persisted state.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional

from .actions.pomodoro import TICK, PomodoroTimer, TimerState
from .blocking.blocklist import BlockList
from .blocking.domains import parse_bare_hostname
from .blocking.effective_set import EffectiveBlockSet
from .blocking.rule_engine import RuleEngine
from .blocking.rule_ids import RuleIdAllocator
from .blocking.rules import Rule
from .blocking.stats import BlockStats
from .blocking.synchronizer import RuleSynchronizer
from .blocking.temporary_allow import REBLOCK, ReblockScheduler, TemporaryAllowGranter
from .config import Config, config as default_config
from .errors import InvalidDomain, StoreUnavailable
from .scheduling.clock import Clock, now_ms
from .scheduling.wakeups import WakeUpScheduler
from .storage.keys import BLOCK_LIST, LOCAL, POMODORO_STATE, SYNC
from .storage.kvstore import Storage

logger = logging.getLogger(__name__)

# navigator(tab_id, url) -> True if it redirected the caller's page itself
Navigator = Callable[[Any, str], Awaitable[bool]]

TIMER_COMMANDS = ("start", "pause", "reset")


@dataclass
class GrantResult:
    ok: bool
    domain: str
    expiry: Optional[int] = None
    navigated: bool = False
    url: Optional[str] = None
    error: Optional[str] = None
    store_unavailable: bool = False


@dataclass
class CommandResult:
    ok: bool
    state: Optional[TimerState] = None
    error: Optional[str] = None


class BlockerService:

    def __init__(
        self,
        storage: Storage,
        scheduler: WakeUpScheduler,
        engine: RuleEngine,
        cfg: Optional[Config] = None,
        clock: Clock = now_ms,
        navigator: Optional[Navigator] = None,
        today: Callable[[], date] = date.today,
    ):
        cfg = cfg or default_config
        self.config = cfg
        self.storage = storage
        self.scheduler = scheduler
        self._navigator = navigator

        self.allocator = RuleIdAllocator(storage.local)
        self.effective = EffectiveBlockSet(storage, clock)
        self.synchronizer = RuleSynchronizer(engine, self.allocator, cfg.block_page_path)
        self.reblock = ReblockScheduler(storage.local, scheduler, clock)
        self.granter = TemporaryAllowGranter(
            storage.local, self.reblock, self.reconcile, clock, cfg.temporary_allow_seconds
        )
        self.timer = PomodoroTimer(
            storage.local,
            scheduler,
            clock,
            work_duration=cfg.work_duration_seconds,
            break_duration=cfg.break_duration_seconds,
            tick_interval=cfg.tick_interval_seconds,
        )
        self.blocklist = BlockList(storage.sync)
        self.stats = BlockStats(storage.local, cfg.stats_retention_days, today)

        self._reconcile_lock = asyncio.Lock()
        self._timer_watchers: set[asyncio.Queue] = set()
        self._started = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self._started:
            return
        self._started = True
        self.storage.on_change(SYNC, self._on_sync_change)
        self.storage.on_change(LOCAL, self._on_local_change)
        self.scheduler.on_fire(self._on_wake_up)

        await self.reconcile()
        try:
            await self.reblock.reschedule()
            await self.timer.resume_if_running()
        except StoreUnavailable as e:
            logger.error("Startup could not read the store: %s", e)

    async def stop(self) -> None:
        await self.scheduler.shutdown()

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    async def reconcile(self) -> bool:
        # compute and apply as one step so an older snapshot never lands last
        async with self._reconcile_lock:
            try:
                effective = await self.effective.compute()
            except StoreUnavailable as e:
                logger.error("Cannot compute effective block set, keeping previous rules: %s", e)
                return False
            return await self.synchronizer.sync(effective)

    async def _on_sync_change(self, key: str, old: Any, new: Any) -> None:
        if key == BLOCK_LIST:
            await self.reconcile()

    def _on_local_change(self, key: str, old: Any, new: Any) -> None:
        if key == POMODORO_STATE:
            for queue in list(self._timer_watchers):
                queue.put_nowait(new)

    async def _on_wake_up(self, name: str) -> None:
        if name == REBLOCK:
            await self.reconcile()
            try:
                await self.reblock.reschedule()
            except StoreUnavailable as e:
                logger.error("Cannot reschedule reblock: %s", e)
        elif name == TICK:
            try:
                await self.timer.tick()
            except StoreUnavailable as e:
                logger.error("Timer tick skipped: %s", e)
        else:
            logger.debug("Ignoring wake-up %r", name)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def grant_temporary_allow(self, domain: str, tab_id: Any = None) -> GrantResult:
        try:
            domain = parse_bare_hostname(domain)
            expiry = await self.granter.grant(domain)
        except InvalidDomain as e:
            return GrantResult(ok=False, domain=domain, error=str(e))
        except StoreUnavailable as e:
            logger.error("Grant for %s failed: %s", domain, e)
            return GrantResult(ok=False, domain=domain, error=str(e), store_unavailable=True)

        url = f"https://{domain}"
        navigated = False
        if self._navigator is not None and tab_id is not None:
            try:
                navigated = bool(await self._navigator(tab_id, url))
            except Exception:
                logger.exception("Navigator failed for tab %r", tab_id)
        return GrantResult(ok=True, domain=domain, expiry=expiry, navigated=navigated, url=url)

    async def timer_command(self, command: str) -> CommandResult:
        if command not in TIMER_COMMANDS:
            return CommandResult(ok=False, error=f"unknown timer command {command!r}")
        try:
            state = await getattr(self.timer, command)()
        except StoreUnavailable as e:
            logger.error("Timer %s failed, state untouched: %s", command, e)
            return CommandResult(ok=False, error=str(e))
        return CommandResult(ok=True, state=state)

    async def record_block(self, domain: str) -> bool:
        return await self.stats.record(domain)

    # ------------------------------------------------------------------
    # Read-only snapshots
    # ------------------------------------------------------------------

    async def timer_state(self) -> TimerState:
        return await self.timer.snapshot()

    async def block_stats(self) -> Dict[str, Dict[str, int]]:
        return await self.stats.raw()

    async def rules(self) -> List[Rule]:
        return await self.synchronizer.rules()

    async def temporary_allows(self) -> Dict[str, int]:
        return await self.effective.live_allows()

    @asynccontextmanager
    async def watch_timer(self) -> AsyncIterator[asyncio.Queue]:
        """Queue of persisted timer records, one per committed change."""
        queue: asyncio.Queue = asyncio.Queue()
        self._timer_watchers.add(queue)
        try:
            yield queue
        finally:
            self._timer_watchers.discard(queue)
