"""
Wake-up Scheduler — named one-shot or periodic callbacks on the event loop.

At most one schedule is pending per name; scheduling a name again replaces
the previous one. Every firing is delivered to the on_fire callbacks with
the schedule's name, the way an alarm API reports which alarm went off.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Set

from .clock import Clock, now_ms

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Schedule:
    name: str
    at: Optional[int] = None               # absolute epoch ms (one-shot)
    every_seconds: Optional[float] = None  # fixed interval (periodic)

    @property
    def periodic(self) -> bool:
        return self.every_seconds is not None


class WakeUpScheduler:

    def __init__(self, clock: Clock = now_ms):
        self._clock = clock
        self._schedules: Dict[str, Schedule] = {}
        self._tasks: Dict[str, asyncio.Task] = {}
        self._firing: Set[asyncio.Task] = set()
        self._callbacks: List[Callable[[str], Any]] = []

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def on_fire(self, callback: Callable[[str], Any]) -> None:
        """Register callback(name); may be a plain function or a coroutine function."""
        self._callbacks.append(callback)

    def schedule(
        self,
        name: str,
        *,
        at: Optional[int] = None,
        every_seconds: Optional[float] = None,
    ) -> Schedule:
        if (at is None) == (every_seconds is None):
            raise ValueError("schedule() needs exactly one of at= or every_seconds=")
        if every_seconds is not None and every_seconds <= 0:
            raise ValueError("every_seconds must be positive")

        self.cancel(name)
        sched = Schedule(name=name, at=at, every_seconds=every_seconds)
        self._schedules[name] = sched
        self._tasks[name] = asyncio.get_running_loop().create_task(
            self._run(sched), name=f"wakeup:{name}"
        )
        return sched

    def cancel(self, name: str) -> bool:
        """Drop the pending schedule for *name*. Takes effect before returning."""
        sched = self._schedules.pop(name, None)
        task = self._tasks.pop(name, None)
        # A task inside its callbacks is never cancelled: it may be awaiting a
        # store write that would still land after the cancellation. The loop
        # in _run() notices the schedule is gone once the callbacks return.
        if task is not None and task not in self._firing:
            task.cancel()
        return sched is not None

    def scheduled(self, name: str) -> Optional[Schedule]:
        return self._schedules.get(name)

    def pending_names(self) -> List[str]:
        return sorted(self._schedules)

    async def shutdown(self) -> None:
        tasks = list(self._tasks.values())
        self._schedules.clear()
        self._tasks.clear()
        for task in tasks:
            if task not in self._firing:
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _is_current(self, sched: Schedule) -> bool:
        return self._schedules.get(sched.name) is sched

    async def _run(self, sched: Schedule) -> None:
        if sched.at is not None:
            delay_ms = max(0, sched.at - self._clock())
            await asyncio.sleep(delay_ms / 1000.0)
            if not self._is_current(sched):
                return
            # one-shot: unregister first so the callback may schedule the name again
            del self._schedules[sched.name]
            self._tasks.pop(sched.name, None)
            await self._fire(sched.name)
            return

        while self._is_current(sched):
            await asyncio.sleep(sched.every_seconds)
            if not self._is_current(sched):
                return
            task = asyncio.current_task()
            self._firing.add(task)
            try:
                await self._fire(sched.name)
            finally:
                self._firing.discard(task)

    async def _fire(self, name: str) -> None:
        for callback in list(self._callbacks):
            try:
                result = callback(name)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Wake-up callback failed for %r", name)
