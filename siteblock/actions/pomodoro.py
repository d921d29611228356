"""
Pomodoro Timer — five-state focus/break cycle driven by one-second wake-ups.

The countdown lives in the store, not in this object: every command is a
full read-modify-write of pomodoroState under its lock, and every observer
renders the persisted record. Elapsed time is counted in ticks, never
derived from wall-clock deltas, so a missed wake-up delays the timer rather
than skipping it.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, replace
from enum import Enum
from typing import Any, Dict, Optional

from ..errors import StaleWakeUp
from ..scheduling.clock import Clock, now_ms
from ..scheduling.wakeups import WakeUpScheduler
from ..storage.keys import POMODORO_STATE
from ..storage.kvstore import StorageArea

logger = logging.getLogger(__name__)

TICK = "pomodoroTick"


class TimerMode(str, Enum):
    IDLE = "idle"
    WORK = "work"
    BREAK = "break"
    WORK_PAUSED = "work-paused"
    BREAK_PAUSED = "break-paused"


_RESUME = {TimerMode.WORK_PAUSED: TimerMode.WORK, TimerMode.BREAK_PAUSED: TimerMode.BREAK}
_PAUSE = {TimerMode.WORK: TimerMode.WORK_PAUSED, TimerMode.BREAK: TimerMode.BREAK_PAUSED}

# python attribute → persisted field
_FIELDS = {
    "mode": "mode",
    "time_remaining": "timeRemaining",
    "work_duration": "workDuration",
    "break_duration": "breakDuration",
    "music_enabled": "musicEnabled",
    "music_volume": "musicVolume",
    "last_update": "lastUpdate",
}


@dataclass
class TimerState:
    mode: TimerMode = TimerMode.IDLE
    time_remaining: int = 1500        # seconds
    work_duration: int = 1500         # 25 min default
    break_duration: int = 300         # 5 min default
    music_enabled: bool = False
    music_volume: int = 50            # 0..100
    last_update: int = 0              # epoch ms of the last write

    @property
    def running(self) -> bool:
        return self.mode in (TimerMode.WORK, TimerMode.BREAK)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["mode"] = self.mode.value
        return {_FIELDS[k]: v for k, v in data.items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any], defaults: "TimerState") -> "TimerState":
        values = asdict(defaults)
        for attr, key in _FIELDS.items():
            if key in data:
                values[attr] = data[key]
        try:
            values["mode"] = TimerMode(values["mode"])
        except ValueError:
            logger.warning("Unknown timer mode %r in store; treating as idle", values["mode"])
            values["mode"] = TimerMode.IDLE
        return cls(**values)


class PomodoroTimer:

    def __init__(
        self,
        area: StorageArea,
        scheduler: WakeUpScheduler,
        clock: Clock = now_ms,
        work_duration: int = 1500,
        break_duration: int = 300,
        tick_interval: float = 1,
    ):
        self._area = area
        self._scheduler = scheduler
        self._clock = clock
        self._tick_interval = tick_interval
        self._defaults = TimerState(
            time_remaining=work_duration,
            work_duration=work_duration,
            break_duration=break_duration,
        )

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def start(self) -> TimerState:
        """idle → work (full work duration); *-paused → resume. No-op while running."""
        async with self._area.lock(POMODORO_STATE):
            state = await self._load()
            if state.mode == TimerMode.IDLE:
                state.mode = TimerMode.WORK
                state.time_remaining = state.work_duration
            elif state.mode in _RESUME:
                state.mode = _RESUME[state.mode]
            else:
                return state
            await self._save(state)
            self._arm()
        logger.info("Timer started: %s, %ds remaining", state.mode.value, state.time_remaining)
        return state

    async def pause(self) -> TimerState:
        async with self._area.lock(POMODORO_STATE):
            state = await self._load()
            if state.mode not in _PAUSE:
                return state
            state.mode = _PAUSE[state.mode]
            await self._save(state)
            self._scheduler.cancel(TICK)
        logger.info("Timer paused with %ds remaining", state.time_remaining)
        return state

    async def reset(self) -> TimerState:
        # cancel first so no tick already queued can resurrect the old phase
        self._scheduler.cancel(TICK)
        async with self._area.lock(POMODORO_STATE):
            # again under the lock: a start() queued ahead of us may have re-armed it
            self._scheduler.cancel(TICK)
            state = await self._load()
            state.mode = TimerMode.IDLE
            state.time_remaining = state.work_duration
            await self._save(state)
        logger.info("Timer reset")
        return state

    async def tick(self) -> TimerState:
        """Advance one second. A tick outside work/break only cancels the wake-up."""
        async with self._area.lock(POMODORO_STATE):
            state = await self._load()
            try:
                self._advance(state)
            except StaleWakeUp as e:
                self._scheduler.cancel(TICK)
                logger.debug("%s", e)
                return state
            await self._save(state)
        return state

    async def configure(
        self,
        work_duration: Optional[int] = None,
        break_duration: Optional[int] = None,
        music_enabled: Optional[bool] = None,
        music_volume: Optional[int] = None,
    ) -> TimerState:
        if work_duration is not None and work_duration <= 0:
            raise ValueError("work_duration must be positive")
        if break_duration is not None and break_duration <= 0:
            raise ValueError("break_duration must be positive")
        if music_volume is not None and not 0 <= music_volume <= 100:
            raise ValueError("music_volume must be within 0..100")

        async with self._area.lock(POMODORO_STATE):
            state = await self._load()
            if work_duration is not None:
                state.work_duration = int(work_duration)
            if break_duration is not None:
                state.break_duration = int(break_duration)
            if music_enabled is not None:
                state.music_enabled = bool(music_enabled)
            if music_volume is not None:
                state.music_volume = int(music_volume)

            if state.mode == TimerMode.IDLE:
                state.time_remaining = state.work_duration
            elif state.mode in (TimerMode.WORK, TimerMode.WORK_PAUSED):
                state.time_remaining = min(state.time_remaining, state.work_duration)
            else:
                state.time_remaining = min(state.time_remaining, state.break_duration)
            await self._save(state)
        return state

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    async def snapshot(self) -> TimerState:
        return await self._load()

    async def resume_if_running(self) -> bool:
        """Re-arm the tick wake-up after a restart that left the timer running."""
        state = await self._load()
        if state.running:
            self._arm()
            logger.info("Resumed running timer: %s, %ds remaining",
                        state.mode.value, state.time_remaining)
            return True
        return False

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _advance(self, state: TimerState) -> None:
        if not state.running:
            raise StaleWakeUp(TICK, f"timer is {state.mode.value}")
        state.time_remaining = max(0, state.time_remaining - 1)
        if state.time_remaining > 0:
            return
        if state.mode == TimerMode.WORK:
            state.mode = TimerMode.BREAK
            state.time_remaining = state.break_duration
        else:
            state.mode = TimerMode.WORK
            state.time_remaining = state.work_duration
        logger.info("Timer phase change → %s", state.mode.value)

    def _arm(self) -> None:
        self._scheduler.schedule(TICK, every_seconds=self._tick_interval)

    async def _load(self) -> TimerState:
        data = await self._area.get(POMODORO_STATE, None)
        if not data:
            return replace(self._defaults)
        return TimerState.from_dict(data, self._defaults)

    async def _save(self, state: TimerState) -> None:
        state.last_update = self._clock()
        await self._area.set(POMODORO_STATE, state.to_dict())
