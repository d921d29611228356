"""
Shared pytest fixtures and configuration.
"""

from __future__ import annotations

import inspect
from typing import Any, Callable, Dict, List, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from siteblock.api.app import create_app
from siteblock.blocking.rule_engine import InMemoryRuleEngine
from siteblock.config import Config
from siteblock.scheduling.wakeups import Schedule
from siteblock.service import BlockerService
from siteblock.storage.kvstore import Storage

T0 = 1_700_000_000_000  # epoch ms


class FakeClock:
    """Callable epoch-ms clock that only moves when told to."""

    def __init__(self, start: int = T0):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += int(seconds * 1000)


class ManualScheduler:
    """Scheduler double: records schedules, fires only when a test calls fire()."""

    def __init__(self):
        self.schedules: Dict[str, Schedule] = {}
        self.cancelled: List[str] = []
        self._callbacks: List[Callable[[str], Any]] = []

    def on_fire(self, callback):
        self._callbacks.append(callback)

    def schedule(self, name, *, at=None, every_seconds=None):
        sched = Schedule(name=name, at=at, every_seconds=every_seconds)
        self.schedules[name] = sched
        return sched

    def cancel(self, name) -> bool:
        self.cancelled.append(name)
        return self.schedules.pop(name, None) is not None

    def scheduled(self, name) -> Optional[Schedule]:
        return self.schedules.get(name)

    def pending_names(self):
        return sorted(self.schedules)

    async def shutdown(self):
        self.schedules.clear()

    async def fire(self, name: str) -> None:
        sched = self.schedules.get(name)
        if sched is not None and not sched.periodic:
            del self.schedules[name]
        for cb in list(self._callbacks):
            result = cb(name)
            if inspect.isawaitable(result):
                await result


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def storage(tmp_path):
    """A fresh two-scope store backed by a temp SQLite file."""
    return Storage(tmp_path / "store.db")


@pytest.fixture
def engine():
    return InMemoryRuleEngine()


@pytest.fixture
def cfg(tmp_path):
    return Config(data_dir=tmp_path)


@pytest.fixture
def service(storage, scheduler, engine, cfg, clock):
    return BlockerService(storage, scheduler, engine, cfg, clock=clock)


@pytest.fixture
def app(tmp_path):
    """Create a fresh app instance with its own data directory."""
    return create_app(Config(data_dir=tmp_path / "app"))


@pytest_asyncio.fixture
async def client(app):
    """Async HTTP client wired directly to the ASGI app (no server needed)."""
    async with app.router.lifespan_context(app):
        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as ac:
            yield ac
