"""
Key-value store — SQLite-backed persistence with two scopes and change
notification.

Every component receives the Storage (or one of its areas) by injection;
nothing reads a module-level store. Read-modify-write sections take the
per-key lock from StorageArea.lock() before the read and release it after
the write.
"""

from __future__ import annotations

import asyncio
import copy
import inspect
import json
import logging
import sqlite3
import time
from contextlib import asynccontextmanager, contextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Dict, Iterator, List, Optional, Tuple

from ..errors import StoreUnavailable
from .keys import LOCAL, SYNC

logger = logging.getLogger(__name__)

ChangeListener = Callable[[str, Any, Any], Any]


class Storage:
    """Two-scope store shared by every component of one process."""

    SCOPES = (SYNC, LOCAL)

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self._listeners: Dict[str, List[ChangeListener]] = {s: [] for s in self.SCOPES}
        self._locks: Dict[Tuple[str, str], asyncio.Lock] = {}
        self._init_db()
        self.sync = StorageArea(self, SYNC)
        self.local = StorageArea(self, LOCAL)

    def area(self, scope: str) -> "StorageArea":
        if scope == SYNC:
            return self.sync
        if scope == LOCAL:
            return self.local
        raise ValueError(f"unknown storage scope {scope!r}")

    # ------------------------------------------------------------------
    # Change notification
    # ------------------------------------------------------------------

    def on_change(self, scope: str, callback: ChangeListener) -> None:
        """Register callback(key, old_value, new_value) for writes in *scope*."""
        if scope not in self._listeners:
            raise ValueError(f"unknown storage scope {scope!r}")
        self._listeners[scope].append(callback)

    async def _notify(self, scope: str, changes: List[Tuple[str, Any, Any]]) -> None:
        for key, old, new in changes:
            for listener in list(self._listeners[scope]):
                try:
                    result = listener(key, old, new)
                    if inspect.isawaitable(result):
                        await result
                except Exception:
                    logger.exception("Change listener failed for %s.%s", scope, key)

    # ------------------------------------------------------------------
    # Locks
    # ------------------------------------------------------------------

    def _lock_for(self, scope: str, key: str) -> asyncio.Lock:
        lock = self._locks.get((scope, key))
        if lock is None:
            lock = asyncio.Lock()
            self._locks[(scope, key)] = lock
        return lock

    # ------------------------------------------------------------------
    # Blocking SQLite operations (run in the default executor)
    # ------------------------------------------------------------------

    def _read(self, scope: str, keys: List[str]) -> Dict[str, Tuple[Any, int]]:
        if not keys:
            return {}
        placeholders = ", ".join("?" for _ in keys)
        try:
            with self._conn() as conn:
                rows = conn.execute(
                    f"SELECT key, value_json, version FROM kv "
                    f"WHERE scope = ? AND key IN ({placeholders})",
                    [scope, *keys],
                ).fetchall()
            return {key: (json.loads(raw), version) for key, raw, version in rows}
        except (sqlite3.Error, ValueError) as e:
            raise StoreUnavailable(f"read {scope}:{','.join(keys)} failed: {e}") from e

    def _write(self, scope: str, items: Dict[str, Any]) -> List[Tuple[str, Any, Any]]:
        """Upsert *items* in one transaction; return (key, old, new) for changed keys."""
        changes: List[Tuple[str, Any, Any]] = []
        now = time.time()
        try:
            encoded = {k: json.dumps(v, sort_keys=True) for k, v in items.items()}
            with self._conn() as conn:
                for key, raw in encoded.items():
                    row = conn.execute(
                        "SELECT value_json FROM kv WHERE scope = ? AND key = ?",
                        (scope, key),
                    ).fetchone()
                    old_raw = row[0] if row else None
                    conn.execute(
                        """
                        INSERT INTO kv (scope, key, value_json, version, updated_at)
                        VALUES (?, ?, ?, 1, ?)
                        ON CONFLICT(scope, key) DO UPDATE SET
                            value_json = excluded.value_json,
                            version    = kv.version + 1,
                            updated_at = excluded.updated_at
                        """,
                        (scope, key, raw, now),
                    )
                    if old_raw != raw:
                        old = json.loads(old_raw) if old_raw is not None else None
                        changes.append((key, old, json.loads(raw)))
        except (sqlite3.Error, TypeError, ValueError) as e:
            raise StoreUnavailable(f"write {scope}:{','.join(items)} failed: {e}") from e
        return changes

    def _delete(self, scope: str, key: str) -> List[Tuple[str, Any, Any]]:
        try:
            with self._conn() as conn:
                row = conn.execute(
                    "SELECT value_json FROM kv WHERE scope = ? AND key = ?",
                    (scope, key),
                ).fetchone()
                conn.execute("DELETE FROM kv WHERE scope = ? AND key = ?", (scope, key))
        except sqlite3.Error as e:
            raise StoreUnavailable(f"delete {scope}:{key} failed: {e}") from e
        if row is None:
            return []
        return [(key, json.loads(row[0]), None)]

    def _init_db(self) -> None:
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            with self._conn() as conn:
                conn.execute("PRAGMA journal_mode=WAL")
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS kv (
                        scope      TEXT    NOT NULL,
                        key        TEXT    NOT NULL,
                        value_json TEXT    NOT NULL,
                        version    INTEGER NOT NULL DEFAULT 1,
                        updated_at REAL    NOT NULL,
                        PRIMARY KEY (scope, key)
                    )
                    """
                )
        except (sqlite3.Error, OSError) as e:
            raise StoreUnavailable(f"cannot open store at {self.db_path}: {e}") from e

    @contextmanager
    def _conn(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(str(self.db_path), timeout=5.0, check_same_thread=False)
        conn.execute("PRAGMA synchronous=NORMAL")
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()


class StorageArea:
    """One scope (sync or local) of a Storage."""

    def __init__(self, storage: Storage, scope: str):
        self._storage = storage
        self.scope = scope

    async def _run(self, fn, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, fn, *args)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def get(self, key: str, default: Any = None) -> Any:
        rows = await self._run(self._storage._read, self.scope, [key])
        if key in rows:
            return rows[key][0]
        return copy.deepcopy(default)

    async def get_many(self, defaults: Dict[str, Any]) -> Dict[str, Any]:
        """Read several keys at once; missing keys take their value from *defaults*."""
        rows = await self._run(self._storage._read, self.scope, list(defaults))
        return {
            k: rows[k][0] if k in rows else copy.deepcopy(d)
            for k, d in defaults.items()
        }

    async def get_versioned(self, key: str, default: Any = None) -> Tuple[Any, int]:
        """Return (value, version); version is 0 for a key never written."""
        rows = await self._run(self._storage._read, self.scope, [key])
        if key in rows:
            return rows[key]
        return copy.deepcopy(default), 0

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    async def set(self, key: str, value: Any) -> None:
        await self.set_many({key: value})

    async def set_many(self, items: Dict[str, Any]) -> None:
        """Write all *items* in a single transaction, then notify listeners."""
        changes = await self._run(self._storage._write, self.scope, dict(items))
        if changes:
            await self._storage._notify(self.scope, changes)

    async def remove(self, key: str) -> None:
        changes = await self._run(self._storage._delete, self.scope, key)
        if changes:
            await self._storage._notify(self.scope, changes)

    # ------------------------------------------------------------------
    # Mutual exclusion
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def lock(self, key: str) -> AsyncIterator[None]:
        """Hold the named lock for a read-modify-write of *key*.

        Locks are not re-entrant; listeners run inside set(), so a listener
        must not take a lock its writer is already holding.
        """
        async with self._storage._lock_for(self.scope, key):
            yield

    def locked(self, key: str) -> bool:
        lock: Optional[asyncio.Lock] = self._storage._locks.get((self.scope, key))
        return bool(lock and lock.locked())
