"""
Rule-matching engine adapters.

The engine that actually intercepts navigations lives outside this package;
the core only needs list_rules() and an all-or-nothing replace_rules().
InMemoryRuleEngine backs tests and embedded use; JsonFileRuleEngine
materialises the rule set for an out-of-process matcher, so rules (and
their ids) survive restarts the same way a browser's dynamic rules do.
"""

from __future__ import annotations

import asyncio
import json
import os
import tempfile
from pathlib import Path
from typing import Dict, Iterable, List, Protocol

from ..errors import EngineRejected
from .rules import Rule


class RuleEngine(Protocol):
    async def list_rules(self) -> List[Rule]: ...

    async def replace_rules(self, remove_ids: Iterable[int], add_rules: Iterable[Rule]) -> None: ...


def apply_update(
    current: Dict[int, Rule],
    remove_ids: Iterable[int],
    add_rules: Iterable[Rule],
    max_rules: int,
) -> Dict[int, Rule]:
    """Compute the post-update rule table or raise EngineRejected.

    Nothing is applied unless the whole update is valid. Unknown ids in
    *remove_ids* are ignored.
    """
    removing = set(remove_ids)
    result = {rid: r for rid, r in current.items() if rid not in removing}
    for rule in add_rules:
        if rule.id < 1:
            raise EngineRejected(f"rule id must be positive, got {rule.id}")
        if rule.id in result:
            raise EngineRejected(f"duplicate rule id {rule.id} ({rule.domain})")
        result[rule.id] = rule
    if len(result) > max_rules:
        raise EngineRejected(f"{len(result)} rules exceeds the limit of {max_rules}")
    return result


class InMemoryRuleEngine:

    def __init__(self, max_rules: int = 5000):
        self.max_rules = max_rules
        self._rules: Dict[int, Rule] = {}

    async def list_rules(self) -> List[Rule]:
        return sorted(self._rules.values(), key=lambda r: r.id)

    async def replace_rules(self, remove_ids: Iterable[int], add_rules: Iterable[Rule]) -> None:
        self._rules = apply_update(self._rules, remove_ids, add_rules, self.max_rules)


class JsonFileRuleEngine:
    """Rules persisted as a JSON list of declarative rule objects."""

    def __init__(self, path: Path, max_rules: int = 5000):
        self.path = Path(path)
        self.max_rules = max_rules

    async def list_rules(self) -> List[Rule]:
        loop = asyncio.get_running_loop()
        rules = await loop.run_in_executor(None, self._load)
        return sorted(rules.values(), key=lambda r: r.id)

    async def replace_rules(self, remove_ids: Iterable[int], add_rules: Iterable[Rule]) -> None:
        remove_ids = list(remove_ids)
        add_rules = list(add_rules)
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._replace, remove_ids, add_rules)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _load(self) -> Dict[int, Rule]:
        if not self.path.exists():
            return {}
        try:
            text = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise EngineRejected(f"cannot read {self.path}: {e}") from e
        if not text.strip():
            return {}
        try:
            return {r.id: r for r in (Rule.from_dict(d) for d in json.loads(text))}
        except (ValueError, KeyError, TypeError) as e:
            raise EngineRejected(f"unreadable rule file {self.path}: {e}") from e

    def _replace(self, remove_ids: List[int], add_rules: List[Rule]) -> None:
        rules = apply_update(self._load(), remove_ids, add_rules, self.max_rules)
        payload = json.dumps(
            [r.to_dict() for r in sorted(rules.values(), key=lambda r: r.id)],
            indent=2,
        )
        try:
            _atomic_write(self.path, payload + "\n")
        except OSError as e:
            raise EngineRejected(f"cannot write {self.path}: {e}") from e


def _atomic_write(path: Path, content: str) -> None:
    """Temp file in the same directory + rename, so readers never see a partial file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_path = tempfile.mkstemp(dir=path.parent, prefix=".tmp_", suffix=".json")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(temp_path, path)
    except Exception:
        if os.path.exists(temp_path):
            os.unlink(temp_path)
        raise
