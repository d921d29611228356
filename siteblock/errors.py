"""
Error kinds shared across the blocker core.

None of these are fatal to the process: they are either reported to the
immediate caller or logged and left for the next reconciliation trigger.
"""

from __future__ import annotations


class SiteBlockError(Exception):
    """Base class for all siteblock errors."""


class InvalidDomain(SiteBlockError, ValueError):
    """Malformed domain passed to a grant or block list edit. No state is mutated."""

    def __init__(self, raw: str, reason: str = "not a bare hostname"):
        self.raw = raw
        self.reason = reason
        super().__init__(f"invalid domain {raw!r}: {reason}")


class DomainAlreadyBlocked(SiteBlockError):
    def __init__(self, domain: str):
        self.domain = domain
        super().__init__(f"{domain} is already blocked")


class StoreUnavailable(SiteBlockError):
    """The persistent store could not be read or written."""


class EngineRejected(SiteBlockError):
    """The rule-matching engine refused a rule update; nothing was applied."""


class StaleWakeUp(SiteBlockError):
    """A wake-up fired for a state that no longer warrants it."""

    def __init__(self, name: str, detail: str = ""):
        self.name = name
        super().__init__(f"stale wake-up {name!r}" + (f": {detail}" if detail else ""))
