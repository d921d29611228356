"""
Block rules — the declarative objects handed to the rule-matching engine.

One rule per effectively-blocked domain: anchor on the domain boundary,
apply to top-level navigations only, redirect to the block page with the
domain as the ``site`` parameter.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Tuple
from urllib.parse import quote, urlparse

RESOURCE_TYPES: Tuple[str, ...] = ("main_frame",)
RULE_PRIORITY = 1


@dataclass(frozen=True)
class Rule:
    id: int
    domain: str
    redirect_target: str

    @classmethod
    def for_domain(cls, rule_id: int, domain: str, block_page_path: str = "/blocked.html") -> "Rule":
        return cls(
            id=rule_id,
            domain=domain,
            redirect_target=f"{block_page_path}?site={quote(domain, safe='')}",
        )

    @property
    def url_filter(self) -> str:
        # "||" anchors at a host-label boundary, "^" ends the host
        return f"||{self.domain}^"

    def matches(self, url: str, resource_type: str = "main_frame") -> bool:
        """Domain-boundary match: the domain itself and its subdomains, nothing else."""
        if resource_type not in RESOURCE_TYPES:
            return False
        host = (urlparse(url).hostname or "").lower()
        return host == self.domain or host.endswith("." + self.domain)

    # ------------------------------------------------------------------
    # Wire shape
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "priority": RULE_PRIORITY,
            "action": {
                "type": "redirect",
                "redirect": {"extension_path": self.redirect_target},
            },
            "condition": {
                "url_filter": self.url_filter,
                "resource_types": list(RESOURCE_TYPES),
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Rule":
        url_filter: str = data["condition"]["url_filter"]
        domain = url_filter.removeprefix("||").removesuffix("^")
        return cls(
            id=int(data["id"]),
            domain=domain,
            redirect_target=data["action"]["redirect"]["extension_path"],
        )
