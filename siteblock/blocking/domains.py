"""
Domain normalization and validation.

The block list and the temporary-allow granter must use the same
normalize_domain(), otherwise an exception never matches its block entry.
"""

from __future__ import annotations

import re

from ..errors import InvalidDomain

# at least one dot, alphanumeric labels joined by single hyphens or dots, alpha TLD
_DOMAIN_RE = re.compile(r"^[a-z0-9]+([\-.][a-z0-9]+)*\.[a-z]{2,}$")
_SCHEME_RE = re.compile(r"^https?://")
_WHITESPACE_RE = re.compile(r"\s")


def normalize_domain(raw: str) -> str:
    """Reduce user input or a URL to a bare lowercase host.

    Strips the scheme, a leading ``www.``, the port and any path, query or
    fragment: ``"https://www.Example.com:8080/a?b#c"`` → ``"example.com"``.
    """
    domain = raw.strip().lower()
    domain = _SCHEME_RE.sub("", domain)
    if domain.startswith("www."):
        domain = domain[4:]
    domain = domain.split(":")[0]
    domain = domain.split("/")[0]
    domain = domain.split("?")[0]
    domain = domain.split("#")[0]
    return domain


def is_valid_domain(domain: str) -> bool:
    return bool(domain) and _DOMAIN_RE.match(domain) is not None


def parse_bare_hostname(raw: str) -> str:
    """Validate that *raw* is a bare hostname and return it normalized.

    Used for grants, which arrive from the block page with the domain
    already extracted; anything carrying a scheme, path or whitespace is
    rejected rather than silently repaired.
    """
    if not isinstance(raw, str) or not raw:
        raise InvalidDomain(str(raw), "empty")
    if _WHITESPACE_RE.search(raw):
        raise InvalidDomain(raw, "contains whitespace")
    if "://" in raw:
        raise InvalidDomain(raw, "contains a scheme")
    if "/" in raw:
        raise InvalidDomain(raw, "contains a slash")
    domain = normalize_domain(raw)
    if not is_valid_domain(domain):
        raise InvalidDomain(raw)
    return domain


def parse_user_domain(raw: str) -> str:
    """Normalize free-form user input (URL or host) for the block list."""
    domain = normalize_domain(raw or "")
    if not is_valid_domain(domain):
        raise InvalidDomain(raw or "", "enter a valid domain")
    return domain
