"""Tests for domain normalization and validation."""

import pytest

from siteblock.blocking.domains import (
    is_valid_domain,
    normalize_domain,
    parse_bare_hostname,
    parse_user_domain,
)
from siteblock.errors import InvalidDomain


class TestNormalize:
    def test_strips_scheme_www_port_and_path(self):
        assert normalize_domain("https://www.Example.com:8080/a/b?c=1#frag") == "example.com"

    def test_strips_surrounding_whitespace(self):
        assert normalize_domain("  Reddit.com \n") == "reddit.com"

    def test_keeps_subdomains_other_than_www(self):
        assert normalize_domain("http://news.ycombinator.com/item") == "news.ycombinator.com"

    def test_query_without_path(self):
        assert normalize_domain("example.com?utm=x") == "example.com"


class TestValidity:
    @pytest.mark.parametrize("domain", ["reddit.com", "a-b.co.uk", "x1.io"])
    def test_valid(self, domain):
        assert is_valid_domain(domain)

    @pytest.mark.parametrize("domain", ["", "localhost", "-bad.com", "bad..com", "a.c", "a.123"])
    def test_invalid(self, domain):
        assert not is_valid_domain(domain)


class TestBareHostname:
    def test_normalizes_case_www_and_port(self):
        assert parse_bare_hostname("WWW.Example.com:8080") == "example.com"

    @pytest.mark.parametrize("raw", [
        "https://example.com",
        "example.com/path",
        "exa mple.com",
        " example.com",
        "",
        "not-a-domain",
    ])
    def test_rejects(self, raw):
        with pytest.raises(InvalidDomain):
            parse_bare_hostname(raw)

    def test_invalid_domain_is_a_value_error(self):
        with pytest.raises(ValueError):
            parse_bare_hostname("a/b")


class TestUserDomain:
    def test_accepts_full_url(self):
        assert parse_user_domain("https://www.youtube.com/watch?v=1") == "youtube.com"

    def test_rejects_garbage(self):
        with pytest.raises(InvalidDomain):
            parse_user_domain("not a domain")
