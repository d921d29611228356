"""Tests for block rules and the rule-matching engine adapters."""

from __future__ import annotations

import json

import pytest

from siteblock.blocking.rule_engine import InMemoryRuleEngine, JsonFileRuleEngine, apply_update
from siteblock.blocking.rules import Rule
from siteblock.errors import EngineRejected


class TestRule:
    rule = Rule.for_domain(3, "example.com")

    def test_declarative_shape(self):
        d = self.rule.to_dict()
        assert d["id"] == 3
        assert d["action"] == {
            "type": "redirect",
            "redirect": {"extension_path": "/blocked.html?site=example.com"},
        }
        assert d["condition"] == {
            "url_filter": "||example.com^",
            "resource_types": ["main_frame"],
        }

    def test_from_dict_restores_rule(self):
        assert Rule.from_dict(self.rule.to_dict()) == self.rule

    def test_custom_block_page(self):
        r = Rule.for_domain(1, "a.com", block_page_path="/stop.html")
        assert r.redirect_target == "/stop.html?site=a.com"

    def test_matches_domain_and_subdomains(self):
        assert self.rule.matches("https://example.com/")
        assert self.rule.matches("http://www.example.com/page")
        assert self.rule.matches("https://deep.sub.example.com")

    def test_does_not_match_lookalike_domains(self):
        assert not self.rule.matches("https://notexample.com/")
        assert not self.rule.matches("https://example.com.evil.net/")

    def test_only_top_level_navigation(self):
        assert not self.rule.matches("https://example.com/img.png", resource_type="image")


class TestApplyUpdate:
    def test_full_replace(self):
        current = {1: Rule.for_domain(1, "a.com")}
        result = apply_update(current, [1], [Rule.for_domain(2, "b.com")], max_rules=10)
        assert list(result) == [2]

    def test_duplicate_id_in_batch_rejected(self):
        with pytest.raises(EngineRejected):
            apply_update({}, [], [Rule.for_domain(1, "a.com"), Rule.for_domain(1, "b.com")], 10)

    def test_collision_with_surviving_rule_rejected(self):
        current = {1: Rule.for_domain(1, "a.com")}
        with pytest.raises(EngineRejected):
            apply_update(current, [], [Rule.for_domain(1, "b.com")], 10)

    def test_non_positive_id_rejected(self):
        with pytest.raises(EngineRejected):
            apply_update({}, [], [Rule.for_domain(0, "a.com")], 10)

    def test_rule_limit(self):
        rules = [Rule.for_domain(i, f"d{i}.com") for i in range(1, 4)]
        with pytest.raises(EngineRejected):
            apply_update({}, [], rules, max_rules=2)


class TestInMemoryEngine:
    async def test_rejected_update_changes_nothing(self):
        engine = InMemoryRuleEngine()
        await engine.replace_rules([], [Rule.for_domain(1, "a.com")])
        with pytest.raises(EngineRejected):
            await engine.replace_rules([1], [Rule.for_domain(2, "b.com"), Rule.for_domain(2, "c.com")])
        assert [r.domain for r in await engine.list_rules()] == ["a.com"]


class TestJsonFileEngine:
    async def test_rules_survive_a_new_instance(self, tmp_path):
        path = tmp_path / "rules.json"
        await JsonFileRuleEngine(path).replace_rules([], [Rule.for_domain(5, "a.com")])
        rules = await JsonFileRuleEngine(path).list_rules()
        assert rules == [Rule.for_domain(5, "a.com")]

    async def test_file_holds_declarative_rules(self, tmp_path):
        path = tmp_path / "rules.json"
        await JsonFileRuleEngine(path).replace_rules([], [Rule.for_domain(5, "a.com")])
        data = json.loads(path.read_text())
        assert data[0]["condition"]["url_filter"] == "||a.com^"

    async def test_missing_file_means_no_rules(self, tmp_path):
        assert await JsonFileRuleEngine(tmp_path / "none.json").list_rules() == []

    async def test_corrupt_file_is_rejected(self, tmp_path):
        path = tmp_path / "rules.json"
        path.write_text("{not json")
        with pytest.raises(EngineRejected):
            await JsonFileRuleEngine(path).list_rules()

    async def test_rejected_update_leaves_file_untouched(self, tmp_path):
        path = tmp_path / "rules.json"
        engine = JsonFileRuleEngine(path, max_rules=1)
        await engine.replace_rules([], [Rule.for_domain(1, "a.com")])
        before = path.read_text()
        with pytest.raises(EngineRejected):
            await engine.replace_rules([], [Rule.for_domain(2, "b.com")])
        assert path.read_text() == before

    async def test_unreadable_file_is_rejected(self, tmp_path):
        path = tmp_path / "rules.json"
        path.mkdir()
        engine = JsonFileRuleEngine(path)
        with pytest.raises(EngineRejected):
            await engine.list_rules()
        with pytest.raises(EngineRejected):
            await engine.replace_rules([], [Rule.for_domain(1, "a.com")])
