import pytest

from config import ReviewConfig
from exceptions import DuplicateRuleId, UnknownRuleId
from facts import FactSet
from models import Dimension, Severity
from registry import RuleRegistry, build_default_registry
from rules import SUPPRESSIONS, Rule, default_rules


def never(facts):
    return None


def make_rule(rule_id, dimension=Dimension.QUALITY, framework=None):
    return Rule(rule_id, dimension, Severity.NITPICK, never, framework=framework)


class TestRuleRegistry:
    def test_duplicate_id_is_rejected(self):
        registry = RuleRegistry([make_rule("quality.a")])
        with pytest.raises(DuplicateRuleId) as exc:
            registry.register(make_rule("quality.a", Dimension.STYLING))
        assert exc.value.rule_id == "quality.a"

    def test_rules_for_keeps_registration_order(self):
        registry = RuleRegistry(
            [
                make_rule("quality.b"),
                make_rule("styling.a", Dimension.STYLING),
                make_rule("quality.a"),
            ]
        )
        assert [r.id for r in registry.rules_for(Dimension.QUALITY)] == [
            "quality.b",
            "quality.a",
        ]

    def test_rules_for_filters_framework_rules(self):
        registry = RuleRegistry(
            [make_rule("quality.a"), make_rule("react.a", framework="react")]
        )
        assert [r.id for r in registry.rules_for(Dimension.QUALITY)] == ["quality.a"]
        assert [r.id for r in registry.rules_for(Dimension.QUALITY, "react")] == [
            "quality.a",
            "react.a",
        ]
        assert [r.id for r in registry.rules_for(Dimension.QUALITY, "vue")] == ["quality.a"]

    def test_get_unknown_rule(self):
        with pytest.raises(UnknownRuleId):
            RuleRegistry().get("missing")

    def test_contains_and_len(self):
        registry = RuleRegistry([make_rule("quality.a")])
        assert "quality.a" in registry
        assert len(registry) == 1


class TestDefaultRegistry:
    def test_rule_ids_are_unique(self):
        ids = [rule.id for rule in default_rules()]
        assert len(ids) == len(set(ids))

    def test_covers_every_dimension(self, registry):
        assert registry.dimensions == set(Dimension)

    def test_suppression_table_names_registered_rules(self, registry):
        for preferred, suppressed in SUPPRESSIONS:
            assert preferred in registry
            assert suppressed in registry

    def test_framework_rule_sets(self, registry):
        frameworks = {rule.framework for rule in registry if rule.framework}
        assert frameworks == {"react", "vue", "angular"}

    def test_enabled_dimensions_restricts_rules(self):
        registry = build_default_registry(
            ReviewConfig(enabled_dimensions=frozenset({Dimension.SECURITY}))
        )
        assert len(registry) > 0
        assert {rule.dimension for rule in registry} == {Dimension.SECURITY}

    def test_severity_override(self):
        registry = build_default_registry(
            ReviewConfig(severity_overrides={"styling.important": Severity.BLOCKER})
        )
        assert registry.get("styling.important").severity == Severity.BLOCKER

    def test_unknown_override_is_rejected(self):
        with pytest.raises(UnknownRuleId):
            build_default_registry(
                ReviewConfig(severity_overrides={"no.such-rule": Severity.BLOCKER})
            )

    def test_max_file_lines_parameterizes_file_size_rule(self):
        registry = build_default_registry(ReviewConfig(max_file_lines=100))
        rule = registry.get("quality.file-too-long")
        assert rule.predicate(FactSet(file_lines=100)) is None
        hit = rule.predicate(FactSet(file_lines=101))
        assert hit is not None
        assert "file exceeds 100 lines" in hit.message
