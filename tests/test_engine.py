import logging
import threading

import pytest

from aggregator import aggregate
from config import ReviewConfig
from engine import apply_suppressions, evaluate
from exceptions import ReviewCancelled
from facts import FactSet
from models import Dimension, Finding, Location, Severity
from registry import RuleRegistry, build_default_registry
from rules import Escalation, Rule, RuleHit, default_rules, when_lines


def review(facts, registry, **kwargs):
    result = evaluate(facts, registry, **kwargs)
    return aggregate(result.findings, result.errors)


def by_rule(report):
    return {f.rule_id: f for f in report.findings}


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------
def test_long_file_using_any(registry):
    report = review(FactSet(file_lines=520, uses_any_type=True), registry)

    findings = by_rule(report)
    assert set(findings) == {"quality.file-too-long", "types.explicit-any"}

    too_long = findings["quality.file-too-long"]
    assert too_long.dimension == Dimension.QUALITY
    assert too_long.severity == Severity.SUGGESTION
    assert "file exceeds 300 lines" in too_long.message

    any_type = findings["types.explicit-any"]
    assert any_type.dimension == Dimension.TYPE_SAFETY
    assert any_type.severity == Severity.SUGGESTION
    assert "avoid `any`" in any_type.message

    assert len(report.findings) == len(set(report.findings))


def test_camel_case_fact_names_trigger_rules(registry):
    report = review(FactSet({"fileLines": 520, "usesAnyType": True}), registry)
    assert set(by_rule(report)) == {"quality.file-too-long", "types.explicit-any"}


def test_unsanitized_user_input_in_dom_sink_is_one_blocker(registry):
    facts = FactSet(dom_sink_lines=[12], dom_sink_user_input=True)
    report = review(facts, registry)

    security = report.for_dimension(Dimension.SECURITY)
    assert len(security) == 1
    assert security[0].rule_id == "security.xss-dom-sink"
    assert security[0].severity == Severity.BLOCKER


def test_escalation_ignores_lowered_default():
    registry = build_default_registry(
        ReviewConfig(severity_overrides={"security.xss-dom-sink": Severity.NITPICK})
    )
    facts = FactSet(dom_sink_lines=[12], dom_sink_user_input=True)
    finding = by_rule(review(facts, registry))["security.xss-dom-sink"]
    assert finding.severity == Severity.BLOCKER


def test_sanitized_sink_keeps_default_severity(registry):
    facts = FactSet(dom_sink_lines=[12], dom_sink_user_input=True, dom_sink_sanitized=True)
    finding = by_rule(review(facts, registry))["security.xss-dom-sink"]
    assert finding.severity == Severity.SUGGESTION


def test_escalation_reason_is_logged(registry, caplog):
    facts = FactSet(dom_sink_lines=[12], dom_sink_user_input=True)
    with caplog.at_level(logging.INFO, logger="rules"):
        evaluate(facts, registry)
    assert "Escalated security.xss-dom-sink from suggestion to blocker" in caplog.text
    assert "user input reaches the sink unsanitized" in caplog.text


def escalating_rule(severity, condition):
    return Rule(
        "quality.custom",
        Dimension.QUALITY,
        severity,
        when_lines("console_log_lines", "{count} console call(s)"),
        escalation=Escalation(condition),
    )


@pytest.mark.parametrize(
    "default, expected",
    [
        (Severity.NITPICK, Severity.SUGGESTION),
        (Severity.SUGGESTION, Severity.BLOCKER),
        (Severity.BLOCKER, Severity.BLOCKER),
    ],
)
def test_escalation_raises_one_tier(default, expected):
    registry = RuleRegistry([escalating_rule(default, lambda facts: True)])
    result = evaluate(FactSet(console_log_lines=[2]), registry)
    assert [f.severity for f in result.findings] == [expected]


def test_escalation_needs_its_condition():
    registry = RuleRegistry([escalating_rule(Severity.NITPICK, lambda facts: False)])
    result = evaluate(FactSet(console_log_lines=[2]), registry)
    assert [f.severity for f in result.findings] == [Severity.NITPICK]


def test_escalation_target_never_lowers_severity():
    rule = Rule(
        "quality.custom",
        Dimension.QUALITY,
        Severity.BLOCKER,
        when_lines("console_log_lines", "{count} console call(s)"),
        escalation=Escalation(lambda facts: True, target=Severity.NITPICK),
    )
    result = evaluate(FactSet(console_log_lines=[2]), RuleRegistry([rule]))
    assert [f.severity for f in result.findings] == [Severity.BLOCKER]


def test_failing_rule_does_not_block_the_others():
    def broken(facts):
        raise RuntimeError("boom")

    registry = RuleRegistry(
        default_rules()
        + [Rule("quality.broken", Dimension.QUALITY, Severity.NITPICK, broken)]
    )
    report = review(FactSet(file_lines=520, uses_any_type=True), registry)

    assert {"quality.file-too-long", "types.explicit-any"} <= set(by_rule(report))
    assert len(report.errors) == 1
    error = report.errors[0]
    assert error.rule_id == "quality.broken"
    assert error.error_type == "RuntimeError"
    assert error.message == "boom"


def test_failing_escalation_condition_is_recorded():
    def bad_condition(facts):
        raise KeyError("missing")

    rule = Rule(
        "security.custom",
        Dimension.SECURITY,
        Severity.NITPICK,
        when_lines("eval_lines", "{count} eval(s)"),
        escalation=Escalation(bad_condition),
    )
    result = evaluate(FactSet(eval_lines=[1]), RuleRegistry([rule]))
    assert result.findings == ()
    assert [e.rule_id for e in result.errors] == ["security.custom"]


def test_enabled_dimensions_limits_findings():
    registry = build_default_registry(
        ReviewConfig(enabled_dimensions=frozenset({Dimension.SECURITY}))
    )
    facts = FactSet(
        file_lines=520,
        uses_any_type=True,
        important_lines=[4],
        eval_lines=[8],
        has_test_file=False,
    )
    report = review(facts, registry)
    assert report.findings
    assert {f.dimension for f in report.findings} == {Dimension.SECURITY}


def test_absent_facts_trigger_nothing(registry):
    result = evaluate(FactSet(), registry)
    assert result.findings == ()
    assert result.errors == ()


def test_unknown_facts_are_ignored(registry):
    result = evaluate(FactSet(brand_new_fact=True), registry)
    assert result.findings == ()


# ---------------------------------------------------------------------------
# Framework rule sets
# ---------------------------------------------------------------------------
def test_framework_rules_only_run_for_their_framework(registry):
    facts = FactSet(framework="vue", list_without_key_lines=[9])
    ids = set(by_rule(review(facts, registry)))
    assert "vue.missing-v-for-key" in ids
    assert "react.missing-list-key" not in ids


def test_framework_rules_inert_without_framework(registry):
    facts = FactSet(list_without_key_lines=[9], state_mutation_lines=[3])
    assert review(facts, registry).findings == ()


# ---------------------------------------------------------------------------
# Suppression
# ---------------------------------------------------------------------------
def test_any_wins_over_missing_annotation_on_shared_line(registry):
    facts = FactSet(
        is_typescript=True,
        any_type_lines=[5],
        missing_annotation_lines=[5],
    )
    result = evaluate(facts, registry)
    ids = {f.rule_id for f in result.findings}
    assert ids == {"types.explicit-any"}
    assert result.suppressed == ("types.missing-annotation",)


def test_suppressed_rule_keeps_unshared_lines(registry):
    facts = FactSet(any_type_lines=[5], missing_annotation_lines=[5, 9])
    findings = by_rule(review(facts, registry))
    assert findings["types.explicit-any"].lines == {5}
    assert findings["types.missing-annotation"].lines == {9}


def test_no_conflict_without_shared_location(registry):
    facts = FactSet(uses_any_type=True, missing_annotation_lines=[9])
    ids = set(by_rule(review(facts, registry)))
    assert ids == {"types.explicit-any", "types.missing-annotation"}


def test_more_severe_rule_wins_conflict():
    registry = build_default_registry(
        ReviewConfig(severity_overrides={"types.missing-annotation": Severity.BLOCKER})
    )
    facts = FactSet(any_type_lines=[5], missing_annotation_lines=[5])
    ids = set(by_rule(review(facts, registry)))
    assert ids == {"types.missing-annotation"}


def test_dom_sink_and_dangerous_html_report_once(registry):
    facts = FactSet(
        framework="react",
        dom_sink_lines=[14],
        dangerously_set_inner_html_lines=[14],
        dom_sink_user_input=True,
    )
    security = review(facts, registry).for_dimension(Dimension.SECURITY)
    assert [f.rule_id for f in security] == ["security.xss-dom-sink"]
    assert security[0].severity == Severity.BLOCKER


def test_missing_tests_suppresses_snapshot_only(registry):
    facts = FactSet(has_test_file=False, snapshot_only_tests=True)
    ids = set(by_rule(review(facts, registry)))
    assert ids == {"testing.missing-tests"}


def test_apply_suppressions_equal_severity_prefers_first():
    a = Finding(rule_id="a", dimension=Dimension.QUALITY, severity=Severity.NITPICK,
                message="a")
    b = Finding(rule_id="b", dimension=Dimension.QUALITY, severity=Severity.NITPICK,
                message="b")
    kept, suppressed = apply_suppressions([b, a], (("a", "b"),))
    assert [f.rule_id for f in kept] == ["a"]
    assert suppressed == ["b"]


# ---------------------------------------------------------------------------
# General inline styles vs framework dynamic styles
# ---------------------------------------------------------------------------
def test_plain_inline_styles_are_flagged(registry):
    facts = FactSet(inline_style_lines=[3, 7], dynamic_inline_style_lines=[7])
    finding = by_rule(review(facts, registry))["styling.inline-styles"]
    assert finding.lines == {3, 7}


def test_react_dynamic_styles_are_idiomatic(registry):
    facts = FactSet(
        framework="react", inline_style_lines=[7], dynamic_inline_style_lines=[7]
    )
    assert review(facts, registry).findings == ()


def test_react_static_style_replaces_general_rule(registry):
    facts = FactSet(
        framework="react", inline_style_lines=[3, 7], dynamic_inline_style_lines=[7]
    )
    findings = by_rule(review(facts, registry))
    assert set(findings) == {"react.static-inline-style"}
    assert findings["react.static-inline-style"].lines == {3}
    assert findings["react.static-inline-style"].severity == Severity.SUGGESTION


def test_vue_bound_styles_are_idiomatic(registry):
    facts = FactSet(
        framework="vue", inline_style_lines=[3, 7], dynamic_inline_style_lines=[7]
    )
    finding = by_rule(review(facts, registry))["styling.inline-styles"]
    assert finding.lines == {3}


# ---------------------------------------------------------------------------
# Locations
# ---------------------------------------------------------------------------
def test_findings_carry_file_locations(registry):
    facts = FactSet(file_path="src/App.tsx", console_log_lines=[9, 4, 9])
    finding = by_rule(review(facts, registry))["quality.console-statements"]
    assert finding.locations == (
        Location(file="src/App.tsx", line=4),
        Location(file="src/App.tsx", line=9),
    )


def test_file_level_finding_points_at_file(registry):
    facts = FactSet(file_path="src/App.tsx", has_test_file=False)
    finding = by_rule(review(facts, registry))["testing.missing-tests"]
    assert finding.locations == (Location(file="src/App.tsx"),)


# ---------------------------------------------------------------------------
# Concurrency & cancellation
# ---------------------------------------------------------------------------
RICH_FACTS = FactSet(
    file_path="src/App.tsx",
    framework="react",
    file_lines=520,
    uses_any_type=True,
    any_type_lines=[4],
    console_log_lines=[9],
    dom_sink_lines=[13],
    dom_sink_user_input=True,
    has_alt_text=False,
    images_missing_alt_lines=[17],
    inline_style_lines=[16],
    effect_missing_deps_lines=[8],
    has_test_file=False,
)


def test_threaded_evaluation_matches_sequential(registry):
    sequential = review(RICH_FACTS, registry, max_workers=1)
    threaded = review(RICH_FACTS, registry, max_workers=8)
    assert threaded.to_json() == sequential.to_json()


def test_cancel_before_evaluation(registry):
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(ReviewCancelled):
        evaluate(RICH_FACTS, registry, cancel_event=cancel)


def test_cancel_between_rules_discards_partial_results():
    cancel = threading.Event()

    def cancelling(facts):
        cancel.set()
        return RuleHit("first rule ran")

    calls = []

    def later(facts):
        calls.append(1)
        return RuleHit("should never run")

    registry = RuleRegistry(
        [
            Rule("quality.first", Dimension.QUALITY, Severity.NITPICK, cancelling),
            Rule("quality.later", Dimension.QUALITY, Severity.NITPICK, later),
        ]
    )
    with pytest.raises(ReviewCancelled):
        evaluate(FactSet(), registry, cancel_event=cancel)
    assert calls == []


def test_cancel_from_a_worker_thread():
    cancel = threading.Event()

    def cancelling(facts):
        cancel.set()
        return RuleHit("cancels the review")

    rules = [Rule("quality.cancel", Dimension.QUALITY, Severity.NITPICK, cancelling)]
    parallel = RuleRegistry(rules + default_rules())
    with pytest.raises(ReviewCancelled):
        evaluate(RICH_FACTS, parallel, max_workers=4, cancel_event=cancel)


def test_evaluation_is_deterministic(registry):
    first = review(RICH_FACTS, registry, max_workers=4)
    for _ in range(5):
        assert review(RICH_FACTS, registry, max_workers=4).to_json() == first.to_json()
