"""Evaluation engine: runs every applicable rule against one FactSet."""

import logging
import threading
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from dataclasses import dataclass

from exceptions import ReviewCancelled
from facts import FactSet
from models import Finding, RuleEvaluationError
from registry import RuleRegistry
from rules import SUPPRESSIONS, Rule

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EvaluationResult:
    """Findings and rule failures of one evaluation run."""

    findings: tuple[Finding, ...] = ()
    errors: tuple[RuleEvaluationError, ...] = ()
    rules_run: int = 0
    suppressed: tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Single rule
# ---------------------------------------------------------------------------
def _run_rule(
    rule: Rule,
    facts: FactSet,
    cancel_event: threading.Event | None,
) -> Finding | RuleEvaluationError | None:
    """Run one predicate; failures are returned, never raised.

    Only ``ReviewCancelled`` escapes, so the whole review can be dropped.
    """
    if cancel_event is not None and cancel_event.is_set():
        raise ReviewCancelled(f"Review cancelled before rule {rule.id}")

    try:
        hit = rule.predicate(facts)
        if hit is None:
            return None
        return rule.to_finding(hit, facts)
    except Exception as e:
        logger.warning("Rule %s failed: %s: %s", rule.id, type(e).__name__, e)
        return RuleEvaluationError(
            rule_id=rule.id,
            error_type=type(e).__name__,
            message=str(e),
        )


def _run_all(
    rules: list[Rule],
    facts: FactSet,
    max_workers: int,
    cancel_event: threading.Event | None,
) -> list[Finding | RuleEvaluationError | None]:
    if max_workers <= 1 or len(rules) <= 1:
        return [_run_rule(rule, facts, cancel_event) for rule in rules]

    with ThreadPoolExecutor(
        max_workers=max_workers, thread_name_prefix="rule"
    ) as executor:
        futures = [
            executor.submit(_run_rule, rule, facts, cancel_event) for rule in rules
        ]
        _, pending = wait(futures, return_when=FIRST_EXCEPTION)
        for future in pending:
            future.cancel()
        # Re-raises ReviewCancelled from whichever rule saw the event first
        return [future.result() for future in futures if not future.cancelled()]


# ---------------------------------------------------------------------------
# Suppression
# ---------------------------------------------------------------------------
def _overlaps(a: Finding, b: Finding) -> bool:
    """Two findings conflict when they share a line or both are file-level."""
    a_lines, b_lines = a.lines, b.lines
    if not a_lines and not b_lines:
        return True
    return bool(a_lines & b_lines)


def _without_lines(finding: Finding, lines: frozenset[int]) -> Finding | None:
    """*finding* minus the locations on *lines*; None if nothing is left."""
    remaining = tuple(loc for loc in finding.locations if loc.line not in lines)
    if not lines or not remaining:
        return None
    return finding.model_copy(update={"locations": remaining})


def apply_suppressions(
    findings: list[Finding],
    suppressions: tuple[tuple[str, str], ...] = SUPPRESSIONS,
) -> tuple[list[Finding], list[str]]:
    """Never let both rules of a conflicting pair report the same location.

    The more severe finding keeps the shared locations; on equal severity the
    preferred (first) rule of the pair does. The loser keeps only locations
    the winner does not cover and disappears when none are left.

    Returns (kept findings, ids of rules that were fully suppressed).
    """
    by_rule = {f.rule_id: f for f in findings}
    suppressed: list[str] = []

    for preferred_id, other_id in suppressions:
        preferred = by_rule.get(preferred_id)
        other = by_rule.get(other_id)
        if preferred is None or other is None or not _overlaps(preferred, other):
            continue
        winner, loser = preferred, other
        if other.severity.outranks(preferred.severity):
            winner, loser = other, preferred

        trimmed = _without_lines(loser, winner.lines)
        if trimmed is None:
            del by_rule[loser.rule_id]
            suppressed.append(loser.rule_id)
            logger.debug("Suppressed %s in favour of %s", loser.rule_id, winner.rule_id)
        else:
            by_rule[loser.rule_id] = trimmed

    kept = [by_rule[f.rule_id] for f in findings if f.rule_id in by_rule]
    return kept, suppressed


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------
def evaluate(
    facts: FactSet,
    registry: RuleRegistry,
    *,
    max_workers: int = 1,
    cancel_event: threading.Event | None = None,
    suppressions: tuple[tuple[str, str], ...] = SUPPRESSIONS,
) -> EvaluationResult:
    """Run every rule that applies to *facts* and collect the results.

    - Framework-tagged rules run only when the ``framework`` fact matches.
    - A rule that raises is recorded as a RuleEvaluationError; the rest run.
    - Escalation is applied per finding, then the suppression table.
    - If *cancel_event* is set before all rules ran, ``ReviewCancelled`` is
      raised and nothing is returned.

    Findings come back in their canonical sort order, so the result does not
    depend on which worker finished first.
    """
    rules = registry.applicable(facts.framework)
    logger.debug(
        "Evaluating %d rule(s) (framework=%s)", len(rules), facts.framework or "-"
    )

    outcomes = _run_all(rules, facts, max_workers, cancel_event)

    if cancel_event is not None and cancel_event.is_set():
        raise ReviewCancelled("Review cancelled during evaluation")

    findings: list[Finding] = []
    errors: list[RuleEvaluationError] = []
    for outcome in outcomes:
        if isinstance(outcome, Finding):
            findings.append(outcome)
        elif isinstance(outcome, RuleEvaluationError):
            errors.append(outcome)

    kept, suppressed = apply_suppressions(findings, suppressions)

    return EvaluationResult(
        findings=tuple(sorted(kept, key=lambda f: f.sort_key)),
        errors=tuple(sorted(errors, key=lambda e: e.rule_id)),
        rules_run=len(rules),
        suppressed=tuple(sorted(suppressed)),
    )
