"""Aggregation of findings into an ordered, immutable review report."""

import logging
from collections.abc import Iterable

from facts import FACT_VOCABULARY_VERSION
from models import (
    CANONICAL_DIMENSION_ORDER,
    SEVERITY_ORDER,
    Finding,
    ReviewReport,
    RuleEvaluationError,
)

logger = logging.getLogger(__name__)


def _dedup_findings(findings: Iterable[Finding]) -> list[Finding]:
    """Collapse structural duplicates, keeping the most severe instance.

    Two findings are duplicates when they share rule id and locations. On
    equal severity the first one seen is kept.
    """
    unique: dict[tuple, Finding] = {}
    for finding in findings:
        existing = unique.get(finding.identity)
        if existing is None or finding.severity.outranks(existing.severity):
            unique[finding.identity] = finding
    return list(unique.values())


def _dedup_errors(
    errors: Iterable[RuleEvaluationError],
) -> tuple[RuleEvaluationError, ...]:
    by_rule: dict[str, RuleEvaluationError] = {}
    for error in errors:
        by_rule.setdefault(error.rule_id, error)
    return tuple(by_rule[rule_id] for rule_id in sorted(by_rule))


def aggregate(
    findings: Iterable[Finding],
    errors: Iterable[RuleEvaluationError] = (),
    facts_version: str = FACT_VOCABULARY_VERSION,
) -> ReviewReport:
    """Build a ReviewReport from raw findings.

    1. Structural duplicates collapse to one entry
    2. Entries sort by severity, canonical dimension, rule id, then locations
    3. Counts per severity and per dimension cover the deduplicated set

    Inputs are never mutated. Aggregating a report's own findings and errors
    again yields an equal report.
    """
    raw = list(findings)
    unique = sorted(_dedup_findings(raw), key=lambda f: f.sort_key)

    if len(unique) != len(raw):
        logger.debug("Removed %d duplicate finding(s)", len(raw) - len(unique))

    severity_counts = {s: 0 for s in SEVERITY_ORDER}
    dimension_counts = {d: 0 for d in CANONICAL_DIMENSION_ORDER}
    for finding in unique:
        severity_counts[finding.severity] += 1
        dimension_counts[finding.dimension] += 1

    return ReviewReport(
        findings=tuple(unique),
        severity_counts=severity_counts,
        dimension_counts=dimension_counts,
        errors=_dedup_errors(errors),
        facts_version=facts_version,
    )
