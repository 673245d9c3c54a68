"""Markdown and console rendering of review reports.

Rendering only decides presentation. Severity and ordering come from the
report as-is.
"""

from models import Dimension, Finding, ReviewReport, Severity

SEVERITY_GLYPHS: dict[Severity, str] = {
    Severity.BLOCKER: "🔴",
    Severity.SUGGESTION: "🟡",
    Severity.NITPICK: "🟢",
}

SEVERITY_LABELS: dict[Severity, str] = {
    Severity.BLOCKER: "Blockers",
    Severity.SUGGESTION: "Suggestions",
    Severity.NITPICK: "Nitpicks",
}

DIMENSION_LABELS: dict[Dimension, str] = {
    Dimension.SECURITY: "🔒 Security",
    Dimension.TYPE_SAFETY: "🏷️ Type Safety",
    Dimension.QUALITY: "📐 Code Quality",
    Dimension.ARCHITECTURE: "🏗️ Architecture",
    Dimension.PERFORMANCE: "⚡ Performance",
    Dimension.ACCESSIBILITY: "♿ Accessibility",
    Dimension.TESTING: "🧪 Testing",
    Dimension.STYLING: "🎨 Styling",
}

# Locations listed per finding before "+N more"
_MAX_LOCATIONS = 5


def _format_locations(finding: Finding) -> str:
    if not finding.locations:
        return ""
    shown = [str(loc) for loc in finding.locations[:_MAX_LOCATIONS]]
    extra = len(finding.locations) - _MAX_LOCATIONS
    if extra > 0:
        shown.append(f"+{extra} more")
    return " (" + ", ".join(shown) + ")"


def _summary_line(report: ReviewReport) -> str:
    if not report.findings:
        return "No issues found. Code looks good! ✨"
    parts = [
        f"{SEVERITY_GLYPHS[s]} {count} {SEVERITY_LABELS[s].lower()}"
        for s, count in report.severity_counts.items()
        if count
    ]
    return f"Found {report.total} issue(s): " + ", ".join(parts)


def format_report_markdown(report: ReviewReport, title: str = "Code Review") -> str:
    """Format *report* as a markdown checklist grouped by severity and dimension."""
    lines: list[str] = []
    lines.append(f"## {title}\n")
    lines.append(f"**{_summary_line(report)}**\n")

    for severity, groups in report.grouped():
        lines.append(f"\n### {SEVERITY_GLYPHS[severity]} {SEVERITY_LABELS[severity]}\n")
        for dimension, findings in groups:
            lines.append(f"\n#### {DIMENSION_LABELS[dimension]}\n")
            for f in findings:
                lines.append(
                    f"- [ ] **{f.rule_id}**: {f.message}{_format_locations(f)}"
                )
                if f.fix:
                    lines.append(f"  - 💡 {f.fix}")

    if report.errors:
        lines.append("\n### ⚠️ Checks that could not run\n")
        for error in report.errors:
            detail = f": {error.message}" if error.message else ""
            lines.append(f"- `{error.rule_id}` ({error.error_type}{detail})")

    counts = [
        f"{DIMENSION_LABELS[d]}: {n}" for d, n in report.dimension_counts.items() if n
    ]
    if counts:
        lines.append("\n---")
        lines.append(" | ".join(counts))

    return "\n".join(lines)


def print_report(report: ReviewReport, title: str = "CODE REVIEW") -> None:
    """Pretty print a review report to the console."""
    print(f"\n{'=' * 60}")
    print(f"📋 {title}")
    print(f"{'=' * 60}")
    print(_summary_line(report))

    for severity, groups in report.grouped():
        print(f"\n{'─' * 60}")
        print(f"{SEVERITY_GLYPHS[severity]} {SEVERITY_LABELS[severity].upper()}")
        print(f"{'─' * 60}")
        for dimension, findings in groups:
            print(f"\n  {DIMENSION_LABELS[dimension]}")
            for finding in findings:
                print(f"    [{finding.rule_id}]{_format_locations(finding)}")
                print(f"       {finding.message}")
                if finding.fix:
                    print(f"       💡 Fix: {finding.fix}")

    for error in report.errors:
        print(f"\n  ⚠️  {error.rule_id} failed: {error.error_type} {error.message}")

    print(f"\n{'=' * 60}\n")
