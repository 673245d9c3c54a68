"""Data models for review findings and reports."""

from collections.abc import Iterator
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Dimension(str, Enum):
    """Fixed category a rule and its findings belong to."""

    QUALITY = "quality"
    TYPE_SAFETY = "type_safety"
    ARCHITECTURE = "architecture"
    PERFORMANCE = "performance"
    ACCESSIBILITY = "accessibility"
    SECURITY = "security"
    TESTING = "testing"
    STYLING = "styling"

    @property
    def order(self) -> int:
        """Position in the canonical report order."""
        return CANONICAL_DIMENSION_ORDER.index(self)


# Order in which dimensions appear within a severity tier
CANONICAL_DIMENSION_ORDER: tuple[Dimension, ...] = (
    Dimension.SECURITY,
    Dimension.TYPE_SAFETY,
    Dimension.QUALITY,
    Dimension.ARCHITECTURE,
    Dimension.PERFORMANCE,
    Dimension.ACCESSIBILITY,
    Dimension.TESTING,
    Dimension.STYLING,
)


class Severity(str, Enum):
    """Priority tier of a finding. BLOCKER > SUGGESTION > NITPICK."""

    BLOCKER = "blocker"
    SUGGESTION = "suggestion"
    NITPICK = "nitpick"

    @property
    def rank(self) -> int:
        """0 for the most severe tier."""
        return SEVERITY_ORDER.index(self)

    def escalated(self) -> "Severity":
        """One tier more severe, capped at BLOCKER."""
        return SEVERITY_ORDER[max(self.rank - 1, 0)]

    def outranks(self, other: "Severity") -> bool:
        return self.rank < other.rank


SEVERITY_ORDER: tuple[Severity, ...] = (
    Severity.BLOCKER,
    Severity.SUGGESTION,
    Severity.NITPICK,
)


class Location(BaseModel):
    """A file/line reference inside the reviewed unit."""

    model_config = ConfigDict(frozen=True)

    file: str | None = Field(default=None, description="File path")
    line: int | None = Field(default=None, description="1-based line number")

    @property
    def sort_key(self) -> tuple[str, int]:
        return (self.file or "", self.line if self.line is not None else -1)

    def __str__(self) -> str:
        if self.line is None:
            return self.file or "-"
        return f"{self.file or '-'}:{self.line}"


class Finding(BaseModel):
    """A single severity-tagged issue produced by a rule.

    Two findings are equal when they come from the same rule and point at the
    same locations; message and severity do not take part in equality.
    """

    model_config = ConfigDict(frozen=True)

    rule_id: str = Field(description="Id of the rule that produced this finding")
    dimension: Dimension
    severity: Severity
    message: str = Field(description="What the issue is")
    locations: tuple[Location, ...] = Field(default_factory=tuple)
    fix: str = Field(default="", description="Suggested fix")

    @property
    def identity(self) -> tuple[str, tuple[Location, ...]]:
        return (self.rule_id, self.locations)

    @property
    def lines(self) -> frozenset[int]:
        return frozenset(loc.line for loc in self.locations if loc.line is not None)

    @property
    def sort_key(self) -> tuple:
        """Total order: severity, canonical dimension, rule id, locations."""
        return (
            self.severity.rank,
            self.dimension.order,
            self.rule_id,
            tuple(loc.sort_key for loc in self.locations),
        )

    def with_severity(self, severity: Severity) -> "Finding":
        return self.model_copy(update={"severity": severity})

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Finding):
            return NotImplemented
        return self.identity == other.identity

    def __hash__(self) -> int:
        return hash(self.identity)


class RuleEvaluationError(BaseModel):
    """Record of a rule predicate that raised during evaluation."""

    model_config = ConfigDict(frozen=True)

    rule_id: str
    error_type: str = Field(description="Exception class name")
    message: str = Field(default="", description="Exception message")


class ReviewReport(BaseModel):
    """Ordered findings of one review plus summary counts."""

    model_config = ConfigDict(frozen=True)

    findings: tuple[Finding, ...] = Field(default_factory=tuple)
    severity_counts: dict[Severity, int] = Field(default_factory=dict)
    dimension_counts: dict[Dimension, int] = Field(default_factory=dict)
    errors: tuple[RuleEvaluationError, ...] = Field(default_factory=tuple)
    facts_version: str = ""

    @property
    def total(self) -> int:
        return len(self.findings)

    @property
    def has_blockers(self) -> bool:
        return self.severity_counts.get(Severity.BLOCKER, 0) > 0

    def for_dimension(self, dimension: Dimension) -> tuple[Finding, ...]:
        return tuple(f for f in self.findings if f.dimension == dimension)

    def grouped(
        self,
    ) -> Iterator[tuple[Severity, list[tuple[Dimension, list[Finding]]]]]:
        """Yield (severity, [(dimension, findings), ...]) in report order.

        Empty tiers and dimensions are skipped.
        """
        for severity in SEVERITY_ORDER:
            tier = [f for f in self.findings if f.severity == severity]
            if not tier:
                continue
            groups: list[tuple[Dimension, list[Finding]]] = []
            for dimension in CANONICAL_DIMENSION_ORDER:
                in_dim = [f for f in tier if f.dimension == dimension]
                if in_dim:
                    groups.append((dimension, in_dim))
            yield severity, groups

    def to_json(self) -> str:
        return self.model_dump_json(indent=2)
