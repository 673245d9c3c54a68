"""Shared configuration for the review engine."""

import logging
import os
import re

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from models import Dimension, Severity

# ---------------------------------------------------------------------------
# Environment & logging (initialised once on first import)
# ---------------------------------------------------------------------------
load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
DEFAULT_MAX_FILE_LINES: int = 300
DEFAULT_MAX_WORKERS: int = 4

# "rule.id=severity" pairs, comma separated
_OVERRIDE_PATTERN = re.compile(r"^\s*([\w.-]+)\s*=\s*(\w+)\s*$")


# ---------------------------------------------------------------------------
# Review configuration
# ---------------------------------------------------------------------------
class ReviewConfig(BaseModel):
    """Options accepted when building a rule registry."""

    model_config = ConfigDict(frozen=True)

    enabled_dimensions: frozenset[Dimension] | None = Field(
        default=None, description="Dimensions to run; None runs all of them"
    )
    severity_overrides: dict[str, Severity] = Field(
        default_factory=dict, description="rule id -> severity"
    )
    max_file_lines: int = Field(
        default=DEFAULT_MAX_FILE_LINES,
        gt=0,
        description="Threshold for the file-size rule",
    )
    max_workers: int = Field(
        default=DEFAULT_MAX_WORKERS,
        ge=1,
        description="Worker threads used to run rule predicates",
    )

    def is_enabled(self, dimension: Dimension) -> bool:
        return self.enabled_dimensions is None or dimension in self.enabled_dimensions


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------
def _squash(text: str) -> str:
    return re.sub(r"[^a-z]", "", text.lower())


_DIMENSIONS_BY_KEY: dict[str, Dimension] = {_squash(d.value): d for d in Dimension}


def parse_dimension(name: str) -> Dimension:
    """Parse a dimension name, tolerating case and separators.

    ``"TypeSafety"``, ``"type_safety"`` and ``"type-safety"`` all map to
    ``Dimension.TYPE_SAFETY``. Raises ``ValueError`` on unknown names.
    """
    dimension = _DIMENSIONS_BY_KEY.get(_squash(name))
    if dimension is None:
        valid = ", ".join(d.value for d in Dimension)
        raise ValueError(f"Unknown dimension: {name!r}. Expected one of: {valid}")
    return dimension


def parse_severity(name: str) -> Severity:
    try:
        return Severity(name.strip().lower())
    except ValueError as e:
        valid = ", ".join(s.value for s in Severity)
        raise ValueError(
            f"Unknown severity: {name!r}. Expected one of: {valid}"
        ) from e


def parse_dimensions(text: str) -> frozenset[Dimension]:
    """Parse a comma separated list of dimensions."""
    parts = [p for p in (s.strip() for s in text.split(",")) if p]
    if not parts:
        raise ValueError("Dimension list is empty")
    return frozenset(parse_dimension(p) for p in parts)


def parse_severity_overrides(text: str) -> dict[str, Severity]:
    """Parse ``"rule.id=severity,other.rule=nitpick"`` into a mapping."""
    overrides: dict[str, Severity] = {}
    for chunk in text.split(","):
        if not chunk.strip():
            continue
        match = _OVERRIDE_PATTERN.match(chunk)
        if not match:
            raise ValueError(
                f"Invalid severity override: {chunk.strip()!r}. "
                f"Expected 'rule.id=severity'."
            )
        rule_id, severity = match.groups()
        overrides[rule_id] = parse_severity(severity)
    return overrides


def _positive_int(name: str, raw: str) -> int:
    try:
        value = int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


# ---------------------------------------------------------------------------
# Environment loading
# ---------------------------------------------------------------------------
def load_config() -> ReviewConfig:
    """Build a ReviewConfig from the environment (and ``.env``).

    Recognised variables:
    - REVIEW_ENABLED_DIMENSIONS: comma list, e.g. "security,type_safety"
    - REVIEW_SEVERITY_OVERRIDES: e.g. "styling.important=suggestion"
    - REVIEW_MAX_FILE_LINES: file-size threshold (default 300)
    - REVIEW_MAX_WORKERS: rule worker threads (default 4)

    Raises ``ValueError`` on malformed values.
    """
    options: dict = {}

    dimensions = os.getenv("REVIEW_ENABLED_DIMENSIONS", "").strip()
    if dimensions:
        options["enabled_dimensions"] = parse_dimensions(dimensions)

    overrides = os.getenv("REVIEW_SEVERITY_OVERRIDES", "").strip()
    if overrides:
        options["severity_overrides"] = parse_severity_overrides(overrides)

    max_lines = os.getenv("REVIEW_MAX_FILE_LINES", "").strip()
    if max_lines:
        options["max_file_lines"] = _positive_int("REVIEW_MAX_FILE_LINES", max_lines)

    workers = os.getenv("REVIEW_MAX_WORKERS", "").strip()
    if workers:
        options["max_workers"] = _positive_int("REVIEW_MAX_WORKERS", workers)

    try:
        config = ReviewConfig(**options)
    except ValidationError as e:
        raise ValueError(f"Invalid review configuration: {e}") from e

    logger.debug("Loaded review config: %s", config)
    return config
