"""Review orchestration - connects fact extraction, rules and reporting."""

import logging
import threading
from dataclasses import dataclass
from pathlib import Path

from aggregator import aggregate
from config import ReviewConfig, load_config
from diff_parser import (
    FileDiff,
    collect_test_paths,
    filter_files,
    has_matching_test,
    parse_diff,
)
from engine import evaluate
from exceptions import InvalidFactError
from fact_extractor import extract_facts, extract_facts_from_lines
from facts import FactSet
from models import ReviewReport
from registry import RuleRegistry, build_default_registry

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------
@dataclass
class FileReview:
    """Review results for a single file of a diff."""

    filename: str
    status: str
    additions: int
    report: ReviewReport | None = None
    error: str | None = None


# ---------------------------------------------------------------------------
# Core review functions
# ---------------------------------------------------------------------------
def review_facts(
    facts: FactSet,
    registry: RuleRegistry | None = None,
    config: ReviewConfig | None = None,
    cancel_event: threading.Event | None = None,
    max_workers: int | None = None,
) -> ReviewReport:
    """
    Evaluate every rule against *facts* and aggregate the results.

    Args:
        facts: Facts of the unit under review
        registry: Rules to run; built from *config* when omitted
        config: Review options; read from the environment only when neither
            a config nor a registry is given
        cancel_event: Set it to abandon the review between rule invocations
        max_workers: Rule worker threads; defaults to ``config.max_workers``,
            or sequential evaluation when there is no config

    Returns:
        ReviewReport with ordered, deduplicated findings

    Raises:
        ReviewCancelled: If *cancel_event* was set before evaluation finished
    """
    if registry is None:
        config = config or load_config()
        registry = build_default_registry(config)
    if max_workers is None:
        max_workers = config.max_workers if config is not None else 1

    result = evaluate(
        facts,
        registry,
        max_workers=max_workers,
        cancel_event=cancel_event,
    )
    if result.errors:
        logger.warning(
            "%d rule(s) failed: %s",
            len(result.errors),
            ", ".join(e.rule_id for e in result.errors),
        )
    return aggregate(result.findings, result.errors)


def review_source(
    source: str,
    file_path: str = "",
    config: ReviewConfig | None = None,
    has_test_file: bool | None = None,
) -> ReviewReport:
    """Extract facts from *source* and review them."""
    facts = extract_facts(source, file_path, has_test_file=has_test_file)
    return review_facts(facts, config=config)


def review_file(path: str | Path, config: ReviewConfig | None = None) -> ReviewReport:
    """Review a source file on disk.

    A sibling ``*.test.*`` or ``*.spec.*`` file counts as test coverage.
    """
    path = Path(path)
    source = path.read_text(encoding="utf-8")
    logger.info("Reviewing %s (%d lines)", path, source.count("\n") + 1)
    return review_source(
        source,
        str(path),
        config=config,
        has_test_file=_sibling_test_exists(path),
    )


def _sibling_test_exists(path: Path) -> bool:
    stem = path.name.split(".")[0]
    for marker in ("test", "spec"):
        if any(path.parent.glob(f"{stem}.{marker}.*")):
            return True
    return (path.parent / "__tests__").is_dir() and any(
        (path.parent / "__tests__").glob(f"{stem}.*")
    )


def _known_length(file: FileDiff) -> int | None:
    # Hunks of a modified file need not reach its end
    if file.status == "added":
        return file.target_length or None
    return None


def review_diff(diff_text: str, config: ReviewConfig | None = None) -> list[FileReview]:
    """
    Review every frontend file touched by a unified diff.

    Only added lines are inspected. A test file for the same base name in the
    diff counts as coverage; otherwise test coverage is left unknown. File
    length is only known for newly added files.

    Args:
        diff_text: Raw unified diff
        config: Review options; read from the environment when omitted

    Returns:
        One FileReview per reviewable file
    """
    config = config or load_config()
    registry = build_default_registry(config)

    all_files = parse_diff(diff_text)
    files_to_review = filter_files(all_files)
    test_paths = collect_test_paths(all_files)
    logger.info(
        "Files to review: %d (filtered from %d)",
        len(files_to_review),
        len(all_files),
    )

    file_reviews: list[FileReview] = []
    for file in files_to_review:
        logger.info("Reviewing %s...", file.filename)
        try:
            facts = extract_facts_from_lines(
                file.added_lines,
                file.filename,
                has_test_file=True if has_matching_test(file.filename, test_paths) else None,
                file_lines=_known_length(file),
            )
            report = review_facts(facts, registry=registry, config=config)
        except (InvalidFactError, ValueError) as e:
            logger.error("Error reviewing %s: %s", file.filename, e)
            file_reviews.append(
                FileReview(
                    filename=file.filename,
                    status=file.status,
                    additions=file.additions,
                    error=str(e),
                )
            )
            continue

        logger.info("  Found %d issue(s) in %s", report.total, file.filename)
        file_reviews.append(
            FileReview(
                filename=file.filename,
                status=file.status,
                additions=file.additions,
                report=report,
            )
        )

    return file_reviews
