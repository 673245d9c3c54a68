"""
Review Agent - LangGraph-based review pipeline

This module runs one review as a state machine using LangGraph:
facts are extracted from the source, every applicable rule is evaluated,
findings are aggregated into a report, and the report is rendered.
"""

import logging
import threading
from dataclasses import dataclass, field

from langgraph.graph import END, START, StateGraph

from aggregator import aggregate
from config import ReviewConfig, load_config
from engine import evaluate
from exceptions import InvalidFactError, ReviewCancelled
from fact_extractor import extract_facts
from facts import FactSet
from models import Finding, ReviewReport, RuleEvaluationError
from registry import build_default_registry
from renderer import format_report_markdown

logger = logging.getLogger(__name__)


# =============================================================================
# STATE DEFINITION
# =============================================================================
@dataclass
class ReviewState:
    """
    State that flows through the review graph.

    Each node can read any field and return updates to specific fields.
    LangGraph automatically merges the updates into the state.
    """

    # Input (required)
    source: str

    # Input (optional)
    file_path: str = ""
    has_test_file: bool | None = None
    config: ReviewConfig | None = None
    cancel_event: threading.Event | None = None

    # Intermediate data (populated by nodes)
    facts: FactSet | None = None
    findings: list[Finding] = field(default_factory=list)
    errors: list[RuleEvaluationError] = field(default_factory=list)

    # Output
    report: ReviewReport | None = None
    markdown: str = ""
    cancelled: bool = False
    error: str | None = None


def _get(state, key: str, default=None):
    # LangGraph may pass state as dict or dataclass
    if isinstance(state, dict):
        return state.get(key, default)
    return getattr(state, key, default)


# =============================================================================
# NODE FUNCTIONS
# =============================================================================
def extract_facts_node(state: ReviewState) -> dict:
    """
    Node 1: Extract structural facts from the source.

    Reads: source, file_path, has_test_file
    Updates: facts, error
    """
    label = state.file_path or "<source>"
    logger.info("📥 Extracting facts from %s...", label)

    try:
        facts = extract_facts(
            state.source, state.file_path, has_test_file=state.has_test_file
        )
    except InvalidFactError as e:
        logger.error("Fact extraction failed for %s: %s", label, e)
        return {"error": str(e)}

    logger.info("   %d fact(s), framework=%s", len(facts), facts.framework or "none")
    return {"facts": facts}


def evaluate_rules_node(state: ReviewState) -> dict:
    """
    Node 2: Run every applicable rule against the facts.

    Reads: facts, config, cancel_event
    Updates: findings, errors, cancelled, error
    """
    config = state.config or load_config()
    registry = build_default_registry(config)

    logger.info("🔍 Evaluating %d rule(s)...", len(registry))
    try:
        result = evaluate(
            state.facts,
            registry,
            max_workers=config.max_workers,
            cancel_event=state.cancel_event,
        )
    except ReviewCancelled as e:
        logger.info("   Review cancelled: %s", e)
        return {"cancelled": True, "error": str(e)}

    logger.info(
        "   %d finding(s), %d rule failure(s)", len(result.findings), len(result.errors)
    )
    return {"findings": list(result.findings), "errors": list(result.errors)}


def aggregate_findings_node(state: ReviewState) -> dict:
    """
    Node 3: Deduplicate, order and count findings.

    Reads: findings, errors
    Updates: report
    """
    logger.info("🔀 Aggregating findings...")
    report = aggregate(state.findings, state.errors)
    return {"report": report}


def render_report_node(state: ReviewState) -> dict:
    """
    Node 4: Render the report as a markdown checklist.

    Reads: report, file_path
    Updates: markdown
    """
    title = f"Code Review: {state.file_path}" if state.file_path else "Code Review"
    return {"markdown": format_report_markdown(state.report, title=title)}


# =============================================================================
# DECISION FUNCTIONS (for conditional edges)
# =============================================================================
def should_continue(state: ReviewState) -> str:
    """
    Decide whether the pipeline can proceed.

    Returns:
        "continue" when the previous step succeeded
        "end" after an extraction error or a cancelled review
    """
    if _get(state, "error") or _get(state, "cancelled"):
        logger.info("🔀 Decision: stopping early (%s)", _get(state, "error"))
        return "end"
    return "continue"


# =============================================================================
# GRAPH CONSTRUCTION
# =============================================================================
def build_review_graph() -> StateGraph:
    """Build the review workflow graph."""
    graph = StateGraph(ReviewState)

    # Add nodes
    graph.add_node("extract_facts", extract_facts_node)
    graph.add_node("evaluate_rules", evaluate_rules_node)
    graph.add_node("aggregate_findings", aggregate_findings_node)
    graph.add_node("render_report", render_report_node)

    # Edges
    graph.add_edge(START, "extract_facts")
    graph.add_conditional_edges(
        "extract_facts",
        should_continue,
        {"continue": "evaluate_rules", "end": END},
    )
    # A cancelled review is discarded, never partially reported
    graph.add_conditional_edges(
        "evaluate_rules",
        should_continue,
        {"continue": "aggregate_findings", "end": END},
    )
    graph.add_edge("aggregate_findings", "render_report")
    graph.add_edge("render_report", END)

    return graph


def create_agent():
    """Create and compile the review agent."""
    graph = build_review_graph()
    return graph.compile()


def run_review(
    source: str,
    file_path: str = "",
    config: ReviewConfig | None = None,
    has_test_file: bool | None = None,
    cancel_event: threading.Event | None = None,
) -> dict:
    """Run the review pipeline on *source* and return the final state."""
    agent = create_agent()
    initial_state = ReviewState(
        source=source,
        file_path=file_path,
        has_test_file=has_test_file,
        config=config,
        cancel_event=cancel_event,
    )
    return agent.invoke(initial_state)
