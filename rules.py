"""Review rules: the fixed heuristic battery and its conflict tables.

Every rule is a pure predicate over a FactSet. A predicate returns ``None``
when the rule does not trigger, or a ``RuleHit`` describing the one finding
it produces. Rules whose facts are missing from the FactSet never trigger.
"""

import dataclasses
import logging
from collections.abc import Callable
from dataclasses import dataclass

from config import DEFAULT_MAX_FILE_LINES
from facts import FactSet
from models import Dimension, Finding, Location, Severity

logger = logging.getLogger(__name__)

# Frameworks whose dynamic style bindings are idiomatic
DYNAMIC_STYLE_FRAMEWORKS = frozenset({"react", "vue"})

MAX_FUNCTION_LINES = 50
MAX_NESTING_DEPTH = 3
MAX_RELATIVE_IMPORT_DEPTH = 2
MAX_PROP_DRILLING_DEPTH = 3
MAX_Z_INDEX = 1000

# How many names to list in a message before truncating
_MAX_NAMES_IN_MESSAGE = 5


# ---------------------------------------------------------------------------
# Rule types
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class RuleHit:
    """Payload returned by a triggered predicate."""

    message: str
    lines: tuple[int, ...] = ()
    fix: str = ""


Predicate = Callable[[FactSet], RuleHit | None]


@dataclass(frozen=True)
class Escalation:
    """Raise a finding's severity when *condition* holds.

    With ``target`` unset the severity moves up one tier; otherwise it is
    raised to ``target``. Escalation never lowers a severity.
    """

    condition: Callable[[FactSet], bool]
    target: Severity | None = None
    reason: str = ""

    def apply(self, facts: FactSet, severity: Severity) -> Severity:
        if not self.condition(facts):
            return severity
        raised = self.target or severity.escalated()
        return raised if raised.outranks(severity) else severity


@dataclass(frozen=True)
class Rule:
    id: str
    dimension: Dimension
    severity: Severity
    predicate: Predicate
    title: str = ""
    framework: str | None = None
    escalation: Escalation | None = None

    def applies_to(self, framework: str | None) -> bool:
        return self.framework is None or self.framework == framework

    def with_severity(self, severity: Severity) -> "Rule":
        return dataclasses.replace(self, severity=severity)

    def to_finding(self, hit: RuleHit, facts: FactSet) -> Finding:
        """Build the finding for *hit*, escalation applied."""
        severity = self.severity
        if self.escalation is not None:
            severity = self.escalation.apply(facts, self.severity)
            if severity != self.severity:
                logger.info(
                    "Escalated %s from %s to %s: %s",
                    self.id,
                    self.severity.value,
                    severity.value,
                    self.escalation.reason or "escalation condition holds",
                )

        file_path = facts.file_path
        if hit.lines:
            locations = tuple(
                Location(file=file_path, line=line) for line in sorted(set(hit.lines))
            )
        elif file_path:
            locations = (Location(file=file_path),)
        else:
            locations = ()

        return Finding(
            rule_id=self.id,
            dimension=self.dimension,
            severity=severity,
            message=hit.message,
            locations=locations,
            fix=hit.fix,
        )


# ---------------------------------------------------------------------------
# Predicate builders
# ---------------------------------------------------------------------------
def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}{'' if count == 1 else 's'}"


def _names(values: frozenset[str]) -> str:
    ordered = sorted(values)
    shown = ", ".join(ordered[:_MAX_NAMES_IN_MESSAGE])
    if len(ordered) > _MAX_NAMES_IN_MESSAGE:
        shown += f" (+{len(ordered) - _MAX_NAMES_IN_MESSAGE} more)"
    return shown


def when_lines(fact: str, message: str, fix: str = "") -> Predicate:
    """Trigger when the line-list *fact* is non-empty.

    *message* may use ``{count}`` for the number of lines.
    """

    def predicate(facts: FactSet) -> RuleHit | None:
        lines = facts.lines(fact)
        if not lines:
            return None
        return RuleHit(message.format(count=len(lines)), lines, fix)

    return predicate


def when_above(fact: str, limit: int, message: str, fix: str = "") -> Predicate:
    """Trigger when the numeric *fact* exceeds *limit*.

    *message* may use ``{value}`` and ``{limit}``.
    """

    def predicate(facts: FactSet) -> RuleHit | None:
        value = facts.number(fact)
        if value is None or value <= limit:
            return None
        return RuleHit(message.format(value=value, limit=limit), fix=fix)

    return predicate


def when_flag(
    fact: str,
    expected: bool,
    message: str,
    fix: str = "",
    lines_fact: str | None = None,
) -> Predicate:
    """Trigger when the boolean *fact* equals *expected*."""

    def predicate(facts: FactSet) -> RuleHit | None:
        if facts.flag(fact) is not expected:
            return None
        lines = facts.lines(lines_fact) if lines_fact else ()
        return RuleHit(message, lines, fix)

    return predicate


def when_names(fact: str, message: str, fix: str = "") -> Predicate:
    """Trigger when the name-set *fact* is non-empty; ``{names}`` lists them."""

    def predicate(facts: FactSet) -> RuleHit | None:
        values = facts.names(fact)
        if not values:
            return None
        return RuleHit(message.format(names=_names(values)), fix=fix)

    return predicate


def _static_inline_style_lines(facts: FactSet) -> tuple[int, ...]:
    dynamic = set(facts.lines("dynamic_inline_style_lines"))
    lines = facts.lines("inline_style_lines")
    return tuple(line for line in lines if line not in dynamic)


# ---------------------------------------------------------------------------
# Predicates that need more than one fact
# ---------------------------------------------------------------------------
def file_too_long(limit: int) -> Predicate:
    def predicate(facts: FactSet) -> RuleHit | None:
        lines = facts.number("file_lines")
        if lines is None or lines <= limit:
            return None
        return RuleHit(
            f"file exceeds {limit} lines ({lines} lines)",
            fix="Split the file into smaller, focused modules or components.",
        )

    return predicate


def explicit_any(facts: FactSet) -> RuleHit | None:
    lines = facts.lines("any_type_lines")
    if facts.flag("uses_any_type") is not True and not lines:
        return None
    return RuleHit(
        "avoid `any`: it disables type checking for everything it touches",
        lines,
        "Use a precise type, a generic, or `unknown` with a type guard.",
    )


def missing_alt_text(facts: FactSet) -> RuleHit | None:
    lines = facts.lines("images_missing_alt_lines")
    if facts.flag("has_alt_text") is not False and not lines:
        return None
    return RuleHit(
        "images without alt text are invisible to screen readers",
        lines,
        'Add a descriptive `alt`, or `alt=""` for purely decorative images.',
    )


def xss_dom_sink(facts: FactSet) -> RuleHit | None:
    lines = facts.lines("dom_sink_lines")
    if not lines:
        return None
    if _unsanitized_user_input(facts):
        message = "user input is written to a DOM sink without sanitization (XSS)"
    else:
        message = "raw HTML is written to a DOM sink; make sure it is trusted"
    return RuleHit(
        message,
        lines,
        "Render text content instead, or sanitize with DOMPurify before writing HTML.",
    )


def _unsanitized_user_input(facts: FactSet) -> bool:
    return (
        facts.flag("dom_sink_user_input") is True
        and facts.flag("dom_sink_sanitized") is not True
    )


def inline_styles(facts: FactSet) -> RuleHit | None:
    if facts.framework in DYNAMIC_STYLE_FRAMEWORKS:
        lines = _static_inline_style_lines(facts)
    else:
        lines = facts.lines("inline_style_lines")
    if not lines:
        return None
    return RuleHit(
        f"{_plural(len(lines), 'inline style')} found",
        lines,
        "Move styles into CSS classes or the project's styling solution.",
    )


def react_static_inline_style(facts: FactSet) -> RuleHit | None:
    lines = _static_inline_style_lines(facts)
    if not lines:
        return None
    return RuleHit(
        "static `style` objects are recreated on every render",
        lines,
        "Keep `style` for values computed from props or state; move the rest to CSS.",
    )


# ---------------------------------------------------------------------------
# Default rule table
# ---------------------------------------------------------------------------
def general_rules(max_file_lines: int = DEFAULT_MAX_FILE_LINES) -> list[Rule]:
    """Framework-independent rules, grouped by dimension."""
    Q, T, A, P = (
        Dimension.QUALITY,
        Dimension.TYPE_SAFETY,
        Dimension.ARCHITECTURE,
        Dimension.PERFORMANCE,
    )
    X, S, E, Y = (
        Dimension.ACCESSIBILITY,
        Dimension.SECURITY,
        Dimension.TESTING,
        Dimension.STYLING,
    )
    B, G, N = Severity.BLOCKER, Severity.SUGGESTION, Severity.NITPICK

    return [
        # Quality
        Rule("quality.file-too-long", Q, G, file_too_long(max_file_lines),
             "File size"),
        Rule("quality.long-function", Q, G, when_above(
            "max_function_lines", MAX_FUNCTION_LINES,
            "longest function has {value} lines (limit {limit})",
            "Extract helpers so each function does one thing."),
             "Function length"),
        Rule("quality.deep-nesting", Q, G, when_above(
            "max_nesting_depth", MAX_NESTING_DEPTH,
            "code is nested {value} levels deep (limit {limit})",
            "Use early returns or extract nested branches."),
             "Nesting depth"),
        Rule("quality.naming-convention", Q, N, when_names(
            "non_camel_case_identifiers",
            "identifiers do not follow camelCase: {names}"),
             "Naming convention"),
        Rule("quality.unclear-names", Q, N, when_names(
            "unclear_identifiers",
            "names do not describe their purpose: {names}"),
             "Descriptive names"),
        Rule("quality.magic-numbers", Q, N, when_lines(
            "magic_number_lines", "{count} unexplained numeric literal(s)",
            "Give the value a named constant."),
             "Magic numbers"),
        Rule("quality.console-statements", Q, N, when_lines(
            "console_log_lines", "{count} console statement(s) left in code",
            "Remove debug output or route it through a logger."),
             "Debug output"),
        Rule("quality.duplicated-code", Q, G, when_above(
            "duplicate_block_count", 0, "{value} duplicated code block(s)",
            "Extract the shared logic into a function or hook."),
             "Duplication"),
        # Type safety
        Rule("types.explicit-any", T, G, explicit_any, "Explicit any"),
        Rule("types.missing-annotation", T, N, when_lines(
            "missing_annotation_lines",
            "{count} exported value(s) without a type annotation",
            "Annotate parameters and return types of exported functions."),
             "Missing annotations"),
        Rule("types.non-null-assertion", T, N, when_lines(
            "non_null_assertion_lines", "{count} non-null assertion(s) (`!`)",
            "Narrow the type with a check instead of asserting."),
             "Non-null assertions"),
        Rule("types.ts-ignore", T, G, when_lines(
            "ts_ignore_lines", "{count} `@ts-ignore` comment(s) silence the compiler",
            "Fix the type error or use `@ts-expect-error` with a reason."),
             "Suppressed type errors"),
        # Architecture
        Rule("architecture.circular-import", A, B, when_names(
            "circular_imports", "circular import through: {names}",
            "Move the shared code into a module both sides can depend on."),
             "Circular imports"),
        Rule("architecture.multiple-components", A, N, when_above(
            "component_count", 1, "{value} components defined in one file",
            "Keep one exported component per file."),
             "One component per file"),
        Rule("architecture.deep-relative-imports", A, N, when_above(
            "max_relative_import_depth", MAX_RELATIVE_IMPORT_DEPTH,
            "relative import climbs {value} directories",
            "Use a path alias for imports across feature boundaries."),
             "Relative import depth"),
        Rule("architecture.data-fetching-in-component", A, G, when_flag(
            "fetch_in_component", True,
            "component fetches data directly",
            "Move data access into a hook or service module.",
            lines_fact="fetch_lines"),
             "Separation of concerns"),
        Rule("architecture.prop-drilling", A, G, when_above(
            "prop_drilling_depth", MAX_PROP_DRILLING_DEPTH,
            "props are passed through {value} component levels",
            "Use context or composition instead of drilling props."),
             "Prop drilling"),
        # Performance
        Rule("performance.heavy-imports", P, G, when_names(
            "heavy_imports", "heavy dependencies imported whole: {names}",
            "Import only the functions you need or use a lighter alternative."),
             "Bundle size"),
        Rule("performance.inline-handlers", P, N, when_lines(
            "inline_handler_lines", "{count} inline handler(s) created per render",
            "Hoist handlers or memoize them where children are memoized."),
             "Inline handlers"),
        Rule("performance.eager-images", P, N, when_above(
            "images_without_lazy_loading", 0,
            "{value} image(s) load eagerly",
            'Add `loading="lazy"` to below-the-fold images.'),
             "Image loading"),
        # Accessibility
        Rule("accessibility.missing-alt-text", X, B, missing_alt_text,
             "Alt text"),
        Rule("accessibility.non-semantic-click", X, G, when_lines(
            "clickable_non_interactive_lines",
            "{count} click handler(s) on non-interactive elements",
            "Use a <button> or add role, tabIndex and key handlers."),
             "Semantic elements"),
        Rule("accessibility.unlabeled-input", X, G, when_lines(
            "unlabeled_input_lines", "{count} form input(s) without a label",
            "Associate a <label> or add aria-label."),
             "Form labels"),
        Rule("accessibility.positive-tabindex", X, N, when_lines(
            "positive_tabindex_lines", "{count} positive tabIndex value(s)",
            "Use tabIndex 0 or -1 and fix the DOM order instead."),
             "Focus order"),
        # Security
        Rule("security.xss-dom-sink", S, G, xss_dom_sink, "DOM sinks",
             escalation=Escalation(
                 _unsanitized_user_input, target=B,
                 reason="user input reaches the sink unsanitized")),
        Rule("security.eval", S, B, when_lines(
            "eval_lines", "{count} use(s) of eval or new Function",
            "Parse data with JSON.parse or use a lookup table."),
             "Dynamic code execution"),
        Rule("security.hardcoded-secret", S, B, when_lines(
            "hardcoded_secret_lines", "{count} hardcoded secret(s)",
            "Load secrets from the environment at build or run time."),
             "Secrets"),
        Rule("security.unsafe-target-blank", S, G, when_lines(
            "unsafe_target_blank_lines",
            '{count} target="_blank" link(s) without rel="noopener noreferrer"',
            'Add rel="noopener noreferrer".'),
             "Reverse tabnabbing"),
        Rule("security.token-in-local-storage", S, G, when_flag(
            "token_in_local_storage", True,
            "auth token stored in localStorage is readable by any script",
            "Keep tokens in httpOnly cookies."),
             "Token storage"),
        # Testing
        Rule("testing.missing-tests", E, G, when_flag(
            "has_test_file", False, "no tests cover this unit",
            "Add tests for the main behavior and edge cases."),
             "Test coverage"),
        Rule("testing.snapshot-only", E, N, when_flag(
            "snapshot_only_tests", True, "tests rely only on snapshots",
            "Assert on behavior with queries by role or text."),
             "Meaningful assertions"),
        Rule("testing.skipped-tests", E, G, when_lines(
            "skipped_test_lines", "{count} skipped or focused test(s)",
            "Re-enable or delete them; remove `.only`."),
             "Skipped tests"),
        # Styling
        Rule("styling.inline-styles", Y, N, inline_styles, "Inline styles"),
        Rule("styling.important", Y, N, when_lines(
            "important_lines", "{count} `!important` declaration(s)",
            "Fix the selector specificity instead."),
             "!important"),
        Rule("styling.hardcoded-colors", Y, N, when_lines(
            "hardcoded_color_lines", "{count} hardcoded color value(s)",
            "Use design tokens or theme variables."),
             "Design tokens"),
        Rule("styling.z-index-escalation", Y, N, when_above(
            "max_z_index", MAX_Z_INDEX, "z-index of {value} (limit {limit})",
            "Define a z-index scale and use its named layers."),
             "z-index"),
    ]


def framework_rules() -> list[Rule]:
    """Rules that only run when the `framework` fact matches."""
    Q, P, S, Y = (
        Dimension.QUALITY,
        Dimension.PERFORMANCE,
        Dimension.SECURITY,
        Dimension.STYLING,
    )
    B, G, N = Severity.BLOCKER, Severity.SUGGESTION, Severity.NITPICK

    return [
        # React
        Rule("react.effect-missing-deps", P, G, when_lines(
            "effect_missing_deps_lines",
            "{count} effect hook(s) without a dependency array",
            "Pass the dependency array the effect actually reads."),
             "Effect dependencies", framework="react"),
        Rule("react.missing-list-key", P, G, when_lines(
            "list_without_key_lines", "{count} list render(s) without a `key`",
            "Give each item a stable, unique `key`."),
             "List keys", framework="react"),
        Rule("react.index-as-key", P, N, when_lines(
            "index_as_key_lines", "{count} list(s) keyed by array index",
            "Key items by a stable id."),
             "Index keys", framework="react"),
        Rule("react.dangerously-set-inner-html", S, G, when_lines(
            "dangerously_set_inner_html_lines",
            "{count} use(s) of dangerouslySetInnerHTML",
            "Render children instead, or sanitize the HTML first."),
             "dangerouslySetInnerHTML", framework="react"),
        Rule("react.state-mutation", Q, B, when_lines(
            "state_mutation_lines", "{count} direct state mutation(s)",
            "Create a new object or array and pass it to the setter."),
             "Immutable state", framework="react"),
        Rule("react.static-inline-style", Y, G, react_static_inline_style,
             "Static inline styles", framework="react"),
        # Vue
        Rule("vue.missing-v-for-key", P, G, when_lines(
            "list_without_key_lines", "{count} v-for loop(s) without `:key`",
            "Bind a stable, unique `:key`."),
             "v-for keys", framework="vue"),
        Rule("vue.v-if-with-v-for", P, G, when_lines(
            "v_if_with_v_for_lines", "{count} element(s) combine v-if and v-for",
            "Filter in a computed property instead."),
             "v-if with v-for", framework="vue"),
        Rule("vue.v-html", S, G, when_lines(
            "v_html_lines", "{count} use(s) of v-html",
            "Use text interpolation, or sanitize the HTML first."),
             "v-html", framework="vue"),
        Rule("vue.prop-mutation", Q, B, when_lines(
            "prop_mutation_lines", "{count} prop mutation(s)",
            "Emit an event and let the parent update the value."),
             "One-way data flow", framework="vue"),
        # Angular
        Rule("angular.unsubscribed-observable", P, G, when_lines(
            "unsubscribed_observable_lines",
            "{count} subscription(s) never unsubscribed",
            "Use the async pipe or takeUntilDestroyed()."),
             "Subscriptions", framework="angular"),
        Rule("angular.bypass-security-trust", S, B, when_lines(
            "bypass_security_trust_lines",
            "{count} call(s) to DomSanitizer.bypassSecurityTrust*",
            "Sanitize the value instead of bypassing Angular's sanitizer."),
             "Sanitizer bypass", framework="angular"),
        Rule("angular.default-change-detection", P, N, when_flag(
            "default_change_detection", True,
            "component uses default change detection",
            "Use ChangeDetectionStrategy.OnPush."),
             "Change detection", framework="angular"),
    ]


def default_rules(max_file_lines: int = DEFAULT_MAX_FILE_LINES) -> list[Rule]:
    return general_rules(max_file_lines) + framework_rules()


# ---------------------------------------------------------------------------
# Suppression table
# ---------------------------------------------------------------------------
# (preferred, suppressed): when both fire on overlapping locations only one
# survives. The more severe finding wins; on equal severity the preferred one.
SUPPRESSIONS: tuple[tuple[str, str], ...] = (
    ("types.explicit-any", "types.missing-annotation"),
    ("security.xss-dom-sink", "react.dangerously-set-inner-html"),
    ("security.xss-dom-sink", "vue.v-html"),
    ("react.static-inline-style", "styling.inline-styles"),
    ("testing.missing-tests", "testing.snapshot-only"),
)
