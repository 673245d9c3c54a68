"""Heuristic fact extraction for frontend source files.

This is a lightweight reference extractor built on regular expressions. It
does not parse code: every fact is a best-effort observation, and anything it
cannot recognise is simply left out of the FactSet (dependent rules stay
inert). Source can be a whole file or only the added lines of a diff, each
paired with its line number in the new file.
"""

import logging
import re
from collections.abc import Iterable

from facts import FactSet

logger = logging.getLogger(__name__)

Line = tuple[int, str]

TYPESCRIPT_EXTENSIONS = (".ts", ".tsx")
TEST_FILE_PATTERN = re.compile(r"\.(test|spec)\.[jt]sx?$|(^|/)__tests__/")

HEAVY_MODULES = frozenset({"lodash", "moment", "jquery", "underscore"})
UNCLEAR_NAMES = frozenset(
    {"data", "temp", "tmp", "foo", "bar", "baz", "obj", "val", "stuff", "thing"}
)
# Single-letter names conventionally fine as loop indices / callbacks
_ALLOWED_SHORT_NAMES = frozenset({"i", "j", "k", "e", "_", "x", "y"})

# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------
_STRING = re.compile(r"""(['"`])(?:\\.|(?!\1).)*\1""")
_LINE_COMMENT = re.compile(r"//.*$")

_REACT_IMPORT = re.compile(r"""from\s+['"]react['"]|require\(\s*['"]react['"]\s*\)""")
_VUE_IMPORT = re.compile(r"""from\s+['"]vue['"]|<template[\s>]""")
_ANGULAR_IMPORT = re.compile(r"""from\s+['"]@angular/""")
_IMPORT_SOURCE = re.compile(
    r"""(?:from\s+|require\(\s*|^\s*import\s+)['"]([^'"]+)['"]"""
)
_DECLARATION = re.compile(r"\b(?:const|let|var|function)\s+([A-Za-z_$][\w$]*)")
_USE_STATE = re.compile(r"const\s+\[\s*(\w+)\s*,\s*set\w+\s*\]\s*=\s*useState\b")
_COMPONENT = re.compile(
    r"(?:function\s+([A-Z]\w*)\s*\("
    r"|const\s+([A-Z]\w*)\s*=\s*(?:React\.)?(?:memo\(|forwardRef\(|\([^)]*\)\s*=>|\w+\s*=>))"
)
_FUNCTION_START = re.compile(
    r"\bfunction\b|=>\s*\{|^\s*(?:async\s+)?(?!if\b|for\b|while\b|switch\b|catch\b)"
    r"\w+\s*\([^)]*\)\s*(?::\s*[\w<>\[\]|, ]+)?\s*\{"
)
_CONTROL = re.compile(r"\b(?:if|else|for|while|do|switch|try|catch)\b")

_ANY_TYPE = re.compile(r":\s*any\b|\bas\s+any\b|<any>|\bany\[\]")
_EXPORTED_FUNCTION = re.compile(
    r"^\s*export\s+(?:default\s+)?(?:async\s+)?function\s*\w*\s*\(([^)]*)\)\s*(:)?"
)
_NON_NULL = re.compile(r"[\w)\]]!(?=[.\[);,])")
_TS_IGNORE = re.compile(r"@ts-ignore\b")

_DOM_SINK = re.compile(
    r"\.(?:innerHTML|outerHTML)\s*\+?=(?!=)|document\.write(?:ln)?\s*\("
    r"|insertAdjacentHTML\s*\(|dangerouslySetInnerHTML|\bv-html\s*="
)
_DANGEROUS_HTML = re.compile(r"dangerouslySetInnerHTML")
_V_HTML = re.compile(r"\bv-html\s*=")
_USER_INPUT = re.compile(
    r"location\.(?:search|hash|href)|URLSearchParams|searchParams|useParams"
    r"|\$route\.(?:query|params)|ActivatedRoute|\.target\.value|window\.name"
    r"|\bevent\.data\b|req\.(?:query|body|params)"
)
_SANITIZER = re.compile(r"DOMPurify|\bsanitize\w*\s*\(|\bxss\s*\(")
_EVAL = re.compile(
    r"\beval\s*\(|\bnew\s+Function\s*\(|\bset(?:Timeout|Interval)\s*\(\s*['\"`]"
)
_SECRET = re.compile(
    r"""(?i)\b\w*(?:api[_-]?key|secret|password|passwd|private[_-]?key|access[_-]?token)\w*"""
    r"""['"]?\s*[:=]\s*['"][^'"\s]{8,}['"]|AKIA[0-9A-Z]{16}|\bsk_live_\w+"""
)
_TARGET_BLANK = re.compile(r"""target\s*=\s*['"{]*_blank""")
_NOOPENER = re.compile(r"noopener|noreferrer")
_TOKEN_STORAGE = re.compile(
    r"""(?i)localStorage\.setItem\(\s*['"][^'"]*(?:token|jwt|auth)"""
)

_IMG = re.compile(r"<img\b")
_ALT = re.compile(r"\balt\s*=")
_LAZY = re.compile(r"\bloading\s*=")
_CLICKABLE = re.compile(
    r"<(?:div|span|li|p|td|tr|img)\b[^>]*(?:\bonClick\b|@click\b|\(click\))"
)
_FORM_CONTROL = re.compile(r"<(?:input|select|textarea)\b")
_LABELLED = re.compile(
    r"""aria-label|aria-labelledby|<label\b|\bid\s*=|type\s*=\s*['"](?:hidden|submit|button)"""
)
_POSITIVE_TABINDEX = re.compile(r"""tab[iI]ndex\s*=\s*\{?\s*['"]?[1-9]""")

_CONSOLE = re.compile(r"\bconsole\.(?:log|debug|info|warn|error|trace)\s*\(")
_MAGIC_NUMBER = re.compile(
    r"(?:[<>]=?|===?|!==?|[*/%+-])\s*(\d{2,}(?:\.\d+)?)\b(?!\s*(?:px|ms|rem|em|%|vh|vw|s\b))"
)
_CONSTANT_DECLARATION = re.compile(r"\bconst\s+[A-Z][A-Z0-9_]*\s*=")

_FETCH = re.compile(r"\bfetch\s*\(|\baxios(?:\.\w+)?\s*\(")
_REACT_INLINE_HANDLER = re.compile(r"\bon[A-Z]\w*\s*=\s*\{\s*(?:async\s+)?(?:\([^)]*\)|\w+)\s*=>")
_VUE_INLINE_HANDLER = re.compile(r"""@\w+\s*=\s*['"][^'"]*=>""")

_USE_EFFECT = re.compile(r"\buse(?:Layout)?Effect\s*\(")
_MAP_CALL = re.compile(r"\.map\s*\(")
_JSX_TAG = re.compile(r"<[A-Za-z]")
_KEY_PROP = re.compile(r"\bkey\s*=")
_INDEX_KEY = re.compile(r"""(?::key|\bkey)\s*=\s*[{'"]\s*(?:index|idx|i)\s*[}'"]""")
_V_FOR = re.compile(r"\bv-for\s*=")
_V_FOR_KEY = re.compile(r"(?::|v-bind:)key\s*=")
_V_IF = re.compile(r"\bv-if\s*=")
_VUE_PROP_MUTATION = re.compile(r"\b(?:this\.)?\$?props\.\w+\s*(?:\+|-)?=(?!=)")
_REACT_THIS_STATE = re.compile(r"\bthis\.state\.\w+\s*=(?!=)")

_SUBSCRIBE = re.compile(r"\.subscribe\s*\(")
_UNSUBSCRIBE_HINT = re.compile(
    r"unsubscribe|takeUntil|takeUntilDestroyed|\bfirst\(\)|\btake\(\s*1\s*\)"
)
_BYPASS_TRUST = re.compile(r"bypassSecurityTrust\w+\s*\(")
_ANGULAR_COMPONENT = re.compile(r"@Component\s*\(")
_ON_PUSH = re.compile(r"ChangeDetectionStrategy\.OnPush")

_SKIPPED_TEST = re.compile(r"\b(?:it|test|describe)\.(?:skip|only)\s*\(|\b[xf](?:it|describe)\s*\(")
_SNAPSHOT = re.compile(r"toMatch(?:Inline)?Snapshot\s*\(")
_EXPECTATION = re.compile(r"\.(?:to|not\.to)[A-Z]\w*\s*\(")

_REACT_STYLE = re.compile(r"\bstyle\s*=\s*\{")
_REACT_STYLE_OBJECT = re.compile(r"\bstyle\s*=\s*\{\{(.*?)\}\}")
_VUE_BOUND_STYLE = re.compile(r"(?::|v-bind:)style\s*=")
_HTML_STYLE = re.compile(r"""(?<![:\w-])style\s*=\s*['"]""")
_IMPORTANT = re.compile(r"!important\b")
_HEX_COLOR = re.compile(
    r"""[:'"\s]#(?:[0-9a-fA-F]{8}|[0-9a-fA-F]{6}|[0-9a-fA-F]{3})\b|\brgba?\s*\("""
)
_Z_INDEX = re.compile(r"""z-?[iI]ndex['"]?\s*:\s*['"]?(\d+)""")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _code_only(text: str) -> str:
    """Strip string literals and line comments (best effort)."""
    return _LINE_COMMENT.sub("", _STRING.sub('""', text))


def _matching(lines: list[Line], pattern: re.Pattern, code_only: bool = False) -> tuple[int, ...]:
    found = []
    for number, text in lines:
        if pattern.search(_code_only(text) if code_only else text):
            found.append(number)
    return tuple(found)


def detect_framework(lines: list[Line], file_path: str) -> str:
    """Return "react", "vue", "angular" or "none"."""
    source = "\n".join(text for _, text in lines)
    lower_path = file_path.lower()
    if lower_path.endswith(".vue") or _VUE_IMPORT.search(source):
        return "vue"
    if _ANGULAR_IMPORT.search(source) or lower_path.endswith(".component.ts"):
        return "angular"
    if _REACT_IMPORT.search(source) or lower_path.endswith((".jsx", ".tsx")):
        return "react"
    return "none"


def _is_typescript(lines: list[Line], file_path: str) -> bool:
    if file_path.lower().endswith(TYPESCRIPT_EXTENSIONS):
        return True
    return any(re.search(r"""<script[^>]*lang=['"]ts['"]""", t) for _, t in lines)


def _structure(lines: list[Line]) -> tuple[int, int]:
    """Return (longest function in lines, deepest control-flow nesting)."""
    # Stack entries: (is_control_block, function_start_line or None)
    stack: list[tuple[bool, int | None]] = []
    max_function = 0
    max_nesting = 0

    for number, text in lines:
        code = _code_only(text)
        is_control = bool(_CONTROL.search(code))
        starts_function = bool(_FUNCTION_START.search(code))
        for char in code:
            if char == "{":
                func_start = number if starts_function else None
                # Only the first brace on a function line opens its body
                starts_function = False
                stack.append((is_control, func_start))
                nesting = sum(1 for control, _ in stack if control)
                max_nesting = max(max_nesting, nesting)
            elif char == "}" and stack:
                _, func_start = stack.pop()
                if func_start is not None:
                    max_function = max(max_function, number - func_start + 1)
    return max_function, max_nesting


def _effect_calls_without_deps(lines: list[Line]) -> tuple[int, ...]:
    """Lines of effect hooks whose call has no dependency array."""
    flagged = []
    for index, (number, text) in enumerate(lines):
        match = _USE_EFFECT.search(text)
        if not match:
            continue
        call = _balanced_call(lines, index, match.end())
        if call is None:
            continue
        if not re.search(r",\s*\[[^\]]*\]\s*$", call.rstrip()):
            flagged.append(number)
    return tuple(flagged)


def _balanced_call(lines: list[Line], index: int, offset: int) -> str | None:
    """Text of a call from *offset* up to its closing paren, or None."""
    depth = 1
    parts: list[str] = []
    first = True
    for _, text in lines[index:]:
        segment = _code_only(text[offset:] if first else text)
        first = False
        for position, char in enumerate(segment):
            if char == "(":
                depth += 1
            elif char == ")":
                depth -= 1
                if depth == 0:
                    parts.append(segment[:position])
                    return "\n".join(parts)
        parts.append(segment)
    return None


def _lists_without_key(lines: list[Line], window: int = 3) -> tuple[int, ...]:
    flagged = []
    for index, (number, text) in enumerate(lines):
        if not _MAP_CALL.search(text):
            continue
        chunk = " ".join(t for _, t in lines[index : index + window + 1])
        if _JSX_TAG.search(chunk) and not _KEY_PROP.search(chunk):
            flagged.append(number)
    return tuple(flagged)


def _dynamic_react_style(text: str) -> bool:
    match = _REACT_STYLE_OBJECT.search(text)
    if not match:
        # style={someObject} is computed elsewhere
        return bool(_REACT_STYLE.search(text))
    for entry in match.group(1).split(","):
        if ":" not in entry:
            continue
        value = entry.split(":", 1)[1].strip()
        if value and value[0] not in "'\"0123456789-":
            return True
    return False


def _identifiers(lines: list[Line]) -> list[str]:
    names = []
    for _, text in lines:
        names.extend(_DECLARATION.findall(_code_only(text)))
    return names


def _is_non_camel_case(name: str) -> bool:
    stripped = name.strip("_$")
    if not stripped or "_" not in stripped:
        return False
    # UPPER_SNAKE_CASE constants are fine
    return stripped != stripped.upper()


def _state_mutations(lines: list[Line]) -> tuple[int, ...]:
    state_names = set()
    for _, text in lines:
        state_names.update(_USE_STATE.findall(text))

    patterns = [_REACT_THIS_STATE]
    if state_names:
        names = "|".join(re.escape(n) for n in sorted(state_names))
        patterns.append(
            re.compile(
                rf"\b(?:{names})(?:\.(?:push|pop|splice|shift|unshift|sort|reverse)\s*\("
                rf"|(?:\.\w+|\[[^\]]+\])\s*=(?!=))"
            )
        )
    flagged = []
    for number, text in lines:
        code = _code_only(text)
        if any(p.search(code) for p in patterns):
            flagged.append(number)
    return tuple(flagged)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def extract_facts_from_lines(
    lines: Iterable[Line],
    file_path: str = "",
    *,
    has_test_file: bool | None = None,
    file_lines: int | None = None,
) -> FactSet:
    """Build a FactSet from numbered source lines.

    Args:
        lines: (line_number, text) pairs, in file order
        file_path: Path of the unit; drives framework and TypeScript detection
        has_test_file: Whether a test file exists for this unit, if known
        file_lines: Total line count, if known. Left out of the FactSet
            otherwise, since a partial view of a file says nothing about
            its size

    Returns:
        FactSet with every fact this extractor could observe
    """
    lines = list(lines)
    source = "\n".join(text for _, text in lines)
    framework = detect_framework(lines, file_path)
    typescript = _is_typescript(lines, file_path)
    is_test = bool(TEST_FILE_PATTERN.search(file_path))

    facts: dict = {
        "file_path": file_path or None,
        "framework": framework,
        "is_typescript": typescript,
        "file_lines": file_lines,
    }

    # Imports & architecture
    imports = [m for _, t in lines for m in _IMPORT_SOURCE.findall(t)]
    facts["imports"] = imports
    facts["heavy_imports"] = {m for m in imports if m in HEAVY_MODULES}
    facts["max_relative_import_depth"] = max(
        (m.count("../") for m in imports), default=0
    )

    # Quality
    max_function, max_nesting = _structure(lines)
    facts["max_function_lines"] = max_function
    facts["max_nesting_depth"] = max_nesting
    names = _identifiers(lines)
    facts["non_camel_case_identifiers"] = {n for n in names if _is_non_camel_case(n)}
    facts["unclear_identifiers"] = {
        n
        for n in names
        if n.lower() in UNCLEAR_NAMES
        or (len(n) == 1 and n not in _ALLOWED_SHORT_NAMES)
    }
    facts["console_log_lines"] = _matching(lines, _CONSOLE, code_only=True)
    facts["magic_number_lines"] = tuple(
        n
        for n, t in lines
        if not _CONSTANT_DECLARATION.search(t)
        and _MAGIC_NUMBER.search(_code_only(t))
    )

    # Type safety (only meaningful for TypeScript)
    if typescript:
        any_lines = _matching(lines, _ANY_TYPE, code_only=True)
        facts["uses_any_type"] = bool(any_lines)
        facts["any_type_lines"] = any_lines
        facts["missing_annotation_lines"] = tuple(
            n
            for n, t in lines
            if (m := _EXPORTED_FUNCTION.search(t))
            and (m.group(2) is None or _has_untyped_param(m.group(1)))
        )
        facts["non_null_assertion_lines"] = _matching(lines, _NON_NULL, code_only=True)
    facts["ts_ignore_lines"] = _matching(lines, _TS_IGNORE)

    # Security
    sink_lines = _matching(lines, _DOM_SINK)
    facts["dom_sink_lines"] = sink_lines
    if sink_lines:
        facts["dom_sink_user_input"] = bool(_USER_INPUT.search(source))
        facts["dom_sink_sanitized"] = bool(_SANITIZER.search(source))
    facts["eval_lines"] = _matching(lines, _EVAL)
    facts["hardcoded_secret_lines"] = _matching(lines, _SECRET)
    facts["unsafe_target_blank_lines"] = tuple(
        n for n, t in lines if _TARGET_BLANK.search(t) and not _NOOPENER.search(t)
    )
    facts["token_in_local_storage"] = bool(_TOKEN_STORAGE.search(source))

    # Accessibility
    img_lines = [(n, t) for n, t in lines if _IMG.search(t)]
    missing_alt = tuple(n for n, t in img_lines if not _ALT.search(t))
    if img_lines:
        facts["has_alt_text"] = not missing_alt
        facts["images_missing_alt_lines"] = missing_alt
        facts["images_without_lazy_loading"] = sum(
            1 for _, t in img_lines if not _LAZY.search(t)
        )
    facts["clickable_non_interactive_lines"] = _matching(lines, _CLICKABLE)
    facts["unlabeled_input_lines"] = tuple(
        n for n, t in lines if _FORM_CONTROL.search(t) and not _LABELLED.search(t)
    )
    facts["positive_tabindex_lines"] = _matching(lines, _POSITIVE_TABINDEX)

    # Styling
    facts["important_lines"] = _matching(lines, _IMPORTANT)
    facts["hardcoded_color_lines"] = _matching(lines, _HEX_COLOR)
    z_values = [int(v) for _, t in lines for v in _Z_INDEX.findall(t)]
    if z_values:
        facts["max_z_index"] = max(z_values)

    # Testing
    if is_test:
        facts["skipped_test_lines"] = _matching(lines, _SKIPPED_TEST)
        snapshots = _SNAPSHOT.findall(source)
        other = [e for e in _EXPECTATION.findall(source) if "Snapshot" not in e]
        facts["snapshot_only_tests"] = bool(snapshots) and not other
    elif has_test_file is not None:
        facts["has_test_file"] = has_test_file

    _framework_facts(facts, framework, lines, source)

    logger.debug("Extracted %d fact(s) from %s", len(facts), file_path or "<source>")
    return FactSet(facts)


def _has_untyped_param(params: str) -> bool:
    for param in params.split(","):
        param = param.strip()
        if param and ":" not in param and not param.startswith(("{", "[")):
            return True
    return False


def _framework_facts(facts: dict, framework: str, lines: list[Line], source: str) -> None:
    if framework == "react":
        facts["component_count"] = sum(
            1 for _, t in lines if _COMPONENT.search(t)
        )
        fetch_lines = _matching(lines, _FETCH, code_only=True)
        facts["fetch_in_component"] = bool(fetch_lines)
        facts["fetch_lines"] = fetch_lines
        facts["inline_handler_lines"] = _matching(lines, _REACT_INLINE_HANDLER)
        facts["effect_missing_deps_lines"] = _effect_calls_without_deps(lines)
        facts["list_without_key_lines"] = _lists_without_key(lines)
        facts["index_as_key_lines"] = _matching(lines, _INDEX_KEY)
        facts["dangerously_set_inner_html_lines"] = _matching(lines, _DANGEROUS_HTML)
        facts["state_mutation_lines"] = _state_mutations(lines)
        style_lines = _matching(lines, _REACT_STYLE)
        facts["inline_style_lines"] = style_lines
        facts["dynamic_inline_style_lines"] = tuple(
            n for n, t in lines if n in style_lines and _dynamic_react_style(t)
        )

    elif framework == "vue":
        facts["component_count"] = 1
        fetch_lines = _matching(lines, _FETCH, code_only=True)
        facts["fetch_in_component"] = bool(fetch_lines)
        facts["fetch_lines"] = fetch_lines
        facts["inline_handler_lines"] = _matching(lines, _VUE_INLINE_HANDLER)
        facts["list_without_key_lines"] = tuple(
            n for n, t in lines if _V_FOR.search(t) and not _V_FOR_KEY.search(t)
        )
        facts["index_as_key_lines"] = _matching(lines, _INDEX_KEY)
        facts["v_if_with_v_for_lines"] = tuple(
            n for n, t in lines if _V_FOR.search(t) and _V_IF.search(t)
        )
        facts["v_html_lines"] = _matching(lines, _V_HTML)
        facts["prop_mutation_lines"] = _matching(lines, _VUE_PROP_MUTATION, code_only=True)
        bound = _matching(lines, _VUE_BOUND_STYLE)
        facts["inline_style_lines"] = tuple(
            sorted(set(bound) | set(_matching(lines, _HTML_STYLE)))
        )
        facts["dynamic_inline_style_lines"] = bound

    elif framework == "angular":
        facts["component_count"] = len(_ANGULAR_COMPONENT.findall(source))
        if facts["component_count"]:
            facts["default_change_detection"] = not _ON_PUSH.search(source)
        if not _UNSUBSCRIBE_HINT.search(source):
            facts["unsubscribed_observable_lines"] = _matching(lines, _SUBSCRIBE)
        facts["bypass_security_trust_lines"] = _matching(lines, _BYPASS_TRUST)
        facts["inline_style_lines"] = _matching(lines, _HTML_STYLE)

    else:
        facts["inline_style_lines"] = _matching(lines, _HTML_STYLE)


def extract_facts(
    source: str,
    file_path: str = "",
    *,
    has_test_file: bool | None = None,
) -> FactSet:
    """Build a FactSet from a whole source file."""
    lines = list(enumerate(source.splitlines(), start=1))
    return extract_facts_from_lines(
        lines,
        file_path,
        has_test_file=has_test_file,
        file_lines=len(lines),
    )
