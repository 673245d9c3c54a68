"""Immutable fact sets and the fact vocabulary shared with fact extractors.

A fact extractor turns one source unit into a ``FactSet``; rules only ever
read from it. Facts named in ``FACT_TYPES`` are type checked on construction.
CamelCase spellings (``fileLines``, ``usesAnyType``) resolve to the same facts.
Any other name is accepted and carried along untouched, so an extractor that
is newer than the engine never breaks a review.
"""

import logging
import re
from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType
from typing import Any

from exceptions import InvalidFactError

logger = logging.getLogger(__name__)

FACT_VOCABULARY_VERSION = "1.0"

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")

# Value kinds understood by FactSet
INT = "int"
BOOL = "bool"
STR = "str"
STR_SET = "set[str]"
STR_SEQ = "seq[str]"
LINES = "seq[int]"

# ---------------------------------------------------------------------------
# Vocabulary
# ---------------------------------------------------------------------------
FACT_TYPES: dict[str, str] = {
    # Unit metadata
    "file_path": STR,
    "framework": STR,  # "react" | "vue" | "angular" | "none"
    "is_typescript": BOOL,
    "imports": STR_SEQ,
    # Quality
    "file_lines": INT,
    "max_function_lines": INT,
    "max_nesting_depth": INT,
    "non_camel_case_identifiers": STR_SET,
    "unclear_identifiers": STR_SET,
    "magic_number_lines": LINES,
    "console_log_lines": LINES,
    "duplicate_block_count": INT,
    # Type safety
    "uses_any_type": BOOL,
    "any_type_lines": LINES,
    "missing_annotation_lines": LINES,
    "non_null_assertion_lines": LINES,
    "ts_ignore_lines": LINES,
    # Architecture
    "circular_imports": STR_SET,
    "component_count": INT,
    "max_relative_import_depth": INT,
    "fetch_in_component": BOOL,
    "fetch_lines": LINES,
    "prop_drilling_depth": INT,
    # Performance
    "heavy_imports": STR_SET,
    "inline_handler_lines": LINES,
    "images_without_lazy_loading": INT,
    "effect_missing_deps_lines": LINES,
    "list_without_key_lines": LINES,
    "index_as_key_lines": LINES,
    "v_if_with_v_for_lines": LINES,
    "unsubscribed_observable_lines": LINES,
    "default_change_detection": BOOL,
    # Accessibility
    "has_alt_text": BOOL,
    "images_missing_alt_lines": LINES,
    "clickable_non_interactive_lines": LINES,
    "unlabeled_input_lines": LINES,
    "positive_tabindex_lines": LINES,
    # Security
    "dom_sink_lines": LINES,
    "dom_sink_user_input": BOOL,
    "dom_sink_sanitized": BOOL,
    "dangerously_set_inner_html_lines": LINES,
    "v_html_lines": LINES,
    "bypass_security_trust_lines": LINES,
    "eval_lines": LINES,
    "hardcoded_secret_lines": LINES,
    "unsafe_target_blank_lines": LINES,
    "token_in_local_storage": BOOL,
    "state_mutation_lines": LINES,
    "prop_mutation_lines": LINES,
    # Testing
    "has_test_file": BOOL,
    "snapshot_only_tests": BOOL,
    "skipped_test_lines": LINES,
    # Styling
    "inline_style_lines": LINES,
    "dynamic_inline_style_lines": LINES,
    "important_lines": LINES,
    "hardcoded_color_lines": LINES,
    "max_z_index": INT,
}


def _freeze(name: str, kind: str, value: Any) -> Any:
    """Validate *value* against *kind* and return an immutable copy."""
    if kind == BOOL:
        if not isinstance(value, bool):
            raise InvalidFactError(f"Fact {name!r} must be a bool, got {value!r}")
        return value
    if kind == INT:
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidFactError(f"Fact {name!r} must be an int, got {value!r}")
        return value
    if kind == STR:
        if not isinstance(value, str):
            raise InvalidFactError(f"Fact {name!r} must be a str, got {value!r}")
        return value

    if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
        raise InvalidFactError(f"Fact {name!r} must be a collection, got {value!r}")
    items = list(value)

    if kind == LINES:
        if any(isinstance(i, bool) or not isinstance(i, int) for i in items):
            raise InvalidFactError(f"Fact {name!r} must contain line numbers")
        return tuple(items)
    if any(not isinstance(i, str) for i in items):
        raise InvalidFactError(f"Fact {name!r} must contain strings")
    if kind == STR_SET:
        return frozenset(items)
    return tuple(items)


def canonical_fact_name(name: str) -> str:
    """Map ``usesAnyType`` to ``uses_any_type`` when that is a known fact.

    Unknown names come back unchanged.
    """
    if name in FACT_TYPES:
        return name
    snake = _CAMEL_BOUNDARY.sub("_", name).lower()
    return snake if snake in FACT_TYPES else name


def _freeze_unknown(value: Any) -> Any:
    if isinstance(value, list):
        return tuple(value)
    if isinstance(value, set):
        return frozenset(value)
    if isinstance(value, dict):
        return MappingProxyType(dict(value))
    return value


class FactSet(Mapping):
    """Read-only snapshot of the structural facts of one source unit."""

    __slots__ = ("_facts",)

    def __init__(self, facts: Mapping[str, Any] | None = None, **kwargs: Any):
        merged = dict(facts or {})
        merged.update(kwargs)

        frozen: dict[str, Any] = {}
        unknown: list[str] = []
        for raw_name, value in merged.items():
            if value is None:
                # None means "not extracted"; keep the fact absent
                continue
            name = canonical_fact_name(raw_name)
            if name in frozen:
                raise InvalidFactError(
                    f"Fact {name!r} given more than once (as {raw_name!r})"
                )
            kind = FACT_TYPES.get(name)
            if kind is None:
                unknown.append(name)
            frozen[name] = (
                _freeze(name, kind, value) if kind else _freeze_unknown(value)
            )
        if unknown:
            logger.debug(
                "Facts outside vocabulary %s: %s",
                FACT_VOCABULARY_VERSION,
                ", ".join(sorted(unknown)),
            )
        object.__setattr__(self, "_facts", MappingProxyType(frozen))

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("FactSet is immutable")

    def __getitem__(self, name: str) -> Any:
        return self._facts[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._facts)

    def __len__(self) -> int:
        return len(self._facts)

    def __repr__(self) -> str:
        return f"FactSet({dict(self._facts)!r})"

    # -----------------------------------------------------------------------
    # Typed accessors used by rule predicates
    # -----------------------------------------------------------------------
    def number(self, name: str) -> int | None:
        return self._facts.get(name)

    def flag(self, name: str) -> bool | None:
        """Return the boolean fact, or None when it was not extracted."""
        return self._facts.get(name)

    def lines(self, name: str) -> tuple[int, ...]:
        return self._facts.get(name, ())

    def names(self, name: str) -> frozenset[str]:
        value = self._facts.get(name, frozenset())
        return frozenset(value)

    @property
    def framework(self) -> str | None:
        framework = self._facts.get("framework")
        if not framework or framework == "none":
            return None
        return framework.lower()

    @property
    def file_path(self) -> str | None:
        return self._facts.get("file_path")

    def evolve(self, **changes: Any) -> "FactSet":
        """Return a new FactSet with *changes* applied."""
        merged = dict(self._facts)
        merged.update(
            (canonical_fact_name(name), value) for name, value in changes.items()
        )
        return FactSet(merged)
