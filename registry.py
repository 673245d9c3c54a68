"""Rule registry: the ordered set of rules a review runs."""

import logging
from collections.abc import Iterable, Iterator

from config import ReviewConfig
from exceptions import DuplicateRuleId, UnknownRuleId
from models import Dimension
from rules import Rule, default_rules

logger = logging.getLogger(__name__)


class RuleRegistry:
    """Ordered rules grouped by dimension.

    Populated once before any review starts and only read afterwards, so it
    can be shared between concurrent reviews without locking.
    """

    def __init__(self, rules: Iterable[Rule] = ()) -> None:
        self._rules: dict[str, Rule] = {}
        for rule in rules:
            self.register(rule)

    def register(self, rule: Rule) -> None:
        """Add *rule*; raises ``DuplicateRuleId`` if its id is taken."""
        if rule.id in self._rules:
            raise DuplicateRuleId(rule.id)
        self._rules[rule.id] = rule

    def get(self, rule_id: str) -> Rule:
        try:
            return self._rules[rule_id]
        except KeyError:
            raise UnknownRuleId(rule_id) from None

    def rules_for(
        self, dimension: Dimension, framework: str | None = None
    ) -> list[Rule]:
        """Rules of *dimension* in registration order.

        Framework-specific rules are included only when *framework* matches.
        """
        return [
            r
            for r in self._rules.values()
            if r.dimension == dimension and r.applies_to(framework)
        ]

    def applicable(self, framework: str | None = None) -> list[Rule]:
        """All rules that run for a unit written in *framework*."""
        return [r for r in self._rules.values() if r.applies_to(framework)]

    @property
    def dimensions(self) -> set[Dimension]:
        return {r.dimension for r in self._rules.values()}

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._rules

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules.values())

    def __len__(self) -> int:
        return len(self._rules)


def build_default_registry(config: ReviewConfig | None = None) -> RuleRegistry:
    """Build the registry from the fixed rule table, applying *config*.

    - ``enabled_dimensions`` drops rules of every other dimension
    - ``severity_overrides`` replaces the default severity of a rule
    - ``max_file_lines`` parameterizes the file-size rule

    Raises ``UnknownRuleId`` when an override names a rule that does not
    exist in the table.
    """
    config = config or ReviewConfig()
    table = default_rules(max_file_lines=config.max_file_lines)

    known_ids = {rule.id for rule in table}
    for rule_id in config.severity_overrides:
        if rule_id not in known_ids:
            raise UnknownRuleId(rule_id)

    registry = RuleRegistry()
    for rule in table:
        if not config.is_enabled(rule.dimension):
            continue
        override = config.severity_overrides.get(rule.id)
        if override is not None and override != rule.severity:
            logger.debug(
                "Overriding %s severity: %s -> %s",
                rule.id,
                rule.severity.value,
                override.value,
            )
            rule = rule.with_severity(override)
        registry.register(rule)

    logger.debug("Registered %d rule(s)", len(registry))
    return registry
