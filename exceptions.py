"""Exceptions raised by the review engine."""


class ReviewEngineError(Exception):
    """Base class for all review engine errors."""


class DuplicateRuleId(ReviewEngineError):
    """A rule with the same id is already registered."""

    def __init__(self, rule_id: str):
        super().__init__(f"Rule {rule_id!r} is already registered")
        self.rule_id = rule_id


class UnknownRuleId(ReviewEngineError):
    """A rule id was referenced that the registry does not know."""

    def __init__(self, rule_id: str):
        super().__init__(f"Unknown rule id: {rule_id!r}")
        self.rule_id = rule_id


class InvalidFactError(ReviewEngineError):
    """A known fact was supplied with a value of the wrong type."""


class ReviewCancelled(ReviewEngineError):
    """The review was cancelled before every rule had run."""
