"""Exceptions raised by the curator."""


class CuratorError(Exception):
    """Base class for curator errors."""


class RuleValidationError(CuratorError):
    """A quality threshold rule is malformed and cannot be registered."""

    def __init__(self, rule_id: str, problems: list[str]):
        self.rule_id = rule_id
        self.problems = problems
        super().__init__(f"Invalid quality rule '{rule_id}': {'; '.join(problems)}")


class RuleNotFoundError(CuratorError):
    """No rule with the given id is registered."""

    def __init__(self, rule_id: str):
        self.rule_id = rule_id
        super().__init__(f"Quality rule '{rule_id}' is not registered")


class CacheBackendError(CuratorError):
    """The storage behind the analysis cache failed."""
