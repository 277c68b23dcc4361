"""Threshold rule registry.

Readers take an immutable snapshot; writers replace the snapshot under a
lock. An assessment running concurrently with an update therefore sees
either the whole old rule set or the whole new one.
"""

import math
import threading
from collections.abc import Iterable
from dataclasses import replace
from typing import Any, Optional

import structlog

from curator.errors import RuleNotFoundError, RuleValidationError
from curator.quality.defaults import default_rules
from curator.quality.models import (
    ConditionOperator,
    LogicalOperator,
    QualityAction,
    QualityCategory,
    QualityThresholdRule,
)

logger = structlog.get_logger()

_CATEGORIES = {c.value for c in QualityCategory}
_ACTIONS = {a.value for a in QualityAction}
_OPERATORS = {o.value for o in ConditionOperator}
_LOGICAL = {o.value for o in LogicalOperator}


def _enum_value(value: Any) -> Any:
    return getattr(value, "value", value)


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and not math.isnan(value)
    )


def rule_problems(rule: QualityThresholdRule) -> list[str]:
    """Everything wrong with a rule; empty when the rule is usable."""
    problems = []
    if not rule.id:
        problems.append("id is empty")
    if _enum_value(rule.category) not in _CATEGORIES:
        problems.append(f"unknown category '{_enum_value(rule.category)}'")
    if _enum_value(rule.action) not in _ACTIONS:
        problems.append(f"unknown action '{_enum_value(rule.action)}'")
    if not isinstance(rule.priority, int) or isinstance(rule.priority, bool):
        problems.append("priority must be an integer")

    if not _is_number(rule.min_score) or not _is_number(rule.max_score):
        problems.append("minScore and maxScore must be numbers")
    elif rule.min_score > rule.max_score:
        problems.append(f"minScore {rule.min_score} exceeds maxScore {rule.max_score}")

    for position, condition in enumerate(rule.conditions):
        if not condition.field:
            problems.append(f"condition {position} has no field")
        if _enum_value(condition.operator) not in _OPERATORS:
            problems.append(f"condition {position} has unknown operator '{_enum_value(condition.operator)}'")
        if _enum_value(condition.logical_operator) not in _LOGICAL:
            problems.append(
                f"condition {position} has unknown logical operator '{_enum_value(condition.logical_operator)}'"
            )
    return problems


def validate_rule(rule: QualityThresholdRule) -> QualityThresholdRule:
    """Return rule unchanged, or raise RuleValidationError."""
    problems = rule_problems(rule)
    if problems:
        raise RuleValidationError(rule.id or "<unnamed>", problems)
    return rule


class ThresholdRegistry:
    """Copy-on-write store of QualityThresholdRule by id.

    Example:
        registry = ThresholdRegistry()
        registry.add(QualityThresholdRule(
            id="min_visual", name="Minimum Visual Quality",
            category="overall", min_score=0, max_score=30,
            action="reject", priority=0,
        ))
        rules = registry.snapshot()
    """

    def __init__(self, rules: Optional[Iterable[QualityThresholdRule]] = None):
        self._lock = threading.Lock()
        self._rules: tuple[QualityThresholdRule, ...] = ()
        self.log = logger.bind(component="threshold_registry")
        for rule in default_rules() if rules is None else rules:
            self.add(rule)

    def snapshot(self) -> tuple[QualityThresholdRule, ...]:
        """Current rules, in registration order."""
        return self._rules

    def list(self) -> list[QualityThresholdRule]:
        return list(self._rules)

    def get(self, rule_id: str) -> Optional[QualityThresholdRule]:
        return next((r for r in self._rules if r.id == rule_id), None)

    def add(self, rule: QualityThresholdRule) -> QualityThresholdRule:
        """Register a rule, replacing any existing rule with the same id."""
        validate_rule(rule)
        with self._lock:
            rules = [r for r in self._rules if r.id != rule.id]
            rules.append(rule)
            self._rules = tuple(rules)
        self.log.info("Quality threshold added", threshold_id=rule.id, name=rule.name)
        return rule

    def remove(self, rule_id: str) -> QualityThresholdRule:
        with self._lock:
            existing = self.get(rule_id)
            if existing is None:
                raise RuleNotFoundError(rule_id)
            self._rules = tuple(r for r in self._rules if r.id != rule_id)
        self.log.info("Quality threshold removed", threshold_id=rule_id)
        return existing

    def update(self, rule_id: str, **changes) -> QualityThresholdRule:
        """Apply field changes to a rule; the result is validated first."""
        with self._lock:
            existing = self.get(rule_id)
            if existing is None:
                raise RuleNotFoundError(rule_id)
            updated = validate_rule(replace(existing, **changes))
            self._rules = tuple(updated if r.id == rule_id else r for r in self._rules)
        self.log.info("Quality threshold updated", threshold_id=rule_id, updates=sorted(changes))
        return updated
