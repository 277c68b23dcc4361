"""Tests for the threshold rule registry."""

import threading

import pytest

from curator.errors import RuleNotFoundError, RuleValidationError
from curator.quality.defaults import default_rules
from curator.quality.models import QualityThresholdRule, ThresholdCondition
from curator.quality.registry import ThresholdRegistry, rule_problems, validate_rule


def make_rule(**overrides) -> QualityThresholdRule:
    fields = {
        "id": "r1",
        "name": "Rule One",
        "category": "overall",
        "min_score": 0,
        "max_score": 50,
        "action": "reject",
        "priority": 1,
    }
    fields.update(overrides)
    return QualityThresholdRule(**fields)


class TestValidation:
    """Tests for rule validation."""

    def test_valid_rule(self):
        assert rule_problems(make_rule()) == []

    def test_default_rules_are_valid(self):
        for rule in default_rules():
            assert rule_problems(rule) == [], rule.id

    @pytest.mark.parametrize(
        "overrides,fragment",
        [
            ({"min_score": 80, "max_score": 20}, "exceeds maxScore"),
            ({"category": "vibes"}, "unknown category"),
            ({"action": "delete"}, "unknown action"),
            ({"priority": "high"}, "priority"),
            ({"min_score": None}, "must be numbers"),
            ({"id": ""}, "id is empty"),
            ({"conditions": (ThresholdCondition("session_type", "like", "HUMAN"),)}, "unknown operator"),
            ({"conditions": (ThresholdCondition("x", "eq", 1, "XOR"),)}, "unknown logical operator"),
        ],
    )
    def test_problems(self, overrides, fragment):
        problems = rule_problems(make_rule(**overrides))

        assert any(fragment in p for p in problems)

    def test_validate_raises_with_all_problems(self):
        with pytest.raises(RuleValidationError) as exc_info:
            validate_rule(make_rule(min_score=90, max_score=10, action="nope"))

        assert exc_info.value.rule_id == "r1"
        assert len(exc_info.value.problems) == 2
        assert "Invalid quality rule 'r1'" in str(exc_info.value)


class TestRegistry:
    """Tests for ThresholdRegistry operations."""

    def test_ships_default_rules(self):
        registry = ThresholdRegistry()

        ids = [r.id for r in registry.list()]
        assert "critical_reliability" in ids
        assert "good_overall_quality" in ids

    def test_empty_registry(self):
        assert ThresholdRegistry(rules=[]).list() == []

    def test_add_and_get(self):
        registry = ThresholdRegistry(rules=[])

        registry.add(make_rule())

        assert registry.get("r1").name == "Rule One"
        assert registry.get("missing") is None

    def test_add_replaces_same_id(self):
        registry = ThresholdRegistry(rules=[make_rule()])

        registry.add(make_rule(name="Renamed"))

        assert len(registry.list()) == 1
        assert registry.get("r1").name == "Renamed"

    def test_add_rejects_malformed(self):
        """Malformed rules are reported to the caller and not stored."""
        registry = ThresholdRegistry(rules=[])

        with pytest.raises(RuleValidationError):
            registry.add(make_rule(min_score=60, max_score=10))

        assert registry.list() == []

    def test_remove(self):
        registry = ThresholdRegistry(rules=[make_rule()])

        removed = registry.remove("r1")

        assert removed.id == "r1"
        assert registry.list() == []

    def test_remove_unknown(self):
        with pytest.raises(RuleNotFoundError):
            ThresholdRegistry(rules=[]).remove("ghost")

    def test_update(self):
        registry = ThresholdRegistry(rules=[make_rule()])

        updated = registry.update("r1", max_score=30, enabled=False)

        assert updated.max_score == 30
        assert registry.get("r1").enabled is False

    def test_update_validates(self):
        registry = ThresholdRegistry(rules=[make_rule()])

        with pytest.raises(RuleValidationError):
            registry.update("r1", min_score=99)

        assert registry.get("r1").min_score == 0

    def test_update_unknown(self):
        with pytest.raises(RuleNotFoundError):
            ThresholdRegistry(rules=[]).update("ghost", priority=3)

    def test_snapshot_is_stable(self):
        """A snapshot taken before a write is unaffected by it."""
        registry = ThresholdRegistry(rules=[make_rule()])
        before = registry.snapshot()

        registry.add(make_rule(id="r2"))
        registry.remove("r1")

        assert [r.id for r in before] == ["r1"]
        assert [r.id for r in registry.snapshot()] == ["r2"]

    def test_concurrent_adds(self):
        registry = ThresholdRegistry(rules=[])

        threads = [
            threading.Thread(target=registry.add, args=(make_rule(id=f"r{i}"),))
            for i in range(20)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(registry.list()) == 20

    def test_rule_round_trip_from_dict(self):
        rule = QualityThresholdRule.from_dict({
            "id": "human_only",
            "name": "Human Only",
            "category": "overall",
            "minScore": 0,
            "maxScore": 100,
            "action": "flag",
            "priority": 3,
            "conditions": [{"field": "session_type", "operator": "neq", "value": "HUMAN"}],
        })

        assert rule_problems(rule) == []
        assert rule.conditions[0].logical_operator == "AND"
        assert rule.to_dict()["conditions"][0]["operator"] == "neq"
