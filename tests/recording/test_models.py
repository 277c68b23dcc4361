"""Tests for recorded interaction models."""

import pytest

from curator.recording.models import (
    UNKNOWN_TASK,
    ActionType,
    InteractionEvent,
    RecordedSession,
    TaskPlan,
    collect_candidate_selectors,
)


class TestActionType:
    """Tests for ActionType.parse."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("click", ActionType.CLICK),
            ("CLICK", ActionType.CLICK),
            ("type", ActionType.INPUT),
            ("submit", ActionType.FORM_SUBMIT),
            ("keydown", ActionType.KEY_PRESS),
            ("navigate", ActionType.NAVIGATION),
            ("tap", ActionType.TOUCH),
            ("wiggle", ActionType.HOVER),
            (None, ActionType.HOVER),
        ],
    )
    def test_parse(self, raw, expected):
        """Raw names, aliases and unknowns all map to an ActionType."""
        assert ActionType.parse(raw) == expected


class TestInteractionEvent:
    """Tests for InteractionEvent.from_dict."""

    @pytest.fixture
    def raw_record(self):
        return {
            "interaction": {"type": "type", "value": "graphic tee", "timestamp": 1700000000000},
            "selectors": {
                "xpath": "//input[@name='q']",
                "cssPath": "form > input",
                "primary": "#search",
                "alternatives": ["#search", "input[name='q']", ""],
                "reliability": {"#search": 0.9, "form > input": "bad", "input[name='q']": 1.4},
            },
            "element": {"tag": "INPUT", "text": "  ", "attributes": {"name": "q"}},
            "context": {"pageUrl": "https://shop.example.com/", "pageType": "home"},
        }

    def test_parses_nested_record(self, raw_record):
        """All sections of the stored record are read."""
        event = InteractionEvent.from_dict(raw_record, sequence=4)

        assert event.sequence == 4
        assert event.action_type == ActionType.INPUT
        assert event.value == "graphic tee"
        assert event.timestamp == 1700000000000
        assert event.element.tag == "input"
        assert event.element_text == ""
        assert event.page_url == "https://shop.example.com/"
        assert event.page_type == "home"

    def test_candidate_order_and_dedup(self, raw_record):
        """xpath, cssPath, primary, then alternatives, without repeats."""
        event = InteractionEvent.from_dict(raw_record)

        assert event.candidate_selectors == (
            "//input[@name='q']",
            "form > input",
            "#search",
            "input[name='q']",
        )

    def test_reliability_cleaned(self, raw_record):
        """Non-numeric values are dropped and the rest clamped."""
        event = InteractionEvent.from_dict(raw_record)

        assert event.selector_reliability == {"#search": 0.9, "input[name='q']": 1.0}

    def test_empty_record(self):
        """A bare record still yields an event."""
        event = InteractionEvent.from_dict({})

        assert event.sequence == 0
        assert event.action_type == ActionType.HOVER
        assert event.candidate_selectors == ()
        assert event.selector_reliability == {}

    @pytest.mark.parametrize("raw_sequence", ["abc", None, {"n": 1}])
    def test_unusable_sequence_falls_back_to_index(self, raw_sequence):
        """A non-numeric stored sequence takes the record's position."""
        event = InteractionEvent.from_dict({"sequence": raw_sequence}, index=7)

        assert event.sequence == 7

    def test_numeric_string_sequence(self):
        assert InteractionEvent.from_dict({"sequence": "3"}, index=7).sequence == 3

    def test_collect_candidates_ignores_bad_alternatives(self):
        assert collect_candidate_selectors({"primary": "#a", "alternatives": "oops"}) == ("#a",)


class TestTaskPlan:
    """Tests for TaskPlan."""

    def test_from_config(self):
        plan = TaskPlan.from_config({
            "generatedTask": {
                "title": "Casual outfit",
                "description": "Under $100",
                "steps": ["Search for graphic tees", "  ", "Browse for jeans"],
            }
        })

        assert plan.steps == ("Search for graphic tees", "Browse for jeans")
        assert plan.title == "Casual outfit"
        assert plan.total == 2

    @pytest.mark.parametrize(
        "config",
        [None, {}, {"generatedTask": None}, {"generatedTask": {"steps": "not a list"}}, {"steps": []}],
    )
    def test_unusable_config_yields_unknown_task(self, config):
        """Missing or malformed plans never raise."""
        plan = TaskPlan.from_config(config)

        assert plan.steps == (UNKNOWN_TASK,)

    def test_empty_steps_replaced(self):
        assert TaskPlan(steps=()).steps == (UNKNOWN_TASK,)


class TestRecordedSession:
    """Tests for RecordedSession."""

    def test_from_dict_sorts_by_sequence(self):
        session = RecordedSession.from_dict({
            "sessionId": "sess-9",
            "config": {"generatedTask": {"steps": ["find shoes"]}},
            "interactions": [
                {"sequence": 2, "interaction": {"type": "click", "timestamp": 3000}},
                {"sequence": 0, "interaction": {"type": "click", "timestamp": 1000}},
                {"sequence": 1, "interaction": {"type": "scroll", "timestamp": 2500}},
                "garbage",
            ],
        })

        assert session.session_id == "sess-9"
        assert [e.sequence for e in session.events] == [0, 1, 2]
        assert session.task_plan.steps == ("find shoes",)
        assert session.duration_ms == 2000

    def test_from_dict_survives_bad_sequence(self):
        """One malformed sequence does not lose the session."""
        session = RecordedSession.from_dict({
            "sessionId": "sess-10",
            "interactions": [
                {"sequence": "abc", "interaction": {"type": "click"}},
                {"sequence": 5, "interaction": {"type": "click"}},
            ],
        })

        assert [e.sequence for e in session.events] == [0, 5]

    def test_duration_without_timestamps(self):
        session = RecordedSession(session_id="s")

        assert session.duration_ms == 0
