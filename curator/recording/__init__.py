"""Recorded interaction models.

Events are captured once by the recorder and consumed read-only by the
curation pipeline.
"""

from .models import (
    CLICK_ACTIONS,
    TEXT_ENTRY_ACTIONS,
    UNKNOWN_TASK,
    ActionType,
    ElementSnapshot,
    InteractionEvent,
    RecordedSession,
    TaskPlan,
    collect_candidate_selectors,
)

__all__ = [
    "ActionType",
    "CLICK_ACTIONS",
    "TEXT_ENTRY_ACTIONS",
    "UNKNOWN_TASK",
    "ElementSnapshot",
    "InteractionEvent",
    "RecordedSession",
    "TaskPlan",
    "collect_candidate_selectors",
]
