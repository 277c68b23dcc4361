"""Data models for recorded shopping-session interactions."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class ActionType(str, Enum):
    """Interaction types captured by the recorder."""

    CLICK = "click"
    INPUT = "input"
    SCROLL = "scroll"
    NAVIGATION = "navigation"
    HOVER = "hover"
    FOCUS = "focus"
    BLUR = "blur"
    FORM_SUBMIT = "form_submit"
    KEY_PRESS = "key_press"
    DRAG = "drag"
    DROP = "drop"
    TOUCH = "touch"

    @classmethod
    def parse(cls, raw: Any) -> "ActionType":
        """Map a raw recorder action name onto an ActionType.

        Unknown names map to HOVER, a passive action that never carries
        intent of its own.
        """
        if isinstance(raw, ActionType):
            return raw
        name = str(raw or "").strip().lower()
        name = ACTION_ALIASES.get(name, name)
        try:
            return cls(name)
        except ValueError:
            return cls.HOVER


ACTION_ALIASES: dict[str, str] = {
    "type": "input",
    "change": "input",
    "submit": "form_submit",
    "keypress": "key_press",
    "keydown": "key_press",
    "navigate": "navigation",
    "tap": "touch",
}

# Actions whose payload is free text typed by the participant
TEXT_ENTRY_ACTIONS = frozenset({ActionType.INPUT})

# Actions that select an element
CLICK_ACTIONS = frozenset({ActionType.CLICK, ActionType.TOUCH})


@dataclass(frozen=True)
class ElementSnapshot:
    """Descriptive snapshot of the element an event targeted."""

    tag: str = ""
    text: str = ""
    attributes: dict = field(default_factory=dict)
    nearby_elements: list[dict] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "ElementSnapshot":
        """Create ElementSnapshot from a stored element record."""
        if not isinstance(data, dict):
            return cls()
        attributes = data.get("attributes")
        nearby = data.get("nearbyElements") or data.get("nearby_elements")
        return cls(
            tag=str(data.get("tag") or data.get("tagName") or "").lower(),
            text=str(data.get("text") or "").strip(),
            attributes=attributes if isinstance(attributes, dict) else {},
            nearby_elements=nearby if isinstance(nearby, list) else [],
        )


@dataclass(frozen=True)
class InteractionEvent:
    """One recorded user action. Immutable once captured."""

    sequence: int
    action_type: ActionType
    candidate_selectors: tuple[str, ...] = ()
    selector_reliability: dict[str, float] = field(default_factory=dict)
    element: ElementSnapshot = field(default_factory=ElementSnapshot)
    page_url: str = ""
    page_type: str = ""
    value: str = ""
    timestamp: Optional[int] = None  # ms since epoch

    @property
    def element_text(self) -> str:
        return self.element.text

    @classmethod
    def from_dict(
        cls,
        data: dict,
        sequence: Optional[int] = None,
        index: int = 0,
    ) -> "InteractionEvent":
        """Create an InteractionEvent from a stored interaction record.

        Accepts the nested record shape written by the recorder
        (``interaction``/``selectors``/``element``/``context``). Missing or
        malformed sections are treated as empty.

        Args:
            data: Stored interaction record
            sequence: Position override; defaults to the record's own value
            index: Position of the record in its session, used when the
                stored sequence is missing or not a number
        """
        interaction = data.get("interaction") if isinstance(data.get("interaction"), dict) else {}
        selectors = data.get("selectors") if isinstance(data.get("selectors"), dict) else {}
        context = data.get("context") if isinstance(data.get("context"), dict) else {}

        if sequence is None:
            sequence = data.get("sequence", interaction.get("sequence"))
        try:
            sequence = int(sequence)
        except (TypeError, ValueError):
            sequence = index

        timestamp = interaction.get("timestamp", data.get("timestamp"))
        try:
            timestamp = int(timestamp) if timestamp is not None else None
        except (TypeError, ValueError):
            timestamp = None

        return cls(
            sequence=sequence,
            action_type=ActionType.parse(interaction.get("type") or data.get("type")),
            candidate_selectors=collect_candidate_selectors(selectors),
            selector_reliability=_clean_reliability(selectors.get("reliability")),
            element=ElementSnapshot.from_dict(data.get("element")),
            page_url=str(context.get("pageUrl") or data.get("url") or ""),
            page_type=str(context.get("pageType") or ""),
            value=str(interaction.get("value") or ""),
            timestamp=timestamp,
        )


def collect_candidate_selectors(selectors: dict) -> tuple[str, ...]:
    """Flatten a stored selector record into an ordered candidate tuple.

    Order is xpath, cssPath, primary, then alternatives. Empty strings and
    repeats are dropped; the first occurrence keeps its position.
    """
    ordered: list[str] = []
    raw = [selectors.get("xpath"), selectors.get("cssPath"), selectors.get("primary")]
    alternatives = selectors.get("alternatives")
    if isinstance(alternatives, (list, tuple)):
        raw.extend(alternatives)

    for selector in raw:
        if isinstance(selector, str) and selector.strip() and selector not in ordered:
            ordered.append(selector)
    return tuple(ordered)


def _clean_reliability(raw: Any) -> dict[str, float]:
    """Keep only numeric reliability values, clamped to [0, 1]."""
    if not isinstance(raw, dict):
        return {}
    cleaned: dict[str, float] = {}
    for selector, score in raw.items():
        try:
            value = float(score)
        except (TypeError, ValueError):
            continue
        if value != value:  # NaN
            continue
        cleaned[str(selector)] = min(1.0, max(0.0, value))
    return cleaned


UNKNOWN_TASK = "Unknown task"


@dataclass(frozen=True)
class TaskPlan:
    """The ordered sub-goals a participant was asked to complete."""

    steps: tuple[str, ...]
    title: str = ""
    description: str = ""

    def __post_init__(self):
        object.__setattr__(self, "steps", tuple(self.steps or ()) or (UNKNOWN_TASK,))

    @property
    def total(self) -> int:
        return len(self.steps)

    @classmethod
    def unknown(cls) -> "TaskPlan":
        """Synthetic single-step plan used when no usable plan exists."""
        return cls(steps=(UNKNOWN_TASK,))

    @classmethod
    def from_config(cls, config: Any) -> "TaskPlan":
        """Read the generated task from a stored session configuration.

        Accepts either the session config (``{"generatedTask": {...}}``) or
        the task dict itself. Anything unusable yields the synthetic plan.
        """
        if not isinstance(config, dict):
            return cls.unknown()
        task = config.get("generatedTask", config)
        if not isinstance(task, dict):
            return cls.unknown()

        raw_steps = task.get("steps")
        if not isinstance(raw_steps, (list, tuple)):
            return cls.unknown()
        steps = tuple(str(s).strip() for s in raw_steps if isinstance(s, str) and s.strip())
        if not steps:
            return cls.unknown()

        return cls(
            steps=steps,
            title=str(task.get("title") or ""),
            description=str(task.get("description") or ""),
        )


@dataclass
class RecordedSession:
    """A recorded session as handed to the curation pipeline."""

    session_id: str
    events: list[InteractionEvent] = field(default_factory=list)
    task_plan: TaskPlan = field(default_factory=TaskPlan.unknown)
    session_type: str = "HUMAN"
    metadata: dict = field(default_factory=dict)

    @property
    def duration_ms(self) -> int:
        """Elapsed time between the first and last timestamped events."""
        stamps = [e.timestamp for e in self.events if e.timestamp is not None]
        if len(stamps) < 2:
            return 0
        return max(stamps) - min(stamps)

    @classmethod
    def from_dict(cls, data: dict) -> "RecordedSession":
        """Create a session from ``{"sessionId", "config", "interactions"}``."""
        records = data.get("interactions") or []
        events = [
            InteractionEvent.from_dict(record, index=index)
            for index, record in enumerate(records)
            if isinstance(record, dict)
        ]
        events.sort(key=lambda e: e.sequence)
        return cls(
            session_id=str(data.get("sessionId") or data.get("id") or "session"),
            events=events,
            task_plan=TaskPlan.from_config(data.get("config")),
            session_type=str(data.get("type") or "HUMAN"),
            metadata=data.get("metadata") if isinstance(data.get("metadata"), dict) else {},
        )
