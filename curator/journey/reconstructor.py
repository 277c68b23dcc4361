"""Journey reconstruction - explain why each recorded event happened.

Given the session's declared task plan and its ordered events, derive for
every event:
1. Session position and task-plan position
2. A guessed intent with confidence and reasoning
3. A simplified navigation history
4. A behavioral summary (focus, decision factors, next actions)

Task progress is inferred by scanning the cumulative history for keywords of
each task step, latest step first. This is a best-effort heuristic; with
``monotonic=True`` the inferred index never moves backwards.
"""

from collections import Counter
from collections.abc import Sequence
from typing import Optional

import structlog

from curator.journey.models import (
    BehavioralContext,
    Intent,
    JourneyContext,
    NavigationFlow,
    TaskProgress,
)
from curator.journey.rules import (
    ADDING_TO_CART,
    DECISION_LABELS,
    INTENT_RULES,
    SEARCHING,
    SELECTING_PRODUCT,
    IntentSignal,
    budget_factor,
    classify_page,
    first_match,
    predict_next_actions,
    recent_product_label,
    salient_keywords,
    style_factors,
    tokenize,
)
from curator.recording.models import (
    CLICK_ACTIONS,
    TEXT_ENTRY_ACTIONS,
    ActionType,
    InteractionEvent,
    TaskPlan,
)

logger = structlog.get_logger()

BASE_CONVERSION = 0.5
PROGRESS_CONVERSION_BONUS = 0.3
MAX_CONVERSION = 0.9


def round_half_up(value: float) -> int:
    return int(value + 0.5)


class JourneyReconstructor:
    """Per-session reconstructor. Create one per session.

    Example:
        reconstructor = JourneyReconstructor()
        reconstructor.initialize(session.task_plan, session.events)
        for index in range(len(session.events)):
            context = reconstructor.context_for(index)
    """

    def __init__(self, monotonic: bool = False):
        self.monotonic = monotonic
        self.plan = TaskPlan.unknown()
        self.events: list[InteractionEvent] = []
        self._inferred: list[int] = []
        self._pages: list[str] = []
        self.log = logger.bind(component="journey_reconstructor")

    def initialize(
        self,
        task_plan: Optional[TaskPlan],
        events: Sequence[InteractionEvent],
    ) -> None:
        """Load a session. Missing or malformed plans become "Unknown task"."""
        self.plan = task_plan if isinstance(task_plan, TaskPlan) else TaskPlan.unknown()
        self.events = list(events)
        self._pages = [classify_page(e.page_url) for e in self.events]
        self._inferred = self._infer_all_task_indices()
        self.log.debug(
            "Journey initialized",
            event_count=len(self.events),
            task_count=self.plan.total,
        )

    def context_for(self, index: int) -> JourneyContext:
        """Build the journey context for the event at index.

        Safe to call in any order; each context depends only on the events
        up to and including index.
        """
        if not 0 <= index < len(self.events):
            raise IndexError(f"event index {index} outside session of {len(self.events)} events")

        event = self.events[index]
        progress = self.task_progress(index)
        intent = self.detect_intent(index)
        return JourneyContext(
            session_step=index + 1,
            total_steps=len(self.events),
            task_progress=progress,
            current_intent=intent,
            navigation_flow=NavigationFlow(
                current_page=self._pages[index],
                previous_pages=self._page_history(index),
                flow_reason=self._flow_reason(index),
            ),
            behavioral_context=self._behavior(progress, intent, event),
        )

    # =========================================================================
    # Task progress
    # =========================================================================

    def task_progress(self, index: int) -> TaskProgress:
        steps = list(self.plan.steps)
        total = len(steps)
        if self.monotonic:
            current = max(self._inferred[: index + 1])
        else:
            current = self._inferred[index]
        current = min(max(current, 0), total - 1)

        return TaskProgress(
            current_task_name=steps[current],
            current_task_index=current,
            total_tasks=total,
            completed_tasks=steps[:current],
            remaining_tasks=steps[current + 1:],
            progress_percent=round_half_up(100 * (current + 1) / total),
        )

    def _infer_all_task_indices(self) -> list[int]:
        keywords = [salient_keywords(step) for step in self.plan.steps]
        typed: list[str] = []
        clicked: list[str] = []
        inferred = []

        for index, event in enumerate(self.events):
            if event.action_type in TEXT_ENTRY_ACTIONS:
                typed.extend(tokenize(event.value or event.element_text))
            elif event.action_type in CLICK_ACTIONS and event.element_text:
                clicked.append(event.element_text.lower())
            inferred.append(self._match_step(index, keywords, typed, " ".join(clicked)))
        return inferred

    def _match_step(
        self,
        index: int,
        keywords: list[list[str]],
        typed: list[str],
        clicked_text: str,
    ) -> int:
        for step_index in range(len(keywords) - 1, -1, -1):
            for keyword in keywords[step_index]:
                if keyword in clicked_text or any(keyword in token for token in typed):
                    return step_index

        total_tasks = len(keywords)
        proportional = (index * total_tasks) // max(len(self.events), 1)
        return min(max(proportional, 0), total_tasks - 1)

    # =========================================================================
    # Intent
    # =========================================================================

    def detect_intent(self, index: int) -> Intent:
        event = self.events[index]
        recent = tuple(self.events[max(0, index - 3): index])
        rule = first_match(INTENT_RULES, IntentSignal(event, recent))
        template = rule.result
        label = event.element_text

        if template.action == SEARCHING:
            terms = tokenize(event.value or event.element_text)
            return Intent(
                action=f"{SEARCHING}_{'_'.join(terms)}",
                confidence=template.confidence,
                reasoning=f'Typed "{" ".join(terms)}" into a search field',
            )
        if template.action == SELECTING_PRODUCT:
            return Intent(
                action=template.action,
                confidence=template.confidence,
                reasoning=f'Clicked product "{label}" on a {self._pages[index]} page',
                target_label=label,
            )
        if template.action == ADDING_TO_CART:
            return Intent(
                action=template.action,
                confidence=template.confidence,
                reasoning=f'Clicked "{label}" button',
                target_label=recent_product_label(recent),
            )
        return Intent(
            action=template.action,
            confidence=template.confidence,
            reasoning=f'{event.action_type.value} on "{label}"',
        )

    # =========================================================================
    # Navigation
    # =========================================================================

    def _page_history(self, index: int) -> list[str]:
        history: list[str] = []
        for page in self._pages[:index]:
            if not history or history[-1] != page:
                history.append(page)
        return history

    def _flow_reason(self, index: int) -> str:
        if index == 0:
            return "session started"
        previous = self.events[index - 1]
        text = previous.element_text
        if previous.action_type in CLICK_ACTIONS:
            return f'clicked "{text}"'
        if previous.action_type in TEXT_ENTRY_ACTIONS:
            return f'searched for "{previous.value or text}"'
        if previous.action_type == ActionType.NAVIGATION:
            return f"navigated to {self._pages[index - 1]}"
        return f"{previous.action_type.value} interaction"

    # =========================================================================
    # Behavior
    # =========================================================================

    def _behavior(
        self,
        progress: TaskProgress,
        intent: Intent,
        event: InteractionEvent,
    ) -> BehavioralContext:
        task = progress.current_task_name
        if intent.action.startswith(SEARCHING):
            focus = f"Searching for items to complete: {task}"
        elif intent.action == SELECTING_PRODUCT:
            focus = f'Evaluating "{intent.target_label}" for: {task}'
        elif intent.action == ADDING_TO_CART:
            focus = f"Committing to a product for: {task}"
        else:
            focus = f"Working on: {task}"

        factors = ["Product matches task requirements"]
        budget = budget_factor(self.plan.description)
        if budget:
            factors.append(budget)
        factors.extend(style_factors(task))

        likelihood = BASE_CONVERSION + PROGRESS_CONVERSION_BONUS * (
            progress.current_task_index / progress.total_tasks
        )
        return BehavioralContext(
            user_focus=focus,
            decision_factors=factors,
            conversion_likelihood=min(MAX_CONVERSION, likelihood),
            next_predicted_actions=predict_next_actions(intent.action),
        )

    # =========================================================================
    # Session-level views
    # =========================================================================

    def decision_points(self) -> list[int]:
        """Indices of events where the participant was weighing options."""
        points = []
        for index, event in enumerate(self.events):
            text = event.element_text.lower()
            on_detail = self._pages[index] == "product-detail"
            weighing = event.action_type in CLICK_ACTIONS and any(
                label in text for label in DECISION_LABELS
            )
            if on_detail or weighing:
                points.append(index)
        return points

    def journey_summary(self) -> dict:
        """Aggregate view of the whole session."""
        intents = Counter(
            self._intent_family(self.detect_intent(i).action) for i in range(len(self.events))
        )
        last_progress = self.task_progress(len(self.events) - 1) if self.events else None
        conversion = BASE_CONVERSION
        if last_progress is not None:
            conversion = min(
                MAX_CONVERSION,
                BASE_CONVERSION + PROGRESS_CONVERSION_BONUS * (
                    last_progress.current_task_index / last_progress.total_tasks
                ),
            )
        return {
            "eventCount": len(self.events),
            "pagesVisited": self._page_history(len(self.events)),
            "uniquePages": sorted(set(self._pages)),
            "intents": dict(intents),
            "decisionPoints": self.decision_points(),
            "conversionProbability": conversion,
        }

    @staticmethod
    def _intent_family(action: str) -> str:
        return SEARCHING if action.startswith(SEARCHING) else action
