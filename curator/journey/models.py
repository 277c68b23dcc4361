"""Derived journey context attached to each recorded event."""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class TaskProgress:
    """Where the participant is within the declared task plan."""
    current_task_name: str
    current_task_index: int  # 0-based, always < total_tasks
    total_tasks: int
    completed_tasks: list[str] = field(default_factory=list)
    remaining_tasks: list[str] = field(default_factory=list)
    progress_percent: int = 0  # round(100 * (index + 1) / total)

    def to_dict(self) -> dict:
        return {
            "currentTaskName": self.current_task_name,
            "currentTaskIndex": self.current_task_index,
            "totalTasks": self.total_tasks,
            "completedTasks": list(self.completed_tasks),
            "remainingTasks": list(self.remaining_tasks),
            "progressPercent": self.progress_percent,
        }


@dataclass
class Intent:
    """Guessed purpose of a single event."""
    action: str
    confidence: float  # 0-1
    reasoning: str
    target_label: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            "action": self.action,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
        }
        if self.target_label is not None:
            data["targetLabel"] = self.target_label
        return data


@dataclass
class NavigationFlow:
    current_page: str
    previous_pages: list[str] = field(default_factory=list)
    flow_reason: str = "session started"

    def to_dict(self) -> dict:
        return {
            "currentPage": self.current_page,
            "previousPages": list(self.previous_pages),
            "flowReason": self.flow_reason,
        }


@dataclass
class BehavioralContext:
    user_focus: str
    decision_factors: list[str] = field(default_factory=list)
    conversion_likelihood: float = 0.5  # 0-0.9
    next_predicted_actions: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "userFocus": self.user_focus,
            "decisionFactors": list(self.decision_factors),
            "conversionLikelihood": self.conversion_likelihood,
            "nextPredictedActions": list(self.next_predicted_actions),
        }


@dataclass
class JourneyContext:
    """Everything known about why one event happened."""
    session_step: int  # 1-based
    total_steps: int
    task_progress: TaskProgress
    current_intent: Intent
    navigation_flow: NavigationFlow
    behavioral_context: BehavioralContext

    def to_dict(self) -> dict:
        return {
            "sessionStep": self.session_step,
            "totalSteps": self.total_steps,
            "taskProgress": self.task_progress.to_dict(),
            "currentIntent": self.current_intent.to_dict(),
            "navigationFlow": self.navigation_flow.to_dict(),
            "behavioralContext": self.behavioral_context.to_dict(),
        }
