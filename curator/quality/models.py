"""Data models for the quality gate."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class QualityCategory(str, Enum):
    """Score categories a threshold rule can watch."""
    OVERALL = "overall"
    COMPLETENESS = "completeness"
    RELIABILITY = "reliability"
    CONSISTENCY = "consistency"
    TRAINING_READINESS = "training_readiness"


class QualityAction(str, Enum):
    """Outcome of a triggered rule, and of a whole assessment."""
    ACCEPT = "accept"
    FLAG = "flag"      # Needs human review before export
    WARN = "warn"      # Exportable, with concerns noted
    REJECT = "reject"  # Never exported


class ConditionOperator(str, Enum):
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    EQ = "eq"
    NEQ = "neq"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"


class LogicalOperator(str, Enum):
    AND = "AND"
    OR = "OR"


ELIGIBLE_ACTIONS = frozenset({QualityAction.ACCEPT, QualityAction.WARN})


@dataclass(frozen=True)
class ThresholdCondition:
    """One clause of a rule's condition expression.

    ``logical_operator`` joins this clause to the *next* one.
    """
    field: str
    operator: str
    value: Any
    logical_operator: str = LogicalOperator.AND.value

    def to_dict(self) -> dict:
        return {
            "field": self.field,
            "operator": str(getattr(self.operator, "value", self.operator)),
            "value": self.value,
            "logicalOperator": str(getattr(self.logical_operator, "value", self.logical_operator)),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ThresholdCondition":
        return cls(
            field=str(data.get("field", "")),
            operator=str(data.get("operator", "")),
            value=data.get("value"),
            logical_operator=str(data.get("logicalOperator") or data.get("logical_operator") or "AND"),
        )


@dataclass(frozen=True)
class QualityThresholdRule:
    """A prioritized, optionally conditional quality rule.

    A rule is in range when its category score lies in [min_score,
    max_score]. Lower priority values are preferred.
    """
    id: str
    name: str
    category: str
    min_score: float
    max_score: float
    action: str
    priority: int
    enabled: bool = True
    description: str = ""
    conditions: tuple[ThresholdCondition, ...] = ()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": str(getattr(self.category, "value", self.category)),
            "minScore": self.min_score,
            "maxScore": self.max_score,
            "action": str(getattr(self.action, "value", self.action)),
            "priority": self.priority,
            "enabled": self.enabled,
            "conditions": [c.to_dict() for c in self.conditions],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "QualityThresholdRule":
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name", "")),
            description=str(data.get("description", "")),
            category=str(data.get("category", "")),
            min_score=data.get("minScore", data.get("min_score")),
            max_score=data.get("maxScore", data.get("max_score")),
            action=str(data.get("action", "")),
            priority=data.get("priority", 0),
            enabled=bool(data.get("enabled", True)),
            conditions=tuple(
                ThresholdCondition.from_dict(c) for c in data.get("conditions") or ()
            ),
        )


@dataclass
class ThresholdResult:
    """Outcome of one triggered rule."""
    threshold_id: str
    threshold_name: str
    passed: bool
    actual_score: float
    required_score: float
    action: QualityAction
    priority: int
    message: str

    def to_dict(self) -> dict:
        return {
            "thresholdId": self.threshold_id,
            "thresholdName": self.threshold_name,
            "passed": self.passed,
            "actualScore": self.actual_score,
            "requiredScore": self.required_score,
            "action": self.action.value,
            "priority": self.priority,
            "message": self.message,
        }


@dataclass
class QualityRecommendation:
    category: str
    priority: str  # high, medium, low
    message: str
    actionable: bool = True
    estimated_impact: float = 0.0

    def to_dict(self) -> dict:
        return {
            "category": self.category,
            "priority": self.priority,
            "message": self.message,
            "actionable": self.actionable,
            "estimatedImpact": self.estimated_impact,
        }


@dataclass
class QualityAssessment:
    """Gate decision for one session."""
    session_id: str
    overall_score: float
    category_scores: dict[str, float]
    threshold_results: list[ThresholdResult]
    final_action: QualityAction
    action_reason: str
    recommendations: list[QualityRecommendation] = field(default_factory=list)
    improvement_suggestions: list[str] = field(default_factory=list)
    training_eligible: bool = False
    assessed_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "sessionId": self.session_id,
            "overallScore": self.overall_score,
            "categoryScores": dict(self.category_scores),
            "thresholdResults": [r.to_dict() for r in self.threshold_results],
            "finalAction": self.final_action.value,
            "actionReason": self.action_reason,
            "recommendations": [r.to_dict() for r in self.recommendations],
            "improvementSuggestions": list(self.improvement_suggestions),
            "trainingEligible": self.training_eligible,
            "assessedAt": self.assessed_at.isoformat() if self.assessed_at else None,
        }


@dataclass(frozen=True)
class QualityTrend:
    """Append-only record of one assessment, for aggregate reporting."""
    session_id: str
    timestamp: datetime
    overall_score: float
    category_scores: dict[str, float]
    action: QualityAction
    triggered_rules: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "sessionId": self.session_id,
            "timestamp": self.timestamp.isoformat(),
            "overallScore": self.overall_score,
            "categoryScores": dict(self.category_scores),
            "action": self.action.value,
        }


@dataclass
class QualityMetrics:
    total_sessions: int = 0
    accepted_sessions: int = 0
    rejected_sessions: int = 0
    flagged_sessions: int = 0
    warned_sessions: int = 0
    average_score: float = 0.0
    category_averages: dict[str, float] = field(default_factory=dict)
    trend_data: list[QualityTrend] = field(default_factory=list)
    threshold_performance: dict[str, dict[str, int]] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "totalSessions": self.total_sessions,
            "acceptedSessions": self.accepted_sessions,
            "rejectedSessions": self.rejected_sessions,
            "flaggedSessions": self.flagged_sessions,
            "warnedSessions": self.warned_sessions,
            "averageScore": self.average_score,
            "categoryAverages": dict(self.category_averages),
            "trendData": [t.to_dict() for t in self.trend_data],
            "thresholdPerformance": {k: dict(v) for k, v in self.threshold_performance.items()},
        }
