"""Quality gate - decide whether a session's examples may be exported.

Evaluation:
1. Enabled rules are visited in ascending priority order
2. A rule triggers when its category score lies in [min, max] and its
   conditions hold
3. Any triggered reject wins; otherwise the lowest-priority-value rule wins;
   with nothing triggered the session is accepted

The gate is pure apart from its bounded, in-memory trend log.
"""

import operator
import threading
from collections import deque
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from typing import Any, Callable, Optional

import structlog

from curator.quality.models import (
    ELIGIBLE_ACTIONS,
    QualityAction,
    QualityAssessment,
    QualityCategory,
    QualityMetrics,
    QualityRecommendation,
    QualityThresholdRule,
    QualityTrend,
    ThresholdCondition,
    ThresholdResult,
)
from curator.quality.registry import ThresholdRegistry, rule_problems

logger = structlog.get_logger()

DEFAULT_TREND_LIMIT = 1000
TREND_REPORT_SIZE = 100
MAX_RECOMMENDATIONS = 5
MAX_SUGGESTIONS = 8

SESSION_STATUS = {
    QualityAction.ACCEPT: "COMPLETED",
    QualityAction.WARN: "COMPLETED",
    QualityAction.FLAG: "REVIEW_REQUIRED",
    QualityAction.REJECT: "FAILED",
}

RECOMMENDATION_TEXT = {
    "completeness": ("Data Collection", "Capture element text, page URL and selectors for every interaction"),
    "reliability": ("Technical Quality", "Improve selector quality and reduce fragile selectors"),
    "consistency": ("Data Quality", "Fix timestamp inconsistencies and data ordering issues"),
    "training_readiness": ("Training Readiness", "Record more goal-directed interactions with resolvable selectors"),
    "overall": ("General Quality", "Focus on improving data collection methodology and validation"),
}

SUGGESTIONS = {
    "completeness": [
        "Encourage longer user sessions with more interactions",
        "Implement better screenshot capture timing",
        "Add prompts to guide users through complete workflows",
    ],
    "reliability": [
        "Improve selector generation algorithms",
        "Add fallback selectors for better reliability",
        "Implement selector testing before capture",
    ],
    "consistency": [
        "Fix timestamp synchronization issues",
        "Implement better data ordering validation",
        "Add consistency checks during data collection",
    ],
    "training_readiness": [
        "Give participants concrete shopping goals",
        "Prefer stable test-id attributes on recorded sites",
    ],
}

_COMPARATORS: dict[str, Callable[[Any, Any], bool]] = {
    "gt": operator.gt,
    "gte": operator.ge,
    "lt": operator.lt,
    "lte": operator.le,
    "eq": operator.eq,
    "neq": operator.ne,
    "contains": lambda actual, expected: str(expected) in str(actual),
    "not_contains": lambda actual, expected: str(expected) not in str(actual),
}


def session_status_for(action: QualityAction | str) -> str:
    """Stored session status for an assessment action."""
    try:
        return SESSION_STATUS[QualityAction(action)]
    except ValueError:
        return "PROCESSING"


def resolve_field(record: Mapping[str, Any], path: str) -> Any:
    """Look up a dotted path ("metadata.device.type") in a nested record."""
    value: Any = record
    for part in path.split("."):
        if isinstance(value, Mapping) and part in value:
            value = value[part]
        else:
            return None
    return value


def evaluate_condition(condition: ThresholdCondition, record: Mapping[str, Any]) -> bool:
    comparator = _COMPARATORS.get(str(getattr(condition.operator, "value", condition.operator)))
    if comparator is None:
        return False
    actual = resolve_field(record, condition.field)
    if actual is None and condition.operator not in ("eq", "neq"):
        return False
    try:
        return bool(comparator(actual, condition.value))
    except TypeError:
        return False


def evaluate_conditions(
    conditions: Iterable[ThresholdCondition],
    record: Mapping[str, Any],
) -> bool:
    """Fold conditions left to right.

    Each condition's logical operator joins it to the following condition;
    the first condition is joined to an implicit True with AND.
    """
    result = True
    joiner = "AND"
    for condition in conditions:
        value = evaluate_condition(condition, record)
        result = (result and value) if joiner == "AND" else (result or value)
        joiner = str(getattr(condition.logical_operator, "value", condition.logical_operator)).upper()
    return result


def _fmt(score: float) -> str:
    return f"{score:g}" if isinstance(score, (int, float)) else str(score)


class QualityGate:
    """Assess sessions against the rules in a ThresholdRegistry.

    Example:
        gate = QualityGate()
        assessment = gate.assess(
            "session-42",
            {"reliability": 82, "completeness": 90, "consistency": 100},
            fields={"session_type": "HUMAN", "duration_ms": 240000},
        )
        if assessment.training_eligible:
            export(examples)
    """

    def __init__(
        self,
        registry: Optional[ThresholdRegistry] = None,
        trend_limit: int = DEFAULT_TREND_LIMIT,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.registry = registry or ThresholdRegistry()
        self._trends: deque[QualityTrend] = deque(maxlen=max(trend_limit, 1))
        self._trend_lock = threading.Lock()
        self._clock = clock or (lambda: datetime.now(UTC))
        self.log = logger.bind(component="quality_gate")

    # =========================================================================
    # Assessment
    # =========================================================================

    def assess(
        self,
        session_id: str,
        category_scores: Mapping[str, float],
        fields: Optional[Mapping[str, Any]] = None,
    ) -> QualityAssessment:
        """Run every enabled rule against one session's scores."""
        scores = self._normalize_scores(category_scores)
        record = {**(fields or {}), **scores}
        rules = sorted(self.registry.snapshot(), key=lambda r: r.priority)

        results: list[ThresholdResult] = []
        triggered: list[QualityThresholdRule] = []
        for rule in rules:
            if not rule.enabled:
                continue
            problems = rule_problems(rule)
            if problems:
                self.log.warning("Skipping malformed quality rule", threshold_id=rule.id, problems=problems)
                continue

            actual = scores.get(str(getattr(rule.category, "value", rule.category)), 0.0)
            if not rule.min_score <= actual <= rule.max_score:
                continue
            if rule.conditions and not evaluate_conditions(rule.conditions, record):
                continue

            triggered.append(rule)
            results.append(self._result_for(rule, actual))

        final_action, reason = self._final_action(results)
        assessment = QualityAssessment(
            session_id=session_id,
            overall_score=scores[QualityCategory.OVERALL.value],
            category_scores=scores,
            threshold_results=results,
            final_action=final_action,
            action_reason=reason,
            recommendations=self._recommendations(scores, rules, triggered),
            improvement_suggestions=self._suggestions(scores, rules, triggered),
            training_eligible=final_action in ELIGIBLE_ACTIONS,
            assessed_at=self._clock(),
        )

        self._record_trend(assessment, triggered)
        self.log.info(
            "Quality assessment completed",
            session_id=session_id,
            final_action=final_action.value,
            overall_score=assessment.overall_score,
            training_eligible=assessment.training_eligible,
        )
        return assessment

    def assess_many(
        self,
        sessions: Iterable[tuple[str, Mapping[str, float]] | tuple[str, Mapping[str, float], Mapping[str, Any]]],
    ) -> list[QualityAssessment]:
        """Assess sessions independently; a failing session is logged and skipped."""
        assessments = []
        for item in sessions:
            session_id = item[0]
            try:
                assessments.append(self.assess(*item))
            except Exception as e:
                self.log.error("Failed to assess session", session_id=session_id, error=str(e))
        return assessments

    @staticmethod
    def _normalize_scores(category_scores: Mapping[str, float]) -> dict[str, float]:
        scores = {
            str(getattr(k, "value", k)): float(v)
            for k, v in category_scores.items()
            if isinstance(v, (int, float)) and not isinstance(v, bool)
        }
        overall = QualityCategory.OVERALL.value
        if overall not in scores:
            others = [v for k, v in scores.items() if k != overall]
            scores[overall] = sum(others) / len(others) if others else 0.0
        return scores

    @staticmethod
    def _result_for(rule: QualityThresholdRule, actual: float) -> ThresholdResult:
        action = QualityAction(getattr(rule.action, "value", rule.action))
        passed = action not in (QualityAction.REJECT, QualityAction.FLAG)
        verdict = "passed" if passed else "failed"
        return ThresholdResult(
            threshold_id=rule.id,
            threshold_name=rule.name,
            passed=passed,
            actual_score=actual,
            required_score=rule.min_score,
            action=action,
            priority=rule.priority,
            message=(
                f"{rule.name}: {verdict} with score {_fmt(actual)} "
                f"(range {_fmt(rule.min_score)}-{_fmt(rule.max_score)}), action {action.value}"
            ),
        )

    @staticmethod
    def _final_action(results: list[ThresholdResult]) -> tuple[QualityAction, str]:
        if not results:
            return QualityAction.ACCEPT, "No quality threshold triggered"

        rejects = [r for r in results if r.action == QualityAction.REJECT]
        if rejects:
            first = rejects[0]
            return QualityAction.REJECT, (
                f"Failed critical threshold: {first.threshold_name} "
                f"(score: {_fmt(first.actual_score)})"
            )

        governing = results[0]
        if governing.action == QualityAction.FLAG:
            return QualityAction.FLAG, f"Flagged for review: {governing.threshold_name}"
        if governing.action == QualityAction.WARN:
            return QualityAction.WARN, f"Quality concerns: {governing.threshold_name}"
        return QualityAction.ACCEPT, f"Accepted by {governing.threshold_name}"

    # =========================================================================
    # Advice
    # =========================================================================

    @staticmethod
    def _deficits(
        scores: Mapping[str, float],
        rules: Iterable[QualityThresholdRule],
        triggered: list[QualityThresholdRule],
    ) -> dict[str, float]:
        """Largest shortfall per category, from accept bands and triggered bad bands."""
        deficits: dict[str, float] = {}

        def note(category: str, amount: float) -> None:
            if amount > 0:
                deficits[category] = max(deficits.get(category, 0.0), amount)

        for rule in rules:
            category = str(getattr(rule.category, "value", rule.category))
            action = str(getattr(rule.action, "value", rule.action))
            if rule.enabled and action == QualityAction.ACCEPT.value and not rule_problems(rule):
                note(category, rule.min_score - scores.get(category, 0.0))
        for rule in triggered:
            category = str(getattr(rule.category, "value", rule.category))
            action = str(getattr(rule.action, "value", rule.action))
            if action != QualityAction.ACCEPT.value:
                note(category, rule.max_score - scores.get(category, 0.0))
        return deficits

    def _recommendations(self, scores, rules, triggered) -> list[QualityRecommendation]:
        deficits = self._deficits(scores, rules, triggered)
        recommendations = []
        for category, deficit in sorted(deficits.items(), key=lambda item: item[1], reverse=True):
            label, message = RECOMMENDATION_TEXT.get(
                category, ("General Quality", f"Improve {category} score")
            )
            if deficit >= 20:
                priority = "high"
            elif deficit >= 10:
                priority = "medium"
            else:
                priority = "low"
            recommendations.append(
                QualityRecommendation(
                    category=label,
                    priority=priority,
                    message=f"{message} ({category} is {_fmt(deficit)} points short)",
                    actionable=True,
                    estimated_impact=min(deficit, 20.0),
                )
            )
        return recommendations[:MAX_RECOMMENDATIONS]

    def _suggestions(self, scores, rules, triggered) -> list[str]:
        deficits = self._deficits(scores, rules, triggered)
        suggestions: list[str] = []
        for category, _ in sorted(deficits.items(), key=lambda item: item[1], reverse=True):
            for suggestion in SUGGESTIONS.get(category, ()):
                if suggestion not in suggestions:
                    suggestions.append(suggestion)
        return suggestions[:MAX_SUGGESTIONS]

    # =========================================================================
    # Trends
    # =========================================================================

    def _record_trend(self, assessment: QualityAssessment, triggered: list[QualityThresholdRule]) -> None:
        try:
            trend = QualityTrend(
                session_id=assessment.session_id,
                timestamp=assessment.assessed_at or self._clock(),
                overall_score=assessment.overall_score,
                category_scores=dict(assessment.category_scores),
                action=assessment.final_action,
                triggered_rules=tuple(r.id for r in triggered),
            )
            with self._trend_lock:
                self._trends.append(trend)
        except Exception as e:
            self.log.warning("Failed to record quality trend", session_id=assessment.session_id, error=str(e))

    def trends(self) -> list[QualityTrend]:
        with self._trend_lock:
            return list(self._trends)

    def get_quality_metrics(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> QualityMetrics:
        """Aggregate the trend log, optionally limited to [start, end]."""
        trends = [
            t for t in self.trends()
            if (start is None or t.timestamp >= start) and (end is None or t.timestamp <= end)
        ]
        total = len(trends)

        def count(action: QualityAction) -> int:
            return sum(1 for t in trends if t.action == action)

        categories: dict[str, list[float]] = {}
        for trend in trends:
            for category, score in trend.category_scores.items():
                categories.setdefault(category, []).append(score)

        performance = {
            rule.id: {
                "triggered": sum(1 for t in trends if rule.id in t.triggered_rules),
                "total": total,
            }
            for rule in self.registry.snapshot()
        }

        return QualityMetrics(
            total_sessions=total,
            accepted_sessions=count(QualityAction.ACCEPT),
            rejected_sessions=count(QualityAction.REJECT),
            flagged_sessions=count(QualityAction.FLAG),
            warned_sessions=count(QualityAction.WARN),
            average_score=sum(t.overall_score for t in trends) / total if total else 0.0,
            category_averages={k: sum(v) / len(v) for k, v in categories.items()},
            trend_data=trends[-TREND_REPORT_SIZE:],
            threshold_performance=performance,
        )
