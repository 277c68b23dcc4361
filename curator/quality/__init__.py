"""Quality gate and threshold rules."""

from .gate import QualityGate, evaluate_conditions, session_status_for
from .models import (
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
from .registry import ThresholdRegistry, validate_rule

__all__ = [
    "QualityAction",
    "QualityAssessment",
    "QualityCategory",
    "QualityGate",
    "QualityMetrics",
    "QualityRecommendation",
    "QualityThresholdRule",
    "QualityTrend",
    "ThresholdCondition",
    "ThresholdRegistry",
    "ThresholdResult",
    "evaluate_conditions",
    "session_status_for",
    "validate_rule",
]
