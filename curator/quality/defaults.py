"""Default quality threshold rules.

Reject and flag rules describe the *bad* score band; accept rules describe
the good band. Lower priority values win when several rules trigger, except
that any triggered reject always wins.
"""

from curator.quality.models import QualityThresholdRule, ThresholdCondition


def default_rules() -> list[QualityThresholdRule]:
    """The rule set a fresh registry starts with."""
    return [
        QualityThresholdRule(
            id="critical_overall_quality",
            name="Critical Overall Quality",
            description="Sessions too poor to salvage",
            category="overall",
            min_score=0,
            max_score=40,
            action="reject",
            priority=1,
        ),
        QualityThresholdRule(
            id="critical_reliability",
            name="Critical Reliability",
            description="Selectors too fragile to replay",
            category="reliability",
            min_score=0,
            max_score=45,
            action="reject",
            priority=2,
        ),
        QualityThresholdRule(
            id="critical_completeness",
            name="Critical Completeness",
            description="Too much missing event data",
            category="completeness",
            min_score=0,
            max_score=50,
            action="reject",
            priority=3,
        ),
        QualityThresholdRule(
            id="critical_consistency",
            name="Critical Consistency",
            description="Event ordering too broken to trust",
            category="consistency",
            min_score=0,
            max_score=50,
            action="reject",
            priority=4,
        ),
        QualityThresholdRule(
            id="human_session_review",
            name="Human Session Review",
            description="Higher standards for human-collected sessions",
            category="overall",
            min_score=40,
            max_score=65,
            action="flag",
            priority=5,
            conditions=(ThresholdCondition(field="session_type", operator="eq", value="HUMAN"),),
        ),
        QualityThresholdRule(
            id="marginal_overall_quality",
            name="Marginal Overall Quality",
            description="Sessions that need review but may be acceptable",
            category="overall",
            min_score=40,
            max_score=70,
            action="flag",
            priority=6,
        ),
        QualityThresholdRule(
            id="short_session_leniency",
            name="Short Session Leniency",
            description="Very short sessions pass with a warning",
            category="overall",
            min_score=35,
            max_score=100,
            action="warn",
            priority=7,
            conditions=(ThresholdCondition(field="duration_ms", operator="lt", value=60000),),
        ),
        QualityThresholdRule(
            id="premium_training_quality",
            name="Premium Training Quality",
            description="High-quality sessions ideal for training",
            category="training_readiness",
            min_score=85,
            max_score=100,
            action="accept",
            priority=8,
        ),
        QualityThresholdRule(
            id="good_overall_quality",
            name="Good Overall Quality",
            description="Threshold for good quality sessions",
            category="overall",
            min_score=70,
            max_score=100,
            action="accept",
            priority=9,
        ),
    ]
