"""Aggregate category scores (0-100) for a curated session."""

from collections.abc import Sequence
from typing import Optional

from curator.journey.models import JourneyContext
from curator.journey.rules import BROWSING
from curator.recording.models import InteractionEvent
from curator.selectors.resolver import SelectorResolution


def _share(flags: Sequence[bool]) -> float:
    return sum(1 for f in flags if f) / len(flags) if flags else 0.0


def reliability_score(resolutions: Sequence[SelectorResolution], floor: float) -> float:
    """Percent of events whose measured reliability reaches floor."""
    return 100 * _share([r.is_measured and r.reliability >= floor for r in resolutions])


def completeness_score(events: Sequence[InteractionEvent]) -> float:
    """Mean per-event coverage of element text, page URL and selectors."""
    if not events:
        return 0.0
    coverage = [
        (bool(e.element_text) + bool(e.page_url) + bool(e.candidate_selectors)) / 3
        for e in events
    ]
    return 100 * sum(coverage) / len(coverage)


def consistency_score(events: Sequence[InteractionEvent]) -> float:
    """Percent of adjacent event pairs that are contiguous and time-ordered."""
    if not events:
        return 0.0
    if len(events) == 1:
        return 100.0

    violations = 0
    for previous, current in zip(events, events[1:]):
        gap = current.sequence != previous.sequence + 1
        backwards = (
            previous.timestamp is not None
            and current.timestamp is not None
            and current.timestamp < previous.timestamp
        )
        if gap or backwards:
            violations += 1
    return 100 * (1 - violations / (len(events) - 1))


def training_readiness_score(
    resolutions: Sequence[SelectorResolution],
    journeys: Sequence[JourneyContext],
) -> float:
    """Mean of resolved-selector share and goal-directed-intent share."""
    if not resolutions:
        return 0.0
    resolved = _share([not r.is_placeholder for r in resolutions])
    directed = _share([j.current_intent.action != BROWSING for j in journeys])
    return 100 * (resolved + directed) / 2


def compute_category_scores(
    events: Sequence[InteractionEvent],
    resolutions: Sequence[SelectorResolution],
    journeys: Sequence[JourneyContext],
    reliability_floor: float = 0.5,
    visual_score: Optional[float] = None,
) -> dict[str, float]:
    """All category scores for a session, with overall as their mean."""
    scores = {
        "reliability": reliability_score(resolutions, reliability_floor),
        "completeness": completeness_score(events),
        "consistency": consistency_score(events),
        "training_readiness": training_readiness_score(resolutions, journeys),
    }
    if visual_score is not None:
        scores["visual"] = min(100.0, max(0.0, float(visual_score)))
    scores["overall"] = sum(scores.values()) / len(scores)
    return {k: round(v, 2) for k, v in scores.items()}
