"""Selector resolution - pick the most reliable locator for a recorded event.

Every recorded event carries several candidate locators (structural path,
attribute match, stable test id, free text). The resolver picks one primary
selector plus an ordered list of backups:

- Measured reliability wins when the recorder supplied any.
- Ties keep input order, so resolution is deterministic.
- Without measurements a static priority by selector kind applies; its
  estimates only order backups and are reported separately from measured
  reliability.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from curator.config import DEFAULT_FALLBACK_SCORES
from curator.recording.models import ActionType

PLACEHOLDER_SELECTOR = "element"

DEFAULT_MAX_BACKUPS = 5


class SelectorKind(str, Enum):
    """Locator strategies, strongest first."""

    TEST_ID = "test_id"
    XPATH = "xpath"
    ID = "id"
    ATTRIBUTE = "attribute"
    CLASS = "class"
    OTHER = "other"


class ResolutionSource(str, Enum):
    """Where a resolution's primary selector came from."""

    MEASURED = "measured"  # Highest measured reliability
    FALLBACK = "fallback"  # Static kind priority, no measurements
    PLACEHOLDER = "placeholder"  # No candidates at all


# Kinds consulted, in order, when no measured reliability exists
FALLBACK_PRIORITY = (
    SelectorKind.TEST_ID,
    SelectorKind.XPATH,
    SelectorKind.ID,
    SelectorKind.CLASS,
)

TEST_ID_ATTRIBUTES = ("data-testid", "data-test-id", "data-test", "data-cy")


def classify_selector(selector: str) -> SelectorKind:
    """Classify a locator string by strategy."""
    if any(attr in selector for attr in TEST_ID_ATTRIBUTES):
        return SelectorKind.TEST_ID
    if selector.startswith("/") or selector.startswith("(/"):
        return SelectorKind.XPATH
    if "#" in selector and " " not in selector:
        return SelectorKind.ID
    if selector.startswith(".") or "[class" in selector:
        return SelectorKind.CLASS
    if "[" in selector and "=" in selector:
        return SelectorKind.ATTRIBUTE
    return SelectorKind.OTHER


@dataclass(frozen=True)
class SelectorResolution:
    """Resolved locator for one event."""

    best_selector: str
    backup_selectors: tuple[str, ...] = ()
    reliability: float = 0.0  # Measured score of best_selector, in [0, 1]
    source: ResolutionSource = ResolutionSource.PLACEHOLDER
    estimated_reliability: Optional[float] = None  # Static estimate, fallback only

    @property
    def is_placeholder(self) -> bool:
        return self.source == ResolutionSource.PLACEHOLDER

    @property
    def is_measured(self) -> bool:
        return self.source == ResolutionSource.MEASURED

    def to_dict(self) -> dict:
        return {
            "bestSelector": self.best_selector,
            "backupSelectors": list(self.backup_selectors),
            "reliability": self.reliability,
            "source": self.source.value,
            "estimatedReliability": self.estimated_reliability,
        }


@dataclass
class SelectorResolver:
    """Pure resolver from candidate locators to a SelectorResolution.

    Example:
        resolver = SelectorResolver()
        resolution = resolver.resolve(
            ["#buy", "//button[1]"],
            {"#buy": 0.7, "//button[1]": 0.4},
        )
        resolution.best_selector  # "#buy"
    """

    max_backups: int = DEFAULT_MAX_BACKUPS
    fallback_scores: dict[str, float] = field(
        default_factory=lambda: dict(DEFAULT_FALLBACK_SCORES)
    )

    def resolve(
        self,
        candidates: Sequence[str],
        reliability: Optional[Mapping[str, float]] = None,
    ) -> SelectorResolution:
        """Resolve the best selector and ordered backups.

        Args:
            candidates: Candidate locators in recorded order
            reliability: Measured reliability per locator; may be missing

        Returns:
            SelectorResolution; never fails and never has an empty selector
        """
        ordered = _unique(candidates)
        if not ordered:
            return SelectorResolution(best_selector=PLACEHOLDER_SELECTOR)

        scores = {c: _measured(reliability, c) for c in ordered}
        best_score = max(scores.values())

        if best_score == 0:
            return self._resolve_by_kind(ordered)

        best = [c for c in ordered if scores[c] == best_score]
        rest = sorted(
            (c for c in ordered if scores[c] < best_score),
            key=lambda c: scores[c],
            reverse=True,
        )
        return SelectorResolution(
            best_selector=best[0],
            backup_selectors=tuple((best[1:] + rest)[: self.max_backups]),
            reliability=best_score,
            source=ResolutionSource.MEASURED,
        )

    def backup_selectors(
        self,
        candidates: Sequence[str],
        reliability: Optional[Mapping[str, float]] = None,
        exclude: Optional[str] = None,
    ) -> list[str]:
        """Backups in reliability order, optionally without one selector."""
        backups = self.resolve(candidates, reliability).backup_selectors
        return [s for s in backups if s != exclude]

    def estimate_reliability(self, selector: str) -> float:
        """Static reliability estimate for a locator, by kind."""
        if not selector or selector == PLACEHOLDER_SELECTOR:
            return 0.0
        kind = classify_selector(selector)
        return self.fallback_scores.get(kind.value, DEFAULT_FALLBACK_SCORES[kind.value])

    def _resolve_by_kind(self, ordered: list[str]) -> SelectorResolution:
        chosen = ordered[0]
        for kind in FALLBACK_PRIORITY:
            match = next((c for c in ordered if classify_selector(c) == kind), None)
            if match is not None:
                chosen = match
                break

        # sorted() is stable, so equal estimates keep input order
        rest = sorted(
            (c for c in ordered if c != chosen),
            key=self.estimate_reliability,
            reverse=True,
        )
        return SelectorResolution(
            best_selector=chosen,
            backup_selectors=tuple(rest[: self.max_backups]),
            reliability=0.0,
            source=ResolutionSource.FALLBACK,
            estimated_reliability=self.estimate_reliability(chosen),
        )


def playwright_action(action_type: ActionType | str, selector: str) -> str:
    """Render the Playwright statement that replays an action on a selector."""
    action = ActionType.parse(action_type)
    quoted = selector.replace("\\", "\\\\").replace("'", "\\'")

    if action in (ActionType.CLICK, ActionType.TOUCH):
        return f"await page.click('{quoted}')"
    if action in (ActionType.HOVER, ActionType.FOCUS):
        return f"await page.hover('{quoted}')"
    if action == ActionType.INPUT:
        return f"await page.fill('{quoted}', 'value')"
    if action == ActionType.SCROLL:
        return f"await page.locator('{quoted}').scrollIntoViewIfNeeded()"
    if action == ActionType.FORM_SUBMIT:
        return f"await page.locator('{quoted}').press('Enter')"
    if action == ActionType.KEY_PRESS:
        return f"await page.locator('{quoted}').press('key')"
    if action in (ActionType.DRAG, ActionType.DROP):
        return f"await page.locator('{quoted}').dragTo(page.locator('target'))"
    if action == ActionType.BLUR:
        return f"await page.locator('{quoted}').blur()"
    return f"await page.click('{quoted}')"


def _unique(candidates: Optional[Sequence[str]]) -> list[str]:
    ordered: list[str] = []
    seen: set[str] = set()
    for candidate in candidates or ():
        if isinstance(candidate, str) and candidate and candidate not in seen:
            seen.add(candidate)
            ordered.append(candidate)
    return ordered


def _measured(reliability: Optional[Mapping[str, float]], selector: str) -> float:
    if not reliability:
        return 0.0
    try:
        value = float(reliability.get(selector, 0) or 0)
    except (TypeError, ValueError):
        return 0.0
    if value != value:  # NaN
        return 0.0
    return min(1.0, max(0.0, value))
