"""Curation pipeline - turn one recorded session into gated training examples.

Flow per session:
1. Reconstruct the journey once
2. For each event, in sequence order, resolve its selector and journey
   context and assemble a prompt/completion example
3. Score the session, consult the quality gate, and mark which examples may
   be exported
"""

import json
from collections.abc import Callable
from typing import Optional
from urllib.parse import urlparse

import structlog
from pydantic import BaseModel, ConfigDict, Field

from curator.config import Settings, get_settings
from curator.journey.models import JourneyContext
from curator.journey.reconstructor import JourneyReconstructor
from curator.pipeline.analysis import AnalysisProvider, fetch_visual_score
from curator.pipeline.scoring import compute_category_scores
from curator.quality.gate import QualityGate
from curator.quality.models import QualityAssessment
from curator.quality.registry import ThresholdRegistry
from curator.recording.models import InteractionEvent, RecordedSession
from curator.selectors.resolver import SelectorResolution, SelectorResolver, playwright_action
from curator.services.cache import ExpiringCache, build_cache
from curator.utils.logging import LogContext, log_operation

logger = structlog.get_logger()

PROMPT_BACKUPS = 2


class TrainingExample(BaseModel):
    """One prompt/completion pair with the context it was built from."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    session_id: str = Field(..., description="Session the example came from")
    sequence: int = Field(..., description="Event position within the session")
    prompt: str
    completion: str
    selector: SelectorResolution
    journey: JourneyContext
    exportable: bool = Field(False, description="May be handed to the export stage")
    quality: float = Field(0.0, ge=0, le=1, description="Per-example confidence")

    def to_openai(self) -> dict[str, str]:
        return {"prompt": self.prompt, "completion": self.completion}


class CurationResult(BaseModel):
    """Examples and quality decision for one session."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    session_id: str
    examples: list[TrainingExample] = Field(default_factory=list)
    assessment: QualityAssessment
    journey_summary: dict = Field(default_factory=dict, description="Whole-session journey view")

    @property
    def exportable_examples(self) -> list[TrainingExample]:
        return [e for e in self.examples if e.exportable]

    def to_jsonl(self) -> str:
        """Fine-tuning JSONL of the exportable examples only."""
        return "".join(
            json.dumps(e.to_openai(), ensure_ascii=False) + "\n"
            for e in self.exportable_examples
        )


class CurationPipeline:
    """Compose resolver, reconstructor, gate and cache for whole sessions.

    The pipeline holds no per-session state; one instance can curate many
    sessions concurrently.

    Example:
        pipeline = CurationPipeline()
        result = await pipeline.curate(RecordedSession.from_dict(raw))
        if result.assessment.training_eligible:
            upload(result.to_jsonl())
    """

    def __init__(
        self,
        resolver: Optional[SelectorResolver] = None,
        reconstructor_factory: Optional[Callable[[], JourneyReconstructor]] = None,
        gate: Optional[QualityGate] = None,
        cache: Optional[ExpiringCache] = None,
        analysis_provider: Optional[AnalysisProvider] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.resolver = resolver or SelectorResolver(
            max_backups=self.settings.selector_max_backups,
            fallback_scores=dict(self.settings.selector_fallback_scores),
        )
        self.reconstructor_factory = reconstructor_factory or (
            lambda: JourneyReconstructor(monotonic=self.settings.monotonic_task_progress)
        )
        self.gate = gate or QualityGate(
            ThresholdRegistry(),
            trend_limit=self.settings.quality_trend_limit,
        )
        self.cache = cache or build_cache(self.settings)
        self.analysis_provider = analysis_provider
        self.log = logger.bind(component="curation_pipeline")

    async def curate(self, session: RecordedSession) -> CurationResult:
        """Curate one session. Never fails on missing per-event data."""
        with LogContext(session_id=session.session_id):
            with log_operation("curate_session", logger=self.log, event_count=len(session.events)) as op:
                events = sorted(session.events, key=lambda e: e.sequence)

                reconstructor = self.reconstructor_factory()
                reconstructor.initialize(session.task_plan, events)

                resolutions: list[SelectorResolution] = []
                journeys: list[JourneyContext] = []
                examples: list[TrainingExample] = []
                for index, event in enumerate(events):
                    resolution = self.resolver.resolve(
                        event.candidate_selectors, event.selector_reliability
                    )
                    journey = reconstructor.context_for(index)
                    resolutions.append(resolution)
                    journeys.append(journey)
                    examples.append(self._build_example(session, event, resolution, journey))

                visual = await fetch_visual_score(
                    self.analysis_provider,
                    self.cache,
                    session,
                    ttl_hours=self.settings.analysis_ttl_hours,
                )
                scores = compute_category_scores(
                    events,
                    resolutions,
                    journeys,
                    reliability_floor=self.settings.reliability_floor,
                    visual_score=visual,
                )
                assessment = self.gate.assess(
                    session.session_id,
                    scores,
                    fields={
                        "session_type": session.session_type,
                        "duration_ms": session.duration_ms,
                        "event_count": len(events),
                        "metadata": session.metadata,
                    },
                )

                for example in examples:
                    example.exportable = (
                        assessment.training_eligible
                        and not example.selector.is_placeholder
                        and example.quality >= self.settings.min_example_reliability
                    )

                op["final_action"] = assessment.final_action.value
                op["exportable_count"] = sum(1 for e in examples if e.exportable)
                summary = reconstructor.journey_summary()

        return CurationResult(
            session_id=session.session_id,
            examples=examples,
            assessment=assessment,
            journey_summary=summary,
        )

    def _build_example(
        self,
        session: RecordedSession,
        event: InteractionEvent,
        resolution: SelectorResolution,
        journey: JourneyContext,
    ) -> TrainingExample:
        confidence = resolution.reliability if resolution.is_measured else (
            resolution.estimated_reliability or 0.0
        )
        return TrainingExample(
            session_id=session.session_id,
            sequence=event.sequence,
            prompt=build_prompt(session, event, resolution, journey),
            completion=build_completion(event, resolution, journey, confidence),
            selector=resolution,
            journey=journey,
            quality=confidence,
        )


def _hostname(url: str) -> str:
    try:
        return urlparse(url).hostname or "unknown-site"
    except ValueError:
        return "unknown-site"


def build_prompt(
    session: RecordedSession,
    event: InteractionEvent,
    resolution: SelectorResolution,
    journey: JourneyContext,
) -> str:
    progress = journey.task_progress
    flow = journey.navigation_flow
    element = event.element
    tag = element.tag or "element"
    attributes = " ".join(f'{k}="{v}"' for k, v in element.attributes.items())
    opening = f"<{tag} {attributes}>" if attributes else f"<{tag}>"
    navigation = " -> ".join([*flow.previous_pages, f"[{flow.current_page}]"])
    selectors = [resolution.best_selector, *resolution.backup_selectors[:PROMPT_BACKUPS]]
    goal = session.task_plan.title or "Navigate and complete user goal"

    lines = [
        "[USER GOAL]",
        goal,
        "",
        "[JOURNEY]",
        f"Step: {journey.session_step}/{journey.total_steps}",
        f"Task Progress: {progress.current_task_name} "
        f"({progress.current_task_index + 1}/{progress.total_tasks})",
        f"Current Focus: {journey.behavioral_context.user_focus}",
        f"Navigation: {navigation}",
        "",
        "[PAGE CONTEXT]",
        f"Site: {_hostname(event.page_url)}",
        f"URL: {event.page_url}",
        f"Page Type: {event.page_type or flow.current_page}",
        "",
        "[DOM CONTEXT]",
        f"Element: {opening}{element.text}</{tag}>",
        f'Text Content: "{element.text}"',
        f"Nearby Elements: {len(element.nearby_elements)}",
        "",
        "[SELECTORS]",
    ]
    for position, selector in enumerate(selectors, start=1):
        suffix = f" ({resolution.reliability:.2f})" if position == 1 else ""
        lines.append(f"{position}. {selector}{suffix}")
    return "\n".join(lines)


def build_completion(
    event: InteractionEvent,
    resolution: SelectorResolution,
    journey: JourneyContext,
    confidence: float,
) -> str:
    progress = journey.task_progress
    behavior = journey.behavioral_context
    fallbacks = resolution.backup_selectors[:PROMPT_BACKUPS]

    lines = [
        "[ACTION]",
        playwright_action(event.action_type, resolution.best_selector),
        "",
        "[SELECTOR]",
        resolution.best_selector,
        "",
        "[REASONING]",
        f"{journey.current_intent.reasoning} - {behavior.user_focus}",
        "",
        "[CONFIDENCE]",
        f"{confidence:.2f}",
        "",
        "[JOURNEY IMPACT]",
        f"Current Task: {progress.current_task_name}",
        f"Next Actions: {', '.join(behavior.next_predicted_actions[:2])}",
        f"Task Progress: {progress.progress_percent}% "
        f"({progress.current_task_index + 1}/{progress.total_tasks})",
        f"Decision Factors: {', '.join(behavior.decision_factors[:2])}",
        "",
        "[FALLBACKS]",
    ]
    lines.extend(f"{position}. {selector}" for position, selector in enumerate(fallbacks, start=1))
    if not fallbacks:
        lines.append("none")
    return "\n".join(lines)
