"""Journey reconstruction for recorded sessions."""

from .models import BehavioralContext, Intent, JourneyContext, NavigationFlow, TaskProgress
from .reconstructor import JourneyReconstructor
from .rules import classify_page

__all__ = [
    "BehavioralContext",
    "Intent",
    "JourneyContext",
    "JourneyReconstructor",
    "NavigationFlow",
    "TaskProgress",
    "classify_page",
]
