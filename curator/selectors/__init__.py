"""Selector resolution for recorded events."""

from .resolver import (
    PLACEHOLDER_SELECTOR,
    ResolutionSource,
    SelectorKind,
    SelectorResolution,
    SelectorResolver,
    classify_selector,
    playwright_action,
)

__all__ = [
    "PLACEHOLDER_SELECTOR",
    "ResolutionSource",
    "SelectorKind",
    "SelectorResolution",
    "SelectorResolver",
    "classify_selector",
    "playwright_action",
]
