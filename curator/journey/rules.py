"""Heuristic rule tables used by the journey reconstructor.

Each table is an ordered list of ``(name, predicate, result)`` rules; the
first matching rule wins and the last rule in a table always matches. Keeping
the heuristics as data makes every branch testable on its own.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar
from urllib.parse import urlparse

from curator.recording.models import CLICK_ACTIONS, TEXT_ENTRY_ACTIONS, InteractionEvent

T = TypeVar("T")
S = TypeVar("S")


@dataclass(frozen=True)
class Rule(Generic[S, T]):
    name: str
    predicate: Callable[[S], bool]
    result: T


def first_match(rules: list["Rule[S, T]"], subject: S) -> "Rule[S, T]":
    """Return the first rule whose predicate accepts subject."""
    for rule in rules:
        if rule.predicate(subject):
            return rule
    raise LookupError("rule table has no catch-all rule")


# =============================================================================
# Text helpers
# =============================================================================

STOPWORDS = frozenset({"the", "and", "for", "with", "a", "an", "some", "of", "to", "in", "on"})

# Verbs that describe how to shop rather than what to shop for
GENERIC_TASK_WORDS = frozenset({
    "search", "browse", "select", "find", "look", "add", "buy", "choose",
    "view", "shop", "pick", "purchase", "get",
})

PRODUCT_INDICATORS = (
    "levi", "nike", "adidas", "tee", "shirt", "jean", "sneaker", "dress",
    "jacket", "shoe", "boot", "hoodie", "sweater", "short",
)

ADD_TO_CART_PHRASES = ("add to cart", "add to bag", "purchase", "buy now")

PRODUCT_LISTING_PATHS = ("/search", "/category", "/browse")

BUDGET_PATTERN = re.compile(r"([$€£])\s?(\d+(?:[.,]\d{1,2})?)")


def tokenize(text: str) -> list[str]:
    """Lowercased words longer than two characters, stopwords removed."""
    words = re.split(r"\s+", (text or "").lower().strip())
    return [w for w in words if len(w) > 2 and w not in STOPWORDS]


def stem(word: str) -> str:
    """Strip a plural suffix: "sneakers" -> "sneaker", "dresses" -> "dress"."""
    for suffix in ("sses", "xes", "ches", "shes"):
        if word.endswith(suffix):
            return word[:-2]
    if word.endswith("s") and not word.endswith("ss"):
        return word[:-1]
    return word


def salient_keywords(step: str) -> list[str]:
    """Words of a task step that name what is being shopped for."""
    words = re.findall(r"[a-z0-9']+", (step or "").lower())
    return [
        stem(w) for w in words
        if len(w) > 2 and w not in STOPWORDS and w not in GENERIC_TASK_WORDS
    ]


def is_product_like(text: str, attributes: Optional[dict] = None) -> bool:
    lowered = (text or "").lower()
    if any(indicator in lowered for indicator in PRODUCT_INDICATORS):
        return True
    return bool(attributes) and "product" in " ".join(
        f"{k} {v}" for k, v in attributes.items()
    ).lower()


def is_listing_page(url: str) -> bool:
    return any(path in (url or "").lower() for path in PRODUCT_LISTING_PATHS)


def is_add_to_cart(text: str) -> bool:
    lowered = (text or "").lower()
    return any(phrase in lowered for phrase in ADD_TO_CART_PHRASES)


# =============================================================================
# Page taxonomy
# =============================================================================


def _path(url: str) -> str:
    try:
        return urlparse(url or "").path.lower()
    except ValueError:
        return ""


PAGE_RULES: list[Rule[str, str]] = [
    Rule("search", lambda url: "/search" in _path(url), "search-results"),
    Rule("product", lambda url: "/product" in _path(url) or "/p/" in _path(url), "product-detail"),
    Rule("cart", lambda url: "/cart" in _path(url) or "/bag" in _path(url), "cart"),
    Rule("homepage", lambda url: _path(url) in ("", "/"), "homepage"),
    Rule("other", lambda url: True, "category"),
]


def classify_page(url: str) -> str:
    """Map a page URL onto the fixed page taxonomy."""
    return first_match(PAGE_RULES, url).result


# =============================================================================
# Intent detection
# =============================================================================


@dataclass(frozen=True)
class IntentSignal:
    """What an intent rule sees: the event plus its recent history."""
    event: InteractionEvent
    recent: tuple[InteractionEvent, ...] = ()  # Up to three preceding events


@dataclass(frozen=True)
class IntentTemplate:
    action: str
    confidence: float


def _typed_tokens(signal: IntentSignal) -> list[str]:
    return tokenize(signal.event.value or signal.event.element_text)


def _is_text_entry(signal: IntentSignal) -> bool:
    return signal.event.action_type in TEXT_ENTRY_ACTIONS and bool(_typed_tokens(signal))


def _is_product_selection(signal: IntentSignal) -> bool:
    event = signal.event
    return (
        event.action_type in CLICK_ACTIONS
        and is_listing_page(event.page_url)
        and is_product_like(event.element_text, event.element.attributes)
    )


def _is_cart_addition(signal: IntentSignal) -> bool:
    return signal.event.action_type in CLICK_ACTIONS and is_add_to_cart(signal.event.element_text)


SEARCHING = "searching_for"
SELECTING_PRODUCT = "selecting_product"
ADDING_TO_CART = "adding_to_cart"
BROWSING = "browsing"

INTENT_RULES: list[Rule[IntentSignal, IntentTemplate]] = [
    Rule("text_entry", _is_text_entry, IntentTemplate(SEARCHING, 0.9)),
    Rule("product_click", _is_product_selection, IntentTemplate(SELECTING_PRODUCT, 0.85)),
    Rule("add_to_cart_click", _is_cart_addition, IntentTemplate(ADDING_TO_CART, 0.95)),
    Rule("default", lambda signal: True, IntentTemplate(BROWSING, 0.5)),
]


def recent_product_label(recent: tuple[InteractionEvent, ...]) -> Optional[str]:
    """Most recent product-like clicked text among the given events."""
    for event in reversed(recent):
        if event.action_type in CLICK_ACTIONS and is_product_like(event.element_text):
            return event.element_text
    return None


# =============================================================================
# Behavioral context
# =============================================================================

STYLE_RULES: list[Rule[str, Optional[str]]] = [
    Rule("casual", lambda text: "casual" in text, "Must fit casual style"),
    Rule("trendy", lambda text: "trendy" in text, "Must be fashionable"),
    Rule("formal", lambda text: "formal" in text, "Must suit a formal occasion"),
    Rule("vintage", lambda text: "vintage" in text, "Must have a vintage look"),
]


def style_factors(text: str) -> list[str]:
    """Every style constraint mentioned in text, in table order."""
    lowered = (text or "").lower()
    return [rule.result for rule in STYLE_RULES if rule.predicate(lowered)]


def budget_factor(description: str) -> Optional[str]:
    match = BUDGET_PATTERN.search(description or "")
    if not match:
        return None
    return f"Stay within {match.group(1)}{match.group(2)} budget"


NEXT_ACTION_RULES: list[Rule[str, list[str]]] = [
    Rule(
        "selecting_product",
        lambda action: action == SELECTING_PRODUCT,
        ["View product details", "Check price", "Select size", "Add to cart"],
    ),
    Rule(
        "adding_to_cart",
        lambda action: action == ADDING_TO_CART,
        ["Continue shopping", "View cart", "Proceed to checkout"],
    ),
    Rule(
        "searching",
        lambda action: action.startswith(SEARCHING),
        ["Review search results", "Refine search", "Open a product"],
    ),
    Rule("default", lambda action: True, ["Continue browsing", "Refine search"]),
]


def predict_next_actions(intent_action: str) -> list[str]:
    return list(first_match(NEXT_ACTION_RULES, intent_action).result)


# Clicks whose label suggests the participant is weighing options
DECISION_LABELS = ("compare", "review", "select", "choose", "size", "color", "colour")
