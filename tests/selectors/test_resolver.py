"""Tests for selector resolution."""

import pytest

from curator.selectors.resolver import (
    PLACEHOLDER_SELECTOR,
    ResolutionSource,
    SelectorKind,
    SelectorResolver,
    classify_selector,
    playwright_action,
)


@pytest.fixture
def resolver():
    return SelectorResolver()


class TestClassifySelector:
    """Tests for classify_selector."""

    @pytest.mark.parametrize(
        "selector,kind",
        [
            ("[data-testid='buy']", SelectorKind.TEST_ID),
            ("button[data-cy=submit]", SelectorKind.TEST_ID),
            ("//div[@id='main']/button", SelectorKind.XPATH),
            ("(//button)[2]", SelectorKind.XPATH),
            ("#checkout", SelectorKind.ID),
            (".product-card", SelectorKind.CLASS),
            ("div[class='card']", SelectorKind.CLASS),
            ("input[name='q']", SelectorKind.ATTRIBUTE),
            ("button", SelectorKind.OTHER),
            ("text=Add to cart", SelectorKind.OTHER),
        ],
    )
    def test_kinds(self, selector, kind):
        """Each locator strategy is recognised."""
        assert classify_selector(selector) == kind


class TestResolveMeasured:
    """Tests for resolution driven by measured reliability."""

    def test_tied_best_keeps_input_order(self, resolver):
        """Ties are broken by candidate order; the other tie leads the backups."""
        resolution = resolver.resolve(
            ["#id", "/xpath", "button"],
            {"#id": 0.7, "/xpath": 0.7, "button": 0.2},
        )

        assert resolution.best_selector == "#id"
        assert resolution.reliability == 0.7
        assert resolution.backup_selectors == ("/xpath", "button")
        assert resolution.source == ResolutionSource.MEASURED

    def test_tie_order_follows_input(self, resolver):
        """Reversing the input reverses the tie-break."""
        resolution = resolver.resolve(
            ["/xpath", "#id", "button"],
            {"#id": 0.7, "/xpath": 0.7, "button": 0.2},
        )

        assert resolution.best_selector == "/xpath"
        assert resolution.backup_selectors[0] == "#id"

    def test_backups_sorted_by_descending_reliability(self, resolver):
        """Non-tied candidates follow in reliability order."""
        resolution = resolver.resolve(
            ["a", "b", "c", "d"],
            {"a": 0.1, "b": 0.9, "c": 0.5, "d": 0.3},
        )

        assert resolution.best_selector == "b"
        assert resolution.backup_selectors == ("c", "d", "a")

    def test_backups_capped_at_five(self, resolver):
        """No more than five backups are kept."""
        candidates = [f"#s{i}" for i in range(8)]
        reliability = {c: 1 - i * 0.1 for i, c in enumerate(candidates)}

        resolution = resolver.resolve(candidates, reliability)

        assert resolution.best_selector == "#s0"
        assert len(resolution.backup_selectors) == 5
        assert resolution.best_selector not in resolution.backup_selectors

    def test_custom_backup_cap(self):
        """max_backups is configurable."""
        resolver = SelectorResolver(max_backups=1)

        resolution = resolver.resolve(["a", "b", "c"], {"a": 0.9, "b": 0.5, "c": 0.4})

        assert resolution.backup_selectors == ("b",)

    def test_duplicates_are_ignored(self, resolver):
        """Repeated candidates count once."""
        resolution = resolver.resolve(["#a", "#a", "#b"], {"#a": 0.8, "#b": 0.3})

        assert resolution.backup_selectors == ("#b",)

    def test_reliability_clamped(self, resolver):
        """Out-of-range and NaN reliability values stay within [0, 1]."""
        resolution = resolver.resolve(["#a", "#b"], {"#a": 3.5, "#b": float("nan")})

        assert resolution.best_selector == "#a"
        assert resolution.reliability == 1.0

    def test_deterministic(self, resolver):
        """The same input always yields the same output."""
        candidates = ["#id", "/xpath", ".cls", "button"]
        reliability = {"#id": 0.4, "/xpath": 0.4, ".cls": 0.4}

        first = resolver.resolve(candidates, reliability)
        second = resolver.resolve(list(candidates), dict(reliability))

        assert first == second


class TestResolveFallback:
    """Tests for resolution without measurements."""

    def test_empty_candidates_yield_placeholder(self, resolver):
        """No candidates still produce a non-empty selector."""
        resolution = resolver.resolve([], None)

        assert resolution.best_selector == PLACEHOLDER_SELECTOR
        assert resolution.backup_selectors == ()
        assert resolution.reliability == 0.0
        assert resolution.is_placeholder

    def test_empty_strings_yield_placeholder(self, resolver):
        """Blank candidates are discarded."""
        resolution = resolver.resolve(["", ""], {})

        assert resolution.best_selector == PLACEHOLDER_SELECTOR

    def test_prefers_test_id(self, resolver):
        """A test-id locator wins over every other kind."""
        resolution = resolver.resolve([".btn", "//div/button", "[data-testid='buy']"], {})

        assert resolution.best_selector == "[data-testid='buy']"
        assert resolution.source == ResolutionSource.FALLBACK
        assert resolution.reliability == 0.0
        assert resolution.estimated_reliability == 0.9
        assert resolution.backup_selectors == ("//div/button", ".btn")

    def test_prefers_xpath_then_id_then_class(self, resolver):
        """Fallback priority continues through xpath, id and class."""
        assert resolver.resolve([".btn", "#buy", "//button"], None).best_selector == "//button"
        assert resolver.resolve([".btn", "#buy"], None).best_selector == "#buy"
        assert resolver.resolve(["button", ".btn"], None).best_selector == ".btn"

    def test_falls_back_to_first_candidate(self, resolver):
        """Without any recognised kind the first candidate is used."""
        resolution = resolver.resolve(["button", "span"], {"button": 0})

        assert resolution.best_selector == "button"
        assert resolution.estimated_reliability == 0.3

    def test_configurable_fallback_scores(self):
        """Fallback estimates come from the configured table."""
        resolver = SelectorResolver(fallback_scores={"id": 0.55})

        assert resolver.estimate_reliability("#buy") == 0.55
        assert resolver.estimate_reliability("//a") == 0.8


class TestBackupSelectors:
    """Tests for backup_selectors and estimate_reliability."""

    def test_exclude(self, resolver):
        """An excluded selector never appears among backups."""
        backups = resolver.backup_selectors(
            ["#a", "#b", "#c"], {"#a": 0.9, "#b": 0.8, "#c": 0.7}, exclude="#b"
        )

        assert backups == ["#c"]

    def test_placeholder_estimate_is_zero(self, resolver):
        assert resolver.estimate_reliability(PLACEHOLDER_SELECTOR) == 0.0
        assert resolver.estimate_reliability("") == 0.0


class TestPlaywrightAction:
    """Tests for playwright_action."""

    @pytest.mark.parametrize(
        "action,expected",
        [
            ("click", "await page.click('#buy')"),
            ("touch", "await page.click('#buy')"),
            ("hover", "await page.hover('#buy')"),
            ("input", "await page.fill('#buy', 'value')"),
            ("type", "await page.fill('#buy', 'value')"),
            ("scroll", "await page.locator('#buy').scrollIntoViewIfNeeded()"),
            ("submit", "await page.locator('#buy').press('Enter')"),
            ("blur", "await page.locator('#buy').blur()"),
        ],
    )
    def test_statements(self, action, expected):
        """Each action maps to its Playwright statement."""
        assert playwright_action(action, "#buy") == expected

    def test_quotes_escaped(self):
        """Single quotes in selectors are escaped."""
        assert playwright_action("click", "[name='q']") == "await page.click('[name=\\'q\\']')"
