"""Shared fixtures for curator tests."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from curator.recording.models import (
    ActionType,
    ElementSnapshot,
    InteractionEvent,
    RecordedSession,
    TaskPlan,
)


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "smoke: mark test as smoke test (fast, critical path - included in CI)"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as integration test requiring a real Supabase project"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


@pytest.fixture
def mock_env_vars(monkeypatch):
    """Set up test environment variables."""
    monkeypatch.setenv("SUPABASE_URL", "https://test.supabase.co")
    monkeypatch.setenv("SUPABASE_SERVICE_KEY", "test-service-key")
    monkeypatch.setenv("CACHE_BACKEND", "memory")
    monkeypatch.delenv("MONOTONIC_TASK_PROGRESS", raising=False)


class FakeClock:
    """Controllable clock for time-dependent tests."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 1, 15, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def fake_clock():
    """A clock that only moves when told to."""
    return FakeClock()


def make_event(
    sequence: int,
    action: ActionType | str = ActionType.CLICK,
    text: str = "",
    url: str = "https://shop.example.com/category/men",
    selectors: tuple[str, ...] = (),
    reliability: dict | None = None,
    value: str = "",
    timestamp: int | None = None,
    attributes: dict | None = None,
) -> InteractionEvent:
    """Build an InteractionEvent with sensible defaults."""
    return InteractionEvent(
        sequence=sequence,
        action_type=ActionType.parse(action),
        candidate_selectors=tuple(selectors),
        selector_reliability=reliability or {},
        element=ElementSnapshot(tag="button", text=text, attributes=attributes or {}),
        page_url=url,
        value=value,
        timestamp=timestamp if timestamp is not None else 1_700_000_000_000 + sequence * 1000,
    )


@pytest.fixture
def event_factory():
    """Factory for InteractionEvent instances."""
    return make_event


@pytest.fixture
def sample_task_plan():
    """Three-step shopping plan."""
    return TaskPlan(
        steps=("search for tees", "browse for jeans", "select sneakers"),
        title="Build a casual outfit",
        description="Put together a casual outfit for under $150",
    )


@pytest.fixture
def sample_events():
    """Search for a tee, then pick a pair of jeans and add it to the cart."""
    return [
        make_event(
            0,
            ActionType.INPUT,
            value="graphic tee",
            url="https://shop.example.com/",
            selectors=("#search", "//input[@name='q']"),
            reliability={"#search": 0.9},
        ),
        make_event(
            1,
            ActionType.CLICK,
            text="Levi's 511 Jean",
            url="https://shop.example.com/search?q=jeans",
            selectors=("[data-testid='product-511']", ".product-card"),
            reliability={"[data-testid='product-511']": 0.95, ".product-card": 0.6},
        ),
        make_event(
            2,
            ActionType.CLICK,
            text="Add to Cart",
            url="https://shop.example.com/product/511",
            selectors=("#add-to-cart", "button.add"),
            reliability={"#add-to-cart": 0.85, "button.add": 0.4},
        ),
    ]


@pytest.fixture
def sample_session(sample_events, sample_task_plan):
    """A well-formed human session."""
    return RecordedSession(
        session_id="sess-001",
        events=sample_events,
        task_plan=sample_task_plan,
        session_type="HUMAN",
    )


@pytest.fixture
def mock_http_client():
    """Mock httpx.AsyncClient returning an empty successful response."""
    client = MagicMock()
    response = MagicMock()
    response.is_success = True
    response.status_code = 200
    response.text = "[]"
    response.json.return_value = []
    client.request = AsyncMock(return_value=response)
    client.aclose = AsyncMock()
    return client
