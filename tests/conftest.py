# ==============================================================================
# Shared Test Fixtures
# ==============================================================================
"""
Pytest fixtures shared across all test modules.

Provides:
- A fixed "now" so windows and buckets are deterministic
- An InMemoryEventStore seeded with one website
- An AnalyticsService over that store with a frozen clock
- A factory for pageview events
"""

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from kaunta.core.models import Event, EventType, Website
from kaunta.infrastructure.repositories import InMemoryEventStore
from kaunta.services.analytics import AnalyticsService

NOW = datetime(2025, 6, 15, 12, 0, 0, tzinfo=timezone.utc)
WEBSITE_ID = uuid.UUID("11111111-2222-3333-4444-555555555555")

CHROME_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
IPHONE_UA = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)


@pytest.fixture()
def now() -> datetime:
    return NOW


@pytest.fixture()
def website() -> Website:
    return Website(website_id=WEBSITE_ID, domain="example.com", name="Example")


@pytest.fixture()
def store(website) -> InMemoryEventStore:
    """A clean in-memory store holding the example website."""
    return InMemoryEventStore([website])


@pytest.fixture()
def service(store) -> AnalyticsService:
    """AnalyticsService whose clock is frozen at NOW."""
    return AnalyticsService(store, clock=lambda: NOW)


@pytest.fixture()
def make_event():
    """Factory for events belonging to the example website.

    Sessions are given as short labels ("s1", "s2", ...) and mapped to
    stable UUIDs. ``minutes_ago`` positions the event relative to NOW.
    """

    def _make(
        session: str = "s1",
        path: str | None = "/",
        minutes_ago: float = 60,
        event_type: EventType = EventType.PAGEVIEW,
        **fields,
    ) -> Event:
        return Event(
            event_id=uuid.uuid4(),
            website_id=fields.pop("website_id", WEBSITE_ID),
            session_id=uuid.uuid5(uuid.NAMESPACE_URL, session),
            event_type=event_type,
            created_at=NOW - timedelta(minutes=minutes_ago),
            url_path=path,
            **fields,
        )

    return _make


@pytest.fixture()
def add_events(store, make_event):
    """Build events with make_event and save them into the store."""

    def _add(*specs: dict) -> list[Event]:
        events = [make_event(**spec) for spec in specs]
        for event in events:
            store.save_event(event)
        return events

    return _add


def session_uuid(label: str) -> uuid.UUID:
    """UUID used by make_event for a session label."""
    return uuid.uuid5(uuid.NAMESPACE_URL, label)
