# ==============================================================================
# Kaunta Domain Models
# ==============================================================================
"""
Pydantic models for websites, sessions, events and aggregation results.

These models are used for:
- Validating beacon payloads sent by the browser tracker
- Carrying classified events between ingestion and the event store
- Typed results returned by the aggregation engine

This module is part of the core domain layer and has no external dependencies
beyond Pydantic.
"""

from datetime import datetime
from enum import IntEnum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

UNKNOWN = "Unknown"
DIRECT = "Direct / None"

# Captured once per session and copied onto each of its events
SESSION_ATTRIBUTES = (
    "browser",
    "os",
    "device",
    "screen",
    "language",
    "country",
    "region",
    "city",
)


class EventType(IntEnum):
    """Event type discriminator, stored as a smallint."""

    PAGEVIEW = 1
    CUSTOM = 2


# ==============================================================================
# Stored Entities
# ==============================================================================


class Website(BaseModel):
    """A tracked website. Administered outside the analytics core."""

    website_id: UUID = Field(..., description="Website identifier")
    domain: str = Field(..., description="Primary domain, matched case-insensitively")
    name: str = Field(default="", description="Display name")
    allowed_domains: list[str] = Field(
        default_factory=list, description="Additional origins allowed to send beacons"
    )
    deleted_at: datetime | None = Field(None, description="Soft-delete timestamp")

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class Session(BaseModel):
    """
    A pseudonymous visitor session.

    Attributes are captured at first sight within a rotation window and never
    updated afterwards.
    """

    session_id: UUID
    website_id: UUID
    browser: str | None = None
    os: str | None = None
    device: str | None = None
    screen: str | None = None
    language: str | None = None
    country: str | None = None
    region: str | None = None
    city: str | None = None
    created_at: datetime

    def attributes(self) -> dict[str, str | None]:
        return self.model_dump(include=set(SESSION_ATTRIBUTES))

    def to_db_record(self) -> dict:
        """Convert session to database record format."""
        return self.model_dump()


class Event(BaseModel):
    """
    A pageview or custom event.

    Session attributes (browser, os, device, ...) are denormalized onto each
    event at write time.
    """

    event_id: UUID
    website_id: UUID
    session_id: UUID
    visit_id: UUID | None = None
    event_type: EventType = EventType.PAGEVIEW
    created_at: datetime

    # Page
    hostname: str | None = None
    url_path: str | None = None
    url_query: str | None = None
    page_title: str | None = None
    referrer_domain: str | None = None
    referrer_path: str | None = None
    referrer_query: str | None = None

    # Custom events
    event_name: str | None = None
    event_data: dict[str, Any] | None = None
    tag: str | None = None

    # Campaign attribution
    utm_source: str | None = None
    utm_medium: str | None = None
    utm_campaign: str | None = None
    utm_content: str | None = None
    utm_term: str | None = None
    gclid: str | None = None
    fbclid: str | None = None
    msclkid: str | None = None
    ttclid: str | None = None
    li_fat_id: str | None = None
    twclid: str | None = None

    # Engagement (pageviews only)
    scroll_depth: int | None = None
    engagement_time: int | None = Field(None, description="Engaged time in milliseconds")

    # Denormalized session attributes
    browser: str | None = None
    os: str | None = None
    device: str | None = None
    screen: str | None = None
    language: str | None = None
    country: str | None = None
    region: str | None = None
    city: str | None = None

    @property
    def is_pageview(self) -> bool:
        return self.event_type == EventType.PAGEVIEW

    def with_session(self, attributes: Session | dict) -> "Event":
        """
        Copy of this event carrying the given session's attributes.

        Accepts a Session or a mapping of SESSION_ATTRIBUTES, such as a row
        read back from the session table.
        """
        if isinstance(attributes, Session):
            attributes = attributes.attributes()
        return self.model_copy(
            update={name: attributes.get(name) for name in SESSION_ATTRIBUTES}
        )

    def to_db_record(self) -> dict:
        """Convert event to database record format."""
        record = self.model_dump()
        record["event_type"] = int(self.event_type)
        return record


# ==============================================================================
# Ingestion
# ==============================================================================


class Beacon(BaseModel):
    """
    Payload sent by the browser tracker.

    Range checks on url, scroll_depth and engagement_time are performed by
    kaunta.core.classifier.validate_payload so that violations surface as
    ValidationError with a specific message rather than being coerced here.
    """

    website: str = Field(..., description="Website identifier")
    hostname: str | None = None
    url: str | None = None
    title: str | None = None
    referrer: str | None = None
    language: str | None = None
    screen: str | None = None
    name: str | None = Field(None, description="Custom event name")
    props: dict[str, Any] | None = Field(None, description="Custom event properties")
    tag: str | None = None
    scroll_depth: int | None = None
    engagement_time: int | None = None

    @classmethod
    def from_envelope(cls, data: dict) -> "Beacon":
        """Parse the tracker's ``{"type": ..., "payload": {...}}`` envelope."""
        return cls.model_validate(data.get("payload") or {})


class TrackResult(BaseModel):
    """Outcome of a successfully persisted beacon."""

    session_id: UUID
    visit_id: UUID
    event_id: UUID
    new_session: bool


# ==============================================================================
# Aggregation Results
# ==============================================================================


class PageStat(BaseModel):
    path: str
    pageviews: int
    unique_visitors: int
    bounce_rate: float = 0.0
    avg_time_seconds: float = 0.0


class ReferrerStat(BaseModel):
    domain: str
    visitors: int
    pageviews: int


class OverviewStats(BaseModel):
    total_visitors: int = 0
    total_pageviews: int = 0
    top_page: PageStat | None = None
    top_referrer: ReferrerStat | None = None
    browser_distribution: dict[str, int] = Field(default_factory=dict)
    device_distribution: dict[str, int] = Field(default_factory=dict)
    country_distribution: dict[str, int] = Field(default_factory=dict)
    avg_engagement_seconds: float = 0.0


class BreakdownItem(BaseModel):
    name: str
    visitors: int
    pageviews: int
    bounce_rate: float


class Breakdown(BaseModel):
    dimension: str
    items: list[BreakdownItem] = Field(default_factory=list)


class MapPoint(BaseModel):
    country: str
    alpha3: str | None = None
    visitors: int
    percentage: float


class BounceSession(BaseModel):
    session_id: UUID
    created_at: datetime
    country: str
    browser: str
    device: str
    url_path: str


class PageEngagement(BaseModel):
    page_path: str
    pageviews: int
    unique_visitors: int
    avg_engagement_time: int
    avg_scroll_depth: float
    bounce_rate: float


class ReferrerCount(BaseModel):
    referrer: str
    count: int


class LiveSnapshot(BaseModel):
    timestamp: datetime
    active_visitors: int = 0
    pageviews_last_minute: int = 0
    top_page: PageStat | None = None
    recent_referrers: list[ReferrerCount] = Field(default_factory=list)
    recent_events: int = 0


class TimeSeriesPoint(BaseModel):
    timestamp: datetime = Field(..., description="Start of the UTC hour")
    pageviews: int = 0
    visitors: int = 0


class DashboardStats(BaseModel):
    """Headline numbers: visitors right now and the last 24 hours."""

    current_visitors: int = 0
    today_pageviews: int = 0
    today_visitors: int = 0
    today_bounce_rate: float = 0.0


# ==============================================================================
# Store Rollups
# ==============================================================================


class DimensionCount(BaseModel):
    """Distinct sessions and pageviews for one raw value of a dimension."""

    value: str | None = Field(None, description="Raw value; None for missing or empty")
    visitors: int
    pageviews: int


class SessionSpan(BaseModel):
    """Pageview count and first/last pageview time of one session."""

    session_id: UUID
    pageviews: int
    first_seen: datetime
    last_seen: datetime

    @property
    def seconds(self) -> float:
        return (self.last_seen - self.first_seen).total_seconds()
