# ==============================================================================
# Analytics Service
# ==============================================================================
"""
Aggregation engine: parameter validation, store reads and composition.

Every method validates its parameters first and raises ValidationError
before touching the store. It then resolves the website (NotFoundError),
reads the window ``created_at >= now - days`` with the filters applied by
the store. Headline numbers come from the store's grouped reads
(pageview totals, dimension counts, session spans); per-page and
per-session reports read the matching pageviews and hand them to
kaunta.core.aggregation.

The service holds no mutable state and can be shared between threads.
"""

import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import TypeVar

from kaunta.base.repositories import EventStore
from kaunta.core import aggregation
from kaunta.core.aggregation import DIMENSIONS, QueryFilters
from kaunta.core.errors import NotFoundError, StorageError, ValidationError
from kaunta.core.models import (
    BounceSession,
    Breakdown,
    DashboardStats,
    Event,
    LiveSnapshot,
    MapPoint,
    OverviewStats,
    PageEngagement,
    PageStat,
    TimeSeriesPoint,
    Website,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

MIN_DAYS = 1
MAX_DAYS = 365
MIN_LIMIT = 1
MAX_LIMIT = 100

OVERVIEW_DISTRIBUTION_LIMIT = 3
MAX_TIMESERIES_DAYS = 90
DASHBOARD_WINDOW = timedelta(days=1)


# ==============================================================================
# Parameter Validation
# ==============================================================================


def _check_range(field: str, value, low: int, high: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(field, f"{field} must be an integer (got {value!r})")
    if not low <= value <= high:
        raise ValidationError(field, f"{field} must be between {low} and {high} (got {value})")
    return value


def validate_days(days: int, max_days: int = MAX_DAYS) -> int:
    return _check_range("days", days, MIN_DAYS, max_days)


def validate_limit(limit: int, field: str = "limit") -> int:
    return _check_range(field, limit, MIN_LIMIT, MAX_LIMIT)


def validate_dimension(dimension: str) -> str:
    if dimension not in DIMENSIONS:
        raise ValidationError(
            "dimension",
            f"invalid dimension {dimension!r}; must be one of: {', '.join(DIMENSIONS)}",
        )
    return dimension


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AnalyticsService:
    """
    Read-only statistics over one EventStore.

    Args:
        store: Event store to read from
        clock: Returns the current instant; injectable for tests
    """

    def __init__(self, store: EventStore, clock: Callable[[], datetime] = _utcnow):
        self.store = store
        self.clock = clock

    # ==========================================================================
    # Resolution and Reads
    # ==========================================================================

    def resolve(self, website_id: uuid.UUID | str) -> Website:
        """
        Resolve a website id or domain to a non-deleted website.

        Domains match case-insensitively. Every query method accepts either
        form and resolves it the same way.

        Raises:
            NotFoundError: If no such website exists
        """
        if not isinstance(website_id, uuid.UUID):
            text = str(website_id).strip()
            if not text:
                raise NotFoundError("website not found: empty identifier")
            try:
                website_id = uuid.UUID(text)
            except ValueError:
                return self.store.resolve_website(text)
        return self.store.get_website(website_id)

    def _pageviews(
        self,
        website_id: uuid.UUID | str,
        since: datetime,
        filters: QueryFilters | None = None,
    ) -> tuple[Website, list[Event]]:
        website = self.resolve(website_id)
        events = self.store.fetch_events(website.website_id, since, filters=filters)
        return website, events

    def _window(self, days: int) -> datetime:
        return self.clock() - timedelta(days=days)

    # ==========================================================================
    # Composite
    # ==========================================================================

    def overview(
        self,
        website_id: uuid.UUID | str,
        days: int = 7,
        filters: QueryFilters | None = None,
    ) -> OverviewStats:
        """
        Headline numbers for the dashboard.

        Totals must succeed. Every other field is its own store read and, if
        that read fails with StorageError, is logged and left at its empty
        value.
        """
        validate_days(days)
        website = self.resolve(website_id)
        wid, since = website.website_id, self._window(days)

        visitors, pageviews = self.store.pageview_totals(wid, since, filters)
        stats = OverviewStats(total_visitors=visitors, total_pageviews=pageviews)
        if not pageviews:
            return stats

        def _safe(name: str, compute: Callable[[], T], default: T) -> T:
            try:
                return compute()
            except StorageError as e:
                logger.warning("Overview field %s unavailable, using %r: %s", name, default, e)
                return default

        def _distribution(dimension: str, limit: int | None = None) -> dict[str, int]:
            counts = self.store.dimension_counts(wid, dimension, since, filters)
            return aggregation.distribution_from_counts(counts, dimension, limit)

        pages = _safe(
            "top_page",
            lambda: aggregation.top_pages(
                self.store.fetch_events(wid, since, filters=filters), 1
            ),
            [],
        )
        stats.top_page = pages[0] if pages else None
        stats.top_referrer = _safe(
            "top_referrer",
            lambda: aggregation.top_referrer_from_counts(
                self.store.dimension_counts(wid, "referrer", since, filters)
            ),
            None,
        )
        stats.browser_distribution = _safe(
            "browser_distribution",
            lambda: _distribution("browser", OVERVIEW_DISTRIBUTION_LIMIT),
            {},
        )
        stats.device_distribution = _safe(
            "device_distribution", lambda: _distribution("device"), {}
        )
        stats.country_distribution = _safe(
            "country_distribution",
            lambda: _distribution("country", OVERVIEW_DISTRIBUTION_LIMIT),
            {},
        )
        stats.avg_engagement_seconds = _safe(
            "avg_engagement_seconds",
            lambda: aggregation.avg_engagement_from_spans(
                self.store.session_spans(wid, since, filters)
            ),
            0.0,
        )
        return stats

    def dashboard(
        self,
        website_id: uuid.UUID | str,
        filters: QueryFilters | None = None,
    ) -> DashboardStats:
        """
        Visitors in the last five minutes, plus pageviews, visitors and
        bounce rate over the last 24 hours.
        """
        website = self.resolve(website_id)
        now = self.clock()
        day_start = now - DASHBOARD_WINDOW

        current, _ = self.store.pageview_totals(
            website.website_id, now - aggregation.LIVE_WINDOW, filters
        )
        visitors, pageviews = self.store.pageview_totals(website.website_id, day_start, filters)
        spans = self.store.session_spans(website.website_id, day_start, filters)
        return DashboardStats(
            current_visitors=current,
            today_pageviews=pageviews,
            today_visitors=visitors,
            today_bounce_rate=aggregation.bounce_rate_from_spans(spans),
        )

    def timeseries(
        self,
        website_id: uuid.UUID | str,
        days: int = 7,
        filters: QueryFilters | None = None,
    ) -> list[TimeSeriesPoint]:
        """Hourly pageviews and visitors over the window, empty hours included."""
        validate_days(days, MAX_TIMESERIES_DAYS)
        now = self.clock()
        since = now - timedelta(days=days)
        _, events = self._pageviews(website_id, since, filters)
        return aggregation.timeseries(events, since, now)

    # ==========================================================================
    # Pages and Dimensions
    # ==========================================================================

    def top_pages(
        self,
        website_id: uuid.UUID | str,
        days: int = 7,
        top: int = 10,
        filters: QueryFilters | None = None,
    ) -> list[PageStat]:
        validate_days(days)
        validate_limit(top, "top")
        _, events = self._pageviews(website_id, self._window(days), filters)
        return aggregation.top_pages(events, top)

    def breakdown(
        self,
        website_id: uuid.UUID | str,
        dimension: str,
        days: int = 7,
        limit: int = 10,
        filters: QueryFilters | None = None,
    ) -> Breakdown:
        validate_dimension(dimension)
        validate_days(days)
        validate_limit(limit)
        _, events = self._pageviews(website_id, self._window(days), filters)
        return aggregation.breakdown(events, dimension, limit)

    def map_data(
        self,
        website_id: uuid.UUID | str,
        days: int = 7,
        filters: QueryFilters | None = None,
    ) -> list[MapPoint]:
        validate_days(days)
        website = self.resolve(website_id)
        since = self._window(days)
        visitors, _ = self.store.pageview_totals(website.website_id, since, filters)
        counts = self.store.dimension_counts(website.website_id, "country", since, filters)
        return aggregation.map_points_from_counts(counts, visitors)

    # ==========================================================================
    # Sessions and Bounces
    # ==========================================================================

    def session_duration(self, website_id: uuid.UUID | str, session_id: uuid.UUID) -> float:
        """Seconds between the first and last pageview of one session."""
        website = self.resolve(website_id)
        events = self.store.fetch_session_events(website.website_id, session_id)
        return aggregation.session_duration(events)

    def avg_session_duration(
        self,
        website_id: uuid.UUID | str,
        days: int = 7,
        filters: QueryFilters | None = None,
    ) -> float:
        validate_days(days)
        website = self.resolve(website_id)
        spans = self.store.session_spans(website.website_id, self._window(days), filters)
        return aggregation.avg_session_duration_from_spans(spans)

    def bounce_rate(
        self,
        website_id: uuid.UUID | str,
        days: int = 7,
        filters: QueryFilters | None = None,
    ) -> float:
        validate_days(days)
        website = self.resolve(website_id)
        spans = self.store.session_spans(website.website_id, self._window(days), filters)
        return aggregation.bounce_rate_from_spans(spans)

    def bounce_sessions(
        self,
        website_id: uuid.UUID | str,
        days: int = 7,
        filters: QueryFilters | None = None,
    ) -> list[BounceSession]:
        validate_days(days)
        _, events = self._pageviews(website_id, self._window(days), filters)
        return aggregation.bounce_sessions(events)

    def page_engagement(
        self,
        website_id: uuid.UUID | str,
        days: int = 7,
        limit: int = 10,
        filters: QueryFilters | None = None,
    ) -> list[PageEngagement]:
        """
        Engagement per page.

        Bounce here uses each session's all-time pageview count across the
        whole site, read separately from the windowed events.
        """
        validate_days(days)
        validate_limit(limit)
        website, events = self._pageviews(website_id, self._window(days), filters)
        counts = self.store.session_pageview_counts(
            website.website_id, {e.session_id for e in events}
        )
        return aggregation.page_engagement(events, counts, limit)

    # ==========================================================================
    # Live
    # ==========================================================================

    def live(self, website_id: uuid.UUID | str) -> LiveSnapshot:
        """Activity over the last five minutes, independent of any window."""
        now = self.clock()
        _, events = self._pageviews(website_id, now - aggregation.LIVE_WINDOW)
        return aggregation.live_snapshot(events, now)
