# ==============================================================================
# Tests for the Analytics Service
# ==============================================================================
"""
Unit tests for kaunta.services.analytics.AnalyticsService.

Tests cover:
- Parameter validation happens before any store access
- Website resolution by id or domain, and NotFoundError
- Windowing, filters and end-to-end query results
- Hourly time series and dashboard headline numbers
- StorageError propagation and overview sub-field degradation

Happy-path tests use InMemoryEventStore from conftest; failure tests use a
MagicMock store with spec=EventStore.
"""

import uuid
from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest

from kaunta.base.repositories import EventStore
from kaunta.core.aggregation import QueryFilters
from kaunta.core.errors import NotFoundError, StorageError, ValidationError
from kaunta.core.models import EventType, Website
from kaunta.services.analytics import AnalyticsService

from .conftest import NOW, WEBSITE_ID, session_uuid


def _mock_service() -> tuple[AnalyticsService, MagicMock]:
    store = MagicMock(spec=EventStore)
    return AnalyticsService(store, clock=lambda: NOW), store


# ==============================================================================
# Validation
# ==============================================================================


class TestValidation:
    """Invalid parameters are rejected before the store is touched."""

    @pytest.mark.parametrize("days", [0, 366, -1])
    def test_days_out_of_range(self, days):
        service, store = _mock_service()
        with pytest.raises(ValidationError) as exc_info:
            service.overview("example.com", days=days)
        assert exc_info.value.field == "days"
        assert "between 1 and 365" in exc_info.value.message
        assert store.mock_calls == []

    @pytest.mark.parametrize("days", [1, 365])
    def test_days_bounds_accepted(self, service, days):
        service.bounce_rate(WEBSITE_ID, days=days)

    def test_days_must_be_int(self):
        service, store = _mock_service()
        with pytest.raises(ValidationError):
            service.map_data("example.com", days=True)
        assert store.mock_calls == []

    @pytest.mark.parametrize("top", [0, 101])
    def test_top_out_of_range(self, top):
        service, store = _mock_service()
        with pytest.raises(ValidationError) as exc_info:
            service.top_pages("example.com", top=top)
        assert exc_info.value.field == "top"
        assert store.mock_calls == []

    def test_bad_dimension(self):
        service, store = _mock_service()
        with pytest.raises(ValidationError, match="invalid dimension 'os'"):
            service.breakdown("example.com", "os")
        assert store.mock_calls == []

    def test_engagement_limit(self):
        service, store = _mock_service()
        with pytest.raises(ValidationError) as exc_info:
            service.page_engagement("example.com", limit=500)
        assert exc_info.value.field == "limit"
        assert store.mock_calls == []


# ==============================================================================
# Resolution
# ==============================================================================


class TestResolve:
    """Tests for website id and domain resolution."""

    def test_by_uuid(self, service, website):
        assert service.resolve(WEBSITE_ID) == website
        assert service.resolve(str(WEBSITE_ID)) == website

    def test_by_domain_case_insensitive(self, service, website):
        assert service.resolve("EXAMPLE.com") == website

    def test_unknown_domain(self, service):
        with pytest.raises(NotFoundError):
            service.top_pages("unknown.example")

    def test_unknown_uuid(self, service):
        with pytest.raises(NotFoundError):
            service.resolve(uuid.uuid4())

    def test_empty_identifier(self, service):
        with pytest.raises(NotFoundError):
            service.resolve("  ")

    def test_deleted_website(self, store, service):
        gone = Website(website_id=uuid.uuid4(), domain="gone.example", deleted_at=NOW)
        store.add_website(gone)
        with pytest.raises(NotFoundError):
            service.resolve("gone.example")
        with pytest.raises(NotFoundError):
            service.resolve(gone.website_id)


# ==============================================================================
# Queries
# ==============================================================================


class TestQueries:
    """End-to-end queries over the in-memory store."""

    def test_top_pages_scenario(self, service, add_events):
        add_events(
            {"session": "s1", "path": "/a", "minutes_ago": 30},
            {"session": "s1", "path": "/a", "minutes_ago": 20},
            {"session": "s1", "path": "/b", "minutes_ago": 10},
        )

        pages = service.top_pages("example.com")

        assert [(p.path, p.pageviews) for p in pages] == [("/a", 2), ("/b", 1)]
        assert service.bounce_rate("example.com") == 0.0

    def test_window_excludes_old_events(self, service, add_events):
        add_events(
            {"session": "recent", "minutes_ago": 60},
            {"session": "old", "minutes_ago": 60 * 24 * 10},
        )

        assert service.overview(WEBSITE_ID, days=7).total_visitors == 1
        assert service.overview(WEBSITE_ID, days=30).total_visitors == 2

    def test_custom_events_ignored(self, service, add_events):
        add_events({"session": "s1"}, {"session": "s2", "event_type": EventType.CUSTOM})

        assert service.overview(WEBSITE_ID).total_pageviews == 1

    def test_overview(self, service, add_events):
        add_events(
            {"session": "s1", "path": "/a", "minutes_ago": 30, "browser": "Chrome",
             "device": "desktop", "country": "DE", "referrer_domain": "google.com"},
            {"session": "s1", "path": "/b", "minutes_ago": 20, "browser": "Chrome",
             "device": "desktop", "country": "DE", "referrer_domain": "google.com"},
            {"session": "s2", "path": "/a", "minutes_ago": 10, "browser": "Safari",
             "device": "mobile", "country": "US"},
        )

        stats = service.overview("example.com")

        assert stats.total_visitors == 2
        assert stats.total_pageviews == 3
        assert stats.top_page.path == "/a"
        assert stats.browser_distribution == {"Chrome": 1, "Safari": 1}
        assert stats.device_distribution == {"desktop": 1, "mobile": 1}
        assert stats.country_distribution == {"DE": 1, "US": 1}
        assert stats.avg_engagement_seconds == 300.0

    def test_overview_empty_website(self, service):
        stats = service.overview("example.com")
        assert stats.total_visitors == 0
        assert stats.top_page is None
        assert stats.top_referrer is None
        assert stats.browser_distribution == {}

    def test_breakdown_with_filter(self, service, add_events):
        add_events(
            {"session": "s1", "browser": "Chrome", "country": "DE"},
            {"session": "s2", "browser": "Chrome", "country": "US"},
            {"session": "s3", "browser": "Firefox", "country": "DE"},
        )

        result = service.breakdown(
            "example.com", "browser", filters=QueryFilters(country="DE")
        )

        assert [(i.name, i.visitors) for i in result.items] == [("Chrome", 1), ("Firefox", 1)]

    def test_map_data(self, service, add_events):
        add_events({"session": "s1", "country": "GB"}, {"session": "s2", "country": "GB"})

        (point,) = service.map_data("example.com")

        assert (point.country, point.alpha3, point.percentage) == ("GB", "GBR", 100.0)

    def test_session_duration(self, service, add_events):
        add_events(
            {"session": "s1", "minutes_ago": 30},
            {"session": "s1", "minutes_ago": 25},
            {"session": "s2", "minutes_ago": 5},
        )

        assert service.session_duration(WEBSITE_ID, session_uuid("s1")) == 300.0
        assert service.session_duration(WEBSITE_ID, session_uuid("s2")) == 0.0

    def test_avg_session_duration_and_bounces(self, service, add_events):
        add_events(
            {"session": "s1", "minutes_ago": 30},
            {"session": "s1", "minutes_ago": 20},
            {"session": "s2", "path": "/landing", "minutes_ago": 5},
        )

        assert service.avg_session_duration("example.com") == 600.0
        assert service.bounce_rate("example.com") == 50.0
        bounces = service.bounce_sessions("example.com")
        assert [b.url_path for b in bounces] == ["/landing"]

    def test_page_engagement_uses_all_time_counts(self, service, add_events):
        add_events(
            {"session": "s1", "path": "/a", "minutes_ago": 60, "engagement_time": 4000},
            # Older pageview outside the 1-day window
            {"session": "s1", "path": "/a", "minutes_ago": 60 * 24 * 3},
        )

        (page,) = service.page_engagement("example.com", days=1)

        assert page.pageviews == 1
        assert page.avg_engagement_time == 4000
        assert page.bounce_rate == 0.0

    def test_live(self, service, add_events):
        add_events(
            {"session": "s1", "minutes_ago": 2},
            {"session": "s2", "minutes_ago": 30},
        )

        snapshot = service.live("example.com")

        assert snapshot.timestamp == NOW
        assert snapshot.active_visitors == 1


# ==============================================================================
# Storage Failures
# ==============================================================================


class TestStorageFailures:
    """StorageError handling."""

    def _failing(self) -> tuple[AnalyticsService, MagicMock]:
        service, store = _mock_service()
        store.get_website.return_value = Website(website_id=WEBSITE_ID, domain="example.com")
        error = StorageError("connection refused")
        store.fetch_events.side_effect = error
        store.pageview_totals.side_effect = error
        store.session_spans.side_effect = error
        return service, store

    def test_query_propagates_storage_error(self):
        service, _ = self._failing()
        with pytest.raises(StorageError):
            service.top_pages(WEBSITE_ID)
        with pytest.raises(StorageError):
            service.bounce_rate(WEBSITE_ID)

    def test_overview_totals_propagate(self):
        service, _ = self._failing()
        with pytest.raises(StorageError):
            service.overview(WEBSITE_ID)

    def test_overview_degrades_failing_read(self, store, service, add_events):
        add_events(
            {"session": "s1", "browser": "Chrome", "referrer_domain": "google.com"},
            {"session": "s2", "browser": "Firefox"},
        )
        dimension_counts = store.dimension_counts

        def flaky(website_id, dimension, since, filters=None):
            if dimension == "referrer":
                raise StorageError("canceling statement due to statement timeout")
            return dimension_counts(website_id, dimension, since, filters)

        with patch.object(store, "dimension_counts", side_effect=flaky):
            stats = service.overview("example.com")

        assert stats.top_referrer is None
        assert stats.total_visitors == 2
        assert stats.browser_distribution == {"Chrome": 1, "Firefox": 1}
        assert stats.top_page is not None

    def test_overview_does_not_hide_other_errors(self, service, add_events):
        add_events({"session": "s1"})

        with patch(
            "kaunta.services.analytics.aggregation.top_referrer_from_counts",
            side_effect=RuntimeError("boom"),
        ):
            with pytest.raises(RuntimeError):
                service.overview("example.com")

    def test_overview_fields_are_separate_reads(self):
        service, store = _mock_service()
        store.get_website.return_value = Website(website_id=WEBSITE_ID, domain="example.com")
        store.pageview_totals.return_value = (1, 1)
        store.fetch_events.return_value = []
        store.dimension_counts.return_value = []
        store.session_spans.return_value = []

        service.overview(WEBSITE_ID, filters=QueryFilters(country="DE"))

        dimensions = [c.args[1] for c in store.dimension_counts.call_args_list]
        assert dimensions == ["referrer", "browser", "device", "country"]
        since = NOW - timedelta(days=7)
        store.session_spans.assert_called_once_with(WEBSITE_ID, since, QueryFilters(country="DE"))

    def test_window_start_is_clock_minus_days(self):
        service, store = _mock_service()
        store.get_website.return_value = Website(website_id=WEBSITE_ID, domain="example.com")
        store.session_spans.return_value = []

        service.bounce_rate(WEBSITE_ID, days=3)

        store.session_spans.assert_called_once_with(WEBSITE_ID, NOW - timedelta(days=3), None)
        store.fetch_events.assert_not_called()


# ==============================================================================
# Time Series and Dashboard
# ==============================================================================


class TestTimeseries:
    """Tests for hourly traffic."""

    def test_hourly_buckets_with_gaps(self, service, add_events):
        add_events(
            {"session": "s1", "minutes_ago": 30},
            {"session": "s2", "minutes_ago": 45},
            {"session": "s1", "minutes_ago": 150},
        )

        points = service.timeseries("example.com", days=1)

        assert len(points) == 25
        assert points[0].timestamp == NOW - timedelta(days=1)
        assert points[-1].timestamp == NOW
        by_hour = {p.timestamp: (p.pageviews, p.visitors) for p in points}
        assert by_hour[NOW - timedelta(hours=1)] == (2, 2)
        assert by_hour[NOW - timedelta(hours=2)] == (0, 0)
        assert by_hour[NOW - timedelta(hours=3)] == (1, 1)
        assert sum(p.pageviews for p in points) == 3

    def test_filters(self, service, add_events):
        add_events(
            {"session": "s1", "minutes_ago": 30, "device": "mobile"},
            {"session": "s2", "minutes_ago": 30, "device": "desktop"},
        )

        points = service.timeseries("example.com", 1, QueryFilters(device="mobile"))

        assert sum(p.visitors for p in points) == 1

    @pytest.mark.parametrize("days", [0, 91])
    def test_days_limit(self, days):
        service, store = _mock_service()
        with pytest.raises(ValidationError, match="between 1 and 90"):
            service.timeseries("example.com", days=days)
        assert store.mock_calls == []


class TestDashboard:
    """Tests for the headline numbers."""

    def test_current_and_last_day(self, service, add_events):
        add_events(
            {"session": "s1", "minutes_ago": 2},
            {"session": "s1", "minutes_ago": 60},
            {"session": "s2", "minutes_ago": 120},
            {"session": "old", "minutes_ago": 60 * 30},
        )

        stats = service.dashboard("example.com")

        assert stats.current_visitors == 1
        assert stats.today_pageviews == 3
        assert stats.today_visitors == 2
        assert stats.today_bounce_rate == 50.0

    def test_empty(self, service):
        stats = service.dashboard(WEBSITE_ID)
        assert stats.model_dump() == {
            "current_visitors": 0,
            "today_pageviews": 0,
            "today_visitors": 0,
            "today_bounce_rate": 0.0,
        }
