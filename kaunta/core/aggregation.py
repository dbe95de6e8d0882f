# ==============================================================================
# Aggregation Compute - Pure Domain Logic
# ==============================================================================
"""
Statistics over windows of pageview events.

Every function here is pure. Most take the events already read from the
store (ordered by created_at ascending) and return result models. The
``*_from_counts`` and ``*_from_spans`` variants take the grouped rows the
store computes itself (DimensionCount, SessionSpan), so headline numbers
never need a full event read. Window selection, website resolution and
parameter validation happen in kaunta.services.analytics.

Conventions shared by all functions:
- A "visitor" is a distinct session_id.
- A bounced session has exactly one pageview in the evaluated scope.
- Null attributes are reported as "Unknown", null referrers as
  "Direct / None".
- Rankings are strictly descending by the stated count. Ties keep the order
  in which values were first seen in the input.
- Rates are rounded half-up, the way PostgreSQL's ROUND does it.
"""

from collections import Counter
from collections.abc import Callable, Iterable, Mapping, Sequence
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from types import MappingProxyType
from typing import TypeVar
from uuid import UUID

from pydantic import BaseModel, field_validator

from kaunta.core.countries import to_alpha3
from kaunta.core.identity import PERIOD_HOUR, truncate
from kaunta.core.models import (
    DIRECT,
    UNKNOWN,
    BounceSession,
    Breakdown,
    BreakdownItem,
    DimensionCount,
    Event,
    LiveSnapshot,
    MapPoint,
    PageEngagement,
    PageStat,
    ReferrerCount,
    ReferrerStat,
    SessionSpan,
    TimeSeriesPoint,
)

K = TypeVar("K")

# Breakdown dimension -> Event attribute
DIMENSIONS: Mapping[str, str] = MappingProxyType(
    {
        "country": "country",
        "browser": "browser",
        "device": "device",
        "referrer": "referrer_domain",
        "city": "city",
        "region": "region",
        "page": "url_path",
    }
)

LIVE_WINDOW = timedelta(minutes=5)
LIVE_PAGEVIEW_WINDOW = timedelta(minutes=1)
LIVE_REFERRER_LIMIT = 5


# ==============================================================================
# Helpers
# ==============================================================================


def round_half_up(value: float, places: int = 0) -> float:
    """Round like SQL ROUND: halves go away from zero, not to even."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def percentage(part: int, whole: int, places: int = 1) -> float:
    """``part / whole * 100`` rounded, or 0.0 when ``whole`` is zero."""
    if whole <= 0:
        return 0.0
    return round_half_up(part / whole * 100, places)


def _rank(counts: Mapping[K, int], limit: int | None = None) -> list[tuple[K, int]]:
    # sorted() is stable with reverse=True, so ties keep insertion order
    ranked = sorted(counts.items(), key=lambda kv: kv[1], reverse=True)
    return ranked if limit is None else ranked[:limit]


def _label(value: str | None, dimension: str = "") -> str:
    if value:
        return value
    return DIRECT if dimension == "referrer" else UNKNOWN


def _group(events: Iterable[Event], key: Callable[[Event], K]) -> dict[K, list[Event]]:
    groups: dict[K, list[Event]] = {}
    for event in events:
        groups.setdefault(key(event), []).append(event)
    return groups


def _span_seconds(events: Sequence[Event]) -> float:
    if len(events) < 2:
        return 0.0
    times = [e.created_at for e in events]
    return (max(times) - min(times)).total_seconds()


# ==============================================================================
# Filters
# ==============================================================================


class QueryFilters(BaseModel):
    """
    Exact-match filters combined with AND.

    An unset (None or empty) filter never excludes an event.
    """

    country: str | None = None
    browser: str | None = None
    device: str | None = None
    referrer: str | None = None
    city: str | None = None
    region: str | None = None
    page: str | None = None

    @field_validator("*", mode="before")
    @classmethod
    def _blank_is_unset(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def active(self) -> dict[str, str]:
        """Set filters keyed by dimension name."""
        return {name: value for name, value in self.model_dump().items() if value is not None}

    def matches(self, event: Event) -> bool:
        return all(
            getattr(event, DIMENSIONS[name]) == value for name, value in self.active().items()
        )


# ==============================================================================
# Counts and Rates
# ==============================================================================


def pageview_counts(events: Iterable[Event]) -> Counter[UUID]:
    """Pageview count per session, in first-seen order."""
    return Counter(e.session_id for e in events)


def visitor_count(events: Iterable[Event]) -> int:
    return len({e.session_id for e in events})


def dimension_counts(events: Iterable[Event], dimension: str) -> list[DimensionCount]:
    """
    Distinct sessions and pageviews per raw value of a dimension.

    This is the grouped read the event store answers in one query. Empty
    strings are folded into None. Rows come highest visitors first, ties in
    first-seen order.
    """
    attribute = DIMENSIONS[dimension]
    groups = _group(events, lambda e: getattr(e, attribute) or None)
    counts = [
        DimensionCount(
            value=value, visitors=len({e.session_id for e in group}), pageviews=len(group)
        )
        for value, group in groups.items()
    ]
    counts.sort(key=lambda c: c.visitors, reverse=True)
    return counts


def session_spans(events: Iterable[Event]) -> list[SessionSpan]:
    """Pageview count and first/last pageview per session, in first-seen order."""
    return [
        SessionSpan(
            session_id=session_id,
            pageviews=len(group),
            first_seen=min(e.created_at for e in group),
            last_seen=max(e.created_at for e in group),
        )
        for session_id, group in _group(events, lambda e: e.session_id).items()
    ]


def bounce_rate_from_spans(spans: Sequence[SessionSpan]) -> float:
    bounced = sum(1 for s in spans if s.pageviews == 1)
    return percentage(bounced, len(spans))


def avg_session_duration_from_spans(spans: Sequence[SessionSpan]) -> float:
    """
    Mean session span in seconds.

    Sessions with a single pageview have no duration and are left out of
    both the sum and the count. This differs from bounce rate, where they
    are the numerator.
    """
    durations = [s.seconds for s in spans if s.pageviews > 1]
    if not durations:
        return 0.0
    return sum(durations) / len(durations)


def avg_engagement_from_spans(spans: Sequence[SessionSpan]) -> float:
    """Mean session span over every session; single-pageview sessions count as 0."""
    if not spans:
        return 0.0
    return round_half_up(sum(s.seconds for s in spans) / len(spans), 1)


def bounce_rate(events: Sequence[Event]) -> float:
    """Site-wide bounce rate in percent, 1 decimal."""
    return bounce_rate_from_spans(session_spans(events))


def session_duration(events: Sequence[Event]) -> float:
    """Seconds between a session's first and last pageview, 0 for a single one."""
    return _span_seconds(events)


def avg_session_duration(events: Sequence[Event]) -> float:
    return avg_session_duration_from_spans(session_spans(events))


def avg_engagement_seconds(events: Sequence[Event]) -> float:
    return avg_engagement_from_spans(session_spans(events))


# ==============================================================================
# Pages, Referrers, Distributions
# ==============================================================================


def top_pages(events: Sequence[Event], top: int | None = None) -> list[PageStat]:
    """
    Per-path pageviews, visitors, bounce rate and average time on page.

    Bounce rate for a page is the share of sessions that viewed it whose
    pageview count over the whole scope is 1. Average time is the mean over
    those sessions of the span between their first and last view of the
    page. Events without a path are ignored.
    """
    counts = pageview_counts(events)
    by_path = _group((e for e in events if e.url_path is not None), lambda e: e.url_path)

    stats: list[PageStat] = []
    for path, page_events in by_path.items():
        sessions = _group(page_events, lambda e: e.session_id)
        bounced = sum(1 for sid in sessions if counts[sid] == 1)
        spans = [_span_seconds(g) for g in sessions.values()]
        stats.append(
            PageStat(
                path=path,
                pageviews=len(page_events),
                unique_visitors=len(sessions),
                bounce_rate=percentage(bounced, len(sessions)),
                avg_time_seconds=round_half_up(sum(spans) / len(spans), 1),
            )
        )

    stats.sort(key=lambda s: s.pageviews, reverse=True)
    return stats if top is None else stats[:top]


def top_referrer_from_counts(counts: Sequence[DimensionCount]) -> ReferrerStat | None:
    """Referrer domain with the most distinct sessions."""
    if not counts:
        return None
    best = max(counts, key=lambda c: c.visitors)
    return ReferrerStat(
        domain=_label(best.value, "referrer"), visitors=best.visitors, pageviews=best.pageviews
    )


def top_referrer(events: Sequence[Event]) -> ReferrerStat | None:
    return top_referrer_from_counts(dimension_counts(events, "referrer"))


def distribution_from_counts(
    counts: Iterable[DimensionCount], dimension: str, limit: int | None = None
) -> dict[str, int]:
    """Distinct sessions per labelled value, highest first."""
    visitors: dict[str, int] = {}
    for count in counts:
        label = _label(count.value, dimension)
        visitors[label] = visitors.get(label, 0) + count.visitors
    return dict(_rank(visitors, limit))


def distribution(
    events: Iterable[Event], dimension: str, limit: int | None = None
) -> dict[str, int]:
    """Distinct sessions per value of a dimension, highest first."""
    return distribution_from_counts(dimension_counts(events, dimension), dimension, limit)


def breakdown(events: Sequence[Event], dimension: str, limit: int | None = None) -> Breakdown:
    """
    Group events by one dimension.

    The page dimension drops events without a path; every other dimension
    labels nulls with the sentinel instead. Bounce rate per value counts
    sessions that touched the value and have one pageview in scope,
    path or not.
    """
    attribute = DIMENSIONS[dimension]
    counts = pageview_counts(events)
    if dimension == "page":
        events = [e for e in events if e.url_path is not None]
    groups = _group(events, lambda e: _label(getattr(e, attribute), dimension))

    items = []
    for name, group in groups.items():
        sessions = {e.session_id for e in group}
        bounced = sum(1 for sid in sessions if counts[sid] == 1)
        items.append(
            BreakdownItem(
                name=name,
                visitors=len(sessions),
                pageviews=len(group),
                bounce_rate=percentage(bounced, len(sessions)),
            )
        )

    items.sort(key=lambda i: i.visitors, reverse=True)
    return Breakdown(dimension=dimension, items=items if limit is None else items[:limit])


def map_points_from_counts(
    counts: Iterable[DimensionCount], total_visitors: int
) -> list[MapPoint]:
    """Visitors per country with their share of all visitors (2 decimals)."""
    return [
        MapPoint(
            country=country,
            alpha3=to_alpha3(country) if country != UNKNOWN else None,
            visitors=visitors,
            percentage=percentage(visitors, total_visitors, 2),
        )
        for country, visitors in distribution_from_counts(counts, "country").items()
    ]


def map_points(events: Sequence[Event]) -> list[MapPoint]:
    return map_points_from_counts(dimension_counts(events, "country"), visitor_count(events))


# ==============================================================================
# Bounces and Engagement
# ==============================================================================


def bounce_sessions(events: Sequence[Event]) -> list[BounceSession]:
    """Sessions with exactly one pageview in scope, most recent first."""
    counts = pageview_counts(events)
    bounced = [e for e in events if counts[e.session_id] == 1]
    bounced.sort(key=lambda e: e.created_at, reverse=True)
    return [
        BounceSession(
            session_id=e.session_id,
            created_at=e.created_at,
            country=_label(e.country),
            browser=_label(e.browser),
            device=_label(e.device),
            url_path=_label(e.url_path),
        )
        for e in bounced
    ]


def page_engagement(
    events: Sequence[Event],
    site_pageview_counts: Mapping[UUID, int],
    limit: int | None = None,
) -> list[PageEngagement]:
    """
    Engagement metrics per page.

    Args:
        events: Pageviews in scope
        site_pageview_counts: All-time pageview count per session across the
            whole site. A session bounced when this is 1, regardless of the
            window.
        limit: Maximum number of pages

    Returns:
        Pages ordered by pageviews descending. Averages ignore null values
        and are 0 when every value is null.
    """
    by_path = _group((e for e in events if e.url_path is not None), lambda e: e.url_path)

    results = []
    for path, page_events in by_path.items():
        sessions = {e.session_id for e in page_events}
        times = [e.engagement_time for e in page_events if e.engagement_time is not None]
        scrolls = [e.scroll_depth for e in page_events if e.scroll_depth is not None]
        bounced = sum(1 for sid in sessions if site_pageview_counts.get(sid, 0) == 1)
        results.append(
            PageEngagement(
                page_path=path,
                pageviews=len(page_events),
                unique_visitors=len(sessions),
                avg_engagement_time=int(round_half_up(sum(times) / len(times))) if times else 0,
                avg_scroll_depth=round_half_up(sum(scrolls) / len(scrolls), 1) if scrolls else 0.0,
                bounce_rate=percentage(bounced, len(sessions)),
            )
        )

    results.sort(key=lambda p: p.pageviews, reverse=True)
    return results if limit is None else results[:limit]


# ==============================================================================
# Live
# ==============================================================================


def live_snapshot(events: Sequence[Event], now: datetime) -> LiveSnapshot:
    """
    Point-in-time activity.

    Args:
        events: Pageviews from at least the last five minutes
        now: Snapshot instant
    """
    recent = [e for e in events if e.created_at >= now - LIVE_WINDOW]
    last_minute = [e for e in recent if e.created_at >= now - LIVE_PAGEVIEW_WINDOW]
    pages = top_pages(recent, 1)
    referrers = Counter(_label(e.referrer_domain, "referrer") for e in recent)

    return LiveSnapshot(
        timestamp=now,
        active_visitors=visitor_count(recent),
        pageviews_last_minute=len(last_minute),
        top_page=pages[0] if pages else None,
        recent_referrers=[
            ReferrerCount(referrer=domain, count=count)
            for domain, count in _rank(referrers, LIVE_REFERRER_LIMIT)
        ],
        recent_events=len(recent),
    )


# ==============================================================================
# Time Series
# ==============================================================================


def _hour(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return truncate(moment.astimezone(timezone.utc), PERIOD_HOUR)


def timeseries(events: Iterable[Event], start: datetime, end: datetime) -> list[TimeSeriesPoint]:
    """
    Pageviews and visitors per UTC hour.

    Covers every hour from the one containing ``start`` through the one
    containing ``end``. Hours without pageviews are present with zeros.
    """
    buckets = _group(events, lambda e: _hour(e.created_at))
    points = []
    hour, last = _hour(start), _hour(end)
    while hour <= last:
        group = buckets.get(hour, [])
        points.append(
            TimeSeriesPoint(
                timestamp=hour,
                pageviews=len(group),
                visitors=len({e.session_id for e in group}),
            )
        )
        hour += timedelta(hours=1)
    return points
