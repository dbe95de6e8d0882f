# ==============================================================================
# In-Memory Event Store
# ==============================================================================
"""
List-backed EventStore for tests and embedded use.

Holds websites, sessions and events in process memory behind a lock, so
it can be shared by concurrent readers and writers the same way the
PostgreSQL store is. Grouped reads are answered with the same pure
functions the aggregation engine uses on event lists.
"""

import logging
import threading
from collections import Counter
from collections.abc import Iterable
from datetime import datetime
from uuid import UUID

from kaunta.base.repositories import EventStore
from kaunta.core import aggregation
from kaunta.core.aggregation import QueryFilters
from kaunta.core.errors import NotFoundError
from kaunta.core.models import DimensionCount, Event, EventType, Session, SessionSpan, Website

logger = logging.getLogger(__name__)


class InMemoryEventStore(EventStore):
    """EventStore kept entirely in process memory."""

    def __init__(self, websites: Iterable[Website] = ()):
        self._lock = threading.Lock()
        self._websites: dict[UUID, Website] = {w.website_id: w for w in websites}
        self._sessions: dict[UUID, Session] = {}
        self._events: list[Event] = []

    def connect(self) -> None:
        logger.debug("InMemoryEventStore ready (%d websites)", len(self._websites))

    def close(self) -> None:
        pass

    def add_website(self, website: Website) -> None:
        with self._lock:
            self._websites[website.website_id] = website

    def resolve_website(self, domain: str) -> Website:
        wanted = domain.strip().lower()
        with self._lock:
            for website in self._websites.values():
                if website.domain.lower() == wanted and not website.is_deleted:
                    return website
        raise NotFoundError(f"website not found: {domain}")

    def get_website(self, website_id: UUID) -> Website:
        with self._lock:
            website = self._websites.get(website_id)
        if website is None or website.is_deleted:
            raise NotFoundError(f"website not found: {website_id}")
        return website

    def record_event(self, session: Session, event: Event) -> tuple[Event, bool]:
        with self._lock:
            stored = self._sessions.get(session.session_id)
            new_session = stored is None
            if new_session:
                stored = self._sessions[session.session_id] = session
            event = event.with_session(stored)
            self._events.append(event)
        return event, new_session

    def save_event(self, event: Event) -> None:
        with self._lock:
            self._events.append(event)

    def fetch_events(
        self,
        website_id: UUID,
        since: datetime,
        until: datetime | None = None,
        event_type: EventType | None = EventType.PAGEVIEW,
        filters: QueryFilters | None = None,
    ) -> list[Event]:
        with self._lock:
            events = [
                e
                for e in self._events
                if e.website_id == website_id
                and e.created_at >= since
                and (until is None or e.created_at < until)
                and (event_type is None or e.event_type == event_type)
                and (filters is None or filters.matches(e))
            ]
        return sorted(events, key=lambda e: e.created_at)

    def fetch_session_events(self, website_id: UUID, session_id: UUID) -> list[Event]:
        with self._lock:
            events = [
                e
                for e in self._events
                if e.website_id == website_id and e.session_id == session_id and e.is_pageview
            ]
        return sorted(events, key=lambda e: e.created_at)

    def pageview_totals(
        self, website_id: UUID, since: datetime, filters: QueryFilters | None = None
    ) -> tuple[int, int]:
        events = self.fetch_events(website_id, since, filters=filters)
        return aggregation.visitor_count(events), len(events)

    def dimension_counts(
        self,
        website_id: UUID,
        dimension: str,
        since: datetime,
        filters: QueryFilters | None = None,
    ) -> list[DimensionCount]:
        events = self.fetch_events(website_id, since, filters=filters)
        return aggregation.dimension_counts(events, dimension)

    def session_spans(
        self, website_id: UUID, since: datetime, filters: QueryFilters | None = None
    ) -> list[SessionSpan]:
        return aggregation.session_spans(self.fetch_events(website_id, since, filters=filters))

    def session_pageview_counts(
        self, website_id: UUID, session_ids: Iterable[UUID]
    ) -> dict[UUID, int]:
        wanted = set(session_ids)
        with self._lock:
            counts = Counter(
                e.session_id
                for e in self._events
                if e.website_id == website_id and e.is_pageview and e.session_id in wanted
            )
        return dict(counts)

    @property
    def sessions(self) -> list[Session]:
        with self._lock:
            return list(self._sessions.values())

    @property
    def events(self) -> list[Event]:
        with self._lock:
            return list(self._events)
