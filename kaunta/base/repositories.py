# ==============================================================================
# Repository Abstract Base Classes
# ==============================================================================
"""
Event store contract shared by ingestion and the aggregation engine.

This defines the "what" (append events, read windows of events, answer
grouped counts over a window) not the "how". Concrete implementations in
infrastructure/ handle the specifics.

The store is append-only: there is no update or delete path for sessions or
events. Session rows are written once, on first sight, and their attributes
are frozen from then on.

Every windowed read takes the same scope: pageviews of one website with
``created_at >= since`` that match all active QueryFilters. Implementations
apply the filters where the data lives, not after reading.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime
from uuid import UUID

from kaunta.core.aggregation import QueryFilters
from kaunta.core.models import DimensionCount, Event, EventType, Session, SessionSpan, Website


class EventStore(ABC):
    """Append-only store of classified events."""

    @abstractmethod
    def connect(self) -> None:
        """Establish connection to the data store."""
        ...

    @abstractmethod
    def close(self) -> None:
        """Close connection and release resources."""
        ...

    @abstractmethod
    def resolve_website(self, domain: str) -> Website:
        """
        Find a non-deleted website by domain (case-insensitive).

        Raises:
            NotFoundError: If no such website exists
        """
        ...

    @abstractmethod
    def get_website(self, website_id: UUID) -> Website:
        """
        Find a non-deleted website by id.

        Raises:
            NotFoundError: If no such website exists
        """
        ...

    # ==========================================================================
    # Writes
    # ==========================================================================

    @abstractmethod
    def record_event(self, session: Session, event: Event) -> tuple[Event, bool]:
        """
        Insert the session if it is new and append the event, atomically.

        The event is stamped with the attributes of the stored session, so
        a returning visitor keeps the browser, location and language seen
        first, whatever the current beacon says. Either both rows are
        written or neither is.

        Returns:
            The event as persisted, and True if the session was new
        """
        ...

    @abstractmethod
    def save_event(self, event: Event) -> None:
        """Append one event exactly as given, without touching sessions."""
        ...

    # ==========================================================================
    # Event Reads
    # ==========================================================================

    @abstractmethod
    def fetch_events(
        self,
        website_id: UUID,
        since: datetime,
        until: datetime | None = None,
        event_type: EventType | None = EventType.PAGEVIEW,
        filters: QueryFilters | None = None,
    ) -> list[Event]:
        """
        Read events for a website in ``[since, until)``.

        Events carry the fields aggregation reads (ids, time, path,
        referrer domain, session attributes, engagement). Campaign and
        custom-event payload columns may be left unset.

        Args:
            website_id: Website to read
            since: Inclusive lower bound on created_at
            until: Exclusive upper bound, or None for no upper bound
            event_type: Restrict to one event type, or None for all types
            filters: Exact-match filters, applied by the store

        Returns:
            Events ordered by created_at ascending
        """
        ...

    @abstractmethod
    def fetch_session_events(self, website_id: UUID, session_id: UUID) -> list[Event]:
        """All pageviews of one session, ordered by created_at ascending."""
        ...

    # ==========================================================================
    # Grouped Reads
    # ==========================================================================

    @abstractmethod
    def pageview_totals(
        self, website_id: UUID, since: datetime, filters: QueryFilters | None = None
    ) -> tuple[int, int]:
        """Distinct sessions and pageviews in scope, as (visitors, pageviews)."""
        ...

    @abstractmethod
    def dimension_counts(
        self,
        website_id: UUID,
        dimension: str,
        since: datetime,
        filters: QueryFilters | None = None,
    ) -> list[DimensionCount]:
        """
        Distinct sessions and pageviews per value of a dimension, in scope.

        Missing and empty values are reported together as None. Rows are
        ordered by visitors descending, ties by first pageview.
        """
        ...

    @abstractmethod
    def session_spans(
        self, website_id: UUID, since: datetime, filters: QueryFilters | None = None
    ) -> list[SessionSpan]:
        """Pageview count and first/last pageview time per session, in scope."""
        ...

    @abstractmethod
    def session_pageview_counts(
        self, website_id: UUID, session_ids: Iterable[UUID]
    ) -> dict[UUID, int]:
        """All-time pageview count per session, for the given sessions."""
        ...
