# ==============================================================================
# PostgreSQL Event Store
# ==============================================================================
"""
PostgreSQL implementation of the EventStore interface.

Connections come from a psycopg2 ThreadedConnectionPool. Each operation
borrows one connection for a single transaction and returns it
immediately, so the pool can be shared with other parts of the host
process. Every connection runs with a statement_timeout taken from
``PostgresSettings.query_timeout_seconds``.

Driver errors are surfaced as StorageError. Reads retry transient
connection failures with the light retry policy first.

Filters, grouping and counting run in SQL. Event reads select only the
columns aggregation needs.
"""

import logging
from collections.abc import Iterable
from contextlib import contextmanager
from datetime import datetime
from uuid import UUID

import psycopg2
import psycopg2.extras
from psycopg2.extras import Json, RealDictCursor
from psycopg2.pool import ThreadedConnectionPool

from kaunta.base.repositories import EventStore
from kaunta.core.aggregation import DIMENSIONS, QueryFilters
from kaunta.core.errors import NotFoundError, StorageError
from kaunta.core.models import (
    SESSION_ATTRIBUTES,
    DimensionCount,
    Event,
    EventType,
    Session,
    SessionSpan,
    Website,
)
from kaunta.utils.config import Settings, get_settings
from kaunta.utils.retry import POSTGRES_RETRY_EXCEPTIONS, retry_light

logger = logging.getLogger(__name__)

# Connection timeout
CONNECT_TIMEOUT = 10

psycopg2.extras.register_uuid()

_EVENT_COLUMNS = (
    "event_id",
    "website_id",
    "session_id",
    "visit_id",
    "event_type",
    "created_at",
    "hostname",
    "url_path",
    "url_query",
    "page_title",
    "referrer_domain",
    "referrer_path",
    "referrer_query",
    "event_name",
    "event_data",
    "tag",
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_content",
    "utm_term",
    "gclid",
    "fbclid",
    "msclkid",
    "ttclid",
    "li_fat_id",
    "twclid",
    "scroll_depth",
    "engagement_time",
    "browser",
    "os",
    "device",
    "screen",
    "language",
    "country",
    "region",
    "city",
)

_SESSION_COLUMNS = (
    "session_id",
    "website_id",
    "browser",
    "os",
    "device",
    "screen",
    "language",
    "country",
    "region",
    "city",
    "created_at",
)


# Columns aggregation reads; campaign and custom-event payload stay in the table
_READ_COLUMNS = (
    "event_id",
    "website_id",
    "session_id",
    "event_type",
    "created_at",
    "url_path",
    "referrer_domain",
    "scroll_depth",
    "engagement_time",
    "browser",
    "os",
    "device",
    "country",
    "region",
    "city",
)

def _add_connect_timeout(conn_string: str) -> str:
    """Add connect_timeout to connection string if not present."""
    if "connect_timeout" not in conn_string:
        separator = "&" if "?" in conn_string else "?"
        return f"{conn_string}{separator}connect_timeout={CONNECT_TIMEOUT}"
    return conn_string


class PostgreSQLEventStore(EventStore):
    """
    PostgreSQL implementation of EventStore.

    Tables live in the configured schema: website, session, website_event
    (see schema/init.sql).
    """

    def __init__(self, settings: Settings | None = None):
        """
        Initialize the event store.

        Args:
            settings: Application settings. If None, uses get_settings().
        """
        self._settings = settings or get_settings()
        self._schema = self._settings.postgres.schema_name
        self._pool: ThreadedConnectionPool | None = None

    @property
    def schema(self) -> str:
        """Get the database schema name."""
        return self._schema

    def connect(self) -> None:
        """Create the connection pool."""
        pg = self._settings.postgres
        timeout_ms = pg.query_timeout_seconds * 1000
        try:
            self._pool = ThreadedConnectionPool(
                pg.pool_min,
                pg.pool_max,
                _add_connect_timeout(pg.connection_string),
                options=f"-c statement_timeout={timeout_ms}",
            )
        except psycopg2.Error as e:
            raise StorageError(f"Failed to connect to PostgreSQL: {e}") from e
        logger.info(
            "PostgreSQLEventStore connected (schema=%s, pool=%d-%d)",
            self._schema,
            pg.pool_min,
            pg.pool_max,
        )

    def close(self) -> None:
        """Close every pooled connection."""
        if self._pool:
            try:
                self._pool.closeall()
                logger.info("PostgreSQLEventStore connection pool closed")
            except Exception as e:
                logger.warning("Error closing connection pool: %s", e)
            finally:
                self._pool = None

    # ==========================================================================
    # Connection Handling
    # ==========================================================================

    @contextmanager
    def _cursor(self):
        """Borrow a connection for one statement and hand back a dict cursor."""
        if self._pool is None:
            raise StorageError("PostgreSQL connection not established. Call connect() first.")

        conn = self._pool.getconn()
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                yield cur
            conn.commit()
        except Exception:
            if not conn.closed:
                conn.rollback()
            raise
        finally:
            self._pool.putconn(conn, close=bool(conn.closed))

    @retry_light(POSTGRES_RETRY_EXCEPTIONS, logger)
    def _fetchall(self, query: str, params: tuple | dict) -> list[dict]:
        with self._cursor() as cur:
            cur.execute(query, params)
            return cur.fetchall()

    def _read(self, query: str, params: tuple | dict, what: str) -> list[dict]:
        try:
            return self._fetchall(query, params)
        except psycopg2.Error as e:
            raise StorageError(f"Failed to query {what}: {e}") from e

    # ==========================================================================
    # Websites
    # ==========================================================================

    def resolve_website(self, domain: str) -> Website:
        rows = self._read(
            f"""
            SELECT website_id, domain, name, allowed_domains, deleted_at
            FROM {self._schema}.website
            WHERE lower(domain) = lower(%s) AND deleted_at IS NULL
            LIMIT 1
            """,
            (domain.strip(),),
            "website",
        )
        if not rows:
            raise NotFoundError(f"website not found: {domain}")
        return self._to_website(rows[0])

    def get_website(self, website_id: UUID) -> Website:
        rows = self._read(
            f"""
            SELECT website_id, domain, name, allowed_domains, deleted_at
            FROM {self._schema}.website
            WHERE website_id = %s AND deleted_at IS NULL
            """,
            (website_id,),
            "website",
        )
        if not rows:
            raise NotFoundError(f"website not found: {website_id}")
        return self._to_website(rows[0])

    @staticmethod
    def _to_website(row: dict) -> Website:
        return Website(
            website_id=row["website_id"],
            domain=row["domain"] or "",
            name=row["name"] or "",
            allowed_domains=row["allowed_domains"] or [],
            deleted_at=row["deleted_at"],
        )

    # ==========================================================================
    # Writes
    # ==========================================================================

    def _insert_session(self, cur, session: Session) -> bool:
        columns = ", ".join(_SESSION_COLUMNS)
        values = ", ".join(f"%({c})s" for c in _SESSION_COLUMNS)
        cur.execute(
            f"""
            INSERT INTO {self._schema}.session ({columns})
            VALUES ({values})
            ON CONFLICT (session_id) DO NOTHING
            """,
            session.to_db_record(),
        )
        return cur.rowcount == 1

    def _insert_event(self, cur, event: Event) -> None:
        record = event.to_db_record()
        if record["event_data"] is not None:
            record["event_data"] = Json(record["event_data"])
        columns = ", ".join(_EVENT_COLUMNS)
        values = ", ".join(f"%({c})s" for c in _EVENT_COLUMNS)
        cur.execute(
            f"INSERT INTO {self._schema}.website_event ({columns}) VALUES ({values})",
            record,
        )

    def record_event(self, session: Session, event: Event) -> tuple[Event, bool]:
        try:
            with self._cursor() as cur:
                new_session = self._insert_session(cur, session)
                if new_session:
                    event = event.with_session(session)
                else:
                    cur.execute(
                        f"""
                        SELECT {", ".join(SESSION_ATTRIBUTES)}
                        FROM {self._schema}.session
                        WHERE session_id = %s
                        """,
                        (session.session_id,),
                    )
                    event = event.with_session(cur.fetchone() or session)
                self._insert_event(cur, event)
        except psycopg2.Error as e:
            raise StorageError(f"Failed to record event: {e}") from e
        logger.debug(
            "Recorded event %s (session %s, new=%s)",
            event.event_id,
            event.session_id,
            new_session,
        )
        return event, new_session

    def save_event(self, event: Event) -> None:
        try:
            with self._cursor() as cur:
                self._insert_event(cur, event)
        except psycopg2.Error as e:
            raise StorageError(f"Failed to save event: {e}") from e
        logger.debug("Inserted event %s (session %s)", event.event_id, event.session_id)

    # ==========================================================================
    # Reads
    # ==========================================================================

    @staticmethod
    def _scope(
        website_id: UUID,
        since: datetime,
        filters: QueryFilters | None = None,
        until: datetime | None = None,
        event_type: EventType | None = EventType.PAGEVIEW,
    ) -> tuple[str, dict]:
        """WHERE clause and parameters for a windowed, filtered read."""
        conditions = ["website_id = %(website_id)s", "created_at >= %(since)s"]
        params: dict = {"website_id": website_id, "since": since}
        if until is not None:
            conditions.append("created_at < %(until)s")
            params["until"] = until
        if event_type is not None:
            conditions.append("event_type = %(event_type)s")
            params["event_type"] = int(event_type)
        if filters is not None:
            for name, value in filters.active().items():
                # Column names come from the fixed DIMENSIONS table
                conditions.append(f"{DIMENSIONS[name]} = %(filter_{name})s")
                params[f"filter_{name}"] = value
        return " AND ".join(conditions), params

    def fetch_events(
        self,
        website_id: UUID,
        since: datetime,
        until: datetime | None = None,
        event_type: EventType | None = EventType.PAGEVIEW,
        filters: QueryFilters | None = None,
    ) -> list[Event]:
        where, params = self._scope(website_id, since, filters, until, event_type)
        rows = self._read(
            f"""
            SELECT {", ".join(_READ_COLUMNS)}
            FROM {self._schema}.website_event
            WHERE {where}
            ORDER BY created_at ASC, event_id ASC
            """,
            params,
            "events",
        )
        return [Event(**row) for row in rows]

    def fetch_session_events(self, website_id: UUID, session_id: UUID) -> list[Event]:
        rows = self._read(
            f"""
            SELECT {", ".join(_READ_COLUMNS)}
            FROM {self._schema}.website_event
            WHERE website_id = %s AND session_id = %s AND event_type = %s
            ORDER BY created_at ASC, event_id ASC
            """,
            (website_id, session_id, int(EventType.PAGEVIEW)),
            "session events",
        )
        return [Event(**row) for row in rows]

    def pageview_totals(
        self, website_id: UUID, since: datetime, filters: QueryFilters | None = None
    ) -> tuple[int, int]:
        where, params = self._scope(website_id, since, filters)
        rows = self._read(
            f"""
            SELECT COUNT(DISTINCT session_id) AS visitors, COUNT(*) AS pageviews
            FROM {self._schema}.website_event
            WHERE {where}
            """,
            params,
            "pageview totals",
        )
        if not rows:
            return 0, 0
        return rows[0]["visitors"], rows[0]["pageviews"]

    def dimension_counts(
        self,
        website_id: UUID,
        dimension: str,
        since: datetime,
        filters: QueryFilters | None = None,
    ) -> list[DimensionCount]:
        column = DIMENSIONS[dimension]
        where, params = self._scope(website_id, since, filters)
        rows = self._read(
            f"""
            SELECT NULLIF({column}, '') AS value,
                   COUNT(DISTINCT session_id) AS visitors,
                   COUNT(*) AS pageviews
            FROM {self._schema}.website_event
            WHERE {where}
            GROUP BY 1
            ORDER BY visitors DESC, MIN(created_at) ASC
            """,
            params,
            f"{dimension} counts",
        )
        return [DimensionCount(**row) for row in rows]

    def session_spans(
        self, website_id: UUID, since: datetime, filters: QueryFilters | None = None
    ) -> list[SessionSpan]:
        where, params = self._scope(website_id, since, filters)
        rows = self._read(
            f"""
            SELECT session_id,
                   COUNT(*) AS pageviews,
                   MIN(created_at) AS first_seen,
                   MAX(created_at) AS last_seen
            FROM {self._schema}.website_event
            WHERE {where}
            GROUP BY session_id
            ORDER BY first_seen ASC
            """,
            params,
            "session spans",
        )
        return [SessionSpan(**row) for row in rows]

    def session_pageview_counts(
        self, website_id: UUID, session_ids: Iterable[UUID]
    ) -> dict[UUID, int]:
        ids = list(session_ids)
        if not ids:
            return {}
        rows = self._read(
            f"""
            SELECT session_id, COUNT(*) AS pageviews
            FROM {self._schema}.website_event
            WHERE website_id = %s
              AND event_type = %s
              AND session_id = ANY(%s)
            GROUP BY session_id
            """,
            (website_id, int(EventType.PAGEVIEW), ids),
            "session pageview counts",
        )
        return {row["session_id"]: row["pageviews"] for row in rows}


def check_postgresql_connection(settings: Settings | None = None) -> bool:
    """
    Check if PostgreSQL is reachable.

    Args:
        settings: Application settings. If None, uses get_settings().

    Returns:
        True if connection successful, False otherwise
    """
    try:
        settings = settings or get_settings()
        conn_string = _add_connect_timeout(settings.postgres.connection_string)
        conn = psycopg2.connect(conn_string)
        conn.close()
        return True
    except Exception:
        return False
