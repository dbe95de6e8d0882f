# ==============================================================================
# Beacon Ingestion
# ==============================================================================
"""
Turn tracker beacons into persisted Session and Event rows.

Pipeline, in order:
1. Bounds-check the payload (ValidationError)
2. Resolve the website (NotFoundError)
3. Drop spam referrers
4. Derive the rotating session id and hourly visit id
5. Locate the client IP and classify the user agent
6. Split page URL and referrer into path/query/domain, pull UTM and click ids
7. Record the event, inserting the session if it is new

Step 7 is one atomic store write. A returning visitor's event carries the
attributes stored when the session was first seen, not the ones derived
from this beacon, so a session never splits across countries or
languages.

Nothing here retries. Storage failures propagate as StorageError so the
HTTP layer can answer with a retryable status.
"""

import logging
import uuid
from datetime import datetime, timezone
from urllib.parse import parse_qs, urlsplit

from kaunta.base.repositories import EventStore
from kaunta.core.classifier import classify, is_spam_referrer, referrer_host, validate_payload
from kaunta.core.errors import NotFoundError
from kaunta.core.identity import PERIOD_DAY, derive_identity, derive_visit_id
from kaunta.core.models import UNKNOWN, Beacon, Event, EventType, Session, TrackResult, Website

logger = logging.getLogger(__name__)

UTM_PARAMS = ("utm_source", "utm_medium", "utm_campaign", "utm_content", "utm_term")
CLICK_ID_PARAMS = ("gclid", "fbclid", "msclkid", "ttclid", "li_fat_id", "twclid")


def split_url(url: str | None) -> tuple[str | None, str | None, str | None]:
    """
    Split a page URL into (hostname, path, query).

    Accepts absolute URLs and bare paths such as ``/pricing?plan=pro``.
    Empty parts come back as None.
    """
    if not url:
        return None, None, None
    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return None, url, None
    return parts.hostname or None, parts.path or "/", parts.query or None


def campaign_params(query: str | None) -> dict[str, str | None]:
    """Extract UTM attributes and ad click ids from a query string."""
    values = parse_qs(query or "", keep_blank_values=False)
    return {
        name: values[name][0] if name in values else None
        for name in UTM_PARAMS + CLICK_ID_PARAMS
    }


class Ingestor:
    """
    Beacon ingestion entry point.

    Stateless apart from its collaborators; safe to share between request
    handlers.
    """

    def __init__(
        self,
        store: EventStore,
        geoip=None,
        rotation_period: str = PERIOD_DAY,
    ):
        """
        Args:
            store: Event store to write to
            geoip: Object with ``lookup(ip) -> (country, city, region)``, see
                kaunta.infrastructure.geoip. None leaves locations unknown.
            rotation_period: Identity rotation bucket (hour, day, month)
        """
        self.store = store
        self.geoip = geoip
        self.rotation_period = rotation_period

    def _resolve(self, identifier: str) -> Website:
        identifier = identifier.strip()
        if not identifier:
            raise NotFoundError("website not found: empty identifier")
        try:
            website_id = uuid.UUID(identifier)
        except ValueError:
            return self.store.resolve_website(identifier)
        return self.store.get_website(website_id)

    def track(
        self,
        beacon: Beacon,
        client_ip: str | None,
        user_agent: str | None,
        now: datetime | None = None,
    ) -> TrackResult | None:
        """
        Ingest one beacon.

        Args:
            beacon: Parsed tracker payload
            client_ip: Originating IP, used for identity and GeoIP only
            user_agent: Raw User-Agent header
            now: Event time, defaults to the current UTC clock

        Returns:
            TrackResult for a stored event, or None when the beacon was
            dropped as referrer spam

        Raises:
            ValidationError: Payload outside its bounds
            NotFoundError: Unknown or deleted website
            StorageError: The event store rejected the write
        """
        error = validate_payload(beacon)
        if error is not None:
            raise error

        website = self._resolve(beacon.website)

        if is_spam_referrer(beacon.referrer):
            logger.info(
                "Dropped spam beacon for %s (referrer host %s)",
                website.domain,
                referrer_host(beacon.referrer),
            )
            return None

        now = now or datetime.now(timezone.utc)
        session_id = derive_identity(
            website.website_id, client_ip, user_agent, now, self.rotation_period
        )
        visit_id = derive_visit_id(session_id, now)

        if self.geoip is not None:
            country, city, region = self.geoip.lookup(client_ip)
        else:
            country, city, region = UNKNOWN, "", ""
        agent = classify(user_agent)

        url_host, url_path, url_query = split_url(beacon.url)
        hostname = beacon.hostname or url_host

        ref_domain = ref_path = ref_query = None
        ref_host = referrer_host(beacon.referrer)
        # Internal navigation is not a referral
        if ref_host and ref_host != (hostname or "").lower():
            _, ref_path, ref_query = split_url(beacon.referrer)
            ref_domain = ref_host

        session = Session(
            session_id=session_id,
            website_id=website.website_id,
            browser=agent.browser,
            os=agent.os,
            device=agent.device,
            screen=beacon.screen,
            language=beacon.language,
            country=country,
            region=region or None,
            city=city or None,
            created_at=now,
        )

        is_custom = bool(beacon.name)
        event = Event(
            event_id=uuid.uuid4(),
            website_id=website.website_id,
            session_id=session_id,
            visit_id=visit_id,
            event_type=EventType.CUSTOM if is_custom else EventType.PAGEVIEW,
            created_at=now,
            hostname=hostname,
            url_path=url_path,
            url_query=url_query,
            page_title=beacon.title,
            referrer_domain=ref_domain,
            referrer_path=ref_path,
            referrer_query=ref_query,
            event_name=beacon.name if is_custom else None,
            event_data=beacon.props if is_custom else None,
            tag=beacon.tag,
            scroll_depth=None if is_custom else beacon.scroll_depth,
            engagement_time=None if is_custom else beacon.engagement_time,
            **campaign_params(url_query),
        )
        event, new_session = self.store.record_event(session, event)

        logger.debug(
            "Tracked %s for %s (session=%s, new=%s)",
            event.event_type.name.lower(),
            website.domain,
            session_id,
            new_session,
        )
        return TrackResult(
            session_id=session_id,
            visit_id=visit_id,
            event_id=event.event_id,
            new_session=new_session,
        )
