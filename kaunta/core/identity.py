# ==============================================================================
# Identity Deriver - Pure Domain Logic
# ==============================================================================
"""
Cookieless, rotating visitor identity.

A session identifier is a deterministic hash of (website, client IP,
user agent, salt) where the salt is derived from the current time truncated
to a rotation bucket (hour, day or month). The same visitor keeps the same
identifier for the lifetime of a bucket and gets a new one once the bucket
boundary is crossed.

The salt is recomputed from the clock on every call and never cached or
stored; persisting it would make identifiers linkable across buckets.
"""

import hashlib
import uuid
from datetime import datetime, timezone

PERIOD_HOUR = "hour"
PERIOD_DAY = "day"
PERIOD_MONTH = "month"
PERIODS = (PERIOD_HOUR, PERIOD_DAY, PERIOD_MONTH)

# Namespace for name-based identifiers; changing it re-keys every session.
KAUNTA_NAMESPACE = uuid.UUID("6c1f6f5e-5b84-4bd1-9a1c-2f4b7e0d3a91")

_SEPARATOR = "\x1f"


def _utc(now: datetime | None) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc)


def truncate(now: datetime, period: str) -> datetime:
    """Truncate a UTC instant to the start of its hour, day or month."""
    if period == PERIOD_HOUR:
        return now.replace(minute=0, second=0, microsecond=0)
    if period == PERIOD_MONTH:
        return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def bucket(now: datetime | None = None, period: str = PERIOD_DAY) -> str:
    """
    Return the rotation salt for the bucket containing ``now``.

    Args:
        now: Instant to bucket. Naive datetimes are treated as UTC.
            Defaults to the current wall clock.
        period: One of 'hour', 'day', 'month'. Anything else behaves as 'day'.

    Returns:
        32-character lowercase hex digest, identical for every instant in the
        same bucket.
    """
    start = truncate(_utc(now), period)
    return hashlib.md5(start.isoformat().encode("utf-8")).hexdigest()


def uuid_from(*parts: str) -> uuid.UUID:
    """Deterministic UUID from ordered string parts."""
    return uuid.uuid5(KAUNTA_NAMESPACE, _SEPARATOR.join(p or "" for p in parts))


def derive_identity(
    website_id: str | uuid.UUID,
    client_ip: str | None,
    user_agent: str | None,
    now: datetime | None = None,
    period: str = PERIOD_DAY,
) -> uuid.UUID:
    """
    Derive the pseudonymous session identifier for a visitor.

    Malformed IPs and user agents are hashed as opaque text; a missing
    component hashes the same as an empty one.
    """
    return uuid_from(str(website_id), client_ip or "", user_agent or "", bucket(now, period))


def derive_visit_id(session_id: uuid.UUID, now: datetime | None = None) -> uuid.UUID:
    """Group a session's events into hourly visits."""
    return uuid_from(str(session_id), bucket(now, PERIOD_HOUR))
