# ==============================================================================
# Event Classifier - Pure Domain Logic
# ==============================================================================
"""
User-agent parsing, spam-referrer detection and beacon bounds checking.

User agents are matched against ordered rule tables, first match wins.
Order matters because browser tokens overlap: Edge and Opera user agents
also carry the Chrome token, Chrome carries the Safari token, and iOS user
agents say "like Mac OS X". Each table therefore lists the most specific
rule first.

Unrecognized or empty user agents resolve to ("Unknown", "Unknown",
"desktop") so that aggregation always has a groupable value.
"""

from typing import NamedTuple
from urllib.parse import urlparse

from kaunta.core.errors import ValidationError
from kaunta.core.models import UNKNOWN, Beacon

MAX_URL_LENGTH = 2000
MIN_SCROLL_DEPTH = 0
MAX_SCROLL_DEPTH = 100

DEVICE_MOBILE = "mobile"
DEVICE_DESKTOP = "desktop"


class UserAgentInfo(NamedTuple):
    browser: str
    os: str
    device: str


UNKNOWN_USER_AGENT = UserAgentInfo(UNKNOWN, UNKNOWN, DEVICE_DESKTOP)


# ==============================================================================
# Rule Tables
# ==============================================================================

# (tokens, label): a rule matches when any token is a substring of the UA.
BROWSER_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("Edg/", "Edge/", "EdgA/", "EdgiOS/"), "Edge"),
    (("OPR/", "Opera"), "Opera"),
    (("SamsungBrowser/",), "Samsung Internet"),
    (("Firefox/", "FxiOS/"), "Firefox"),
    (("CriOS/", "Chrome/"), "Chrome"),
    (("Safari/",), "Safari"),
)

OS_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("Windows",), "Windows"),
    (("iPhone", "iPad", "iPod"), "iOS"),
    (("Android",), "Android"),
    (("CrOS",), "Chrome OS"),
    (("Mac OS X", "Macintosh"), "macOS"),
    (("Linux",), "Linux"),
)

MOBILE_TOKENS: tuple[str, ...] = ("Mobile", "iPhone", "iPod", "Android")

SPAM_REFERRER_DOMAINS: frozenset[str] = frozenset(
    {
        "semalt.com",
        "buttons-for-website.com",
        "buttons-for-your-website.com",
        "darodar.com",
        "best-seo-offer.com",
        "best-seo-solution.com",
        "ilovevitaly.com",
        "priceg.com",
        "blackhatworth.com",
        "hulfingtonpost.com",
        "econom.co",
        "7makemoneyonline.com",
        "free-share-buttons.com",
        "get-free-traffic-now.com",
        "social-buttons.com",
        "simple-share-buttons.com",
        "trafficmonetize.com",
        "4webmasters.org",
        "o-o-6-o-o.com",
        "event-tracking.com",
    }
)


def _first_match(user_agent: str, rules: tuple[tuple[tuple[str, ...], str], ...]) -> str | None:
    for tokens, label in rules:
        if any(token in user_agent for token in tokens):
            return label
    return None


# ==============================================================================
# Public API
# ==============================================================================


def classify(user_agent: str | None) -> UserAgentInfo:
    """Parse a user agent into (browser, os, device)."""
    if not user_agent:
        return UNKNOWN_USER_AGENT

    browser = _first_match(user_agent, BROWSER_RULES) or UNKNOWN
    os_name = _first_match(user_agent, OS_RULES) or UNKNOWN
    device = (
        DEVICE_MOBILE
        if any(token in user_agent for token in MOBILE_TOKENS)
        else DEVICE_DESKTOP
    )
    return UserAgentInfo(browser, os_name, device)


def referrer_host(referrer: str | None) -> str | None:
    """Lowercased host of a referrer URL, or None if it cannot be parsed."""
    if not referrer:
        return None
    try:
        parsed = urlparse(referrer.strip())
    except ValueError:
        return None
    if not parsed.scheme or not parsed.hostname:
        return None
    return parsed.hostname.lower()


def is_spam_referrer(referrer: str | None) -> bool:
    """
    Check a referrer against the spam denylist.

    Fails open: empty or unparsable referrers are not spam. A host matches
    when it equals a denylisted domain or is any subdomain of one.
    """
    host = referrer_host(referrer)
    if host is None:
        return False
    if host in SPAM_REFERRER_DOMAINS:
        return True
    return any(host.endswith("." + domain) for domain in SPAM_REFERRER_DOMAINS)


def validate_payload(payload: Beacon) -> ValidationError | None:
    """
    Check beacon bounds.

    Returns:
        The first violation found, or None when the payload is acceptable.
        Values are never clamped.
    """
    if payload.url is not None and len(payload.url) > MAX_URL_LENGTH:
        return ValidationError(
            "url", f"url must be at most {MAX_URL_LENGTH} characters (got {len(payload.url)})"
        )
    if payload.scroll_depth is not None and not (
        MIN_SCROLL_DEPTH <= payload.scroll_depth <= MAX_SCROLL_DEPTH
    ):
        return ValidationError(
            "scroll_depth",
            f"scroll_depth must be between {MIN_SCROLL_DEPTH} and {MAX_SCROLL_DEPTH} "
            f"(got {payload.scroll_depth})",
        )
    if payload.engagement_time is not None and payload.engagement_time < 0:
        return ValidationError(
            "engagement_time",
            f"engagement_time must be >= 0 (got {payload.engagement_time})",
        )
    return None
