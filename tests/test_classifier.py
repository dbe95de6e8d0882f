# ==============================================================================
# Tests for Event Classifier
# ==============================================================================
"""
Unit tests for kaunta.core.classifier.

Tests cover:
- User-agent rule ordering (Edge before Chrome, Chrome before Safari)
- Device classification and the unknown sentinel
- Spam referrer detection, including subdomains and fail-open parsing
- Beacon bounds checks at their exact limits
"""

import pytest

from kaunta.core.classifier import (
    BROWSER_RULES,
    MAX_URL_LENGTH,
    UNKNOWN_USER_AGENT,
    classify,
    is_spam_referrer,
    referrer_host,
    validate_payload,
)
from kaunta.core.models import Beacon

EDGE_WINDOWS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/91.0.4472.124 Safari/537.36 Edg/91.0.864.59"
)
SAFARI_IPHONE = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 14_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/14.0 Mobile/15E148 Safari/604.1"
)
CHROME_ANDROID = (
    "Mozilla/5.0 (Linux; Android 13; Pixel 7) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/116.0.0.0 Mobile Safari/537.36"
)
CHROME_MAC = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
SAFARI_MAC = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.1 Safari/605.1.15"
)
FIREFOX_LINUX = "Mozilla/5.0 (X11; Linux x86_64; rv:109.0) Gecko/20100101 Firefox/115.0"
OPERA_WINDOWS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/119.0.0.0 Safari/537.36 OPR/105.0.0.0"
)


# ==============================================================================
# classify
# ==============================================================================


class TestClassify:
    """Tests for user-agent parsing."""

    @pytest.mark.parametrize(
        "user_agent, expected",
        [
            (EDGE_WINDOWS, ("Edge", "Windows", "desktop")),
            (SAFARI_IPHONE, ("Safari", "iOS", "mobile")),
            (CHROME_ANDROID, ("Chrome", "Android", "mobile")),
            (CHROME_MAC, ("Chrome", "macOS", "desktop")),
            (SAFARI_MAC, ("Safari", "macOS", "desktop")),
            (FIREFOX_LINUX, ("Firefox", "Linux", "desktop")),
            (OPERA_WINDOWS, ("Opera", "Windows", "desktop")),
        ],
    )
    def test_known_user_agents(self, user_agent, expected):
        assert tuple(classify(user_agent)) == expected

    def test_empty_is_unknown(self):
        assert classify("") == ("Unknown", "Unknown", "desktop")
        assert classify(None) == UNKNOWN_USER_AGENT

    def test_unrecognized_is_unknown(self):
        assert classify("curl/8.4.0") == ("Unknown", "Unknown", "desktop")

    def test_edge_listed_before_chrome(self):
        """Edge user agents carry the Chrome token, so order is load-bearing."""
        labels = [label for _, label in BROWSER_RULES]
        assert labels.index("Edge") < labels.index("Chrome")
        assert labels.index("Opera") < labels.index("Chrome")
        assert labels.index("Chrome") < labels.index("Safari")


# ==============================================================================
# Spam referrers
# ==============================================================================


class TestSpamReferrer:
    """Tests for the referrer denylist."""

    @pytest.mark.parametrize(
        "referrer",
        [
            "https://semalt.com/x",
            "https://spam.semalt.com/y",
            "https://darodar.com",
            "http://DARODAR.COM/path",
        ],
    )
    def test_spam(self, referrer):
        assert is_spam_referrer(referrer) is True

    @pytest.mark.parametrize(
        "referrer",
        [
            "https://google.com/search",
            "",
            None,
            "not a url",
            "https://notsemalt.com/",
        ],
    )
    def test_not_spam(self, referrer):
        assert is_spam_referrer(referrer) is False

    def test_referrer_host_lowercases(self):
        assert referrer_host("https://News.Ycombinator.com/item?id=1") == "news.ycombinator.com"

    def test_referrer_host_requires_scheme(self):
        assert referrer_host("example.com/page") is None


# ==============================================================================
# validate_payload
# ==============================================================================


class TestValidatePayload:
    """Tests for beacon bounds checks."""

    def _beacon(self, **fields) -> Beacon:
        return Beacon(website="example.com", **fields)

    def test_url_at_limit_accepted(self):
        assert validate_payload(self._beacon(url="x" * MAX_URL_LENGTH)) is None

    def test_url_over_limit_rejected(self):
        error = validate_payload(self._beacon(url="x" * (MAX_URL_LENGTH + 1)))
        assert error is not None
        assert error.field == "url"
        assert "2000" in error.message

    @pytest.mark.parametrize("depth", [0, 100])
    def test_scroll_depth_bounds_accepted(self, depth):
        assert validate_payload(self._beacon(scroll_depth=depth)) is None

    @pytest.mark.parametrize("depth", [-1, 101])
    def test_scroll_depth_out_of_range_rejected(self, depth):
        error = validate_payload(self._beacon(scroll_depth=depth))
        assert error is not None
        assert error.field == "scroll_depth"

    def test_engagement_time_zero_accepted(self):
        assert validate_payload(self._beacon(engagement_time=0)) is None

    def test_negative_engagement_time_rejected(self):
        error = validate_payload(self._beacon(engagement_time=-1))
        assert error is not None
        assert error.field == "engagement_time"

    def test_empty_payload_accepted(self):
        assert validate_payload(self._beacon()) is None
