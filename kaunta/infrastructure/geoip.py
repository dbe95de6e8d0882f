# ==============================================================================
# GeoIP Lookup
# ==============================================================================
"""
Resolve client IPs to (country, city, region) using a MaxMind database.

Lookups never raise. A missing database, an unparsable IP or an address
that is not in the database all resolve to ("Unknown", "", ""), and the
ingestion pipeline stores those sentinels as-is.
"""

import logging
from pathlib import Path
from typing import NamedTuple

import geoip2.database
import geoip2.errors

from kaunta.core.models import UNKNOWN

logger = logging.getLogger(__name__)


class GeoLocation(NamedTuple):
    country: str
    city: str
    region: str


UNKNOWN_LOCATION = GeoLocation(UNKNOWN, "", "")


class NullGeoIPLookup:
    """Lookup used when no GeoIP database is configured."""

    def lookup(self, ip: str | None) -> GeoLocation:
        return UNKNOWN_LOCATION

    def close(self) -> None:
        pass


class GeoIPLookup:
    """
    GeoLite2-City backed lookup.

    The database is opened lazily on first use. If it cannot be opened the
    failure is logged once and every lookup returns the unknown location.
    """

    def __init__(self, database_path: Path | str):
        self._path = Path(database_path)
        self._reader: geoip2.database.Reader | None = None
        self._unavailable = False

    def _get_reader(self) -> geoip2.database.Reader | None:
        if self._reader is None and not self._unavailable:
            if not self._path.exists():
                logger.warning("GeoIP database not found at %s; locations disabled", self._path)
                self._unavailable = True
                return None
            try:
                self._reader = geoip2.database.Reader(str(self._path))
                logger.info("GeoIP database loaded from %s", self._path)
            except Exception as e:
                logger.warning("Failed to open GeoIP database %s: %s", self._path, e)
                self._unavailable = True
        return self._reader

    def lookup(self, ip: str | None) -> GeoLocation:
        """
        Look up an IP address.

        Args:
            ip: IPv4 or IPv6 address as text

        Returns:
            GeoLocation with the alpha-2 country code (or "Unknown"), the
            English city name and the most specific subdivision name
        """
        if not ip:
            return UNKNOWN_LOCATION
        reader = self._get_reader()
        if reader is None:
            return UNKNOWN_LOCATION
        try:
            record = reader.city(ip)
        except (geoip2.errors.GeoIP2Error, ValueError) as e:
            logger.debug("GeoIP lookup failed for %s: %s", ip, e)
            return UNKNOWN_LOCATION

        return GeoLocation(
            country=record.country.iso_code or UNKNOWN,
            city=record.city.name or "",
            region=record.subdivisions.most_specific.name or "",
        )

    def close(self) -> None:
        if self._reader is not None:
            self._reader.close()
            self._reader = None


def create_geoip_lookup(database_path: Path | str | None) -> GeoIPLookup | NullGeoIPLookup:
    """Build a lookup for the configured path, or a null lookup when unset."""
    if database_path is None:
        return NullGeoIPLookup()
    return GeoIPLookup(database_path)
