# ==============================================================================
# Infrastructure Adapters
# ==============================================================================
"""
Adapters for external services (ports-and-adapters architecture).

- repositories/ - Event store adapters (PostgreSQL, in-memory)
- geoip.py - MaxMind GeoIP lookup
"""

from kaunta.infrastructure.geoip import (
    GeoIPLookup,
    GeoLocation,
    NullGeoIPLookup,
    create_geoip_lookup,
)
from kaunta.infrastructure.repositories import (
    InMemoryEventStore,
    PostgreSQLEventStore,
    check_postgresql_connection,
)

__all__ = [
    "GeoIPLookup",
    "GeoLocation",
    "InMemoryEventStore",
    "NullGeoIPLookup",
    "PostgreSQLEventStore",
    "check_postgresql_connection",
    "create_geoip_lookup",
]
