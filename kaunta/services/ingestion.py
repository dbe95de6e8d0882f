# ==============================================================================
# Ingestion Service Factory
# ==============================================================================
"""
Wire an Ingestor from settings: the configured GeoIP database and identity
rotation period.
"""

import logging

from kaunta.base.repositories import EventStore
from kaunta.core.identity import PERIODS
from kaunta.core.ingest import Ingestor
from kaunta.infrastructure.geoip import create_geoip_lookup
from kaunta.utils.config import Settings, get_settings

logger = logging.getLogger(__name__)


def create_ingestor(store: EventStore, settings: Settings | None = None) -> Ingestor:
    """
    Build an Ingestor over ``store``.

    Args:
        store: Connected event store to write to
        settings: Application settings (defaults to get_settings())

    Returns:
        Ingestor with GeoIP lookup and rotation period from settings
    """
    settings = settings or get_settings()
    period = settings.identity.rotation_period
    if period not in PERIODS:
        logger.warning("Unknown identity rotation period %r, using day buckets", period)

    return Ingestor(
        store,
        geoip=create_geoip_lookup(settings.geoip.database_path),
        rotation_period=period,
    )
