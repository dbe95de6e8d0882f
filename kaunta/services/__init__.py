# ==============================================================================
# Services
# ==============================================================================
"""
Application services composed from the core and a store.

- analytics.py - Aggregation engine (AnalyticsService)
- ingestion.py - Ingestor wiring from settings
- live.py - Live snapshot polling loop
"""

from kaunta.services.analytics import AnalyticsService
from kaunta.services.ingestion import create_ingestor
from kaunta.services.live import normalize_interval, run_live_loop

__all__ = [
    "AnalyticsService",
    "create_ingestor",
    "normalize_interval",
    "run_live_loop",
]
