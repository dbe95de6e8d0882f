# ==============================================================================
# Core Domain Logic
# ==============================================================================
"""
Pure domain logic with no external dependencies beyond Pydantic.

This module contains:
- Domain models and the error taxonomy
- Identity derivation (rotating, cookieless session ids)
- User-agent classification and spam/bounds checks
- Beacon ingestion and aggregation compute

All code here is framework-agnostic and easily unit-testable.
"""

from kaunta.core.errors import KauntaError, NotFoundError, StorageError, ValidationError
from kaunta.core.ingest import Ingestor
from kaunta.core.models import Beacon, Event, EventType, Session, TrackResult, Website

__all__ = [
    "Beacon",
    "Event",
    "EventType",
    "Ingestor",
    "KauntaError",
    "NotFoundError",
    "Session",
    "StorageError",
    "TrackResult",
    "ValidationError",
    "Website",
]
