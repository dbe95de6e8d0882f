# ==============================================================================
# CLI Commands Module
# ==============================================================================
"""
CLI commands for kaunta.

Commands are organized into separate modules for maintainability:
- shared.py: Common utilities, constants, and helpers
- stats.py: Analytics reports (overview, pages, breakdown, map, bounces,
  engagement, today, timeseries, live)
- db.py: Schema management
- track.py: Single-beacon ingestion
"""

from kaunta.cli.shared import (
    # Constants
    BOX_WIDTH,
    # Classes
    Box,
    Colors,
    Icons,
    # Aliases
    B,
    C,
    I,
    # Helpers
    check_db_connection,
    configure_logging,
    handle_errors,
    open_service,
)

__all__ = [
    # Constants
    "BOX_WIDTH",
    # Classes
    "Box",
    "Colors",
    "Icons",
    # Aliases
    "B",
    "C",
    "I",
    # Helpers
    "check_db_connection",
    "configure_logging",
    "handle_errors",
    "open_service",
]
