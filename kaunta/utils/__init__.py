# ==============================================================================
# Kaunta Utilities
# ==============================================================================
"""
Shared utilities: configuration, retry policy, schema bootstrap and paths.
"""

from kaunta.utils.config import (
    GeoIPSettings,
    IdentitySettings,
    LiveSettings,
    PostgresSettings,
    Settings,
    get_settings,
)
from kaunta.utils.db import (
    ensure_schema,
    reset_schema,
)

__all__ = [
    # Config
    "GeoIPSettings",
    "IdentitySettings",
    "LiveSettings",
    "PostgresSettings",
    "Settings",
    "get_settings",
    # Database
    "ensure_schema",
    "reset_schema",
]
