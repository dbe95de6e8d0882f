# ==============================================================================
# Version Utilities
# ==============================================================================
"""
Package version lookup.
"""

from importlib.metadata import PackageNotFoundError, version


def get_kaunta_version() -> str:
    """
    Get the kaunta package version.

    Returns:
        Version string (e.g., "0.1.0")
    """
    try:
        return version("kaunta")
    except PackageNotFoundError:
        return "0.1.0"

