# ==============================================================================
# Base Abstract Classes
# ==============================================================================
"""
Abstract base classes defining the storage port.

Concrete adapters live in kaunta.infrastructure.
"""

from kaunta.base.repositories import EventStore

__all__ = ["EventStore"]
