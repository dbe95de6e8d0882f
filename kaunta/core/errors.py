# ==============================================================================
# Error Taxonomy
# ==============================================================================
"""
Exceptions raised by the analytics core.

- ValidationError: caller-supplied parameters outside their contract.
  Always raised before any storage access.
- NotFoundError: unknown website or domain (distinct from an empty result).
- StorageError: connectivity or query execution failure. Retryable by caller.

Classification problems (unknown user agent, missing GeoIP data) are never
errors; they resolve to sentinel values instead.
"""


class KauntaError(Exception):
    """Base class for all analytics core errors."""


class ValidationError(KauntaError, ValueError):
    """A parameter or payload field violates its documented bounds."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
        self.message = message


class NotFoundError(KauntaError, LookupError):
    """The requested website does not exist or has been deleted."""


class StorageError(KauntaError):
    """The event store could not complete a read or write."""
