"""
Domain-specific exception hierarchy for the Barbera booking core.
"""


class BarberaError(Exception):
    """Base class for all application-level errors."""


class InvalidInputError(BarberaError):
    """Raised when a request is rejected before any computation happens."""


class StoreError(BarberaError):
    """Raised when an external store call fails."""

    retryable = True

    def __init__(self, message: str, *, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause


class RetrievalError(StoreError):
    """
    Raised when schedule, appointment or service data cannot be read.

    Retrieval failures are transient: callers should offer a retry rather
    than report the barber as unavailable.
    """


class ScheduleValidationError(BarberaError):
    """Raised when a weekly schedule submitted for saving is inconsistent."""


class SlotUnavailableError(BarberaError):
    """Raised when a booking write collides with an existing appointment."""


class PermissionDeniedError(BarberaError):
    """Raised when the session user does not own the resource being changed."""


class ConfigurationError(BarberaError):
    """Raised when required configuration is missing or unusable."""
