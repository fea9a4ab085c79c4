"""
Domain error hierarchy.

Raised by the domain and service layers; the API layer maps each kind to
an HTTP status in exactly one place (``src.api.errors``).
"""


class CabBookingError(Exception):
    """Base class for failures surfaced to the caller."""


class NotFoundError(CabBookingError):
    """A customer, driver, cab, trip or token does not exist."""


class InvalidStateError(CabBookingError):
    """The requested transition is illegal for the current status."""


class UnavailableError(CabBookingError):
    """A driver or cab is not free for assignment."""


class ValidationError(CabBookingError):
    """Input is out of range or a required field is missing."""


class ConflictError(CabBookingError):
    """A unique value (username, email, licence, cab owner) is taken."""


class AuthenticationError(CabBookingError):
    """Credentials or bearer token are missing, wrong or revoked."""


class PermissionDeniedError(CabBookingError):
    """The authenticated user may not perform this operation."""
