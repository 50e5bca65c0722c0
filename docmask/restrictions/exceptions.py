class RestrictionError(Exception):
    """Base exception for restriction handling."""


class RestrictionValidationError(RestrictionError):
    """Raised when a restriction record or creation payload is invalid."""
