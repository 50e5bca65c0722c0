class MaskingError(Exception):
    """Base exception for overlay and bake failures."""


class CorruptRestrictionError(MaskingError):
    """Raised for a single restriction whose rectangle or page cannot be used.

    Callers catch it per record, log it, and continue with the rest.
    """


class NoMaskableRestrictionsError(MaskingError):
    """Raised when a bake would apply zero masks; nothing is exported."""


class UnsupportedExportError(MaskingError):
    """Raised when the requested export format cannot be produced from the source."""
