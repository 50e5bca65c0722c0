class RasterizeError(Exception):
    """Raised when a document or page cannot be fetched or decoded."""
