class ProcessorError(Exception):
    """Base exception for export pipeline errors."""


class ArtifactWriteError(ProcessorError):
    """Raised when a baked artifact cannot be written to the export directory."""
