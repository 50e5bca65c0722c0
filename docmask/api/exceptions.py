class BackendError(Exception):
    """Raised when a call to the document backend fails."""


class BackendNetworkError(BackendError):
    """Raised when the backend cannot be reached (connection, timeout, transport)."""


class BackendResponseError(BackendError):
    """Raised when the backend answers with an HTTP error status."""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code
