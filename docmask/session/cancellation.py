import threading


class OperationCancelledError(Exception):
    """Raised at a suspension point once the owning request was cancelled."""


class CancellationToken:
    """Cooperative cancellation flag shared between the event loop and worker threads."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelledError("Operation was cancelled")
