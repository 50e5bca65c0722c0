import asyncio
import queue
import threading
from concurrent.futures import Future
from dataclasses import dataclass

from PIL import Image

from docmask.config.settings import Settings
from docmask.logging.logger import Log
from docmask.ocr.engine_base import BaseOcrEngine
from docmask.ocr.exceptions import OcrError
from docmask.ocr.factory import OcrEngineFactory
from docmask.session.cancellation import CancellationToken, OperationCancelledError


@dataclass
class _Request:
    image: Image.Image
    token: CancellationToken | None
    future: "Future[dict[str, object]]"


class OcrWorker:
    """Serialises recognitions onto one long-lived engine thread.

    Callers may submit concurrently; requests queue and are handed to the
    engine strictly one at a time. A request whose token is cancelled while
    waiting is failed with ``OperationCancelledError`` without being run.
    """

    _STOP = None

    def __init__(self, engine: BaseOcrEngine) -> None:
        self._engine = engine
        self._queue: "queue.Queue[_Request | None]" = queue.Queue()
        self._closed = False
        self._lock = threading.Lock()
        self._thread = threading.Thread(target=self._run, name="docmask-ocr", daemon=True)
        self._thread.start()

    @property
    def is_running(self) -> bool:
        return self._thread.is_alive()

    def submit(
        self,
        image: Image.Image,
        token: CancellationToken | None = None,
    ) -> "Future[dict[str, object]]":
        future: Future[dict[str, object]] = Future()
        with self._lock:
            if self._closed:
                raise OcrError("OCR worker has been shut down")
            self._queue.put(_Request(image=image, token=token, future=future))
        return future

    async def recognize(
        self,
        image: Image.Image,
        token: CancellationToken | None = None,
    ) -> dict[str, object]:
        """Queue *image* and wait for its result without blocking the event loop."""
        return await asyncio.wrap_future(self.submit(image, token))

    def shutdown(self, timeout: float | None = 5.0) -> None:
        """Stop accepting work, let queued requests drain, and join the thread."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._queue.put(self._STOP)
        self._thread.join(timeout)
        Log.info("OCR worker stopped")

    def _run(self) -> None:
        Log.info(f"OCR worker started with {type(self._engine).__name__}")
        while True:
            request = self._queue.get()
            if request is self._STOP:
                break
            self._dispatch(request)

    def _dispatch(self, request: _Request) -> None:
        if not request.future.set_running_or_notify_cancel():
            return
        if request.token is not None and request.token.cancelled:
            request.future.set_exception(OperationCancelledError("OCR request was cancelled"))
            return
        try:
            result = self._engine.recognize(request.image)
        except Exception as exc:
            Log.warning(f"OCR recognition failed: {exc}")
            request.future.set_exception(exc)
            return
        request.future.set_result(result)


_worker: OcrWorker | None = None
_worker_lock = threading.Lock()


def get_ocr_worker(settings: Settings) -> OcrWorker:
    """Return the process-wide OCR worker, starting it on first use."""
    global _worker  # noqa: PLW0603
    with _worker_lock:
        if _worker is None:
            _worker = OcrWorker(OcrEngineFactory.create(settings))
        return _worker


def shutdown_ocr_worker() -> None:
    """Stop the process-wide OCR worker if one was started."""
    global _worker  # noqa: PLW0603
    with _worker_lock:
        worker, _worker = _worker, None
    if worker is not None:
        worker.shutdown()
