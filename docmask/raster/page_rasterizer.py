import threading

from docmask.geometry.models import Size
from docmask.geometry.transform import fit_within
from docmask.logging.logger import Log
from docmask.raster.base import BasePageRasterizer, RasterDocument
from docmask.raster.exceptions import RasterizeError
from docmask.raster.models import RenderedPage
from docmask.session.cancellation import CancellationToken


class PageRasterizer:
    """Owns one opened document and renders its pages on demand.

    The document bytes are decoded once by ``open``; every later render
    reuses the cached handle. PDFs are rendered at the fixed ``render_scale``
    so rectangles captured in one preview stay valid in every other one.
    Raster images are always rendered at 1.0.

    Renders are serialized with a lock because the underlying native handles
    are not safe for concurrent use.
    """

    def __init__(
        self,
        adapter: BasePageRasterizer,
        *,
        render_scale: float = 1.5,
        is_pdf: bool = True,
    ) -> None:
        if render_scale <= 0:
            raise ValueError(f"render_scale must be positive, got {render_scale}")
        self._adapter = adapter
        self._render_scale = render_scale
        self._is_pdf = is_pdf
        self._handle: RasterDocument | None = None
        self._lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        return self._handle is not None

    @property
    def is_pdf(self) -> bool:
        return self._is_pdf

    @property
    def page_count(self) -> int:
        return self._require_handle().page_count

    def open(self, data: bytes) -> None:
        """Decode *data* and cache the handle; a second call is a no-op.

        Raises:
            RasterizeError: if decoding fails.
        """
        with self._lock:
            if self._handle is not None:
                return
            self._handle = self._adapter.open(data)
        Log.info(f"Opened document with {self.page_count} page(s)")

    def render(
        self,
        page_number: int,
        viewport: Size | None = None,
        token: CancellationToken | None = None,
    ) -> RenderedPage:
        """Render a 1-based page and fit its display size into *viewport*.

        Raises:
            RasterizeError: if the page is out of range or cannot be rendered.
            OperationCancelledError: if *token* was cancelled before or after drawing.
        """
        if token is not None:
            token.raise_if_cancelled()
        with self._lock:
            handle = self._require_handle()
            if not 1 <= page_number <= handle.page_count:
                raise RasterizeError(
                    f"Page {page_number} out of range (document has {handle.page_count})"
                )
            scale = self._render_scale if self._is_pdf else 1.0
            bitmap = handle.render_page(page_number, scale)
        if token is not None:
            token.raise_if_cancelled()

        natural = Size(bitmap.image.width, bitmap.image.height)
        display = fit_within(natural, viewport)
        Log.debug(
            f"Rendered page {page_number}: natural {natural.width}x{natural.height}, "
            f"display {display.width:.0f}x{display.height:.0f}"
        )
        return RenderedPage(
            page_number=page_number,
            bitmap=bitmap.image,
            natural_width=bitmap.image.width,
            natural_height=bitmap.image.height,
            display_width=display.width,
            display_height=display.height,
            render_scale=bitmap.render_scale,
            from_pdf=self._is_pdf,
        )

    def close(self) -> None:
        """Release the native handle. Safe to call more than once."""
        with self._lock:
            handle, self._handle = self._handle, None
        if handle is not None:
            handle.close()
            Log.debug("Released document handle")

    def _require_handle(self) -> RasterDocument:
        if self._handle is None:
            raise RasterizeError("Document is not open. Call open() first.")
        return self._handle
