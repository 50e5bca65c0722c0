import pymupdf
from PIL import Image

from docmask.raster.base import BasePageRasterizer, RasterDocument
from docmask.raster.exceptions import RasterizeError
from docmask.raster.models import PageBitmap


class PyMuPdfDocument(RasterDocument):
    """PDF handle backed by a PyMuPDF document."""

    def __init__(self, doc: pymupdf.Document) -> None:
        self._doc = doc

    @property
    def page_count(self) -> int:
        return int(self._doc.page_count)

    def render_page(self, page_number: int, scale: float) -> PageBitmap:
        try:
            page = self._doc.load_page(page_number - 1)
            pix = page.get_pixmap(matrix=pymupdf.Matrix(scale, scale), alpha=False)
            image = Image.frombytes("RGB", (pix.width, pix.height), pix.samples)
            return PageBitmap(image=image, render_scale=scale)
        except Exception as exc:
            raise RasterizeError(f"pymupdf could not render page {page_number}: {exc}") from exc

    def close(self) -> None:
        self._doc.close()


class PyMuPdfRasterizer(BasePageRasterizer):
    """Renders PDF pages using PyMuPDF."""

    def open(self, data: bytes) -> RasterDocument:
        try:
            doc = pymupdf.open(stream=data, filetype="pdf")  # type: ignore[no-untyped-call]
        except Exception as exc:
            raise RasterizeError(f"pymupdf could not open document: {exc}") from exc
        if doc.page_count == 0:
            doc.close()
            raise RasterizeError("PDF has no pages")
        return PyMuPdfDocument(doc)
