import io

import pdfplumber
from pdfplumber.pdf import PDF

from docmask.raster.base import BasePageRasterizer, RasterDocument
from docmask.raster.exceptions import RasterizeError
from docmask.raster.models import PageBitmap

_POINTS_PER_INCH = 72


class PdfPlumberDocument(RasterDocument):
    """PDF handle backed by pdfplumber (pypdfium2 does the drawing)."""

    def __init__(self, pdf: PDF) -> None:
        self._pdf = pdf

    @property
    def page_count(self) -> int:
        return len(self._pdf.pages)

    def render_page(self, page_number: int, scale: float) -> PageBitmap:
        try:
            page = self._pdf.pages[page_number - 1]
            page_image = page.to_image(resolution=_POINTS_PER_INCH * scale)
            image = page_image.original.convert("RGB")
            return PageBitmap(image=image, render_scale=scale)
        except Exception as exc:
            raise RasterizeError(
                f"pdfplumber could not render page {page_number}: {exc}"
            ) from exc

    def close(self) -> None:
        self._pdf.close()


class PdfPlumberRasterizer(BasePageRasterizer):
    """Renders PDF pages using pdfplumber."""

    def open(self, data: bytes) -> RasterDocument:
        try:
            pdf = pdfplumber.open(io.BytesIO(data))
            page_count = len(pdf.pages)
        except Exception as exc:
            raise RasterizeError(f"pdfplumber could not open document: {exc}") from exc
        if page_count == 0:
            pdf.close()
            raise RasterizeError("PDF has no pages")
        return PdfPlumberDocument(pdf)
