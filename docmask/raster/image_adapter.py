import io

from PIL import Image

from docmask.raster.base import BasePageRasterizer, RasterDocument
from docmask.raster.exceptions import RasterizeError
from docmask.raster.models import PageBitmap


class PillowImageDocument(RasterDocument):
    """A raster image seen as a one-page document at its own resolution."""

    def __init__(self, image: Image.Image) -> None:
        self._image = image

    @property
    def page_count(self) -> int:
        return 1

    def render_page(self, page_number: int, scale: float) -> PageBitmap:
        # Raster images are always shown at natural resolution; scale is ignored.
        _ = scale
        self._check_page(page_number)
        return PageBitmap(image=self._image.copy(), render_scale=1.0)

    def close(self) -> None:
        self._image.close()

    @staticmethod
    def _check_page(page_number: int) -> None:
        if page_number != 1:
            raise RasterizeError(f"Image documents have a single page, got {page_number}")


class PillowImageRasterizer(BasePageRasterizer):
    """Decodes PNG/JPEG input with Pillow."""

    def open(self, data: bytes) -> RasterDocument:
        try:
            with Image.open(io.BytesIO(data)) as source:
                image = source.convert("RGB")
        except Exception as exc:
            raise RasterizeError(f"Pillow could not decode image: {exc}") from exc
        return PillowImageDocument(image)
