from abc import ABC, abstractmethod
from types import TracebackType

from docmask.raster.models import PageBitmap


class RasterDocument(ABC):
    """An opened document handle. Owns native resources until ``close()``."""

    @property
    @abstractmethod
    def page_count(self) -> int:
        """Number of pages (1 for raster images)."""

    @abstractmethod
    def render_page(self, page_number: int, scale: float) -> PageBitmap:
        """Render a 1-based page.

        Raises:
            RasterizeError: if the page cannot be rendered.
        """

    @abstractmethod
    def close(self) -> None:
        """Release the underlying document."""

    def __enter__(self) -> "RasterDocument":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


class BasePageRasterizer(ABC):
    """Contract for all rasterization adapters."""

    @abstractmethod
    def open(self, data: bytes) -> RasterDocument:
        """Decode document bytes into a reusable handle.

        Args:
            data: Raw file content.

        Returns:
            An open RasterDocument; the caller must close it.

        Raises:
            RasterizeError: if decoding fails for any reason.
        """
