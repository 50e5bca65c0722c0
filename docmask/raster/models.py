from dataclasses import dataclass, replace

from PIL import Image

from docmask.geometry.models import Size


@dataclass(frozen=True)
class PageBitmap:
    """Raw output of an adapter: the rendered image and the scale it was rendered at."""

    image: Image.Image
    render_scale: float


@dataclass(frozen=True, eq=False)
class RenderedPage:
    """One materialized page of a viewer session. Never persisted."""

    page_number: int
    bitmap: Image.Image
    natural_width: int
    natural_height: int
    display_width: float
    display_height: float
    render_scale: float = 1.0
    from_pdf: bool = False

    @property
    def natural_size(self) -> Size:
        return Size(self.natural_width, self.natural_height)

    @property
    def display_size(self) -> Size:
        return Size(self.display_width, self.display_height)

    def with_display(self, display: Size) -> "RenderedPage":
        return replace(self, display_width=display.width, display_height=display.height)
