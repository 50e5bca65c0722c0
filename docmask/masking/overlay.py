from collections.abc import Iterable
from dataclasses import dataclass

from PIL import Image, ImageDraw

from docmask.geometry.models import Rect, Size
from docmask.geometry.transform import to_display
from docmask.logging.logger import Log
from docmask.masking.exceptions import CorruptRestrictionError
from docmask.masking.projection import RestrictionProjector
from docmask.raster.models import RenderedPage
from docmask.restrictions.models import Restriction


@dataclass(frozen=True)
class MaskOverlay:
    """A display-space rectangle to paint opaquely over the page."""

    restriction: Restriction
    rect: Rect

    @property
    def label(self) -> str:
        return self.restriction.field or "Restricted Area"


class MaskOverlayRenderer:
    """Turns a page's restrictions into display-space overlay rectangles."""

    def __init__(
        self,
        projector: RestrictionProjector,
        fill: tuple[int, int, int] = (0, 0, 0),
    ) -> None:
        self._projector = projector
        self._fill = fill

    def render(
        self,
        page: RenderedPage,
        restrictions: Iterable[Restriction],
        template: Size | None = None,
    ) -> list[MaskOverlay]:
        overlays: list[MaskOverlay] = []
        for restriction in restrictions:
            if restriction.page_number != page.page_number:
                continue
            try:
                natural = self._projector.natural_rect(restriction, page, template)
            except CorruptRestrictionError as exc:
                Log.warning(f"Skipping overlay: {exc}")
                continue
            display = to_display(natural, page.natural_size, page.display_size)
            if not display.has_area:
                Log.warning(
                    f"Skipping overlay: restriction {restriction.id} "
                    f"collapses to {display} in display space"
                )
                continue
            overlays.append(MaskOverlay(restriction=restriction, rect=display))
        Log.debug(f"Page {page.page_number}: {len(overlays)} overlay(s)")
        return overlays

    def compose_preview(self, page: RenderedPage, overlays: Iterable[MaskOverlay]) -> Image.Image:
        """Display-size copy of the page with every overlay painted in."""
        size = (max(1, round(page.display_width)), max(1, round(page.display_height)))
        preview = page.bitmap.convert("RGB").resize(size)
        draw = ImageDraw.Draw(preview)
        for overlay in overlays:
            x0, y0, x1, y1 = overlay.rect.as_box()
            draw.rectangle((x0, y0, x1, y1), fill=self._fill)
        return preview
