"""Permanent redaction of PNG and PDF exports.

Both paths apply every usable restriction before anything is serialized,
and both refuse to produce output when no restriction could be applied: an
export named "masked" that is actually unmasked is never returned.
"""

import io
import math
from collections.abc import Iterable
from dataclasses import dataclass

import pymupdf
from PIL import Image, ImageColor, ImageDraw

from docmask.geometry.models import Rect, Size
from docmask.logging.logger import Log
from docmask.masking.exceptions import CorruptRestrictionError, NoMaskableRestrictionsError
from docmask.masking.naming import PDF_MIME_TYPE, PNG_MIME_TYPE, masked_filename
from docmask.masking.projection import RestrictionProjector
from docmask.raster.exceptions import RasterizeError
from docmask.raster.models import RenderedPage
from docmask.raster.page_rasterizer import PageRasterizer
from docmask.restrictions.models import Restriction
from docmask.session.cancellation import CancellationToken


@dataclass(frozen=True)
class BakedArtifact:
    """An exported file with masks burned in."""

    filename: str
    mime_type: str
    content: bytes
    applied_count: int


def parse_fill_color(value: str) -> tuple[int, int, int]:
    """Parse a CSS-style colour (``#000``, ``black``) into an RGB triple."""
    try:
        rgb = ImageColor.getrgb(value)
    except ValueError as exc:
        raise ValueError(f"Invalid mask fill colour {value!r}") from exc
    return (rgb[0], rgb[1], rgb[2])


class MaskBaker:
    """Burns restrictions into raster (PNG) and vector (PDF) artifacts."""

    def __init__(
        self,
        projector: RestrictionProjector,
        fill: tuple[int, int, int] = (0, 0, 0),
    ) -> None:
        self._projector = projector
        self._fill = fill
        self._pdf_fill = tuple(channel / 255 for channel in fill)

    # ------------------------------------------------------------------
    # Raster path
    # ------------------------------------------------------------------

    def bake_png(
        self,
        page: RenderedPage,
        restrictions: Iterable[Restriction],
        template: Size | None,
        source_name: str,
    ) -> BakedArtifact:
        """Flatten one rendered page at natural resolution.

        Raises:
            NoMaskableRestrictionsError: if no restriction resolved to a rect on this page.
        """
        image, applied = self._paint_page(page, list(restrictions), template)
        if applied == 0:
            raise NoMaskableRestrictionsError(
                f"No restriction could be applied to page {page.page_number}"
            )
        Log.info(f"Baked {applied} mask(s) into page {page.page_number} PNG")
        return BakedArtifact(
            filename=masked_filename(source_name, "png"),
            mime_type=PNG_MIME_TYPE,
            content=_png_bytes(image),
            applied_count=applied,
        )

    def bake_document_png(
        self,
        rasterizer: PageRasterizer,
        restrictions: Iterable[Restriction],
        template: Size | None,
        source_name: str,
        token: CancellationToken | None = None,
    ) -> list[BakedArtifact]:
        """Flatten every page of an open document, one PNG per page.

        Multi-page documents get a page suffix on every file name.

        Raises:
            NoMaskableRestrictionsError: if no restriction applied on any page.
            RasterizeError: if a page cannot be rendered.
        """
        pending = list(restrictions)
        page_count = rasterizer.page_count
        for restriction in pending:
            if not 1 <= restriction.page_number <= page_count:
                Log.warning(
                    f"Skipping restriction {restriction.id}: page {restriction.page_number} "
                    f"does not exist (document has {page_count})"
                )

        painted: list[tuple[int, Image.Image, int]] = []
        for page_number in range(1, page_count + 1):
            page = rasterizer.render(page_number, token=token)
            image, applied = self._paint_page(page, pending, template)
            painted.append((page_number, image, applied))

        total = sum(applied for _, _, applied in painted)
        if total == 0:
            raise NoMaskableRestrictionsError("No restriction could be applied to any page")
        Log.info(f"Baked {total} mask(s) into {page_count} PNG page(s)")

        paginated = page_count > 1
        return [
            BakedArtifact(
                filename=masked_filename(source_name, "png", page_number if paginated else None),
                mime_type=PNG_MIME_TYPE,
                content=_png_bytes(image),
                applied_count=applied,
            )
            for page_number, image, applied in painted
        ]

    def _paint_page(
        self,
        page: RenderedPage,
        restrictions: list[Restriction],
        template: Size | None,
    ) -> tuple[Image.Image, int]:
        canvas = page.bitmap.convert("RGB")
        draw = ImageDraw.Draw(canvas)
        applied = 0
        for restriction in restrictions:
            if restriction.page_number != page.page_number:
                continue
            try:
                rect = self._projector.natural_rect(restriction, page, template)
            except CorruptRestrictionError as exc:
                Log.warning(f"Skipping restriction during bake: {exc}")
                continue
            draw.rectangle(_pixel_box(rect), fill=self._fill)
            applied += 1
        return canvas, applied

    # ------------------------------------------------------------------
    # Vector path
    # ------------------------------------------------------------------

    def bake_pdf(
        self,
        pdf_bytes: bytes,
        restrictions: Iterable[Restriction],
        template: Size | None,
        source_name: str,
    ) -> BakedArtifact:
        """Remove content under every restriction and draw opaque boxes over it.

        Raises:
            RasterizeError: if the PDF cannot be opened.
            NoMaskableRestrictionsError: if no restriction resolved to a page rect.
        """
        try:
            doc = pymupdf.open(stream=pdf_bytes, filetype="pdf")  # type: ignore[no-untyped-call]
        except Exception as exc:
            raise RasterizeError(f"pymupdf could not open document for baking: {exc}") from exc

        with doc:
            plan = self._plan_pdf(doc, restrictions, template)
            applied = sum(len(rects) for rects in plan.values())
            if applied == 0:
                raise NoMaskableRestrictionsError("No restriction could be applied to the PDF")

            for index, rects in plan.items():
                page = doc[index]
                for rect in rects:
                    page.add_redact_annot(rect, fill=self._pdf_fill)
                page.apply_redactions()
                for rect in rects:
                    page.draw_rect(rect, color=None, fill=self._pdf_fill, width=0, overlay=True)

            content = doc.tobytes(garbage=4, deflate=True)

        Log.info(f"Baked {applied} mask(s) across {len(plan)} PDF page(s)")
        return BakedArtifact(
            filename=masked_filename(source_name, "pdf"),
            mime_type=PDF_MIME_TYPE,
            content=content,
            applied_count=applied,
        )

    def _plan_pdf(
        self,
        doc: pymupdf.Document,
        restrictions: Iterable[Restriction],
        template: Size | None,
    ) -> dict[int, list[pymupdf.Rect]]:
        """Resolve every restriction to a MuPDF-space rect, grouped by page index."""
        plan: dict[int, list[pymupdf.Rect]] = {}
        for restriction in restrictions:
            index = restriction.page_number - 1
            if not 0 <= index < doc.page_count:
                Log.warning(
                    f"Skipping restriction {restriction.id}: page {restriction.page_number} "
                    f"does not exist (document has {doc.page_count})"
                )
                continue
            page = doc[index]
            # Stored rects were drawn on the rendered (rotated) view of the page.
            view = page.rect
            try:
                pdf_rect = self._projector.pdf_rect(
                    restriction, Size(view.width, view.height), template
                )
            except CorruptRestrictionError as exc:
                Log.warning(f"Skipping restriction during bake: {exc}")
                continue
            target = (
                _view_box(pdf_rect, view.height) * page.derotation_matrix
            ) & (view * page.derotation_matrix)
            if target.is_empty:
                Log.warning(
                    f"Skipping restriction {restriction.id}: rectangle lies outside "
                    f"page {restriction.page_number}"
                )
                continue
            plan.setdefault(index, []).append(target)
        return plan


def _view_box(pdf_rect: Rect, view_height: float) -> pymupdf.Rect:
    """Flip a bottom-left PDF rect back to the top-left origin MuPDF draws in."""
    return pymupdf.Rect(
        pdf_rect.x,
        view_height - pdf_rect.bottom,
        pdf_rect.right,
        view_height - pdf_rect.y,
    )


def _pixel_box(rect: Rect) -> tuple[int, int, int, int]:
    """Inclusive pixel box that fully covers *rect*."""
    x0 = math.floor(rect.x)
    y0 = math.floor(rect.y)
    x1 = max(x0, math.ceil(rect.right) - 1)
    y1 = max(y0, math.ceil(rect.bottom) - 1)
    return (x0, y0, x1, y1)


def _png_bytes(image: Image.Image) -> bytes:
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return buf.getvalue()
