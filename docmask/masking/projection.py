from docmask.geometry.models import Rect, Size
from docmask.geometry.transform import clip, pdf_space, template_to_target, unscale
from docmask.masking.exceptions import CorruptRestrictionError
from docmask.raster.models import RenderedPage
from docmask.restrictions.models import Restriction


class RestrictionProjector:
    """Re-projects stored restriction rects into the space a target needs.

    Stored rects live on two baselines: FieldMask rects in template space,
    AreaMask rects in page pixels captured at ``render_scale`` (PDFs) or in
    image pixels (raster images). A FieldMask without known template
    dimensions is treated like an AreaMask.
    """

    def __init__(self, render_scale: float = 1.5) -> None:
        if render_scale <= 0:
            raise ValueError(f"render_scale must be positive, got {render_scale}")
        self._render_scale = render_scale

    @property
    def render_scale(self) -> float:
        return self._render_scale

    def natural_rect(
        self,
        restriction: Restriction,
        page: RenderedPage,
        template: Size | None,
    ) -> Rect:
        """Rect in *page*'s natural pixel space, clipped to the page.

        Raises:
            CorruptRestrictionError: if the stored or projected rect has no area.
        """
        self._require_area(restriction)
        if restriction.is_field_mask and template is not None and not template.is_degenerate:
            projected = template_to_target(restriction.rect, template, page.natural_size)
        elif page.from_pdf:
            base = unscale(restriction.rect, self._render_scale)
            projected = base.scaled(page.render_scale, page.render_scale)
        else:
            projected = restriction.rect

        clipped = clip(projected, page.natural_size)
        if not clipped.has_area:
            raise CorruptRestrictionError(
                f"Restriction {restriction.id} falls outside page {page.page_number}"
            )
        return clipped

    def pdf_rect(
        self,
        restriction: Restriction,
        page_size: Size,
        template: Size | None,
    ) -> Rect:
        """Rect in PDF user space (bottom-left origin) for a page of *page_size* points.

        Raises:
            CorruptRestrictionError: if the stored rect has no area.
        """
        self._require_area(restriction)
        return pdf_space(
            restriction.rect,
            page_size,
            self._render_scale,
            restriction.is_field_mask,
            template,
        )

    @staticmethod
    def _require_area(restriction: Restriction) -> None:
        if not restriction.rect.has_area:
            raise CorruptRestrictionError(
                f"Restriction {restriction.id} has a degenerate rectangle {restriction.rect}"
            )
