"""Stateless rectangle conversions between the engine's coordinate spaces.

Spaces:
- template: the reference layout a FieldMask was authored against;
- natural: full-resolution pixels of a rendered page or image;
- display: the possibly scaled-down viewport shown to the user;
- PDF: page points, bottom-left origin, y grows upward.

All conversions except ``pdf_space`` are pure per-axis scalings, so any
chain of them round-trips within floating-point tolerance.
"""

from docmask.geometry.models import Rect, Size


def _has_zero(*sizes: Size) -> bool:
    return any(s.width == 0 or s.height == 0 for s in sizes)


def to_display(rect: Rect, natural: Size, display: Size) -> Rect:
    """Scale a natural-space rect into display space.

    Returns *rect* unchanged when any dimension involved is zero.
    """
    if _has_zero(natural, display):
        return rect
    return rect.scaled(display.width / natural.width, display.height / natural.height)


def to_natural(rect: Rect, natural: Size, display: Size) -> Rect:
    """Inverse of ``to_display`` with the same zero-guard."""
    if _has_zero(natural, display):
        return rect
    return rect.scaled(natural.width / display.width, natural.height / display.height)


def template_to_target(rect: Rect, template: Size, target: Size) -> Rect:
    """Re-project a FieldMask rect from template space onto a target raster."""
    if _has_zero(template, target):
        return rect
    return rect.scaled(target.width / template.width, target.height / template.height)


def unscale(rect: Rect, scale: float) -> Rect:
    """Divide a rect captured at *scale* back to base units (scale 1.0)."""
    if scale <= 0:
        return rect
    return rect.scaled(1 / scale, 1 / scale)


def pdf_space(
    rect: Rect,
    page_size: Size,
    render_scale: float,
    is_field_mask: bool,
    template_size: Size | None = None,
) -> Rect:
    """Convert a stored restriction rect into PDF user space.

    FieldMask rects use the template-to-page scale when a usable template is
    known; everything else was captured at *render_scale* and is divided by
    it. The y axis is flipped so the result's ``y`` is the bottom edge:
    ``pdf_y = page_h - y * sy - h * sy``.
    """
    if is_field_mask and template_size is not None and not template_size.is_degenerate:
        sx = page_size.width / template_size.width
        sy = page_size.height / template_size.height
    else:
        sx = sy = 1 / render_scale if render_scale > 0 else 1.0
    return Rect(
        x=rect.x * sx,
        y=page_size.height - rect.y * sy - rect.height * sy,
        width=rect.width * sx,
        height=rect.height * sy,
    )


def fit_within(natural: Size, viewport: Size | None) -> Size:
    """Largest size with *natural*'s aspect ratio inside *viewport*, never upscaled."""
    if viewport is None or natural.is_degenerate or viewport.is_degenerate:
        return natural
    factor = min(1.0, viewport.width / natural.width, viewport.height / natural.height)
    return Size(natural.width * factor, natural.height * factor)


def clip(rect: Rect, bounds: Size) -> Rect:
    """Intersect *rect* with ``(0, 0, bounds.width, bounds.height)``.

    A rect entirely outside the bounds comes back with zero width or height.
    """
    x0 = max(rect.x, 0.0)
    y0 = max(rect.y, 0.0)
    x1 = min(rect.right, bounds.width)
    y1 = min(rect.bottom, bounds.height)
    return Rect(x0, y0, max(0.0, x1 - x0), max(0.0, y1 - y0))
