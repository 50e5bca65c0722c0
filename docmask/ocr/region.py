from collections.abc import Iterable

from docmask.geometry.models import Rect, Size
from docmask.geometry.transform import to_natural
from docmask.ocr.exceptions import NoWordDataError
from docmask.ocr.models import OCRWord, OCRWordIndex


def order_words(words: Iterable[OCRWord], line_tolerance: float = 10.0) -> list[OCRWord]:
    """Reading order: vertical bands top to bottom, then left to right.

    A band is anchored on its first (highest) word; a word whose vertical
    centre lies more than *line_tolerance* below the anchor starts a new band.
    """
    by_center = sorted(words, key=lambda w: (w.bbox.center[1], w.bbox.x0))
    bands: list[list[OCRWord]] = []
    anchor = 0.0
    for word in by_center:
        cy = word.bbox.center[1]
        if not bands or cy - anchor > line_tolerance:
            bands.append([])
            anchor = cy
        bands[-1].append(word)
    return [word for band in bands for word in sorted(band, key=lambda w: (w.bbox.x0, w.bbox.y0))]


def word_in_region(word: OCRWord, region: Rect) -> bool:
    """Overlap, centre inside, or any corner inside, all inclusive of the edges."""
    box = word.bbox
    overlaps = (
        box.x0 <= region.right
        and box.x1 >= region.x
        and box.y0 <= region.bottom
        and box.y1 >= region.y
    )
    if overlaps:
        return True
    if region.contains_point(*box.center):
        return True
    return any(region.contains_point(x, y) for x, y in box.corners)


class RegionTextExtractor:
    """Reads the OCR text under a rectangle the user drew on the display."""

    def __init__(self, line_tolerance: float = 10.0) -> None:
        self._line_tolerance = line_tolerance

    def extract(
        self,
        display_rect: Rect,
        natural_size: Size,
        display_size: Size,
        index: OCRWordIndex,
    ) -> str:
        """Return the space-joined words under *display_rect*, possibly ``""``.

        Raises:
            NoWordDataError: if *index* holds no words at all.
        """
        if index.is_empty:
            raise NoWordDataError("OCR result has no word-level data for region extraction")
        region = to_natural(display_rect, natural_size, display_size)
        ordered = order_words(index.words, self._line_tolerance)
        return " ".join(word.text for word in ordered if word_in_region(word, region)).strip()
