from collections.abc import Iterator
from dataclasses import dataclass


@dataclass(frozen=True)
class BBox:
    """Axis-aligned word box in natural pixels (top-left origin, inclusive corners)."""

    x0: float
    y0: float
    x1: float
    y1: float

    @property
    def center(self) -> tuple[float, float]:
        return ((self.x0 + self.x1) / 2, (self.y0 + self.y1) / 2)

    @property
    def corners(self) -> tuple[tuple[float, float], ...]:
        return (
            (self.x0, self.y0),
            (self.x1, self.y0),
            (self.x0, self.y1),
            (self.x1, self.y1),
        )


@dataclass(frozen=True)
class OCRWord:
    """A recognised word with its bounding box."""

    text: str
    bbox: BBox
    confidence: float | None = None


@dataclass(frozen=True)
class OCRWordIndex:
    """Normalised word list for one OCR result.

    ``source`` names the parser strategy that produced the words and is
    ``None`` when no strategy found any.
    """

    words: tuple[OCRWord, ...] = ()
    source: str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.words

    def __len__(self) -> int:
        return len(self.words)

    def __iter__(self) -> Iterator[OCRWord]:
        return iter(self.words)


@dataclass(frozen=True)
class OcrPageResult:
    """Recognition output for one rendered page."""

    page_number: int
    text: str
    index: OCRWordIndex
