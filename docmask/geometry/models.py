import math
from dataclasses import dataclass


@dataclass(frozen=True)
class Size:
    """Width/height pair of a coordinate space (pixels or PDF points)."""

    width: float
    height: float

    @property
    def is_degenerate(self) -> bool:
        return not (self.width > 0 and self.height > 0)


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle, top-left origin, y grows downward.

    The one exception is a rect returned by ``pdf_space``, whose ``y`` is the
    bottom edge measured upward from the page's bottom-left corner.
    """

    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def center(self) -> tuple[float, float]:
        return (self.x + self.width / 2, self.y + self.height / 2)

    @property
    def has_area(self) -> bool:
        values = (self.x, self.y, self.width, self.height)
        return all(math.isfinite(v) for v in values) and self.width > 0 and self.height > 0

    def scaled(self, sx: float, sy: float) -> "Rect":
        return Rect(self.x * sx, self.y * sy, self.width * sx, self.height * sy)

    def contains_point(self, px: float, py: float) -> bool:
        return self.x <= px <= self.right and self.y <= py <= self.bottom

    def rounded(self) -> "Rect":
        return Rect(round(self.x), round(self.y), round(self.width), round(self.height))

    def as_box(self) -> tuple[float, float, float, float]:
        """Return ``(x0, y0, x1, y1)``."""
        return (self.x, self.y, self.right, self.bottom)
