"""Parser strategies for the shapes OCR engines return.

Each strategy takes the raw result mapping and returns a list of words, or an
empty list when the shape it understands is absent. ``STRATEGIES`` lists them
in the order they are tried; the first non-empty list wins.
"""

import csv
import math
import re
from collections.abc import Callable, Iterable, Mapping
from html.parser import HTMLParser

from docmask.ocr.models import BBox, OCRWord

OcrResult = Mapping[str, object]
ParserStrategy = Callable[[OcrResult], list[OCRWord]]

_BBOX_PATTERN = re.compile(r"bbox\s+(-?\d+(?:\.\d+)?)\s+(-?\d+(?:\.\d+)?)\s+(-?\d+(?:\.\d+)?)\s+(-?\d+(?:\.\d+)?)")
_WCONF_PATTERN = re.compile(r"x_wconf\s+(-?\d+(?:\.\d+)?)")
_VOID_TAGS = frozenset(
    {"area", "base", "br", "col", "embed", "hr", "img", "input", "link", "meta", "source", "track", "wbr"}
)

# tesseract TSV columns: level page block par line word left top width height conf text
_TSV_WORD_LEVEL = "5"
_TSV_COLUMNS = 12


def parse_word_array(result: OcrResult) -> list[OCRWord]:
    return _words_from_items(_items(result.get("words")))


def parse_symbol_array(result: OcrResult) -> list[OCRWord]:
    """Character-level symbols, each treated as a one-character word."""
    return _words_from_items(_items(result.get("symbols")))


def parse_line_tree(result: OcrResult) -> list[OCRWord]:
    words: list[OCRWord] = []
    for line in _items(result.get("lines")):
        words.extend(_words_from_items(_items(line.get("words"))))
    return words


def parse_block_tree(result: OcrResult) -> list[OCRWord]:
    words: list[OCRWord] = []
    for block in _items(result.get("blocks")):
        for paragraph in _items(block.get("paragraphs")):
            for line in _items(paragraph.get("lines")):
                words.extend(_words_from_items(_items(line.get("words"))))
    return words


def parse_hocr(result: OcrResult) -> list[OCRWord]:
    markup = result.get("hocr")
    if not isinstance(markup, str) or not markup.strip():
        return []
    parser = _HocrWordParser()
    parser.feed(markup)
    parser.close()
    return parser.words


def parse_tsv(result: OcrResult) -> list[OCRWord]:
    text = result.get("tsv")
    if not isinstance(text, str) or not text.strip():
        return []
    words: list[OCRWord] = []
    reader = csv.reader(text.splitlines(), delimiter="\t", quoting=csv.QUOTE_NONE)
    for row in reader:
        if len(row) < _TSV_COLUMNS or row[0].strip() != _TSV_WORD_LEVEL:
            continue
        left, top, width, height = (_float(value) for value in row[6:10])
        if None in (left, top, width, height):
            continue
        word = _make_word(
            row[11],
            BBox(left, top, left + width, top + height),  # type: ignore[operator]
            _float(row[10]),
        )
        if word is not None:
            words.append(word)
    return words


STRATEGIES: tuple[tuple[str, ParserStrategy], ...] = (
    ("words", parse_word_array),
    ("symbols", parse_symbol_array),
    ("lines", parse_line_tree),
    ("blocks", parse_block_tree),
    ("hocr", parse_hocr),
    ("tsv", parse_tsv),
)


class _HocrWordParser(HTMLParser):
    """Collects ``ocrx_word`` spans and the text nested inside them."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.words: list[OCRWord] = []
        self._depth = 0
        self._bbox: BBox | None = None
        self._confidence: float | None = None
        self._text: list[str] = []

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if self._depth:
            # HTML void elements (<br>) never get an end tag.
            if tag not in _VOID_TAGS:
                self._depth += 1
            return
        attributes = {name: value or "" for name, value in attrs}
        if "ocrx_word" not in attributes.get("class", "").split():
            return
        title = attributes.get("title", "")
        match = _BBOX_PATTERN.search(title)
        if match is None:
            return
        x0, y0, x1, y1 = (float(value) for value in match.groups())
        conf = _WCONF_PATTERN.search(title)
        self._depth = 1
        self._bbox = BBox(x0, y0, x1, y1)
        self._confidence = float(conf.group(1)) if conf else None
        self._text = []

    def handle_startendtag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        # Void elements (<br/>) inside a word do not change nesting depth.
        pass

    def handle_endtag(self, tag: str) -> None:
        if not self._depth:
            return
        self._depth -= 1
        if self._depth == 0 and self._bbox is not None:
            word = _make_word("".join(self._text), self._bbox, self._confidence)
            if word is not None:
                self.words.append(word)
            self._bbox = None

    def handle_data(self, data: str) -> None:
        if self._depth:
            self._text.append(data)


def _items(value: object) -> Iterable[Mapping[str, object]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, Mapping)]


def _words_from_items(items: Iterable[Mapping[str, object]]) -> list[OCRWord]:
    words: list[OCRWord] = []
    for item in items:
        bbox = _bbox(item)
        if bbox is None:
            continue
        word = _make_word(item.get("text"), bbox, _float(item.get("confidence", item.get("conf"))))
        if word is not None:
            words.append(word)
    return words


def _bbox(item: Mapping[str, object]) -> BBox | None:
    """Accepts ``{x0,y0,x1,y1}``, ``[x0,y0,x1,y1]`` or ``left/top/width/height``."""
    raw = item.get("bbox")
    if isinstance(raw, Mapping):
        values = [_float(raw.get(key)) for key in ("x0", "y0", "x1", "y1")]
    elif isinstance(raw, list | tuple) and len(raw) == 4:
        values = [_float(value) for value in raw]
    else:
        left, top = _float(item.get("left")), _float(item.get("top"))
        width, height = _float(item.get("width")), _float(item.get("height"))
        if None in (left, top, width, height):
            return None
        values = [left, top, left + width, top + height]  # type: ignore[operator]
    if any(value is None for value in values):
        return None
    x0, y0, x1, y1 = values
    return BBox(min(x0, x1), min(y0, y1), max(x0, x1), max(y0, y1))  # type: ignore[type-var]


def _make_word(text: object, bbox: BBox, confidence: float | None) -> OCRWord | None:
    if not isinstance(text, str):
        return None
    cleaned = text.strip()
    if not cleaned:
        return None
    return OCRWord(text=cleaned, bbox=bbox, confidence=confidence)


def _float(value: object) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None
