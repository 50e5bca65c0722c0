from collections.abc import Mapping

from docmask.logging.logger import Log
from docmask.ocr.models import OCRWordIndex
from docmask.ocr.parsers import STRATEGIES


def build_word_index(result: Mapping[str, object]) -> OCRWordIndex:
    """Normalise an OCR engine result into an ``OCRWordIndex``.

    Strategies are tried in order and the first one that yields words wins.
    A result no strategy understands produces a valid empty index.
    """
    data = result.get("data")
    if isinstance(data, Mapping):
        result = data

    for name, strategy in STRATEGIES:
        words = strategy(result)
        if words:
            Log.debug(f"OCR word index built from '{name}' ({len(words)} words)")
            return OCRWordIndex(words=tuple(words), source=name)

    Log.info("OCR result carries no word-level data")
    return OCRWordIndex()
