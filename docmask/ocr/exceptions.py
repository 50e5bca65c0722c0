class OcrError(Exception):
    """Base exception for OCR failures."""


class OcrEngineError(OcrError):
    """Raised when the OCR engine cannot be invoked or fails while recognising."""


class NoWordDataError(OcrError):
    """Raised when region extraction is asked of a result with no word boxes.

    This is a capability limitation of the OCR result, not an empty region:
    callers should report it differently from an empty string.
    """
