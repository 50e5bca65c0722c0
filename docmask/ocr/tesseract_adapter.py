import pytesseract
from PIL import Image

from docmask.ocr.engine_base import BaseOcrEngine
from docmask.ocr.exceptions import OcrEngineError


class TesseractOcrEngine(BaseOcrEngine):
    """OCR engine backed by the tesseract binary via pytesseract.

    Returns the full page text plus tesseract's TSV output, which carries the
    word-level boxes.
    """

    def __init__(self, *, language: str, tesseract_cmd: str = "") -> None:
        self._language = language
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd

    def recognize(self, image: Image.Image) -> dict[str, object]:
        try:
            text = pytesseract.image_to_string(image, lang=self._language)
            tsv = pytesseract.image_to_data(
                image,
                lang=self._language,
                output_type=pytesseract.Output.STRING,
            )
        except pytesseract.TesseractNotFoundError as exc:
            raise OcrEngineError(f"tesseract binary not available: {exc}") from exc
        except Exception as exc:
            raise OcrEngineError(f"tesseract failed to recognise image: {exc}") from exc
        return {"text": text, "tsv": tsv}
