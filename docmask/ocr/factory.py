from collections.abc import Callable
from typing import ClassVar

from docmask.config.settings import Settings
from docmask.ocr.engine_base import BaseOcrEngine
from docmask.ocr.static_adapter import StaticOcrEngine
from docmask.ocr.tesseract_adapter import TesseractOcrEngine


def _tesseract(settings: Settings) -> BaseOcrEngine:
    return TesseractOcrEngine(
        language=settings.ocr_language,
        tesseract_cmd=settings.tesseract_cmd,
    )


def _static(settings: Settings) -> BaseOcrEngine:
    _ = settings
    return StaticOcrEngine()


class OcrEngineFactory:
    """Creates the configured OCR engine adapter."""

    ENGINES: ClassVar[dict[str, Callable[[Settings], BaseOcrEngine]]] = {
        "tesseract": _tesseract,
        "static": _static,
    }

    @classmethod
    def create(cls, settings: Settings) -> BaseOcrEngine:
        name = settings.ocr_engine.lower()
        builder = cls.ENGINES.get(name)
        if builder is None:
            raise ValueError(
                f"Unknown OCR engine '{name}'. Choose from: {list(cls.ENGINES)}"
            )
        return builder(settings)
