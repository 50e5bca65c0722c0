"""Static OCR engine adapter.

Use this module as a reference when implementing new engine adapters.
Implement BaseOcrEngine and register the engine in OcrEngineFactory.
"""

import copy
from typing import ClassVar

from PIL import Image

from docmask.ocr.engine_base import BaseOcrEngine


class StaticOcrEngine(BaseOcrEngine):
    """Engine that returns a fixed result regardless of the image.

    No external binary. Useful for local development and tests.
    """

    DEFAULT_RESPONSE: ClassVar[dict[str, object]] = {
        "text": "",
        "words": [],
    }

    def __init__(self, response: dict[str, object] | None = None) -> None:
        self._response = response if response is not None else self.DEFAULT_RESPONSE

    def recognize(self, image: Image.Image) -> dict[str, object]:
        _ = image
        return copy.deepcopy(self._response)
