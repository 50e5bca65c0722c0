from abc import ABC, abstractmethod

from PIL import Image


class BaseOcrEngine(ABC):
    """Contract for OCR engine adapters."""

    @abstractmethod
    def recognize(self, image: Image.Image) -> dict[str, object]:
        """Return the engine's raw result: full ``text`` plus any word-level data.

        Raises:
            OcrEngineError: if the engine cannot be invoked or fails.
        """
