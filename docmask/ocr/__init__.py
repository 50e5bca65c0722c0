from docmask.ocr.engine_base import BaseOcrEngine
from docmask.ocr.factory import OcrEngineFactory
from docmask.ocr.region import RegionTextExtractor
from docmask.ocr.word_index import build_word_index
from docmask.ocr.worker import OcrWorker, get_ocr_worker, shutdown_ocr_worker

__all__ = [
    "BaseOcrEngine",
    "OcrEngineFactory",
    "OcrWorker",
    "RegionTextExtractor",
    "build_word_index",
    "get_ocr_worker",
    "shutdown_ocr_worker",
]
