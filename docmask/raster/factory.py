from docmask.config.settings import Settings
from docmask.documents.models import IMAGE_MIME_TYPES, PDF_MIME_TYPE
from docmask.raster.base import BasePageRasterizer
from docmask.raster.exceptions import RasterizeError
from docmask.raster.image_adapter import PillowImageRasterizer
from docmask.raster.pdfplumber_adapter import PdfPlumberRasterizer
from docmask.raster.pymupdf_adapter import PyMuPdfRasterizer


class RasterizerFactory:
    """Creates the correct rasterizer for a document's MIME type and settings."""

    PDF_ADAPTERS: dict[str, type[BasePageRasterizer]] = {
        "pymupdf": PyMuPdfRasterizer,
        "pdfplumber": PdfPlumberRasterizer,
    }

    @classmethod
    def create(cls, settings: Settings, mime_type: str) -> BasePageRasterizer:
        mime = mime_type.lower()
        if mime in IMAGE_MIME_TYPES:
            return PillowImageRasterizer()
        if mime != PDF_MIME_TYPE:
            raise RasterizeError(
                f"Unsupported file type: '{mime_type}'. "
                f"Supported types: {sorted(IMAGE_MIME_TYPES | {PDF_MIME_TYPE})}"
            )
        engine = settings.pdf_engine.lower()
        adapter_cls = cls.PDF_ADAPTERS.get(engine)
        if adapter_cls is None:
            raise ValueError(
                f"Unknown PDF engine '{engine}'. Choose from: {list(cls.PDF_ADAPTERS)}"
            )
        return adapter_cls()
