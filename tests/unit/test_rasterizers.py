import io

import pytest
from PIL import Image

from docmask.config.settings import Settings
from docmask.raster.exceptions import RasterizeError
from docmask.raster.factory import RasterizerFactory
from docmask.raster.image_adapter import PillowImageRasterizer
from docmask.raster.pdfplumber_adapter import PdfPlumberRasterizer
from docmask.raster.pymupdf_adapter import PyMuPdfRasterizer


class TestPyMuPdfRasterizer:
    def test_renders_at_scale(self, sample_pdf_bytes: bytes) -> None:
        with PyMuPdfRasterizer().open(sample_pdf_bytes) as doc:
            assert doc.page_count == 1
            bitmap = doc.render_page(1, 1.5)
        assert bitmap.image.size == (918, 1188)
        assert bitmap.render_scale == 1.5

    def test_multi_page(self, multi_page_pdf_bytes: bytes) -> None:
        with PyMuPdfRasterizer().open(multi_page_pdf_bytes) as doc:
            assert doc.page_count == 2
            assert doc.render_page(2, 1.0).image.size == (612, 792)

    def test_invalid_bytes_raise(self) -> None:
        with pytest.raises(RasterizeError):
            PyMuPdfRasterizer().open(b"not a pdf")


class TestPdfPlumberRasterizer:
    def test_renders_at_scale(self, sample_pdf_bytes: bytes) -> None:
        with PdfPlumberRasterizer().open(sample_pdf_bytes) as doc:
            bitmap = doc.render_page(1, 1.5)
        assert bitmap.image.mode == "RGB"
        assert bitmap.image.width == pytest.approx(918, abs=1)
        assert bitmap.image.height == pytest.approx(1188, abs=1)

    def test_invalid_bytes_raise(self) -> None:
        with pytest.raises(RasterizeError):
            PdfPlumberRasterizer().open(b"not a pdf")


class TestPillowImageRasterizer:
    def test_single_page_at_natural_resolution(self, sample_png_bytes: bytes) -> None:
        with PillowImageRasterizer().open(sample_png_bytes) as doc:
            assert doc.page_count == 1
            bitmap = doc.render_page(1, 1.5)
        assert bitmap.image.size == (400, 200)
        assert bitmap.render_scale == 1.0

    def test_converts_to_rgb(self) -> None:
        buf = io.BytesIO()
        Image.new("L", (10, 10), 128).save(buf, format="PNG")
        with PillowImageRasterizer().open(buf.getvalue()) as doc:
            assert doc.render_page(1, 1.0).image.mode == "RGB"

    def test_other_pages_raise(self, sample_png_bytes: bytes) -> None:
        with PillowImageRasterizer().open(sample_png_bytes) as doc:
            with pytest.raises(RasterizeError):
                doc.render_page(2, 1.0)

    def test_invalid_bytes_raise(self) -> None:
        with pytest.raises(RasterizeError):
            PillowImageRasterizer().open(b"not an image")


class TestRasterizerFactory:
    def test_default_pdf_engine_is_pymupdf(self) -> None:
        assert isinstance(RasterizerFactory.create(Settings(), "application/pdf"), PyMuPdfRasterizer)

    def test_pdfplumber_engine(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PDF_ENGINE", "pdfplumber")
        assert isinstance(RasterizerFactory.create(Settings(), "application/pdf"), PdfPlumberRasterizer)

    @pytest.mark.parametrize("mime", ["image/png", "image/jpeg", "IMAGE/PNG"])
    def test_images_use_pillow(self, mime: str) -> None:
        assert isinstance(RasterizerFactory.create(Settings(), mime), PillowImageRasterizer)

    def test_unknown_engine_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PDF_ENGINE", "ghostscript")
        with pytest.raises(ValueError, match="Unknown PDF engine"):
            RasterizerFactory.create(Settings(), "application/pdf")

    def test_unsupported_mime_raises(self) -> None:
        with pytest.raises(RasterizeError, match="Unsupported file type"):
            RasterizerFactory.create(Settings(), "text/plain")
