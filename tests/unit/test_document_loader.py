import asyncio
from pathlib import Path

import httpx
import pytest

from docmask.api.client import BackendClient
from docmask.documents.loader import DocumentLoader, normalize_file_path
from docmask.documents.models import DocumentRef
from docmask.raster.exceptions import RasterizeError


def _client(handler) -> BackendClient:  # type: ignore[no-untyped-def]
    return BackendClient(
        base_url="http://backend.test",
        timeout_seconds=5,
        transport=httpx.MockTransport(handler),
    )


class TestNormalizeFilePath:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("uploads/a.pdf", "/uploads/a.pdf"),
            ("/uploads/a.pdf", "/uploads/a.pdf"),
            ("https://cdn.test/a.pdf", "https://cdn.test/a.pdf"),
        ],
    )
    def test_paths(self, raw: str, expected: str) -> None:
        assert normalize_file_path(raw) == expected


class TestDocumentRef:
    def test_mime_from_declared_type(self) -> None:
        assert DocumentRef("1", "scan.bin", mime_type="Image/PNG").resolved_mime_type == "image/png"

    def test_mime_from_suffix(self) -> None:
        assert DocumentRef("1", "report.PDF").is_pdf
        assert DocumentRef("1", "photo.jpeg").resolved_mime_type == "image/jpeg"

    def test_unknown_suffix(self) -> None:
        assert DocumentRef("1", "notes.txt").resolved_mime_type == ""


class TestDocumentLoader:
    def test_inline_data_wins(self) -> None:
        loader = DocumentLoader()
        assert asyncio.run(loader.load(DocumentRef("1", "a.pdf", data=b"%PDF"))) == b"%PDF"

    def test_fetches_from_backend(self) -> None:
        paths: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            paths.append(request.url.path)
            return httpx.Response(200, content=b"%PDF-1.4")

        loader = DocumentLoader(_client(handler))
        data = asyncio.run(loader.load(DocumentRef("1", "a.pdf", file_path="uploads/a.pdf")))
        assert data == b"%PDF-1.4"
        assert paths == ["/uploads/a.pdf"]

    def test_backend_failure_raises_rasterize_error(self) -> None:
        loader = DocumentLoader(_client(lambda request: httpx.Response(404)))
        with pytest.raises(RasterizeError, match="Could not fetch"):
            asyncio.run(loader.load(DocumentRef("1", "a.pdf", file_path="a.pdf")))

    def test_empty_backend_body_raises(self) -> None:
        loader = DocumentLoader(_client(lambda request: httpx.Response(200, content=b"")))
        with pytest.raises(RasterizeError, match="empty"):
            asyncio.run(loader.load(DocumentRef("1", "a.pdf", file_path="a.pdf")))

    def test_reads_local_file(self, tmp_path: Path) -> None:
        (tmp_path / "docs").mkdir()
        (tmp_path / "docs" / "a.pdf").write_bytes(b"%PDF-local")
        loader = DocumentLoader(files_root=tmp_path)
        data = asyncio.run(loader.load(DocumentRef("1", "a.pdf", file_path="/docs/a.pdf")))
        assert data == b"%PDF-local"

    def test_missing_local_file_raises(self, tmp_path: Path) -> None:
        loader = DocumentLoader(files_root=tmp_path)
        with pytest.raises(RasterizeError):
            asyncio.run(loader.load(DocumentRef("1", "a.pdf", file_path="missing.pdf")))

    def test_no_source_raises(self) -> None:
        with pytest.raises(RasterizeError, match="no file path"):
            asyncio.run(DocumentLoader().load(DocumentRef("1", "a.pdf")))

    def test_no_client_raises(self) -> None:
        with pytest.raises(RasterizeError, match="No backend"):
            asyncio.run(DocumentLoader().load(DocumentRef("1", "a.pdf", file_path="a.pdf")))
