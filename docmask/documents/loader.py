import asyncio
from pathlib import Path

from docmask.api.client import BackendClient
from docmask.api.exceptions import BackendError
from docmask.documents.models import DocumentRef
from docmask.logging.logger import Log
from docmask.raster.exceptions import RasterizeError


def normalize_file_path(file_path: str) -> str:
    """Backend file paths are root-relative unless they are absolute URLs."""
    if file_path.startswith(("http://", "https://", "/")):
        return file_path
    return f"/{file_path}"


class DocumentLoader:
    """Fetches a document's bytes once: inline data, local file, or backend."""

    def __init__(
        self,
        client: BackendClient | None = None,
        files_root: Path | None = None,
    ) -> None:
        self._client = client
        self._files_root = files_root

    async def load(self, document: DocumentRef) -> bytes:
        """Return the raw bytes of *document*.

        Raises:
            RasterizeError: if there is no usable source or the fetch fails.
        """
        if document.data:
            return document.data
        if not document.file_path:
            raise RasterizeError(f"Document {document.id} has no file path or inline data")

        if self._files_root is not None:
            return await self._read_local(document, self._files_root)
        if self._client is None:
            raise RasterizeError(f"No backend configured to fetch document {document.id}")

        path = normalize_file_path(document.file_path)
        try:
            data = await self._client.get_bytes(path)
        except BackendError as exc:
            raise RasterizeError(f"Could not fetch document {document.id}: {exc}") from exc
        if not data:
            raise RasterizeError(f"Document {document.id} is empty")
        Log.info(f"Fetched {len(data)} bytes for document {document.id}")
        return data

    async def _read_local(self, document: DocumentRef, files_root: Path) -> bytes:
        path = files_root / document.file_path.lstrip("/")
        try:
            data = await asyncio.to_thread(path.read_bytes)
        except OSError as exc:
            raise RasterizeError(f"Could not read {path}: {exc}") from exc
        if not data:
            raise RasterizeError(f"Document file {path} is empty")
        Log.info(f"Loaded {len(data)} bytes for document {document.id} from {path}")
        return data
