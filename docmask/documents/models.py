from dataclasses import dataclass
from pathlib import PurePosixPath

PDF_MIME_TYPE = "application/pdf"
IMAGE_MIME_TYPES = frozenset({"image/png", "image/jpeg"})

_MIME_BY_SUFFIX = {
    ".pdf": PDF_MIME_TYPE,
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
}


@dataclass(frozen=True)
class Viewer:
    """Identity of whoever is looking at a document."""

    user_id: str
    role_id: str | None = None


@dataclass(frozen=True)
class DocumentRef:
    """Everything the engine needs to locate and render one document."""

    id: str
    filename: str
    mime_type: str = ""
    file_path: str = ""
    data: bytes | None = None
    template_id: str | None = None

    @property
    def resolved_mime_type(self) -> str:
        """Declared MIME type, falling back to the filename/path suffix."""
        if self.mime_type:
            return self.mime_type.lower()
        for name in (self.filename, self.file_path):
            suffix = PurePosixPath(name).suffix.lower()
            if suffix in _MIME_BY_SUFFIX:
                return _MIME_BY_SUFFIX[suffix]
        return ""

    @property
    def is_pdf(self) -> bool:
        return self.resolved_mime_type == PDF_MIME_TYPE
