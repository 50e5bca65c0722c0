from enum import Enum
from pathlib import PurePosixPath

PNG_MIME_TYPE = "image/png"
PDF_MIME_TYPE = "application/pdf"


class ExportFormat(str, Enum):
    PNG = "png"
    PDF = "pdf"


def masked_filename(source_name: str, extension: str, page_number: int | None = None) -> str:
    """``report.pdf`` -> ``report_masked.pdf`` / ``report_masked_page2.png``."""
    stem = PurePosixPath(source_name.replace("\\", "/")).stem or "document"
    suffix = f"_page{page_number}" if page_number is not None else ""
    return f"{stem}_masked{suffix}.{extension.lstrip('.')}"
