from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class ExportResult:
    """Outcome of one headless masked export."""

    document_id: str
    paths: list[Path] = field(default_factory=list)
    applied_count: int = 0
