from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path

from docmask.documents.models import DocumentRef, Viewer
from docmask.geometry.models import Size
from docmask.masking.baker import BakedArtifact
from docmask.masking.naming import ExportFormat
from docmask.restrictions.models import Restriction


@dataclass(slots=True)
class ExportContext:
    document: DocumentRef
    fmt: ExportFormat
    viewer: Viewer | None = None
    raw_bytes: bytes = b""
    restrictions: list[Restriction] = field(default_factory=list)
    template: Size | None = None
    artifacts: list[BakedArtifact] = field(default_factory=list)
    written_paths: list[Path] = field(default_factory=list)


class PipelineStep(ABC):
    @abstractmethod
    async def run(self, context: ExportContext) -> ExportContext:
        raise NotImplementedError
