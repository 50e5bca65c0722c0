from pathlib import Path

from docmask.api.client import BackendClient
from docmask.config.settings import Settings
from docmask.documents.loader import DocumentLoader
from docmask.documents.models import DocumentRef, Viewer
from docmask.logging.logger import Log
from docmask.masking.baker import MaskBaker, parse_fill_color
from docmask.masking.naming import ExportFormat
from docmask.masking.projection import RestrictionProjector
from docmask.processor.models import ExportResult
from docmask.processor.pipeline import ExportContext, PipelineStep
from docmask.processor.steps import (
    BakeStep,
    FilterForViewerStep,
    LoadDocumentStep,
    LoadRestrictionsStep,
    ResolveTemplateStep,
    WriteArtifactsStep,
)
from docmask.restrictions.store import RestrictionStore
from docmask.restrictions.templates import TemplateDimensionsProvider


class MaskedExportProcessor:
    """Headless masked export of one document.

    Pipeline: load document -> load restrictions -> filter for viewer ->
    resolve template -> bake -> write artifacts.
    """

    def __init__(self, steps: list[PipelineStep]) -> None:
        self._steps = steps

    async def export(
        self,
        document: DocumentRef,
        fmt: ExportFormat,
        viewer: Viewer | None = None,
    ) -> ExportResult:
        """Run every step for *document* and return what was written.

        Raises:
            RasterizeError: if the document cannot be fetched or decoded.
            BackendError: if restrictions or template dimensions cannot be fetched.
            NoMaskableRestrictionsError: if no restriction could be applied.
            UnsupportedExportError: for a PDF export of a raster image.
            ArtifactWriteError: if the export directory is not writable.
        """
        Log.info(f"Exporting document {document.id} as {fmt.value}")
        context = ExportContext(document=document, fmt=fmt, viewer=viewer)
        for step in self._steps:
            try:
                context = await step.run(context)
            except Exception as exc:
                Log.error(f"Export of document {document.id} failed in {type(step).__name__}: {exc}")
                raise

        applied = sum(artifact.applied_count for artifact in context.artifacts)
        Log.info(
            f"Exported document {document.id}: {applied} mask(s) in "
            f"{len(context.written_paths)} file(s)"
        )
        return ExportResult(
            document_id=document.id,
            paths=list(context.written_paths),
            applied_count=applied,
        )


def build_export_processor(
    settings: Settings,
    client: BackendClient,
    files_root: Path | None = None,
) -> MaskedExportProcessor:
    """Build a MaskedExportProcessor with all required collaborators."""
    baker = MaskBaker(
        RestrictionProjector(settings.render_scale),
        parse_fill_color(settings.mask_fill_color),
    )
    return MaskedExportProcessor(
        steps=[
            LoadDocumentStep(DocumentLoader(client, files_root=files_root)),
            LoadRestrictionsStep(RestrictionStore(client)),
            FilterForViewerStep(),
            ResolveTemplateStep(TemplateDimensionsProvider(client)),
            BakeStep(baker, settings),
            WriteArtifactsStep(Path(settings.export_dir)),
        ]
    )
