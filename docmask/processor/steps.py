import asyncio
from pathlib import Path

from docmask.config.settings import Settings
from docmask.documents.loader import DocumentLoader
from docmask.logging.logger import Log
from docmask.masking.baker import BakedArtifact, MaskBaker
from docmask.masking.exceptions import UnsupportedExportError
from docmask.masking.naming import ExportFormat
from docmask.processor.exceptions import ArtifactWriteError
from docmask.processor.pipeline import ExportContext, PipelineStep
from docmask.raster.factory import RasterizerFactory
from docmask.raster.page_rasterizer import PageRasterizer
from docmask.restrictions.filters import filter_for_viewer
from docmask.restrictions.store import RestrictionStore
from docmask.restrictions.templates import TemplateDimensionsProvider


class LoadDocumentStep(PipelineStep):
    def __init__(self, loader: DocumentLoader) -> None:
        self._loader = loader

    async def run(self, context: ExportContext) -> ExportContext:
        context.raw_bytes = await self._loader.load(context.document)
        Log.info(f"Loaded {len(context.raw_bytes)} bytes for document {context.document.id}")
        return context


class LoadRestrictionsStep(PipelineStep):
    def __init__(self, store: RestrictionStore) -> None:
        self._store = store

    async def run(self, context: ExportContext) -> ExportContext:
        context.restrictions = await self._store.list(context.document.id)
        return context


class FilterForViewerStep(PipelineStep):
    """Keeps only the restrictions that apply to the requesting viewer, if any."""

    async def run(self, context: ExportContext) -> ExportContext:
        if context.viewer is None:
            return context
        before = len(context.restrictions)
        context.restrictions = filter_for_viewer(context.restrictions, context.viewer)
        Log.info(
            f"{len(context.restrictions)} of {before} restriction(s) apply to "
            f"user {context.viewer.user_id}"
        )
        return context


class ResolveTemplateStep(PipelineStep):
    def __init__(self, templates: TemplateDimensionsProvider) -> None:
        self._templates = templates

    async def run(self, context: ExportContext) -> ExportContext:
        context.template = await self._templates.get(context.document.template_id)
        return context


class BakeStep(PipelineStep):
    def __init__(self, baker: MaskBaker, settings: Settings) -> None:
        self._baker = baker
        self._settings = settings

    async def run(self, context: ExportContext) -> ExportContext:
        if not context.raw_bytes:
            raise ValueError("ExportContext.raw_bytes must be set before baking")
        document = context.document
        if context.fmt is ExportFormat.PDF:
            if not document.is_pdf:
                raise UnsupportedExportError(
                    f"PDF export requires a PDF source; document {document.id} "
                    f"is '{document.resolved_mime_type}'"
                )
            artifact = await asyncio.to_thread(
                self._baker.bake_pdf,
                context.raw_bytes,
                context.restrictions,
                context.template,
                document.filename,
            )
            context.artifacts = [artifact]
        else:
            context.artifacts = await asyncio.to_thread(self._bake_png, context)
        return context

    def _bake_png(self, context: ExportContext) -> list[BakedArtifact]:
        document = context.document
        rasterizer = PageRasterizer(
            RasterizerFactory.create(self._settings, document.resolved_mime_type),
            render_scale=self._settings.render_scale,
            is_pdf=document.is_pdf,
        )
        rasterizer.open(context.raw_bytes)
        try:
            return self._baker.bake_document_png(
                rasterizer, context.restrictions, context.template, document.filename
            )
        finally:
            rasterizer.close()


class WriteArtifactsStep(PipelineStep):
    def __init__(self, export_dir: Path) -> None:
        self._export_dir = export_dir

    async def run(self, context: ExportContext) -> ExportContext:
        context.written_paths = await asyncio.to_thread(self._write_all, context.artifacts)
        for path in context.written_paths:
            Log.info(f"Wrote {path}")
        return context

    def _write_all(self, artifacts: list[BakedArtifact]) -> list[Path]:
        paths: list[Path] = []
        try:
            self._export_dir.mkdir(parents=True, exist_ok=True)
            for artifact in artifacts:
                path = self._export_dir / artifact.filename
                path.write_bytes(artifact.content)
                paths.append(path)
        except OSError as exc:
            raise ArtifactWriteError(f"Could not write export to {self._export_dir}: {exc}") from exc
        return paths
