"""Per-viewer state for one open document.

A session owns the decoded document handle, the currently rendered page,
the document's restrictions and the per-page OCR results. Nothing here is
shared between sessions; the only process-wide resource is the OCR worker.
"""

import asyncio
from collections.abc import Collection
from dataclasses import dataclass
from types import TracebackType

from PIL import Image

from docmask.api.client import BackendClient
from docmask.config.settings import Settings
from docmask.documents.loader import DocumentLoader
from docmask.documents.models import DocumentRef, Viewer
from docmask.geometry.models import Rect, Size
from docmask.geometry.transform import fit_within, to_natural
from docmask.logging.logger import Log
from docmask.masking.baker import BakedArtifact, MaskBaker, parse_fill_color
from docmask.masking.exceptions import UnsupportedExportError
from docmask.masking.naming import ExportFormat
from docmask.masking.overlay import MaskOverlay, MaskOverlayRenderer
from docmask.masking.projection import RestrictionProjector
from docmask.ocr.models import OcrPageResult
from docmask.ocr.region import RegionTextExtractor
from docmask.ocr.word_index import build_word_index
from docmask.ocr.worker import OcrWorker, get_ocr_worker
from docmask.raster.exceptions import RasterizeError
from docmask.raster.factory import RasterizerFactory
from docmask.raster.models import RenderedPage
from docmask.raster.page_rasterizer import PageRasterizer
from docmask.restrictions.exceptions import RestrictionValidationError
from docmask.restrictions.filters import filter_for_viewer
from docmask.restrictions.models import NewRestriction, Restriction, RestrictionKind
from docmask.restrictions.store import RestrictionStore
from docmask.restrictions.templates import TemplateDimensionsProvider
from docmask.session.cancellation import CancellationToken, OperationCancelledError


@dataclass(frozen=True)
class ViewerState:
    """Snapshot of what a session is currently showing."""

    document_id: str
    page_number: int | None
    page_count: int
    viewport: Size
    restriction_count: int


class ViewerSession:
    """Interactive masked view of one document for one viewer.

    With ``viewer`` set, only restrictions that apply to that viewer are
    shown and exported. Without it, every restriction on the document is
    used (administrative view).
    """

    def __init__(
        self,
        document: DocumentRef,
        viewer: Viewer | None,
        *,
        settings: Settings,
        loader: DocumentLoader,
        store: RestrictionStore,
        templates: TemplateDimensionsProvider,
        ocr_worker: OcrWorker | None = None,
    ) -> None:
        self._document = document
        self._viewer = viewer
        self._settings = settings
        self._loader = loader
        self._store = store
        self._templates = templates
        self._ocr_worker = ocr_worker

        fill = parse_fill_color(settings.mask_fill_color)
        self._projector = RestrictionProjector(settings.render_scale)
        self._overlays = MaskOverlayRenderer(self._projector, fill)
        self._baker = MaskBaker(self._projector, fill)
        self._extractor = RegionTextExtractor(settings.line_band_tolerance_px)

        self._viewport = Size(settings.viewport_max_width, settings.viewport_max_height)
        self._rasterizer: PageRasterizer | None = None
        self._source: bytes | None = None
        self._restrictions: list[Restriction] = []
        self._template: Size | None = None
        self._page: RenderedPage | None = None
        self._token: CancellationToken | None = None
        self._request_seq = 0
        self._ocr_results: dict[int, OcrPageResult] = {}

    @classmethod
    def create(
        cls,
        settings: Settings,
        client: BackendClient,
        document: DocumentRef,
        viewer: Viewer | None = None,
    ) -> "ViewerSession":
        """Build a session whose collaborators all talk to *client*."""
        return cls(
            document,
            viewer,
            settings=settings,
            loader=DocumentLoader(client),
            store=RestrictionStore(client),
            templates=TemplateDimensionsProvider(client),
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def document(self) -> DocumentRef:
        return self._document

    @property
    def page(self) -> RenderedPage | None:
        return self._page

    @property
    def restrictions(self) -> list[Restriction]:
        """Restrictions in effect for this session's viewer, all pages."""
        if self._viewer is None:
            return list(self._restrictions)
        return filter_for_viewer(self._restrictions, self._viewer)

    @property
    def state(self) -> ViewerState:
        return ViewerState(
            document_id=self._document.id,
            page_number=self._page.page_number if self._page else None,
            page_count=self._rasterizer.page_count if self._rasterizer else 0,
            viewport=self._viewport,
            restriction_count=len(self.restrictions),
        )

    async def open(self) -> RenderedPage:
        """Load the document, its restrictions and template, and show page 1.

        Raises:
            RasterizeError: if the document cannot be fetched or decoded.
            BackendError: if restrictions or template dimensions cannot be fetched.
        """
        if self._rasterizer is not None:
            raise RasterizeError(f"Document {self._document.id} is already open")

        data = await self._loader.load(self._document)
        adapter = RasterizerFactory.create(self._settings, self._document.resolved_mime_type)
        rasterizer = PageRasterizer(
            adapter,
            render_scale=self._settings.render_scale,
            is_pdf=self._document.is_pdf,
        )
        await asyncio.to_thread(rasterizer.open, data)
        self._rasterizer = rasterizer
        self._source = data

        try:
            self._restrictions, self._template = await asyncio.gather(
                self._store.list(self._document.id),
                self._templates.get(self._document.template_id),
            )
        except Exception:
            await self.close()
            raise

        Log.info(
            f"Session opened document {self._document.id} "
            f"({len(self._restrictions)} restriction(s))"
        )
        return await self.show_page(1)

    async def switch_document(self, document: DocumentRef) -> RenderedPage:
        """Release the current document and open *document* in its place."""
        await self.close()
        self._document = document
        return await self.open()

    async def close(self) -> None:
        """Cancel in-flight work and release the document handle. Idempotent."""
        if self._token is not None:
            self._token.cancel()
            self._token = None
        rasterizer, self._rasterizer = self._rasterizer, None
        if rasterizer is not None:
            await asyncio.to_thread(rasterizer.close)
            Log.info(f"Session closed document {self._document.id}")
        self._source = None
        self._page = None
        self._ocr_results.clear()

    async def __aenter__(self) -> "ViewerSession":
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    async def show_page(self, page_number: int) -> RenderedPage:
        """Render *page_number*, superseding any page load still in flight.

        Raises:
            RasterizeError: if the page cannot be rendered.
            OperationCancelledError: if a newer request or ``close`` superseded this one.
        """
        rasterizer = self._require_open()
        if self._token is not None:
            self._token.cancel()
        token = CancellationToken()
        self._token = token
        self._request_seq += 1
        seq = self._request_seq

        try:
            page = await asyncio.to_thread(rasterizer.render, page_number, self._viewport, token)
        except RasterizeError as exc:
            if token.cancelled:
                raise OperationCancelledError(f"Page {page_number} load was cancelled") from exc
            raise

        if token.cancelled or seq != self._request_seq:
            Log.debug(f"Discarding stale render of page {page_number}")
            raise OperationCancelledError(f"Page {page_number} load was superseded")
        self._page = page
        return page

    async def next_page(self) -> RenderedPage:
        page = self._require_page()
        if page.page_number >= self._require_open().page_count:
            return page
        return await self.show_page(page.page_number + 1)

    async def previous_page(self) -> RenderedPage:
        page = self._require_page()
        if page.page_number <= 1:
            return page
        return await self.show_page(page.page_number - 1)

    def resize(self, viewport: Size) -> RenderedPage | None:
        """Refit the current page into a new viewport without re-rendering."""
        self._viewport = viewport
        if self._page is not None:
            self._page = self._page.with_display(fit_within(self._page.natural_size, viewport))
        return self._page

    # ------------------------------------------------------------------
    # Masks
    # ------------------------------------------------------------------

    def overlays(self) -> list[MaskOverlay]:
        """Display-space overlays for the current page."""
        page = self._require_page()
        return self._overlays.render(page, self.restrictions, self._template)

    def preview(self) -> Image.Image:
        """Display-size image of the current page with its overlays painted in."""
        page = self._require_page()
        return self._overlays.compose_preview(page, self.overlays())

    def selection_to_natural(self, display_rect: Rect) -> Rect:
        """Convert a drawn selection into the page's natural pixels, rounded.

        Raises:
            RestrictionValidationError: if the selection is smaller than the
                configured minimum on either axis.
        """
        page = self._require_page()
        minimum = self._settings.min_selection_size_px
        if abs(display_rect.width) < minimum or abs(display_rect.height) < minimum:
            raise RestrictionValidationError(
                f"Selection must be at least {minimum}x{minimum} display pixels"
            )
        normalized = Rect(
            min(display_rect.x, display_rect.right),
            min(display_rect.y, display_rect.bottom),
            abs(display_rect.width),
            abs(display_rect.height),
        )
        return to_natural(normalized, page.natural_size, page.display_size).rounded()

    async def add_area_restriction(
        self,
        display_rect: Rect,
        reason: str,
        *,
        subject_user: str | None = None,
        subject_role: str | None = None,
        collaborators: Collection[str] | None = None,
    ) -> Restriction:
        """Persist a user-drawn AreaMask on the current page.

        Raises:
            RestrictionValidationError: if the selection or payload is invalid.
            BackendError: if the backend call fails.
        """
        page = self._require_page()
        payload = NewRestriction(
            kind=RestrictionKind.AREA_MASK,
            rect=self.selection_to_natural(display_rect),
            reason=reason,
            page_number=page.page_number,
            subject_user=subject_user,
            subject_role=subject_role,
        )
        created = await self._store.create(self._document.id, payload, collaborators)
        self._restrictions.append(created)
        return created

    async def remove_restriction(
        self,
        restriction_id: str,
        department_id: int | None = None,
        sub_department_id: int | None = None,
    ) -> None:
        await self._store.delete(
            self._document.id,
            restriction_id,
            department_id=department_id,
            sub_department_id=sub_department_id,
        )
        self._restrictions = [r for r in self._restrictions if r.id != restriction_id]

    # ------------------------------------------------------------------
    # OCR
    # ------------------------------------------------------------------

    async def run_ocr(self) -> OcrPageResult:
        """Recognise the current page, reusing an earlier result for the same page.

        Raises:
            OcrEngineError: if the engine fails.
            OperationCancelledError: if the page changed while queued.
        """
        page = self._require_page()
        cached = self._ocr_results.get(page.page_number)
        if cached is not None:
            return cached

        if self._ocr_worker is None:
            self._ocr_worker = get_ocr_worker(self._settings)
        raw = await self._ocr_worker.recognize(page.bitmap, self._token)
        text = raw.get("text")
        result = OcrPageResult(
            page_number=page.page_number,
            text=text.strip() if isinstance(text, str) else "",
            index=build_word_index(raw),
        )
        self._ocr_results[page.page_number] = result
        Log.info(f"OCR page {page.page_number}: {len(result.index)} word(s)")
        return result

    async def extract_region(self, display_rect: Rect) -> str:
        """Text under a drawn rectangle on the current page.

        Raises:
            NoWordDataError: if the OCR result has no word boxes.
        """
        page = self._require_page()
        result = await self.run_ocr()
        return self._extractor.extract(
            display_rect, page.natural_size, page.display_size, result.index
        )

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    async def export(self, fmt: ExportFormat) -> list[BakedArtifact]:
        """Bake every applicable restriction into a downloadable artifact.

        Raises:
            UnsupportedExportError: for a PDF export of a raster image.
            NoMaskableRestrictionsError: if no restriction could be applied.
        """
        rasterizer = self._require_open()
        restrictions = self.restrictions
        name = self._document.filename

        if fmt is ExportFormat.PDF:
            if not rasterizer.is_pdf or self._source is None:
                raise UnsupportedExportError("PDF export requires a PDF source document")
            artifact = await asyncio.to_thread(
                self._baker.bake_pdf, self._source, restrictions, self._template, name
            )
            return [artifact]

        return await asyncio.to_thread(
            self._baker.bake_document_png, rasterizer, restrictions, self._template, name
        )

    def _require_open(self) -> PageRasterizer:
        if self._rasterizer is None:
            raise RasterizeError(f"Document {self._document.id} is not open")
        return self._rasterizer

    def _require_page(self) -> RenderedPage:
        if self._page is None:
            raise RasterizeError(f"No page of document {self._document.id} is loaded")
        return self._page
