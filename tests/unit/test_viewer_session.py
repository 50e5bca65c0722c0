import asyncio
import io
import json

import httpx
import pytest
from PIL import Image

from docmask.api.client import BackendClient
from docmask.api.exceptions import BackendResponseError
from docmask.config.settings import Settings
from docmask.documents.loader import DocumentLoader
from docmask.documents.models import DocumentRef, Viewer
from docmask.geometry.models import Rect, Size
from docmask.masking.exceptions import UnsupportedExportError
from docmask.masking.naming import ExportFormat
from docmask.ocr.engine_base import BaseOcrEngine
from docmask.ocr.exceptions import NoWordDataError
from docmask.ocr.worker import OcrWorker
from docmask.raster.exceptions import RasterizeError
from docmask.restrictions.exceptions import RestrictionValidationError
from docmask.restrictions.store import RestrictionStore
from docmask.restrictions.templates import TemplateDimensionsProvider
from docmask.session.cancellation import OperationCancelledError
from docmask.session.viewer_session import ViewerSession

RESTRICTIONS = [
    {
        "ID": 1,
        "DocumentID": 42,
        "Reason": "Salary",
        "UserID": 5,
        "UserRole": 0,
        "restrictedType": "open",
        "xaxis": 150,
        "yaxis": 150,
        "width": 150,
        "height": 30,
        "pageNumber": 1,
    },
    {
        "ID": 2,
        "DocumentID": 42,
        "Reason": "Other user",
        "UserID": 9,
        "UserRole": 0,
        "restrictedType": "open",
        "xaxis": 300,
        "yaxis": 300,
        "width": 60,
        "height": 60,
        "pageNumber": 1,
    },
    {
        "ID": 3,
        "DocumentID": 42,
        "Field": "Total",
        "Reason": "Role rule",
        "UserID": 0,
        "UserRole": 2,
        "restrictedType": "field",
        "xaxis": 100,
        "yaxis": 100,
        "width": 200,
        "height": 40,
        "pageNumber": 2,
    },
]


class _Backend:
    def __init__(self, restrictions: list[dict[str, object]] | None = None) -> None:
        self.restrictions = list(RESTRICTIONS if restrictions is None else restrictions)
        self.requests: list[httpx.Request] = []
        self.fail_restrictions = False

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/templates/t-1":
            return httpx.Response(200, json={"imageWidth": 612, "imageHeight": 792})
        if path == "/documents/documents/42/restrictions" and request.method == "GET":
            if self.fail_restrictions:
                return httpx.Response(500, json={"message": "db down"})
            return httpx.Response(200, json={"data": self.restrictions})
        if path == "/documents/documents/42/restrictions_new":
            body = json.loads(request.content)
            return httpx.Response(201, json={"data": {**body, "ID": 77, "DocumentID": 42}})
        if path.startswith("/documents/documents/42/restrictions/") and request.method == "DELETE":
            return httpx.Response(200, json={"message": "deleted"})
        return httpx.Response(404, json={"message": f"no route {path}"})


class _CountingEngine(BaseOcrEngine):
    def __init__(self, result: dict[str, object]) -> None:
        self.result = result
        self.calls = 0

    def recognize(self, image: Image.Image) -> dict[str, object]:
        self.calls += 1
        return self.result


def _settings() -> Settings:
    return Settings(viewport_max_width=1200, viewport_max_height=900, ocr_engine="static")


def _session(
    data: bytes,
    backend: _Backend,
    *,
    filename: str = "report.pdf",
    viewer: Viewer | None = Viewer("5", "2"),
    template_id: str | None = "t-1",
    engine: BaseOcrEngine | None = None,
) -> tuple[ViewerSession, OcrWorker | None]:
    client = BackendClient(
        base_url="http://backend.test",
        timeout_seconds=5,
        transport=httpx.MockTransport(backend),
    )
    document = DocumentRef("42", filename, data=data, template_id=template_id)
    worker = OcrWorker(engine) if engine is not None else None
    session = ViewerSession(
        document,
        viewer,
        settings=_settings(),
        loader=DocumentLoader(client),
        store=RestrictionStore(client),
        templates=TemplateDimensionsProvider(client),
        ocr_worker=worker,
    )
    return session, worker


class TestOpenAndNavigate:
    def test_open_shows_first_page_fitted_to_viewport(self, multi_page_pdf_bytes: bytes) -> None:
        session, _ = _session(multi_page_pdf_bytes, _Backend())

        async def run() -> None:
            async with session:
                page = session.page
                assert page is not None
                assert page.page_number == 1
                assert (page.natural_width, page.natural_height) == (918, 1188)
                assert page.display_height == pytest.approx(900)
                state = session.state
                assert state.page_count == 2
                assert state.restriction_count == 2

        asyncio.run(run())

    def test_next_and_previous_stay_in_bounds(self, multi_page_pdf_bytes: bytes) -> None:
        session, _ = _session(multi_page_pdf_bytes, _Backend())

        async def run() -> list[int]:
            async with session:
                pages = [(await session.previous_page()).page_number]
                pages.append((await session.next_page()).page_number)
                pages.append((await session.next_page()).page_number)
                pages.append((await session.previous_page()).page_number)
                return pages

        assert asyncio.run(run()) == [1, 2, 2, 1]

    def test_superseded_page_load_is_discarded(self, multi_page_pdf_bytes: bytes) -> None:
        session, _ = _session(multi_page_pdf_bytes, _Backend())

        async def run() -> list[object]:
            async with session:
                results = await asyncio.gather(
                    session.show_page(2), session.show_page(1), return_exceptions=True
                )
                assert session.page is not None
                assert session.page.page_number == 1
                return results

        first, second = asyncio.run(run())
        assert isinstance(first, OperationCancelledError)
        assert second.page_number == 1  # type: ignore[union-attr]

    def test_resize_refits_without_rerender(self, sample_pdf_bytes: bytes) -> None:
        session, _ = _session(sample_pdf_bytes, _Backend())

        async def run() -> None:
            async with session:
                page = session.resize(Size(459, 2000))
                assert page is not None
                assert page.display_width == pytest.approx(459)
                assert page.display_height == pytest.approx(594)
                assert session.state.viewport == Size(459, 2000)

        asyncio.run(run())

    def test_close_releases_document(self, sample_pdf_bytes: bytes) -> None:
        session, _ = _session(sample_pdf_bytes, _Backend())

        async def run() -> None:
            await session.open()
            await session.close()
            await session.close()
            assert session.page is None
            assert session.state.page_count == 0
            with pytest.raises(RasterizeError, match="not open"):
                await session.show_page(1)

        asyncio.run(run())

    def test_open_twice_raises(self, sample_pdf_bytes: bytes) -> None:
        session, _ = _session(sample_pdf_bytes, _Backend())

        async def run() -> None:
            async with session:
                with pytest.raises(RasterizeError, match="already open"):
                    await session.open()

        asyncio.run(run())

    def test_failed_restriction_fetch_releases_document(self, sample_pdf_bytes: bytes) -> None:
        backend = _Backend()
        backend.fail_restrictions = True
        session, _ = _session(sample_pdf_bytes, backend)

        with pytest.raises(BackendResponseError, match="db down"):
            asyncio.run(session.open())
        assert session.state.page_count == 0

    def test_switch_document(self, sample_pdf_bytes: bytes, sample_png_bytes: bytes) -> None:
        session, _ = _session(sample_pdf_bytes, _Backend())

        async def run() -> None:
            await session.open()
            page = await session.switch_document(DocumentRef("42", "scan.png", data=sample_png_bytes))
            assert page.natural_size == Size(400, 200)
            assert session.document.filename == "scan.png"
            await session.close()

        asyncio.run(run())


class TestOverlaysAndRestrictions:
    def test_overlays_only_for_viewer(self, sample_pdf_bytes: bytes) -> None:
        session, _ = _session(sample_pdf_bytes, _Backend())

        async def run() -> None:
            async with session:
                session.resize(Size(459, 594))
                overlays = session.overlays()
                assert [o.restriction.id for o in overlays] == ["1"]
                assert overlays[0].rect == Rect(75, 75, 75, 15)
                preview = session.preview()
                assert preview.size == (459, 594)
                assert preview.getpixel((110, 80)) == (0, 0, 0)

        asyncio.run(run())

    def test_admin_view_sees_everything(self, multi_page_pdf_bytes: bytes) -> None:
        session, _ = _session(multi_page_pdf_bytes, _Backend(), viewer=None)

        async def run() -> None:
            async with session:
                assert len(session.restrictions) == 3
                assert [o.restriction.id for o in session.overlays()] == ["1", "2"]

        asyncio.run(run())

    def test_field_mask_projected_with_template(self, multi_page_pdf_bytes: bytes) -> None:
        session, _ = _session(multi_page_pdf_bytes, _Backend())

        async def run() -> None:
            async with session:
                await session.show_page(2)
                session.resize(Size(918, 1188))
                overlays = session.overlays()
                # template equals the page in points; page renders at 1.5
                assert overlays[0].rect == Rect(150, 150, 300, 60)

        asyncio.run(run())

    def test_selection_to_natural(self, sample_pdf_bytes: bytes) -> None:
        session, _ = _session(sample_pdf_bytes, _Backend())

        async def run() -> None:
            async with session:
                session.resize(Size(459, 594))
                assert session.selection_to_natural(Rect(75.2, 75.4, 75, 15)) == Rect(150, 151, 150, 30)
                assert session.selection_to_natural(Rect(100, 100, -20, -20)) == Rect(160, 160, 40, 40)
                with pytest.raises(RestrictionValidationError, match="at least 10x10"):
                    session.selection_to_natural(Rect(0, 0, 9, 50))

        asyncio.run(run())

    def test_add_and_remove_area_restriction(self, multi_page_pdf_bytes: bytes) -> None:
        backend = _Backend()
        session, _ = _session(multi_page_pdf_bytes, backend)

        async def run() -> None:
            async with session:
                await session.show_page(2)
                session.resize(Size(459, 594))
                created = await session.add_area_restriction(
                    Rect(50, 50, 20, 10), "Bank details", subject_user="5"
                )
                assert created.id == "77"
                assert created.page_number == 2
                assert created.rect == Rect(100, 100, 40, 20)
                assert created.id in [r.id for r in session.restrictions]

                await session.remove_restriction("77", department_id=1)
                assert "77" not in [r.id for r in session.restrictions]

        asyncio.run(run())
        post = next(r for r in backend.requests if r.method == "POST")
        assert json.loads(post.content)["pageNumber"] == 2
        delete = next(r for r in backend.requests if r.method == "DELETE")
        assert delete.url.path == "/documents/documents/42/restrictions/77"

    def test_add_area_restriction_validates_before_request(self, sample_pdf_bytes: bytes) -> None:
        backend = _Backend()
        session, _ = _session(sample_pdf_bytes, backend)

        async def run() -> None:
            async with session:
                with pytest.raises(RestrictionValidationError):
                    await session.add_area_restriction(Rect(0, 0, 50, 50), "", subject_user="5")

        asyncio.run(run())
        assert not [r for r in backend.requests if r.method == "POST"]


class TestOcr:
    RESULT = {
        "text": "Total due\n",
        "words": [
            {"text": "Total", "bbox": {"x0": 100, "y0": 100, "x1": 160, "y1": 120}},
            {"text": "due", "bbox": {"x0": 170, "y0": 100, "x1": 210, "y1": 120}},
        ],
    }

    def test_run_ocr_is_cached_per_page(self, sample_png_bytes: bytes) -> None:
        engine = _CountingEngine(self.RESULT)
        session, worker = _session(sample_png_bytes, _Backend(), filename="scan.png", engine=engine)

        async def run() -> None:
            async with session:
                first = await session.run_ocr()
                second = await session.run_ocr()
                assert first is second
                assert first.text == "Total due"
                assert len(first.index) == 2

        try:
            asyncio.run(run())
        finally:
            assert worker is not None
            worker.shutdown()
        assert engine.calls == 1

    def test_extract_region(self, sample_png_bytes: bytes) -> None:
        engine = _CountingEngine(self.RESULT)
        session, worker = _session(sample_png_bytes, _Backend(), filename="scan.png", engine=engine)

        async def run() -> str:
            async with session:
                session.resize(Size(200, 100))
                return await session.extract_region(Rect(45, 45, 15, 20))

        try:
            assert asyncio.run(run()) == "Total"
        finally:
            assert worker is not None
            worker.shutdown()

    def test_extract_region_without_word_data(self, sample_png_bytes: bytes) -> None:
        engine = _CountingEngine({"text": "just text"})
        session, worker = _session(sample_png_bytes, _Backend(), filename="scan.png", engine=engine)

        async def run() -> None:
            async with session:
                assert (await session.run_ocr()).text == "just text"
                with pytest.raises(NoWordDataError):
                    await session.extract_region(Rect(0, 0, 50, 50))

        try:
            asyncio.run(run())
        finally:
            assert worker is not None
            worker.shutdown()


class TestExport:
    def test_png_export_of_image(self, sample_png_bytes: bytes) -> None:
        backend = _Backend(
            [
                {
                    "ID": 1,
                    "DocumentID": 42,
                    "Reason": "x",
                    "UserID": 5,
                    "restrictedType": "open",
                    "xaxis": 10,
                    "yaxis": 10,
                    "width": 50,
                    "height": 20,
                }
            ]
        )
        session, _ = _session(sample_png_bytes, backend, filename="scan.png", template_id=None)

        async def run() -> list:  # type: ignore[type-arg]
            async with session:
                return await session.export(ExportFormat.PNG)

        artifacts = asyncio.run(run())
        assert [a.filename for a in artifacts] == ["scan_masked.png"]
        image = Image.open(io.BytesIO(artifacts[0].content)).convert("RGB")
        assert image.getpixel((30, 20)) == (0, 0, 0)

    def test_pdf_export(self, sample_pdf_bytes: bytes) -> None:
        session, _ = _session(sample_pdf_bytes, _Backend())

        async def run() -> list:  # type: ignore[type-arg]
            async with session:
                return await session.export(ExportFormat.PDF)

        artifacts = asyncio.run(run())
        assert len(artifacts) == 1
        assert artifacts[0].filename == "report_masked.pdf"
        assert artifacts[0].applied_count == 1

    def test_pdf_export_of_image_is_unsupported(self, sample_png_bytes: bytes) -> None:
        session, _ = _session(sample_png_bytes, _Backend(), filename="scan.png")

        async def run() -> None:
            async with session:
                await session.export(ExportFormat.PDF)

        with pytest.raises(UnsupportedExportError):
            asyncio.run(run())


class TestCreate:
    def test_create_wires_backend_collaborators(self, sample_pdf_bytes: bytes) -> None:
        backend = _Backend()
        client = BackendClient(
            base_url="http://backend.test",
            timeout_seconds=5,
            transport=httpx.MockTransport(backend),
        )
        document = DocumentRef("42", "report.pdf", data=sample_pdf_bytes, template_id="t-1")
        session = ViewerSession.create(_settings(), client, document, Viewer("5", "2"))

        async def run() -> None:
            async with session:
                assert session.state.restriction_count == 2

        asyncio.run(run())
        assert {r.url.path for r in backend.requests} == {
            "/documents/documents/42/restrictions",
            "/templates/t-1",
        }
