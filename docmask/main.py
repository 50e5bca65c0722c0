import argparse
import asyncio
import sys
from pathlib import Path

from docmask.api.client import BackendClient
from docmask.api.exceptions import BackendError
from docmask.config.settings import Settings
from docmask.documents.models import DocumentRef, Viewer
from docmask.geometry.models import Rect
from docmask.logging.logger import Log
from docmask.masking.exceptions import MaskingError
from docmask.masking.naming import ExportFormat
from docmask.ocr.exceptions import OcrError
from docmask.ocr.region import RegionTextExtractor
from docmask.ocr.word_index import build_word_index
from docmask.ocr.worker import get_ocr_worker, shutdown_ocr_worker
from docmask.processor.exceptions import ProcessorError
from docmask.processor.processor import build_export_processor
from docmask.raster.exceptions import RasterizeError
from docmask.raster.factory import RasterizerFactory
from docmask.raster.page_rasterizer import PageRasterizer
from docmask.restrictions.exceptions import RestrictionError


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docmask",
        description="Export masked documents and read text from document regions.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    export = commands.add_parser("export", help="Bake a document's restrictions into PNG or PDF")
    export.add_argument("document_id", help="Backend id of the document")
    export.add_argument("--filename", required=True, help="Source file name, used to name the export")
    export.add_argument("--file-path", default="", help="Backend path of the document file")
    export.add_argument("--mime-type", default="", help="MIME type (default: from the file name)")
    export.add_argument("--template-id", default=None, help="Layout template of the document's fields")
    export.add_argument(
        "--format",
        choices=[fmt.value for fmt in ExportFormat],
        default=ExportFormat.PNG.value,
        help="Export format (default: png)",
    )
    export.add_argument("--user", default=None, help="Only apply restrictions for this user id")
    export.add_argument("--role", default=None, help="Role id of --user")
    export.add_argument(
        "--files-root",
        type=Path,
        default=None,
        help="Read the document from this directory instead of the backend",
    )

    ocr = commands.add_parser("ocr", help="Recognise text on one page of a local file")
    ocr.add_argument("path", type=Path, help="PDF, PNG or JPEG file")
    ocr.add_argument("--page", type=int, default=1, help="1-based page number (default: 1)")
    ocr.add_argument(
        "--region",
        default=None,
        help="Only print text inside x,y,width,height (natural page pixels)",
    )
    return parser


def _parse_region(value: str) -> Rect:
    parts = [part.strip() for part in value.split(",")]
    if len(parts) != 4:
        raise ValueError(f"--region expects x,y,width,height, got '{value}'")
    x, y, width, height = (float(part) for part in parts)
    return Rect(x, y, width, height)


async def _export(settings: Settings, args: argparse.Namespace) -> int:
    document = DocumentRef(
        id=args.document_id,
        filename=args.filename,
        mime_type=args.mime_type,
        file_path=args.file_path,
        template_id=args.template_id,
    )
    viewer = Viewer(user_id=args.user, role_id=args.role) if args.user else None
    async with BackendClient.from_settings(settings) as client:
        processor = build_export_processor(settings, client, files_root=args.files_root)
        result = await processor.export(document, ExportFormat(args.format), viewer)
    for path in result.paths:
        print(path)
    return 0


async def _ocr(settings: Settings, args: argparse.Namespace) -> int:
    region = _parse_region(args.region) if args.region else None
    data = await asyncio.to_thread(args.path.read_bytes)
    document = DocumentRef(id=args.path.name, filename=args.path.name, data=data)

    rasterizer = PageRasterizer(
        RasterizerFactory.create(settings, document.resolved_mime_type),
        render_scale=settings.render_scale,
        is_pdf=document.is_pdf,
    )
    await asyncio.to_thread(rasterizer.open, data)
    try:
        page = await asyncio.to_thread(rasterizer.render, args.page)
    finally:
        await asyncio.to_thread(rasterizer.close)

    raw = await get_ocr_worker(settings).recognize(page.bitmap)
    if region is None:
        text = raw.get("text")
        print(text.strip() if isinstance(text, str) else "")
        return 0

    extractor = RegionTextExtractor(settings.line_band_tolerance_px)
    print(extractor.extract(region, page.natural_size, page.natural_size, build_word_index(raw)))
    return 0


def main(argv: list[str] | None = None) -> int:
    """Entry point: parse arguments -> load settings -> run one command."""
    args = _build_parser().parse_args(argv)
    settings = Settings()
    Log.configure(settings.log_level)

    runner = _export if args.command == "export" else _ocr
    try:
        return asyncio.run(runner(settings, args))
    except (
        BackendError,
        MaskingError,
        OcrError,
        ProcessorError,
        RasterizeError,
        RestrictionError,
        OSError,
        ValueError,
    ) as exc:
        Log.error(f"{args.command} failed: {exc}")
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    finally:
        shutdown_ocr_worker()


if __name__ == "__main__":
    sys.exit(main())
