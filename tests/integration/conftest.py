import json
from pathlib import Path

import httpx
import pytest

from docmask.api.client import BackendClient
from docmask.config.settings import Settings

DOCUMENT_ID = "42"
TEMPLATE = {"imageWidth": 1224, "imageHeight": 1584}


class FakeBackend:
    """In-memory document backend served through httpx.MockTransport."""

    def __init__(self) -> None:
        self.restrictions: list[dict[str, object]] = []
        self.files: dict[str, bytes] = {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/templates/t-1":
            return httpx.Response(200, json={"data": TEMPLATE})
        if path == f"/documents/documents/{DOCUMENT_ID}/restrictions":
            return httpx.Response(200, json={"data": self.restrictions})
        if path == f"/documents/documents/{DOCUMENT_ID}/restrictions_new":
            body = json.loads(request.content)
            row = {**body, "ID": len(self.restrictions) + 1, "DocumentID": int(DOCUMENT_ID)}
            self.restrictions.append(row)
            return httpx.Response(201, json={"data": row})
        if path in self.files:
            return httpx.Response(200, content=self.files[path])
        return httpx.Response(404, json={"message": f"no route {path}"})


@pytest.fixture()
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture()
def test_settings(tmp_path: Path) -> Settings:
    return Settings(
        api_base_url="http://backend.test",
        export_dir=str(tmp_path / "exports"),
        render_scale=1.5,
        ocr_engine="static",
    )


@pytest.fixture()
def client(backend: FakeBackend, test_settings: Settings) -> BackendClient:
    return BackendClient.from_settings(test_settings, transport=httpx.MockTransport(backend))
