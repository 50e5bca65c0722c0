from typing import Any

from docmask.api.client import BackendClient
from docmask.geometry.models import Size
from docmask.logging.logger import Log


class TemplateDimensionsProvider:
    """Fetches and caches the reference size of layout templates.

    A missing template id, or a template without usable dimensions, yields
    ``None``: FieldMask rectangles are then taken to be in native page space.
    Backend failures propagate so masks are never silently misplaced.
    """

    def __init__(self, client: BackendClient) -> None:
        self._client = client
        self._cache: dict[str, Size | None] = {}

    async def get(self, template_id: str | None) -> Size | None:
        if not template_id:
            return None
        if template_id in self._cache:
            return self._cache[template_id]

        payload = await self._client.get_json(f"/templates/{template_id}")
        size = _parse_dimensions(payload)
        if size is None:
            Log.warning(
                f"Template {template_id} has no usable dimensions; field masks will not be rescaled"
            )
        else:
            Log.debug(f"Template {template_id} is {size.width}x{size.height}")
        self._cache[template_id] = size
        return size


def _parse_dimensions(payload: Any) -> Size | None:
    if isinstance(payload, dict) and isinstance(payload.get("data"), dict):
        payload = payload["data"]
    if not isinstance(payload, dict):
        return None
    try:
        width = float(payload.get("imageWidth") or 0)
        height = float(payload.get("imageHeight") or 0)
    except (TypeError, ValueError):
        return None
    size = Size(width, height)
    return None if size.is_degenerate else size
