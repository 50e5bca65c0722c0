from typing import Any

import httpx

from docmask.api.exceptions import BackendError, BackendNetworkError, BackendResponseError
from docmask.config.settings import Settings


class BackendClient:
    """Async JSON/bytes client for the document backend built on httpx."""

    def __init__(
        self,
        *,
        base_url: str,
        timeout_seconds: int,
        token: str = "",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout_seconds,
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "BackendClient":
        return cls(
            base_url=settings.api_base_url,
            timeout_seconds=settings.api_timeout_seconds,
            token=settings.api_token,
            transport=transport,
        )

    async def get_json(self, path: str, params: dict[str, str] | None = None) -> Any:
        response = await self._request("GET", path, params=params)
        return self._decode_json(response)

    async def post_json(self, path: str, body: dict[str, object]) -> Any:
        response = await self._request("POST", path, json=body)
        return self._decode_json(response)

    async def delete(self, path: str, params: dict[str, str] | None = None) -> None:
        await self._request("DELETE", path, params=params)

    async def get_bytes(self, path: str) -> bytes:
        response = await self._request("GET", path)
        return response.content

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "BackendClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except (httpx.ConnectError, httpx.TimeoutException) as exc:
            raise BackendNetworkError(f"Backend network error: {exc}") from exc
        except httpx.HTTPError as exc:
            raise BackendNetworkError(f"Backend transport error: {exc}") from exc

        if response.is_error:
            raise BackendResponseError(
                f"{method} {path} failed: {self._error_message(response)}",
                status_code=response.status_code,
            )
        return response

    @staticmethod
    def _decode_json(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise BackendError(f"Invalid JSON from backend: {exc}") from exc

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.reason_phrase or str(response.status_code)
        if isinstance(body, dict):
            for key in ("message", "error", "Error"):
                value = body.get(key)
                if isinstance(value, str) and value:
                    return value
        return response.reason_phrase or str(response.status_code)
