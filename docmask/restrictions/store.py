from collections.abc import Collection
from typing import Any

from docmask.api.client import BackendClient
from docmask.api.exceptions import BackendError
from docmask.logging.logger import Log
from docmask.restrictions.exceptions import RestrictionValidationError
from docmask.restrictions.models import NewRestriction, Restriction
from docmask.restrictions.normalizer import normalize_restriction, validate_new_restriction


def restrictions_path(document_id: str) -> str:
    return f"/documents/documents/{document_id}/restrictions"


class RestrictionStore:
    """CRUD for restriction records held by the document backend."""

    def __init__(self, client: BackendClient) -> None:
        self._client = client

    async def list(self, document_id: str) -> list[Restriction]:
        """Fetch and normalize every restriction on a document.

        Records that cannot be normalized are logged and skipped.

        Raises:
            BackendError: if the backend call fails.
        """
        payload = await self._client.get_json(restrictions_path(document_id))
        rows = _unwrap_rows(payload)
        restrictions: list[Restriction] = []
        for index, row in enumerate(rows):
            try:
                restrictions.append(normalize_restriction(row, document_id))
            except RestrictionValidationError as exc:
                Log.warning(
                    f"Skipping restriction at index {index} of document {document_id}: {exc}"
                )
        Log.info(f"Loaded {len(restrictions)} restriction(s) for document {document_id}")
        return restrictions

    async def create(
        self,
        document_id: str,
        payload: NewRestriction,
        collaborators: Collection[str] | None = None,
    ) -> Restriction:
        """Validate locally, then persist a new restriction.

        Args:
            document_id: Owning document.
            payload: The restriction to create.
            collaborators: Current collaborator user ids; when given, the
                subject user must be one of them.

        Raises:
            RestrictionValidationError: if the payload is invalid (no request is sent).
            BackendError: if the backend call fails or returns an unusable record.
        """
        validate_new_restriction(payload, collaborators)
        response = await self._client.post_json(
            f"{restrictions_path(document_id)}_new", payload.to_payload()
        )
        record = response.get("data", response) if isinstance(response, dict) else response
        try:
            restriction = normalize_restriction(record, document_id)
        except RestrictionValidationError as exc:
            raise BackendError(f"Backend returned an unusable restriction: {exc}") from exc
        Log.info(
            f"Created {restriction.kind.value} restriction {restriction.id} "
            f"on document {document_id} page {restriction.page_number}"
        )
        return restriction

    async def delete(
        self,
        document_id: str,
        restriction_id: str,
        department_id: int | None = None,
        sub_department_id: int | None = None,
    ) -> None:
        """Remove one restriction.

        Raises:
            BackendError: if the backend call fails.
        """
        params: dict[str, str] = {}
        if department_id is not None:
            params["department"] = str(department_id)
            params["appliedDepartment"] = str(department_id)
        if sub_department_id is not None:
            params["subDepartment"] = str(sub_department_id)
            params["appliedSubDepartment"] = str(sub_department_id)
        await self._client.delete(
            f"{restrictions_path(document_id)}/{restriction_id}",
            params=params or None,
        )
        Log.info(f"Deleted restriction {restriction_id} from document {document_id}")


def _unwrap_rows(payload: Any) -> list[Any]:
    if isinstance(payload, dict):
        payload = payload.get("data")
    if payload is None:
        return []
    if not isinstance(payload, list):
        raise BackendError("Restrictions response must be a list")
    return payload
