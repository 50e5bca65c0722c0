from dataclasses import dataclass
from enum import Enum

from docmask.geometry.models import Rect


class RestrictionKind(str, Enum):
    """Wire values match the backend's ``restrictedType`` field."""

    FIELD_MASK = "field"  # named field, rect in template space
    AREA_MASK = "open"  # user-drawn area, rect in render-scale page pixels


@dataclass(frozen=True)
class Restriction:
    """A rule hiding one rectangle of a document from a given viewer."""

    id: str | None
    document_id: str
    kind: RestrictionKind
    rect: Rect
    page_number: int = 1
    field: str = ""
    reason: str = ""
    subject_user: str | None = None
    subject_role: str | None = None
    created_by: str = ""
    created_date: str = ""
    collaborator_name: str = ""

    @property
    def is_field_mask(self) -> bool:
        return self.kind is RestrictionKind.FIELD_MASK


@dataclass(frozen=True)
class NewRestriction:
    """Payload for creating a restriction."""

    kind: RestrictionKind
    rect: Rect
    reason: str
    page_number: int = 1
    field: str = ""
    subject_user: str | None = None
    subject_role: str | None = None
    link_id: str = ""

    def to_payload(self) -> dict[str, object]:
        """Backend wire shape; absent subjects are sent as 0."""
        payload: dict[str, object] = {
            "Field": self.field,
            "Reason": self.reason.strip(),
            "UserID": _wire_id(self.subject_user),
            "UserRole": _wire_id(self.subject_role),
            "restrictedType": self.kind.value,
            "xaxis": self.rect.x,
            "yaxis": self.rect.y,
            "width": self.rect.width,
            "height": self.rect.height,
            "pageNumber": self.page_number,
        }
        if self.link_id:
            payload["LinkId"] = self.link_id
        return payload


def _wire_id(value: str | None) -> int | str:
    if value is None:
        return 0
    return int(value) if value.isdigit() else value
