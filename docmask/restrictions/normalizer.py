"""Normalizes backend restriction records into ``Restriction`` objects.

The backend is inconsistent about key casing (``ID``/``id``,
``pageNumber``/``PageNumber``/``page_number``) and sometimes sends a
free-text label such as "Custom Area" instead of ``restrictedType``'s enum
values. Keys are matched case-insensitively; any type label not recognised
as an area mask becomes a field mask.
"""

import math
from collections.abc import Collection, Mapping
from typing import Any

from docmask.geometry.models import Rect
from docmask.restrictions.exceptions import RestrictionValidationError
from docmask.restrictions.models import NewRestriction, Restriction, RestrictionKind

_AREA_LABELS = frozenset(
    {"open", "area", "areamask", "area mask", "area_mask", "custom area", "custom_area", "customarea"}
)

_KEYS: dict[str, tuple[str, ...]] = {
    "id": ("id",),
    "document_id": ("documentid", "document_id"),
    "kind": ("restrictedtype", "restricted_type", "type"),
    "x": ("xaxis", "x_axis", "x"),
    "y": ("yaxis", "y_axis", "y"),
    "width": ("width", "w"),
    "height": ("height", "h"),
    "page_number": ("pagenumber", "page_number", "page"),
    "field": ("field",),
    "reason": ("reason",),
    "user": ("userid", "user_id"),
    "role": ("userrole", "user_role", "roleid", "role_id"),
    "created_by": ("createdby", "created_by"),
    "created_date": ("createddate", "created_date"),
    "collaborator_name": ("collaboratorname", "collaborator_name"),
}


def normalize_kind(raw: Any) -> RestrictionKind:
    """Map a backend type label to a kind; unknown labels default to FIELD_MASK."""
    if isinstance(raw, RestrictionKind):
        return raw
    if isinstance(raw, str) and raw.strip().lower() in _AREA_LABELS:
        return RestrictionKind.AREA_MASK
    return RestrictionKind.FIELD_MASK


def normalize_restriction(raw: Mapping[str, Any], document_id: str | None = None) -> Restriction:
    """Build a Restriction from one backend record.

    Zero-area rectangles are kept here; renderers skip them later.

    Raises:
        RestrictionValidationError: if the record is not a mapping or lacks geometry.
    """
    if not isinstance(raw, Mapping):
        raise RestrictionValidationError("Restriction record must be an object")
    lowered = {str(k).lower(): v for k, v in raw.items()}

    owner = _optional_id(_lookup(lowered, "document_id"))
    if owner is None:
        owner = document_id
    if owner is None:
        raise RestrictionValidationError("Restriction record has no document id")

    rect = Rect(
        x=_number(lowered, "x"),
        y=_number(lowered, "y"),
        width=_number(lowered, "width"),
        height=_number(lowered, "height"),
    )
    return Restriction(
        id=_optional_id(_lookup(lowered, "id")),
        document_id=owner,
        kind=normalize_kind(_lookup(lowered, "kind")),
        rect=rect,
        page_number=_page_number(_lookup(lowered, "page_number")),
        field=_text(_lookup(lowered, "field")),
        reason=_text(_lookup(lowered, "reason")),
        subject_user=_optional_id(_lookup(lowered, "user")),
        subject_role=_optional_id(_lookup(lowered, "role")),
        created_by=_text(_lookup(lowered, "created_by")),
        created_date=_text(_lookup(lowered, "created_date")),
        collaborator_name=_text(_lookup(lowered, "collaborator_name")),
    )


def validate_new_restriction(
    payload: NewRestriction,
    collaborators: Collection[str] | None = None,
) -> None:
    """Check a creation payload before any backend round trip.

    Raises:
        RestrictionValidationError: on any violation.
    """
    if not payload.reason or not payload.reason.strip():
        raise RestrictionValidationError("A reason is required to create a restriction")
    if not payload.rect.has_area:
        raise RestrictionValidationError(
            f"Restriction rectangle must have positive width and height, got {payload.rect}"
        )
    if payload.page_number < 1:
        raise RestrictionValidationError(
            f"Page number must be 1 or greater, got {payload.page_number}"
        )
    user = _optional_id(payload.subject_user)
    role = _optional_id(payload.subject_role)
    if payload.kind is RestrictionKind.AREA_MASK and user is None and role is None:
        raise RestrictionValidationError(
            "An area restriction needs a subject role or user"
        )
    if payload.kind is RestrictionKind.FIELD_MASK and not payload.field.strip():
        raise RestrictionValidationError("A field restriction needs a field name")
    if collaborators is not None and user is not None and user not in set(collaborators):
        raise RestrictionValidationError(
            f"User {user} is not a collaborator on this document"
        )


def _lookup(lowered: Mapping[str, Any], name: str) -> Any:
    for key in _KEYS[name]:
        if key in lowered and lowered[key] is not None:
            return lowered[key]
    return None


def _number(lowered: Mapping[str, Any], name: str) -> float:
    raw = _lookup(lowered, name)
    if isinstance(raw, bool) or raw is None:
        raise RestrictionValidationError(f"Restriction '{name}' is missing")
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise RestrictionValidationError(
            f"Restriction '{name}' must be a number, got {raw!r}"
        ) from exc
    if not math.isfinite(value):
        raise RestrictionValidationError(f"Restriction '{name}' must be finite, got {raw!r}")
    return value


def _page_number(raw: Any) -> int:
    if raw is None or isinstance(raw, bool):
        return 1
    try:
        return int(float(raw))
    except (TypeError, ValueError, OverflowError):
        return 1


def _optional_id(raw: Any) -> str | None:
    if raw is None or isinstance(raw, bool):
        return None
    text = str(raw).strip()
    if text in ("", "0"):
        return None
    return text


def _text(raw: Any) -> str:
    return "" if raw is None else str(raw)
