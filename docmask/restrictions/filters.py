from collections.abc import Iterable

from docmask.documents.models import Viewer
from docmask.restrictions.models import Restriction


def applies_to_viewer(restriction: Restriction, viewer: Viewer) -> bool:
    """A named subject user narrows the rule to that user; otherwise the role decides."""
    if restriction.subject_user is not None:
        return restriction.subject_user == viewer.user_id
    if restriction.subject_role is not None:
        return viewer.role_id is not None and restriction.subject_role == viewer.role_id
    return False


def filter_for_viewer(
    restrictions: Iterable[Restriction],
    viewer: Viewer,
    page_number: int | None = None,
) -> list[Restriction]:
    """Restrictions that apply to *viewer*, optionally limited to one page."""
    return [
        r
        for r in restrictions
        if applies_to_viewer(r, viewer)
        and (page_number is None or r.page_number == page_number)
    ]
