"""
Revision lifecycle rules shared by the store and the bulk importer.

A document's current revision is the last element of this ordering:
letter codes (preliminary) first in lexicographic order, then numeric codes
(construction) by numeric value; equal codes fall back to creation time.
"""
import re
from datetime import datetime
from typing import Optional, Sequence, TypeVar

from src.engineering.models import RevisionState

_NUMERIC_CODE = re.compile(r"^\d+$")

T = TypeVar("T")


def revision_sort_key(code, created_at: Optional[datetime]) -> tuple:
    normalized = str(code).strip().upper()
    created = created_at or datetime.min
    if _NUMERIC_CODE.match(normalized):
        return (1, int(normalized), "", created)
    return (0, 0, normalized, created)


def select_current_revision(revisions: Sequence[T]) -> Optional[T]:
    """Pick the current revision among all revisions of one document.

    Works on anything exposing ``code`` and ``created_at``. Soft-deleted
    revisions are included; whether an ELIMINADA winner stays eliminated is
    decided by :func:`next_state`.
    """
    if not revisions:
        return None
    ordered = sorted(revisions, key=lambda r: revision_sort_key(r.code, r.created_at))
    return ordered[-1]


def next_state(current: RevisionState, is_latest: bool) -> RevisionState:
    """State a revision must hold after its document is recomputed.

    - latest and ELIMINADA -> stays ELIMINADA
    - latest otherwise     -> VIGENTE
    - not latest           -> OBSOLETA, even when it was ELIMINADA
    """
    if is_latest:
        if current == RevisionState.ELIMINADA:
            return RevisionState.ELIMINADA
        return RevisionState.VIGENTE
    return RevisionState.OBSOLETA
