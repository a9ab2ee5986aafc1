"""
Shelf listing helpers — filtering and ordering for dashboard views.
"""

from __future__ import annotations

from collections.abc import Iterable

from inventory.models import Shelf, ShelfStatus

SHELF_SORT_KEYS = ("aisle", "status", "last_scanned")

_STATUS_ORDER = {ShelfStatus.EMPTY: 0, ShelfStatus.LOW: 1, ShelfStatus.OK: 2}


def matches_aisle(shelf: Shelf, aisle: str) -> bool:
    """Accept either the aisle label ("Aisle B") or its letter ("B")."""
    wanted = aisle.strip().lower()
    label = shelf.aisle.lower()
    return label == wanted or label == f"aisle {wanted}"


def filter_shelves(
    shelves: Iterable[Shelf],
    aisle: str | None = None,
    status: ShelfStatus | str | None = None,
) -> list[Shelf]:
    result = list(shelves)
    if aisle:
        result = [s for s in result if matches_aisle(s, aisle)]
    if status is not None:
        wanted = ShelfStatus(status)
        result = [s for s in result if s.status == wanted]
    return result


def sort_shelves(shelves: Iterable[Shelf], sort_by: str = "aisle") -> list[Shelf]:
    """
    Order shelves for display.

    aisle: by aisle then id; status: empty, low, ok; last_scanned: newest first.
    """
    shelves = list(shelves)
    if sort_by == "aisle":
        return sorted(shelves, key=lambda s: (s.aisle, s.id))
    if sort_by == "status":
        return sorted(shelves, key=lambda s: _STATUS_ORDER[s.status])
    if sort_by == "last_scanned":
        return sorted(shelves, key=lambda s: s.last_scanned, reverse=True)
    raise ValueError(f"Unknown sort key '{sort_by}'. Choose from {SHELF_SORT_KEYS}")
