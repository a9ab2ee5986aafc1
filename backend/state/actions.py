"""
State Store actions — the closed set of transitions the reducer accepts.

Each action is a frozen dataclass; the reducer dispatches on the class.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, Union

from inventory.models import Alert, Shelf, ShelfStatus, utcnow

FilterKey = Literal["aisle", "status"]


# ── State ────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class LoadingState:
    shelves: bool = False
    alerts: bool = False


@dataclass(frozen=True)
class FilterOptions:
    aisle: str | None = None
    status: ShelfStatus | None = None


@dataclass(frozen=True)
class AppState:
    shelves: tuple[Shelf, ...] = ()
    alerts: tuple[Alert, ...] = ()
    loading: LoadingState = field(default_factory=LoadingState)
    error: str | None = None
    selected_shelf: str | None = None
    filter_options: FilterOptions = field(default_factory=FilterOptions)

    def get_shelf(self, shelf_id: str) -> Shelf | None:
        for shelf in self.shelves:
            if shelf.id == shelf_id:
                return shelf
        return None

    def get_alert(self, alert_id: str) -> Alert | None:
        for alert in self.alerts:
            if alert.id == alert_id:
                return alert
        return None

    @property
    def unacknowledged_alerts(self) -> list[Alert]:
        return [a for a in self.alerts if not a.acknowledged]


# ── Lifecycle ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Init:
    state: AppState


@dataclass(frozen=True)
class ReportError:
    message: str


@dataclass(frozen=True)
class ClearError:
    pass


# ── Shelves ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class FetchShelvesStart:
    pass


@dataclass(frozen=True)
class FetchShelvesSuccess:
    shelves: tuple[Shelf, ...]


@dataclass(frozen=True)
class FetchShelvesError:
    message: str


@dataclass(frozen=True)
class UpsertShelf:
    shelf: Shelf


@dataclass(frozen=True)
class SetShelves:
    shelves: tuple[Shelf, ...]


# ── Alerts ───────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class FetchAlertsStart:
    pass


@dataclass(frozen=True)
class FetchAlertsSuccess:
    alerts: tuple[Alert, ...]


@dataclass(frozen=True)
class FetchAlertsError:
    message: str


@dataclass(frozen=True)
class AddAlert:
    alert: Alert


@dataclass(frozen=True)
class AcknowledgeAlert:
    alert_id: str


@dataclass(frozen=True)
class RemoveAlert:
    alert_id: str


@dataclass(frozen=True)
class SetAlerts:
    alerts: tuple[Alert, ...]


# ── UI ───────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class SelectShelf:
    shelf_id: str


@dataclass(frozen=True)
class ClearSelectedShelf:
    pass


@dataclass(frozen=True)
class SetFilter:
    key: FilterKey
    value: str | None


@dataclass(frozen=True)
class ClearFilters:
    pass


# ── Staff actions ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class MarkRestocked:
    """Bump a product by one unit (or set ``count``) and clear its alerts."""

    shelf_id: str
    product_name: str
    count: int | None = None


@dataclass(frozen=True)
class RequestRescan:
    shelf_id: str
    timestamp: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class ReconcileShelf:
    """
    Install a scanned or restocked shelf together with its alert changes.

    One transition, so no listener ever sees the shelf without its
    matching alerts.
    """

    shelf: Shelf
    removed_alert_ids: tuple[str, ...] = ()
    added_alerts: tuple[Alert, ...] = ()


Action = Union[
    Init,
    ReportError,
    ClearError,
    FetchShelvesStart,
    FetchShelvesSuccess,
    FetchShelvesError,
    UpsertShelf,
    SetShelves,
    FetchAlertsStart,
    FetchAlertsSuccess,
    FetchAlertsError,
    AddAlert,
    AcknowledgeAlert,
    RemoveAlert,
    SetAlerts,
    SelectShelf,
    ClearSelectedShelf,
    SetFilter,
    ClearFilters,
    MarkRestocked,
    RequestRescan,
    ReconcileShelf,
]

ACTION_TYPES: tuple[type, ...] = Action.__args__  # type: ignore[attr-defined]
