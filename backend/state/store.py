"""
State Store — single owner of shelves, alerts, and UI state.

``reduce`` is a pure function from (state, action) to a new state. The
``StateStore`` wraps it with serialized dispatch, subscriber notification,
and snapshots for resetting to a known-good state.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable
from dataclasses import replace
from typing import Any

import structlog

from inventory.models import Alert, Shelf, ShelfStatus
from state.actions import (
    ACTION_TYPES,
    AcknowledgeAlert,
    Action,
    AddAlert,
    AppState,
    ClearError,
    ClearFilters,
    ClearSelectedShelf,
    FetchAlertsError,
    FetchAlertsStart,
    FetchAlertsSuccess,
    FetchShelvesError,
    FetchShelvesStart,
    FetchShelvesSuccess,
    FilterOptions,
    Init,
    MarkRestocked,
    ReconcileShelf,
    RemoveAlert,
    ReportError,
    RequestRescan,
    SelectShelf,
    SetAlerts,
    SetFilter,
    SetShelves,
    UpsertShelf,
)

logger = structlog.get_logger()

Listener = Callable[[AppState, Any], None]

# ──────────────────────────────────────────────────────────────────────────
# Reducer
# ──────────────────────────────────────────────────────────────────────────

_HANDLERS: dict[type, Callable[[AppState, Any], AppState]] = {}


def _handles(action_cls: type):
    """Decorator: register the reducer branch for an action class."""

    def decorator(fn):
        _HANDLERS[action_cls] = fn
        return fn

    return decorator


def reduce(state: AppState, action: Any) -> AppState:
    """Apply one action. Unknown actions return ``state`` unchanged."""
    handler = _HANDLERS.get(type(action))
    if handler is None:
        logger.debug("store.unknown_action", action=type(action).__name__)
        return state
    return handler(state, action)


@_handles(Init)
def _init(state: AppState, action: Init) -> AppState:
    return action.state


@_handles(ReportError)
def _report_error(state: AppState, action: ReportError) -> AppState:
    return replace(state, error=action.message)


@_handles(ClearError)
def _clear_error(state: AppState, action: ClearError) -> AppState:
    return replace(state, error=None)


@_handles(FetchShelvesStart)
def _fetch_shelves_start(state: AppState, action: FetchShelvesStart) -> AppState:
    return replace(state, loading=replace(state.loading, shelves=True), error=None)


@_handles(FetchShelvesSuccess)
def _fetch_shelves_success(state: AppState, action: FetchShelvesSuccess) -> AppState:
    return replace(
        state,
        shelves=tuple(action.shelves),
        loading=replace(state.loading, shelves=False),
        error=None,
    )


@_handles(FetchShelvesError)
def _fetch_shelves_error(state: AppState, action: FetchShelvesError) -> AppState:
    return replace(state, loading=replace(state.loading, shelves=False), error=action.message)


def _with_shelf(shelves: tuple[Shelf, ...], incoming: Shelf) -> tuple[Shelf, ...]:
    if not any(shelf.id == incoming.id for shelf in shelves):
        return shelves + (incoming,)
    return tuple(incoming if shelf.id == incoming.id else shelf for shelf in shelves)


@_handles(UpsertShelf)
def _upsert_shelf(state: AppState, action: UpsertShelf) -> AppState:
    return replace(state, shelves=_with_shelf(state.shelves, action.shelf))


@_handles(SetShelves)
def _set_shelves(state: AppState, action: SetShelves) -> AppState:
    return replace(state, shelves=tuple(action.shelves))


@_handles(FetchAlertsStart)
def _fetch_alerts_start(state: AppState, action: FetchAlertsStart) -> AppState:
    return replace(state, loading=replace(state.loading, alerts=True), error=None)


@_handles(FetchAlertsSuccess)
def _fetch_alerts_success(state: AppState, action: FetchAlertsSuccess) -> AppState:
    return replace(
        state,
        alerts=tuple(action.alerts),
        loading=replace(state.loading, alerts=False),
        error=None,
    )


@_handles(FetchAlertsError)
def _fetch_alerts_error(state: AppState, action: FetchAlertsError) -> AppState:
    return replace(state, loading=replace(state.loading, alerts=False), error=action.message)


def _with_alert(alerts: tuple[Alert, ...], new: Alert) -> tuple[Alert, ...]:
    # A new alert supersedes any open alert for the same shelf + product
    kept = tuple(a for a in alerts if a.id != new.id and not (a.key == new.key and not a.acknowledged))
    return (new,) + kept


@_handles(AddAlert)
def _add_alert(state: AppState, action: AddAlert) -> AppState:
    return replace(state, alerts=_with_alert(state.alerts, action.alert))


@_handles(AcknowledgeAlert)
def _acknowledge_alert(state: AppState, action: AcknowledgeAlert) -> AppState:
    return replace(
        state,
        alerts=tuple(a.acknowledge() if a.id == action.alert_id else a for a in state.alerts),
    )


@_handles(RemoveAlert)
def _remove_alert(state: AppState, action: RemoveAlert) -> AppState:
    return replace(state, alerts=tuple(a for a in state.alerts if a.id != action.alert_id))


@_handles(SetAlerts)
def _set_alerts(state: AppState, action: SetAlerts) -> AppState:
    return replace(state, alerts=tuple(action.alerts))


@_handles(SelectShelf)
def _select_shelf(state: AppState, action: SelectShelf) -> AppState:
    return replace(state, selected_shelf=action.shelf_id)


@_handles(ClearSelectedShelf)
def _clear_selected_shelf(state: AppState, action: ClearSelectedShelf) -> AppState:
    return replace(state, selected_shelf=None)


@_handles(SetFilter)
def _set_filter(state: AppState, action: SetFilter) -> AppState:
    if action.key == "aisle":
        return replace(state, filter_options=replace(state.filter_options, aisle=action.value))
    if action.key == "status":
        try:
            status = ShelfStatus(action.value) if action.value is not None else None
        except ValueError:
            logger.warning("store.invalid_status_filter", value=action.value)
            return state
        return replace(state, filter_options=replace(state.filter_options, status=status))
    logger.warning("store.invalid_filter_key", key=action.key)
    return state


@_handles(ClearFilters)
def _clear_filters(state: AppState, action: ClearFilters) -> AppState:
    return replace(state, filter_options=FilterOptions())


@_handles(MarkRestocked)
def _mark_restocked(state: AppState, action: MarkRestocked) -> AppState:
    shelf = state.get_shelf(action.shelf_id)
    if shelf is None or shelf.find_item(action.product_name) is None:
        return state

    items = []
    for product in shelf.items:
        if product.product == action.product_name:
            count = action.count if action.count is not None else product.count + 1
            product = product.with_count(max(0, count))
        items.append(product)

    restocked = shelf.with_items(items)
    pair = (action.shelf_id, action.product_name)
    return replace(
        state,
        shelves=tuple(restocked if s.id == shelf.id else s for s in state.shelves),
        alerts=tuple(a for a in state.alerts if a.key != pair),
    )


@_handles(RequestRescan)
def _request_rescan(state: AppState, action: RequestRescan) -> AppState:
    return replace(
        state,
        shelves=tuple(
            replace(s, last_scanned=action.timestamp) if s.id == action.shelf_id else s for s in state.shelves
        ),
    )


@_handles(ReconcileShelf)
def _reconcile_shelf(state: AppState, action: ReconcileShelf) -> AppState:
    removed = set(action.removed_alert_ids)
    alerts = tuple(a for a in state.alerts if a.id not in removed)
    for alert in action.added_alerts:
        alerts = _with_alert(alerts, alert)
    return replace(state, shelves=_with_shelf(state.shelves, action.shelf), alerts=alerts)


_missing = [cls.__name__ for cls in ACTION_TYPES if cls not in _HANDLERS]
if _missing:
    raise RuntimeError(f"Reducer has no branch for actions: {_missing}")


# ──────────────────────────────────────────────────────────────────────────
# Store
# ──────────────────────────────────────────────────────────────────────────


class StateStore:
    """
    Owns the current ``AppState``; the only place it changes.

    Dispatch runs one transition to completion before the next, and
    listeners are notified after the new state is installed.
    """

    def __init__(self, initial: AppState | None = None, history_size: int = 100):
        self._state = initial if initial is not None else AppState()
        self._listeners: list[Listener] = []
        self._history: deque[tuple[str, AppState]] = deque(maxlen=history_size)
        self._known_good = self._state

    @property
    def state(self) -> AppState:
        return self._state

    @property
    def history(self) -> list[tuple[str, AppState]]:
        """(action name, resulting state) pairs, oldest first."""
        return list(self._history)

    def dispatch(self, action: Action) -> AppState:
        previous = self._state
        self._state = reduce(previous, action)
        self._history.append((type(action).__name__, self._state))
        if self._state is not previous:
            self._notify(action)
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, action: Action) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._state, action)
            except Exception:  # noqa: BLE001
                logger.exception("store.listener_failed", action=type(action).__name__)

    # ── Snapshots ───────────────────────────────────────────────────────

    def snapshot(self) -> AppState:
        """Mark the current state as known-good and return it."""
        self._known_good = self._state
        return self._state

    def restore(self, snapshot: AppState | None = None) -> AppState:
        """Reset to ``snapshot`` (default: the last known-good state)."""
        target = snapshot if snapshot is not None else self._known_good
        logger.info("store.restored", shelves=len(target.shelves), alerts=len(target.alerts))
        return self.dispatch(Init(state=target))
