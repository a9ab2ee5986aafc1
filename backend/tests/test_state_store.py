"""
Tests for the State Store — reducer transitions, subscriptions, snapshots.
"""

from dataclasses import dataclass
from datetime import timedelta

import pytest

from inventory.models import Alert, AlertType, Product, Shelf, ShelfStatus
from state.actions import (
    ACTION_TYPES,
    AcknowledgeAlert,
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
from state.store import _HANDLERS, StateStore, reduce


@dataclass(frozen=True)
class UnknownAction:
    pass


@pytest.fixture
def soap_alert(now):
    return Alert("alert-A1-soap", "A1", "Soap", AlertType.LOW, now)


@pytest.fixture
def state(a1_shelf, soap_alert):
    return AppState(shelves=(a1_shelf,), alerts=(soap_alert,))


class TestReducer:
    def test_unknown_action_returns_same_state(self, state):
        assert reduce(state, UnknownAction()) is state

    def test_every_action_has_a_handler(self):
        assert set(ACTION_TYPES) <= set(_HANDLERS)

    def test_transitions_never_mutate_previous_state(self, state, a1_shelf, soap_alert, now):
        actions = [
            FetchShelvesStart(),
            UpsertShelf(a1_shelf.with_items([Product("Soap", 0, 10)])),
            AcknowledgeAlert(soap_alert.id),
            MarkRestocked("A1", "Soap"),
            ReconcileShelf(a1_shelf, removed_alert_ids=(soap_alert.id,)),
            RequestRescan("A1", now),
            SetFilter("status", "low"),
            SelectShelf("A1"),
            ReportError("boom"),
        ]
        current = state
        for action in actions:
            before = current
            snapshot = (before.shelves, before.alerts, before.loading, before.error, before.filter_options)
            current = reduce(before, action)
            assert current is not before
            assert (before.shelves, before.alerts, before.loading, before.error, before.filter_options) == snapshot

    def test_fetch_shelves_lifecycle(self, state, a1_shelf):
        loading = reduce(state, FetchShelvesStart())
        assert loading.loading.shelves is True
        done = reduce(loading, FetchShelvesSuccess((a1_shelf,)))
        assert done.loading.shelves is False
        failed = reduce(loading, FetchShelvesError("network down"))
        assert failed.loading.shelves is False
        assert failed.error == "network down"

    def test_fetch_alerts_lifecycle(self, state, soap_alert):
        loading = reduce(state, FetchAlertsStart())
        assert loading.loading.alerts is True
        assert reduce(loading, FetchAlertsSuccess(())).alerts == ()
        assert reduce(loading, FetchAlertsError("x")).error == "x"

    def test_errors_set_and_clear(self, state):
        errored = reduce(state, ReportError("bad"))
        assert errored.error == "bad"
        assert reduce(errored, ClearError()).error is None

    def test_upsert_replaces_or_appends(self, state, now):
        replaced = reduce(state, UpsertShelf(Shelf("A1", "Aisle A", (Product("Soap", 0, 10),), now)))
        assert len(replaced.shelves) == 1
        assert replaced.get_shelf("A1").status == ShelfStatus.EMPTY
        appended = reduce(state, UpsertShelf(Shelf("B1", "Aisle B", (Product("Gum", 9, 5),), now)))
        assert [s.id for s in appended.shelves] == ["A1", "B1"]

    def test_set_shelves_and_alerts(self, state):
        assert reduce(state, SetShelves(())).shelves == ()
        assert reduce(state, SetAlerts(())).alerts == ()

    def test_add_alert_prepends_and_supersedes_open_alert(self, state, soap_alert, now):
        empty = Alert("alert-A1-soap-2", "A1", "Soap", AlertType.EMPTY, now)
        result = reduce(state, AddAlert(empty))
        assert [a.id for a in result.alerts] == ["alert-A1-soap-2"]

    def test_add_alert_keeps_acknowledged_history(self, state, soap_alert, now):
        acked = reduce(state, AcknowledgeAlert(soap_alert.id))
        empty = Alert("alert-A1-soap-2", "A1", "Soap", AlertType.EMPTY, now)
        result = reduce(acked, AddAlert(empty))
        assert [a.id for a in result.alerts] == ["alert-A1-soap-2", soap_alert.id]

    def test_reconcile_shelf_is_one_transition(self, state, a1_shelf, soap_alert, now):
        shelf = a1_shelf.with_items([Product("Soap", 0, 10), Product("Paste", 8, 10)])
        empty = Alert("alert-A1-soap-2", "A1", "Soap", AlertType.EMPTY, now)
        paste = Alert("alert-A1-paste", "A1", "Paste", AlertType.LOW, now)
        result = reduce(state, ReconcileShelf(shelf, added_alerts=(empty, paste)))
        assert result.get_shelf("A1").status == ShelfStatus.EMPTY
        assert [a.id for a in result.alerts] == ["alert-A1-paste", "alert-A1-soap-2"]

        cleared = reduce(result, ReconcileShelf(a1_shelf, removed_alert_ids=("alert-A1-soap-2", "alert-A1-paste")))
        assert cleared.get_shelf("A1") == a1_shelf
        assert cleared.alerts == ()

    def test_acknowledge_and_remove(self, state, soap_alert):
        acked = reduce(state, AcknowledgeAlert(soap_alert.id))
        assert acked.get_alert(soap_alert.id).acknowledged is True
        assert reduce(acked, RemoveAlert(soap_alert.id)).alerts == ()

    def test_select_and_clear_shelf(self, state):
        selected = reduce(state, SelectShelf("A1"))
        assert selected.selected_shelf == "A1"
        assert reduce(selected, ClearSelectedShelf()).selected_shelf is None

    def test_filters(self, state):
        filtered = reduce(reduce(state, SetFilter("aisle", "Aisle A")), SetFilter("status", "empty"))
        assert filtered.filter_options.aisle == "Aisle A"
        assert filtered.filter_options.status == ShelfStatus.EMPTY
        cleared = reduce(filtered, ClearFilters())
        assert cleared.filter_options.aisle is None
        assert cleared.filter_options.status is None

    def test_invalid_status_filter_is_ignored(self, state):
        assert reduce(state, SetFilter("status", "broken")) is state

    def test_mark_restocked_increments_and_clears_alerts(self, state):
        result = reduce(state, MarkRestocked("A1", "Soap"))
        assert result.get_shelf("A1").find_item("Soap").count == 6
        assert result.alerts == ()

    def test_mark_restocked_with_count(self, state):
        result = reduce(state, MarkRestocked("A1", "Soap", count=12))
        assert result.get_shelf("A1").find_item("Soap").count == 12

    def test_mark_restocked_unknown_targets(self, state):
        assert reduce(state, MarkRestocked("Z9", "Soap")) is state
        assert reduce(state, MarkRestocked("A1", "Missing")) is state

    def test_request_rescan_stamps_last_scanned(self, state, now):
        later = now + timedelta(minutes=5)
        assert reduce(state, RequestRescan("A1", later)).get_shelf("A1").last_scanned == later

    def test_init_replaces_state(self, state):
        fresh = AppState()
        assert reduce(state, Init(fresh)) is fresh


class TestStateStore:
    def test_dispatch_notifies_listeners(self, state):
        store = StateStore(state)
        seen = []
        store.subscribe(lambda s, a: seen.append(type(a).__name__))
        store.dispatch(SelectShelf("A1"))
        assert seen == ["SelectShelf"]

    def test_unchanged_state_does_not_notify(self, state):
        store = StateStore(state)
        seen = []
        store.subscribe(lambda s, a: seen.append(a))
        store.dispatch(UnknownAction())
        assert seen == []

    def test_unsubscribe(self, state):
        store = StateStore(state)
        seen = []
        unsubscribe = store.subscribe(lambda s, a: seen.append(a))
        unsubscribe()
        unsubscribe()
        store.dispatch(SelectShelf("A1"))
        assert seen == []

    def test_failing_listener_does_not_break_dispatch(self, state):
        store = StateStore(state)
        seen = []

        def broken(s, a):
            raise RuntimeError("listener bug")

        store.subscribe(broken)
        store.subscribe(lambda s, a: seen.append(a))
        store.dispatch(SelectShelf("A1"))
        assert store.state.selected_shelf == "A1"
        assert len(seen) == 1

    def test_history_is_bounded(self, state):
        store = StateStore(state, history_size=3)
        for _ in range(5):
            store.dispatch(SelectShelf("A1"))
            store.dispatch(ClearSelectedShelf())
        assert len(store.history) == 3
        assert store.history[-1][0] == "ClearSelectedShelf"

    def test_snapshot_and_restore(self, state, a1_shelf):
        store = StateStore(state)
        store.snapshot()
        store.dispatch(MarkRestocked("A1", "Soap", count=30))
        assert store.state.get_shelf("A1").find_item("Soap").count == 30
        store.restore()
        assert store.state == state
