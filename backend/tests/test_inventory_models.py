"""
Tests for the inventory domain model.

Covers:
  - Status derivation from product counts
  - Shelf status always follows its items
  - Immutability of shelf/alert updates
"""

from dataclasses import FrozenInstanceError

import pytest

from inventory.models import Alert, AlertType, Product, ScanUpdate, Shelf, ShelfStatus, derive_status

# ── derive_status ──────────────────────────────────────────────────────


class TestDeriveStatus:
    def test_all_at_or_above_threshold_is_ok(self):
        assert derive_status([Product("A", 10, 10), Product("B", 30, 5)]) == ShelfStatus.OK

    def test_any_below_threshold_is_low(self):
        assert derive_status([Product("A", 10, 10), Product("B", 4, 5)]) == ShelfStatus.LOW

    def test_any_zero_is_empty(self):
        assert derive_status([Product("A", 0, 10), Product("B", 4, 5)]) == ShelfStatus.EMPTY

    def test_empty_beats_low_regardless_of_order(self):
        assert derive_status([Product("B", 4, 5), Product("A", 0, 10)]) == ShelfStatus.EMPTY

    def test_no_items_is_ok(self):
        assert derive_status([]) == ShelfStatus.OK

    def test_product_predicates(self):
        assert Product("A", 0, 10).is_empty
        assert not Product("A", 0, 10).is_low
        assert Product("A", 9, 10).is_low
        assert not Product("A", 10, 10).is_low


# ── Shelf ──────────────────────────────────────────────────────────────


class TestShelf:
    def test_status_is_derived(self, a1_shelf):
        assert a1_shelf.status == ShelfStatus.LOW
        emptied = a1_shelf.with_items([Product("Soap", 0, 10), Product("Paste", 8, 10)])
        assert emptied.status == ShelfStatus.EMPTY
        assert emptied.status == derive_status(emptied.items)

    def test_with_items_returns_new_shelf(self, a1_shelf):
        updated = a1_shelf.with_items([Product("Soap", 12, 10), Product("Paste", 10, 10)])
        assert updated is not a1_shelf
        assert a1_shelf.find_item("Soap").count == 5
        assert updated.status == ShelfStatus.OK
        assert updated.id == a1_shelf.id
        assert updated.last_scanned == a1_shelf.last_scanned

    def test_items_are_stored_as_tuple(self, now):
        shelf = Shelf(id="B1", aisle="Aisle B", items=[Product("X", 1, 2)], last_scanned=now)
        assert isinstance(shelf.items, tuple)

    def test_find_item(self, a1_shelf):
        assert a1_shelf.find_item("Paste").count == 8
        assert a1_shelf.find_item("Missing") is None

    def test_shelf_is_frozen(self, a1_shelf):
        with pytest.raises(FrozenInstanceError):
            a1_shelf.items = ()


# ── Alert / ScanUpdate ─────────────────────────────────────────────────


class TestAlert:
    def test_acknowledge_returns_copy(self, now):
        alert = Alert("alert-1", "A1", "Soap", AlertType.EMPTY, now)
        acked = alert.acknowledge()
        assert acked.acknowledged is True
        assert alert.acknowledged is False
        assert acked.key == ("A1", "Soap")

    def test_scan_update_coerces_items(self, now):
        update = ScanUpdate(shelf="A1", items=[Product("Soap", 1, 10)], timestamp=now)
        assert update.items == (Product("Soap", 1, 10),)
