"""
Tests for shelf filtering and sorting.
"""

from datetime import timedelta

import pytest

from inventory.models import Product, Shelf, ShelfStatus
from inventory.queries import filter_shelves, matches_aisle, sort_shelves


@pytest.fixture
def shelves(now):
    return [
        Shelf("B2", "Aisle B", (Product("Gum", 9, 5),), now - timedelta(hours=3)),
        Shelf("A2", "Aisle A", (Product("Soap", 0, 10),), now - timedelta(hours=1)),
        Shelf("A1", "Aisle A", (Product("Paste", 4, 10),), now),
    ]


class TestFilterShelves:
    def test_aisle_label_or_letter(self, shelves):
        assert matches_aisle(shelves[0], "Aisle B")
        assert matches_aisle(shelves[0], " b ")
        assert not matches_aisle(shelves[0], "A")

    def test_filter_by_aisle(self, shelves):
        assert [s.id for s in filter_shelves(shelves, aisle="A")] == ["A2", "A1"]

    def test_filter_by_status(self, shelves):
        assert [s.id for s in filter_shelves(shelves, status="empty")] == ["A2"]
        assert [s.id for s in filter_shelves(shelves, aisle="A", status=ShelfStatus.LOW)] == ["A1"]

    def test_no_filters_returns_all(self, shelves):
        assert filter_shelves(shelves) == shelves


class TestSortShelves:
    def test_by_aisle(self, shelves):
        assert [s.id for s in sort_shelves(shelves)] == ["A1", "A2", "B2"]

    def test_by_status(self, shelves):
        assert [s.status for s in sort_shelves(shelves, "status")] == [
            ShelfStatus.EMPTY,
            ShelfStatus.LOW,
            ShelfStatus.OK,
        ]

    def test_by_last_scanned_newest_first(self, shelves):
        assert [s.id for s in sort_shelves(shelves, "last_scanned")] == ["A1", "A2", "B2"]

    def test_unknown_key(self, shelves):
        with pytest.raises(ValueError):
            sort_shelves(shelves, "color")
