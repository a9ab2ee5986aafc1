"""
Inventory Domain Model — Products, Shelves, Alerts, Scan Updates.

All entities are immutable. A shelf's status is derived from its items on
every access, so no code path can store a status that disagrees with the
counts it summarizes.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable


class ShelfStatus(str, Enum):
    """Worst-case stock condition across a shelf's products."""

    OK = "ok"
    LOW = "low"
    EMPTY = "empty"


class AlertType(str, Enum):
    LOW = "low"
    EMPTY = "empty"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Product:
    """One SKU on a shelf."""

    product: str
    count: int
    threshold: int

    @property
    def is_empty(self) -> bool:
        return self.count == 0

    @property
    def is_low(self) -> bool:
        return 0 < self.count < self.threshold

    def with_count(self, count: int) -> Product:
        return replace(self, count=count)


def derive_status(items: Iterable[Product]) -> ShelfStatus:
    """
    Derive shelf status from product counts.

    empty if any product has count 0, else low if any product sits
    below its threshold, else ok.
    """
    items = list(items)
    if any(p.is_empty for p in items):
        return ShelfStatus.EMPTY
    if any(p.is_low for p in items):
        return ShelfStatus.LOW
    return ShelfStatus.OK


@dataclass(frozen=True)
class Shelf:
    id: str
    aisle: str
    items: tuple[Product, ...]
    last_scanned: datetime
    image_url: str | None = None

    def __post_init__(self):
        # Accept any sequence but always store a tuple
        if not isinstance(self.items, tuple):
            object.__setattr__(self, "items", tuple(self.items))

    @property
    def status(self) -> ShelfStatus:
        return derive_status(self.items)

    def find_item(self, product_name: str) -> Product | None:
        for item in self.items:
            if item.product == product_name:
                return item
        return None

    def with_items(self, items: Iterable[Product], last_scanned: datetime | None = None) -> Shelf:
        return replace(
            self,
            items=tuple(items),
            last_scanned=last_scanned if last_scanned is not None else self.last_scanned,
        )


@dataclass(frozen=True)
class Alert:
    id: str
    shelf: str
    product: str
    type: AlertType
    timestamp: datetime
    acknowledged: bool = False

    @property
    def key(self) -> tuple[str, str]:
        """(shelf, product) pair the alert is about."""
        return (self.shelf, self.product)

    def acknowledge(self) -> Alert:
        return replace(self, acknowledged=True)


@dataclass(frozen=True)
class ScanUpdate:
    """New product-count snapshot for one shelf, from any source."""

    shelf: str
    items: tuple[Product, ...]
    timestamp: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        if not isinstance(self.items, tuple):
            object.__setattr__(self, "items", tuple(self.items))


@dataclass(frozen=True)
class StaffActionResult:
    success: bool
    message: str
    shelf_id: str
    timestamp: datetime = field(default_factory=utcnow)
