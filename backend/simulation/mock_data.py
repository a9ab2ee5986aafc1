"""
Mock Inventory Simulator — synthetic shelves, alerts, and scan updates.

Provides realistic retail inventory data for development and demos:
  - a 5 aisle × 3 shelf grid of products with keyword-derived thresholds
  - alerts consistent with the generated counts
  - randomized "drone scan" updates and staff restocks

All randomness goes through an injected ``random.Random`` so a seeded
generator reproduces the same store. Functions never mutate their inputs.
"""

from __future__ import annotations

import random
from collections.abc import Sequence
from datetime import datetime, timedelta

import structlog

from alerts.engine import alert_id_for, classify_product
from inventory.models import Alert, AlertType, Product, ScanUpdate, Shelf, ShelfStatus, utcnow

logger = structlog.get_logger()

# ──────────────────────────────────────────────────────────────────────────
# Catalog
# ──────────────────────────────────────────────────────────────────────────

PRODUCT_NAMES = [
    # Personal Care
    "Dove Soap 100g", "Colgate Toothpaste", "Head & Shoulders Shampoo", "Gillette Razor",
    "Nivea Lotion", "Oral-B Toothbrush", "Pantene Conditioner", "Deodorant Spray",
    # Food & Beverages
    "Coca-Cola 12-pack", "Lay's Chips", "Oreo Cookies", "Pringles Original",
    "Red Bull Energy", "Nestle Water 6-pack", "Kit Kat Bar", "Doritos Nacho",
    # Household
    "Tide Detergent", "Bounty Paper Towels", "Charmin Toilet Paper", "Dawn Dish Soap",
    "Lysol Spray", "Febreze Air Fresh", "Glad Trash Bags", "Swiffer Pads",
    # Health & Wellness
    "Tylenol 100ct", "Vitamin C 60ct", "Band-Aid Pack", "Ibuprofen 200mg",
    "Cough Drops", "Hand Sanitizer", "First Aid Kit", "Thermometer",
    # Electronics & Accessories
    "Phone Charger", "AA Batteries 8-pack", "USB Cable", "Earbuds",
    "Phone Case", "Screen Protector", "Power Bank", "Car Charger",
]  # fmt: skip

AISLE_LETTERS = "ABCDE"
SHELVES_PER_AISLE = 3

PRODUCT_THRESHOLDS = {
    "small": 5,  # candy bars, lozenges
    "medium": 10,  # default
    "large": 15,  # detergent, multipacks
    "bulk": 20,  # 6-/12-packs of drinks
}

# Checked in order; first bucket with a matching keyword wins
THRESHOLD_KEYWORDS = (
    ("bulk", ("6-pack", "12-pack")),
    ("large", ("pack", "Detergent")),
    ("small", ("Bar", "Drops")),
)

TRAFFIC_KEYWORDS = (
    (3, ("Coca-Cola", "Chips", "Energy", "Cookies")),
    (2, ("Soap", "Toothpaste", "Detergent", "Shampoo")),
)

IMAGE_PROBABILITY = 0.7
EMPTY_ACK_PROBABILITY = 0.3
LOW_ACK_PROBABILITY = 0.2


def _rng(rng: random.Random | None) -> random.Random:
    return rng if rng is not None else random.Random()


def threshold_for(product_name: str) -> int:
    """Bucket a product into small/medium/large/bulk by name keywords."""
    for bucket, keywords in THRESHOLD_KEYWORDS:
        if any(keyword in product_name for keyword in keywords):
            return PRODUCT_THRESHOLDS[bucket]
    return PRODUCT_THRESHOLDS["medium"]


def generate_realistic_count(threshold: int, rng: random.Random | None = None) -> int:
    """
    Weighted count distribution:
      10% empty, 10% below threshold, 60% healthy, 20% overstocked.
    """
    rng = _rng(rng)
    roll = rng.random()
    if roll < 0.1:
        return 0
    if roll < 0.2:
        return rng.randrange(threshold)
    if roll < 0.8:
        return threshold + rng.randrange(10)
    return threshold + rng.randrange(20)


def generate_product(name: str, rng: random.Random | None = None) -> Product:
    threshold = threshold_for(name)
    return Product(product=name, count=generate_realistic_count(threshold, rng), threshold=threshold)


# ──────────────────────────────────────────────────────────────────────────
# Shelves
# ──────────────────────────────────────────────────────────────────────────


def generate_shelf(
    shelf_id: str,
    aisle: str,
    rng: random.Random | None = None,
    now: datetime | None = None,
) -> Shelf:
    """Generate a shelf with 3–6 unique catalog products."""
    rng = _rng(rng)
    now = now or utcnow()

    product_count = 3 + rng.randrange(4)
    names = rng.sample(PRODUCT_NAMES, product_count)
    items = tuple(generate_product(name, rng) for name in names)

    hours_ago = rng.randrange(24)
    image_url = f"https://picsum.photos/400/300?random={shelf_id}" if rng.random() < IMAGE_PROBABILITY else None
    return Shelf(
        id=shelf_id,
        aisle=aisle,
        items=items,
        last_scanned=now - timedelta(hours=hours_ago),
        image_url=image_url,
    )


def generate_mock_shelves(
    rng: random.Random | None = None,
    *,
    aisle_letters: str = AISLE_LETTERS,
    shelves_per_aisle: int = SHELVES_PER_AISLE,
    min_empty: int = 2,
    min_low: int = 3,
    now: datetime | None = None,
) -> list[Shelf]:
    """Generate the full shelf grid, then force a demo-worthy status mix."""
    rng = _rng(rng)
    now = now or utcnow()

    shelves = [
        generate_shelf(f"{aisle}{number}", f"Aisle {aisle}", rng, now)
        for aisle in aisle_letters
        for number in range(1, shelves_per_aisle + 1)
    ]
    return ensure_demo_distribution(shelves, rng, min_empty=min_empty, min_low=min_low)


def ensure_demo_distribution(
    shelves: Sequence[Shelf],
    rng: random.Random | None = None,
    *,
    min_empty: int = 2,
    min_low: int = 3,
) -> list[Shelf]:
    """
    Guarantee at least ``min_empty`` empty and ``min_low`` low shelves.

    Empty shelves are forced by zeroing one product. Low shelves come from
    ok shelves (one product set to half its threshold) and, when needed,
    from surplus empty shelves (every empty product set to half its
    threshold). Statuses are re-derived after every change.
    """
    rng = _rng(rng)
    result = list(shelves)

    def _count(status: ShelfStatus) -> int:
        return sum(1 for s in result if s.status == status)

    def _half(product: Product) -> Product:
        return product.with_count(max(1, int(product.threshold * 0.5)))

    empty_candidates = [i for i, s in enumerate(result) if s.status == ShelfStatus.OK and s.items]
    empty_candidates += [i for i, s in enumerate(result) if s.status == ShelfStatus.LOW and s.items]
    for index in empty_candidates:
        if _count(ShelfStatus.EMPTY) >= min_empty:
            break
        shelf = result[index]
        result[index] = shelf.with_items([shelf.items[0].with_count(0), *shelf.items[1:]])

    ok_candidates = [i for i, s in enumerate(result) if s.status == ShelfStatus.OK and s.items]
    rng.shuffle(ok_candidates)
    empty_surplus = [i for i, s in enumerate(result) if s.status == ShelfStatus.EMPTY]
    rng.shuffle(empty_surplus)
    for index in ok_candidates + empty_surplus:
        if _count(ShelfStatus.LOW) >= min_low:
            break
        shelf = result[index]
        if shelf.status == ShelfStatus.OK:
            candidate = shelf.with_items([_half(shelf.items[0]), *shelf.items[1:]])
        elif _count(ShelfStatus.EMPTY) > min_empty:
            candidate = shelf.with_items([_half(p) if p.is_empty else p for p in shelf.items])
        else:
            continue
        if candidate.status == ShelfStatus.LOW:
            result[index] = candidate

    if _count(ShelfStatus.EMPTY) < min_empty or _count(ShelfStatus.LOW) < min_low:
        logger.warning(
            "simulation.distribution_unmet",
            empty=_count(ShelfStatus.EMPTY),
            low=_count(ShelfStatus.LOW),
            shelves=len(result),
        )
    return result


# ──────────────────────────────────────────────────────────────────────────
# Alerts
# ──────────────────────────────────────────────────────────────────────────


def generate_alerts_from_shelves(
    shelves: Sequence[Shelf],
    rng: random.Random | None = None,
    now: datetime | None = None,
) -> list[Alert]:
    """One alert per empty or low product, newest first."""
    rng = _rng(rng)
    now = now or utcnow()

    alerts = []
    for shelf in shelves:
        for product in shelf.items:
            alert_type = classify_product(product)
            if alert_type is None:
                continue
            if alert_type == AlertType.EMPTY:
                age = timedelta(hours=rng.random())
                acknowledged = rng.random() < EMPTY_ACK_PROBABILITY
            else:
                age = timedelta(hours=rng.random() * 2)
                acknowledged = rng.random() < LOW_ACK_PROBABILITY
            alerts.append(
                Alert(
                    id=alert_id_for(shelf.id, product.product),
                    shelf=shelf.id,
                    product=product.product,
                    type=alert_type,
                    timestamp=now - age,
                    acknowledged=acknowledged,
                )
            )

    return sorted(alerts, key=lambda a: a.timestamp, reverse=True)


def summarize_shelves(shelves: Sequence[Shelf], alerts: Sequence[Alert]) -> dict[str, int]:
    return {
        "total_shelves": len(shelves),
        "ok_shelves": sum(1 for s in shelves if s.status == ShelfStatus.OK),
        "low_shelves": sum(1 for s in shelves if s.status == ShelfStatus.LOW),
        "empty_shelves": sum(1 for s in shelves if s.status == ShelfStatus.EMPTY),
        "total_alerts": len(alerts),
        "unacknowledged_alerts": sum(1 for a in alerts if not a.acknowledged),
    }


def generate_mock_data(rng: random.Random | None = None, now: datetime | None = None, **grid) -> dict:
    """Complete mock dataset: shelves, alerts, and summary stats."""
    rng = _rng(rng)
    now = now or utcnow()
    shelves = generate_mock_shelves(rng, now=now, **grid)
    alerts = generate_alerts_from_shelves(shelves, rng, now)
    return {
        "shelves": shelves,
        "alerts": alerts,
        "stats": summarize_shelves(shelves, alerts),
    }


# ──────────────────────────────────────────────────────────────────────────
# Real-time Simulation
# ──────────────────────────────────────────────────────────────────────────


def simulate_shelf_scan(shelf: Shelf, rng: random.Random | None = None, now: datetime | None = None) -> ScanUpdate:
    """
    Simulate a fresh scan of ``shelf`` with natural inventory drift.

    Per product, at most one of:
      - purchase (10%): count drops by 1–3, floored at 0
      - restock (5%):   an empty product jumps to threshold + 0..9
      - partial (3%):   a product below threshold gains 0..7, capped at threshold + 5
    """
    rng = _rng(rng)
    items = []
    for product in shelf.items:
        new_count = product.count
        roll = rng.random()
        if roll < 0.10 and new_count > 0:
            new_count = max(0, new_count - (1 + rng.randrange(3)))
        elif roll < 0.15 and new_count == 0:
            new_count = product.threshold + rng.randrange(10)
        elif roll < 0.18 and new_count < product.threshold:
            new_count = min(product.threshold + 5, new_count + rng.randrange(8))
        items.append(product.with_count(new_count))

    return ScanUpdate(shelf=shelf.id, items=tuple(items), timestamp=now or utcnow())


def apply_scan_update(shelf: Shelf, update: ScanUpdate) -> Shelf:
    """Replace a shelf's items with a scan snapshot; status follows the items."""
    return shelf.with_items(update.items, last_scanned=update.timestamp)


def simulate_restock_product(
    shelf: Shelf,
    product_name: str,
    new_count: int | None = None,
    rng: random.Random | None = None,
    now: datetime | None = None,
) -> Shelf:
    """Set one product's count (default: threshold + 5..14)."""
    rng = _rng(rng)
    items = []
    for product in shelf.items:
        if product.product == product_name:
            count = new_count if new_count is not None else product.threshold + 5 + rng.randrange(10)
            product = product.with_count(max(0, count))
        items.append(product)
    return shelf.with_items(items, last_scanned=now or utcnow())


def product_traffic_factor(product_name: str) -> int:
    """Units per hour a busy aisle can sell; beverages and snacks move fastest."""
    for factor, keywords in TRAFFIC_KEYWORDS:
        if any(keyword in product_name for keyword in keywords):
            return factor
    return 1


def simulate_time_based_decrease(
    shelves: Sequence[Shelf],
    hours_elapsed: float = 1,
    rng: random.Random | None = None,
    now: datetime | None = None,
) -> list[Shelf]:
    """Drain every shelf as if ``hours_elapsed`` of shopping happened."""
    rng = _rng(rng)
    now = now or utcnow()
    result = []
    for shelf in shelves:
        items = []
        for product in shelf.items:
            max_decrease = int(product_traffic_factor(product.product) * hours_elapsed)
            decrease = rng.randrange(max_decrease + 1)
            items.append(product.with_count(max(0, product.count - decrease)))
        result.append(shelf.with_items(items, last_scanned=now))
    return result


def generate_random_scan_update(
    shelves: Sequence[Shelf],
    rng: random.Random | None = None,
    now: datetime | None = None,
) -> ScanUpdate | None:
    if not shelves:
        return None
    rng = _rng(rng)
    return simulate_shelf_scan(rng.choice(list(shelves)), rng, now)
