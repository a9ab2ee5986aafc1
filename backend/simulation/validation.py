"""
Mock data validation — sanity checks before a demo.

Each validator returns a ``ValidationReport`` with hard errors (data that
breaks an invariant) and soft warnings (data that makes a weak demo).
"""

from __future__ import annotations

import random
from collections import Counter
from collections.abc import Sequence
from dataclasses import asdict, dataclass, field
from datetime import datetime

import structlog

from alerts.engine import classify_product
from inventory.models import Alert, AlertType, Shelf, ShelfStatus, utcnow
from simulation.mock_data import generate_mock_data

logger = structlog.get_logger()

MIN_SHELVES = 10
MAX_SHELVES = 20
HIGH_THRESHOLD_WARNING = 50
ERROR_PENALTY = 10
WARNING_PENALTY = 2

DEMONSTRATION_FLOW = (
    "Show dashboard overview with mixed shelf statuses",
    "Highlight critical alerts banner",
    "Navigate to specific problematic shelf",
    "Demonstrate staff action (mark restocked)",
    "Show real-time update clearing alert",
    "Display updated dashboard state",
)


@dataclass
class ValidationReport:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    stats: dict = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict:
        return {"is_valid": self.is_valid, **asdict(self)}


def validate_mock_shelves(shelves: Sequence[Shelf]) -> ValidationReport:
    report = ValidationReport()

    if not MIN_SHELVES <= len(shelves) <= MAX_SHELVES:
        report.errors.append(
            f"Invalid shelf count: {len(shelves)}. Expected {MIN_SHELVES}-{MAX_SHELVES} shelves."
        )

    status_distribution = Counter(s.status.value for s in shelves)
    if status_distribution[ShelfStatus.EMPTY.value] < 1:
        report.warnings.append("No empty shelves found. Demo may be less impactful.")
    if status_distribution[ShelfStatus.LOW.value] < 2:
        report.warnings.append("Fewer than 2 low-stock shelves. Consider adding more for demo variety.")

    ids = [s.id for s in shelves]
    if len(ids) != len(set(ids)):
        report.errors.append("Duplicate shelf IDs found")

    for shelf in shelves:
        if not isinstance(shelf.last_scanned, datetime):
            report.errors.append(f"Invalid timestamp for shelf {shelf.id}")

    avg_products = sum(len(s.items) for s in shelves) / len(shelves) if shelves else 0.0
    if not 3 <= avg_products <= 7:
        report.warnings.append(f"Average products per shelf: {avg_products:.1f}. Recommended: 3-6.")

    report.stats = {
        "total_shelves": len(shelves),
        "status_distribution": dict(status_distribution),
        "aisle_distribution": dict(Counter(s.aisle for s in shelves)),
        "avg_products_per_shelf": round(avg_products, 1),
    }
    return report


def validate_mock_alerts(alerts: Sequence[Alert], shelves: Sequence[Shelf]) -> ValidationReport:
    """Every alert must point at an existing product whose count still matches its type."""
    report = ValidationReport()
    by_id = {s.id: s for s in shelves}

    for alert in alerts:
        shelf = by_id.get(alert.shelf)
        if shelf is None:
            report.errors.append(f"Alert {alert.id} references non-existent shelf {alert.shelf}")
            continue
        product = shelf.find_item(alert.product)
        if product is None:
            report.errors.append(
                f"Alert {alert.id} references non-existent product {alert.product} on shelf {alert.shelf}"
            )
            continue
        if alert.type == AlertType.EMPTY and product.count != 0:
            report.errors.append(f"Empty alert for {alert.product} but count is {product.count}")
        if alert.type == AlertType.LOW and classify_product(product) != AlertType.LOW:
            report.errors.append(
                f"Low alert for {alert.product} but count is {product.count} (threshold: {product.threshold})"
            )

    ids = [a.id for a in alerts]
    if len(ids) != len(set(ids)):
        report.errors.append("Duplicate alert IDs found")

    open_keys = Counter((a.shelf, a.product, a.type) for a in alerts if not a.acknowledged)
    for (shelf_id, product, alert_type), n in open_keys.items():
        if n > 1:
            report.errors.append(f"{n} open {alert_type.value} alerts for {product} on shelf {shelf_id}")

    acknowledged = sum(1 for a in alerts if a.acknowledged)
    if alerts and acknowledged == len(alerts):
        report.warnings.append("All alerts are acknowledged. Consider having some unacknowledged for demo impact.")

    report.stats = {
        "total_alerts": len(alerts),
        "type_distribution": dict(Counter(a.type.value for a in alerts)),
        "acknowledged_count": acknowledged,
    }
    return report


def validate_products(shelves: Sequence[Shelf]) -> ValidationReport:
    report = ValidationReport()
    products = [(shelf, p) for shelf in shelves for p in shelf.items]

    for shelf, product in products:
        if not product.product or not product.product.strip():
            report.errors.append(f"Empty product name found on shelf {shelf.id}")
        if product.count < 0:
            report.errors.append(f"Negative count ({product.count}) for {product.product} on shelf {shelf.id}")
        if product.threshold <= 0:
            report.errors.append(
                f"Invalid threshold ({product.threshold}) for {product.product} on shelf {shelf.id}"
            )
        elif product.threshold > HIGH_THRESHOLD_WARNING:
            report.warnings.append(
                f"High threshold ({product.threshold}) for {product.product}. Consider reviewing."
            )

    count_distribution = {"empty": 0, "low": 0, "ok": 0, "overstocked": 0}
    for _, product in products:
        if product.count == 0:
            count_distribution["empty"] += 1
        elif product.count < product.threshold:
            count_distribution["low"] += 1
        elif product.count <= product.threshold + 10:
            count_distribution["ok"] += 1
        else:
            count_distribution["overstocked"] += 1

    avg_threshold = sum(p.threshold for _, p in products) / len(products) if products else 0.0
    report.stats = {
        "total_products": len(products),
        "unique_products": len({p.product for _, p in products}),
        "avg_threshold": round(avg_threshold, 1),
        "count_distribution": count_distribution,
    }
    return report


def run_comprehensive_validation(data: dict | None = None, rng: random.Random | None = None) -> dict:
    """Validate a generated dataset (a fresh one unless ``data`` is given)."""
    data = data if data is not None else generate_mock_data(rng)
    details = {
        "shelves": validate_mock_shelves(data["shelves"]),
        "alerts": validate_mock_alerts(data["alerts"], data["shelves"]),
        "products": validate_products(data["shelves"]),
    }
    total_errors = sum(len(r.errors) for r in details.values())
    total_warnings = sum(len(r.warnings) for r in details.values())
    is_valid = total_errors == 0

    if is_valid:
        summary = f"Validation Results: PASSED ({total_warnings} warnings)"
    else:
        summary = f"Validation Results: FAILED ({total_errors} errors, {total_warnings} warnings)"
    logger.info("validation.completed", is_valid=is_valid, errors=total_errors, warnings=total_warnings)

    return {"is_valid": is_valid, "summary": summary, "details": details}


def generate_demo_report(rng: random.Random | None = None, now: datetime | None = None) -> dict:
    """Demo-readiness score (100 minus penalties), recommendations, and sample data."""
    data = generate_mock_data(rng, now=now)
    validation = run_comprehensive_validation(data)
    stats = data["stats"]

    score = 100
    for report in validation["details"].values():
        score -= ERROR_PENALTY * len(report.errors) + WARNING_PENALTY * len(report.warnings)

    recommendations = []
    if stats["empty_shelves"] < 2:
        recommendations.append("Add more empty shelves for dramatic demo impact")
    if stats["unacknowledged_alerts"] < 3:
        recommendations.append("Ensure sufficient unacknowledged alerts for staff action demo")
    if stats["total_alerts"] == 0:
        recommendations.append("CRITICAL: No alerts generated - demo will not be effective")
        score -= 50

    return {
        "timestamp": (now or utcnow()).isoformat(),
        "data_overview": stats,
        "validation": {
            "is_valid": validation["is_valid"],
            "summary": validation["summary"],
            "details": {k: r.to_dict() for k, r in validation["details"].items()},
        },
        "demo_readiness": {"score": max(0, score), "recommendations": recommendations},
        "sample_data": {
            "critical_alerts": [
                a for a in data["alerts"] if not a.acknowledged and a.type == AlertType.EMPTY
            ][:3],
            "problematic_shelves": [s for s in data["shelves"] if s.status != ShelfStatus.OK][:5],
            "demonstration_flow": list(DEMONSTRATION_FLOW),
        },
    }
