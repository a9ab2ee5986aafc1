"""
Alert Engine — Shelf alert detection, prioritization, filtering, and stats.

Patterns used: rule-based detection, alert deduplication, stable sorting

Alert Types:
  - empty: product count is 0
  - low:   product count is above 0 but below its threshold

Severity:
  - empty alerts are always critical
  - low alerts escalate with age (> 4h medium, > 24h high)

Every function takes an optional ``now`` so aging is reproducible in tests;
none of them mutate their inputs.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Literal

import structlog

from inventory.models import Alert, AlertType, Product, Shelf, utcnow

logger = structlog.get_logger()

Severity = Literal["critical", "high", "medium", "low"]
SEVERITY_LEVELS: tuple[Severity, ...] = ("critical", "high", "medium", "low")

# ──────────────────────────────────────────────────────────────────────────
# Scoring Rules
# ──────────────────────────────────────────────────────────────────────────

PRIORITY_BASE = {
    AlertType.EMPTY: 0.0,
    AlertType.LOW: 100.0,
}
PRIORITY_AGE_WEIGHT_PER_MINUTE = 0.1
# Age never outweighs the type gap, so empty < low < acknowledged always holds
MAX_AGE_PENALTY = 99.0
ACKNOWLEDGED_PENALTY = 10_000.0

SEVERITY_THRESHOLDS = {
    "low_alert_age_hours": {
        "high": 24,
        "medium": 4,
    },
}

DATE_RANGES = ("today", "week", "month", "all")


def _age(alert: Alert, now: datetime | None) -> timedelta:
    return (now or utcnow()) - alert.timestamp


def alert_priority(alert: Alert, now: datetime | None = None) -> float:
    """Numeric priority score for an alert (lower = more urgent)."""
    score = PRIORITY_BASE[alert.type]
    age_minutes = _age(alert, now).total_seconds() / 60
    score += min(max(age_minutes, 0.0) * PRIORITY_AGE_WEIGHT_PER_MINUTE, MAX_AGE_PENALTY)
    if alert.acknowledged:
        score += ACKNOWLEDGED_PENALTY
    return score


def alert_severity(alert: Alert, now: datetime | None = None) -> Severity:
    """Classify alert severity based on type and age."""
    if alert.type == AlertType.EMPTY:
        return "critical"

    thresholds = SEVERITY_THRESHOLDS["low_alert_age_hours"]
    age_hours = _age(alert, now).total_seconds() / 3600
    if age_hours > thresholds["high"]:
        return "high"
    elif age_hours > thresholds["medium"]:
        return "medium"
    return "low"


def is_urgent_alert(alert: Alert, now: datetime | None = None) -> bool:
    """Unacknowledged alerts that are empty or have aged into high severity."""
    if alert.acknowledged:
        return False
    return alert.type == AlertType.EMPTY or alert_severity(alert, now) == "high"


# ──────────────────────────────────────────────────────────────────────────
# Sorting: sorted() is stable, so ties keep input order
# ──────────────────────────────────────────────────────────────────────────


def sort_alerts_by_priority(alerts: Iterable[Alert], now: datetime | None = None) -> list[Alert]:
    now = now or utcnow()
    return sorted(alerts, key=lambda a: alert_priority(a, now))


def sort_alerts_by_time(alerts: Iterable[Alert]) -> list[Alert]:
    """Newest first."""
    return sorted(alerts, key=lambda a: a.timestamp, reverse=True)


def sort_alerts_by_location(alerts: Iterable[Alert]) -> list[Alert]:
    return sorted(alerts, key=lambda a: a.shelf)


def sort_alerts_by_product(alerts: Iterable[Alert]) -> list[Alert]:
    return sorted(alerts, key=lambda a: a.product)


# ──────────────────────────────────────────────────────────────────────────
# Filtering
# ──────────────────────────────────────────────────────────────────────────


def filter_alerts_by_type(alerts: Iterable[Alert], types: Iterable[AlertType | str] | str) -> list[Alert]:
    if types == "all":
        return list(alerts)
    if isinstance(types, str):
        types = (types,)
    wanted = {AlertType(t) for t in types}
    return [a for a in alerts if a.type in wanted]


def filter_alerts_by_status(alerts: Iterable[Alert], status: str) -> list[Alert]:
    if status == "all":
        return list(alerts)
    if status == "acknowledged":
        return [a for a in alerts if a.acknowledged]
    if status == "unacknowledged":
        return [a for a in alerts if not a.acknowledged]
    raise ValueError(f"Unknown alert status filter: {status}")


def date_range_cutoff(date_range: str, now: datetime | None = None) -> datetime | None:
    """Earliest timestamp kept by a date-range filter, None for 'all'."""
    now = now or utcnow()
    if date_range == "all":
        return None
    if date_range == "today":
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    if date_range == "week":
        return now - timedelta(days=7)
    if date_range == "month":
        return now - timedelta(days=30)
    raise ValueError(f"Unknown date range: {date_range}")


def filter_alerts_by_date_range(alerts: Iterable[Alert], date_range: str, now: datetime | None = None) -> list[Alert]:
    cutoff = date_range_cutoff(date_range, now)
    if cutoff is None:
        return list(alerts)
    return [a for a in alerts if a.timestamp >= cutoff]


def filter_alerts_by_search(alerts: Iterable[Alert], search_term: str) -> list[Alert]:
    """Case-insensitive substring match on product name or shelf id."""
    term = search_term.strip().lower()
    if not term:
        return list(alerts)
    return [a for a in alerts if term in a.product.lower() or term in a.shelf.lower()]


def filter_alerts_by_severity(
    alerts: Iterable[Alert],
    severities: Iterable[str] | str,
    now: datetime | None = None,
) -> list[Alert]:
    if severities == "all":
        return list(alerts)
    wanted = set(severities)
    unknown = wanted - set(SEVERITY_LEVELS)
    if unknown:
        raise ValueError(f"Unknown severity levels: {sorted(unknown)}")
    now = now or utcnow()
    return [a for a in alerts if alert_severity(a, now) in wanted]


# ──────────────────────────────────────────────────────────────────────────
# Combined Filtering + Sorting
# ──────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class AlertFilterOptions:
    type: str = "all"
    status: str = "all"
    date_range: str = "all"
    search: str = ""
    severity: tuple[str, ...] | str = "all"
    sort_by: str = "priority"


SORT_KEYS = ("priority", "time", "location", "product")


def process_alerts(
    alerts: Sequence[Alert],
    options: AlertFilterOptions | None = None,
    now: datetime | None = None,
) -> list[Alert]:
    """
    Apply every filter in ``options`` and then exactly one sort.

    Filters are independent predicates, so their order does not affect
    the result. ``now`` is frozen once for the whole call.
    """
    options = options or AlertFilterOptions()
    now = now or utcnow()

    result = list(alerts)
    if options.type != "all":
        result = filter_alerts_by_type(result, [options.type])
    result = filter_alerts_by_status(result, options.status)
    result = filter_alerts_by_date_range(result, options.date_range, now)
    result = filter_alerts_by_search(result, options.search)
    result = filter_alerts_by_severity(result, options.severity, now)

    if options.sort_by == "time":
        return sort_alerts_by_time(result)
    if options.sort_by == "location":
        return sort_alerts_by_location(result)
    if options.sort_by == "product":
        return sort_alerts_by_product(result)
    if options.sort_by != "priority":
        logger.warning("alerts.unknown_sort_key", sort_by=options.sort_by)
    return sort_alerts_by_priority(result, now)


# ──────────────────────────────────────────────────────────────────────────
# Statistics
# ──────────────────────────────────────────────────────────────────────────


def alert_stats(alerts: Sequence[Alert], now: datetime | None = None) -> dict:
    """Aggregate counts, consistent with the per-alert classifiers above."""
    now = now or utcnow()
    total = len(alerts)
    unacknowledged = sum(1 for a in alerts if not a.acknowledged)

    by_type = {t.value: 0 for t in AlertType}
    by_severity: dict[str, int] = {level: 0 for level in SEVERITY_LEVELS}
    urgent = 0
    for alert in alerts:
        by_type[alert.type.value] += 1
        by_severity[alert_severity(alert, now)] += 1
        if is_urgent_alert(alert, now):
            urgent += 1

    return {
        "total": total,
        "unacknowledged": unacknowledged,
        "acknowledged": total - unacknowledged,
        "urgent": urgent,
        "by_type": by_type,
        "by_severity": by_severity,
    }


# ──────────────────────────────────────────────────────────────────────────
# Detection Rules (shared by the simulator and the reconciler)
# ──────────────────────────────────────────────────────────────────────────


def classify_product(product: Product) -> AlertType | None:
    """Alert condition for a single product, or None when stock is fine."""
    if product.count == 0:
        return AlertType.EMPTY
    if product.count < product.threshold:
        return AlertType.LOW
    return None


def detect_shelf_alerts(shelf: Shelf) -> list[tuple[Product, AlertType]]:
    """Every product on the shelf that currently warrants an alert."""
    found = []
    for product in shelf.items:
        alert_type = classify_product(product)
        if alert_type is not None:
            found.append((product, alert_type))
    return found


def alert_id_for(shelf_id: str, product_name: str, suffix: str | None = None) -> str:
    slug = re.sub(r"\s+", "-", product_name).lower()
    alert_id = f"alert-{shelf_id}-{slug}"
    return f"{alert_id}-{suffix}" if suffix else alert_id


def deduplicate_alerts(existing: Iterable[Alert], candidates: Iterable[Alert]) -> list[Alert]:
    """
    Filter out candidates that already exist as unacknowledged for the same
    shelf + product + type combination.
    """
    open_keys = {(a.shelf, a.product, a.type) for a in existing if not a.acknowledged}
    unique = []
    for alert in candidates:
        key = (alert.shelf, alert.product, alert.type)
        if key in open_keys:
            continue
        open_keys.add(key)
        unique.append(alert)
    return unique


# ──────────────────────────────────────────────────────────────────────────
# Display helpers
# ──────────────────────────────────────────────────────────────────────────


def format_relative_time(timestamp: datetime, now: datetime | None = None) -> str:
    diff_minutes = int(((now or utcnow()) - timestamp).total_seconds() // 60)
    if diff_minutes < 1:
        return "Just now"
    if diff_minutes < 60:
        return f"{diff_minutes}m ago"
    diff_hours = diff_minutes // 60
    if diff_hours < 24:
        return f"{diff_hours}h ago"
    diff_days = diff_hours // 24
    if diff_days < 7:
        return f"{diff_days}d ago"
    return f"{diff_days // 7}w ago"
