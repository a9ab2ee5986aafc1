"""
Alerts Router — Alert listing, prioritization, and staff acknowledgement.
"""

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from alerts.engine import (
    AlertFilterOptions,
    alert_priority,
    alert_severity,
    alert_stats,
    format_relative_time,
    is_urgent_alert,
    process_alerts,
)
from api.deps import get_reconciler, get_store
from inventory.models import Alert, AlertType, utcnow
from realtime.reconciler import UpdateReconciler
from state.actions import RemoveAlert
from state.store import StateStore

router = APIRouter(prefix="/api/v1/alerts", tags=["alerts"])


# ─── Schemas ────────────────────────────────────────────────────────────────


class AlertResponse(BaseModel):
    id: str
    shelf: str
    product: str
    type: AlertType
    timestamp: datetime
    acknowledged: bool
    severity: str
    priority: float
    urgent: bool
    relative_time: str


class AlertSummary(BaseModel):
    total: int
    unacknowledged: int
    acknowledged: int
    urgent: int
    by_type: dict[str, int]
    by_severity: dict[str, int]


def alert_response(alert: Alert, now: datetime) -> AlertResponse:
    return AlertResponse(
        id=alert.id,
        shelf=alert.shelf,
        product=alert.product,
        type=alert.type,
        timestamp=alert.timestamp,
        acknowledged=alert.acknowledged,
        severity=alert_severity(alert, now),
        priority=round(alert_priority(alert, now), 2),
        urgent=is_urgent_alert(alert, now),
        relative_time=format_relative_time(alert.timestamp, now),
    )


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.get("/", response_model=list[AlertResponse])
async def list_alerts(
    type: Literal["all", "low", "empty"] = "all",
    status: Literal["all", "acknowledged", "unacknowledged"] = "all",
    date_range: Literal["all", "today", "week", "month"] = "all",
    search: str = "",
    severity: list[Literal["critical", "high", "medium", "low"]] | None = Query(None),
    sort_by: Literal["priority", "time", "location", "product"] = "priority",
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    store: StateStore = Depends(get_store),
):
    """List alerts with filters, most urgent first by default."""
    now = utcnow()
    options = AlertFilterOptions(
        type=type,
        status=status,
        date_range=date_range,
        search=search,
        severity=tuple(severity) if severity else "all",
        sort_by=sort_by,
    )
    alerts = process_alerts(store.state.alerts, options, now)
    return [alert_response(a, now) for a in alerts[skip : skip + limit]]


@router.get("/summary", response_model=AlertSummary)
async def get_alert_summary(store: StateStore = Depends(get_store)):
    """Get alert summary counts."""
    return AlertSummary(**alert_stats(store.state.alerts))


@router.get("/{alert_id}", response_model=AlertResponse)
async def get_alert(alert_id: str, store: StateStore = Depends(get_store)):
    alert = store.state.get_alert(alert_id)
    if alert is None:
        raise HTTPException(status_code=404, detail="Alert not found")
    return alert_response(alert, utcnow())


@router.patch("/{alert_id}/acknowledge", response_model=AlertResponse)
async def acknowledge_alert(alert_id: str, reconciler: UpdateReconciler = Depends(get_reconciler)):
    """Acknowledge an alert."""
    alert = reconciler.store.state.get_alert(alert_id)
    if alert is None:
        raise HTTPException(status_code=404, detail="Alert not found")
    if alert.acknowledged:
        raise HTTPException(status_code=400, detail="Alert is already acknowledged")
    return alert_response(reconciler.acknowledge(alert_id), utcnow())


@router.delete("/{alert_id}", status_code=204)
async def dismiss_alert(alert_id: str, store: StateStore = Depends(get_store)):
    """Dismiss an alert entirely."""
    if store.state.get_alert(alert_id) is None:
        raise HTTPException(status_code=404, detail="Alert not found")
    store.dispatch(RemoveAlert(alert_id=alert_id))
