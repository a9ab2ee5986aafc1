"""
Scans Router — ingest scan snapshots and camera detections from external sources.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from api.deps import get_reconciler
from api.v1.routers.shelves import ShelfResponse
from core.errors import ScanValidationError
from detection.mapping import Detection, normalize_box
from inventory.models import Product, ScanUpdate, utcnow
from realtime.reconciler import UpdateReconciler

router = APIRouter(prefix="/api/v1/scans", tags=["scans"])


# ─── Schemas ────────────────────────────────────────────────────────────────


class ProductIn(BaseModel):
    product: str
    count: int
    threshold: int


class ScanUpdateIn(BaseModel):
    shelf: str
    items: list[ProductIn]
    timestamp: datetime | None = None


class DetectionIn(BaseModel):
    label: str = Field(min_length=1)
    confidence: float = Field(ge=0.0, le=1.0)
    box: list[float] = Field(default_factory=lambda: [0.0, 0.0, 0.0, 0.0])

    # Strip before min_length so blank labels are rejected
    model_config = {"str_strip_whitespace": True}


class DetectionBatchIn(BaseModel):
    detections: list[DetectionIn]
    target_shelf: str | None = None
    box_format: str = Field("xywh", pattern="^(xywh|xyxy)$")


class DetectionResult(BaseModel):
    mapped: bool
    shelf: ShelfResponse | None = None


def _as_utc(ts: datetime) -> datetime:
    # Naive timestamps are taken to be UTC
    return ts if ts.tzinfo is not None else ts.replace(tzinfo=timezone.utc)


def _raise_for(exc: ScanValidationError):
    raise HTTPException(status_code=404 if exc.not_found else 422, detail=str(exc)) from exc


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.post("/", response_model=ShelfResponse)
async def ingest_scan(body: ScanUpdateIn, reconciler: UpdateReconciler = Depends(get_reconciler)):
    """
    Apply a scan snapshot for one shelf.

    Validation happens in the reconciler so malformed counts are rejected
    with the same rules as simulated updates.
    """
    update = ScanUpdate(
        shelf=body.shelf,
        items=tuple(Product(product=i.product, count=i.count, threshold=i.threshold) for i in body.items),
        timestamp=_as_utc(body.timestamp) if body.timestamp else utcnow(),
    )
    try:
        shelf = reconciler.apply_update(update, source="api")
    except ScanValidationError as exc:
        _raise_for(exc)
    return ShelfResponse.model_validate(shelf)


@router.post("/detections", response_model=DetectionResult)
async def ingest_detections(body: DetectionBatchIn, reconciler: UpdateReconciler = Depends(get_reconciler)):
    """Map one frame's object detections onto a shelf and apply the counts."""
    detections = [
        Detection(label=d.label, confidence=d.confidence, box=normalize_box(d.box, corners=body.box_format == "xyxy"))
        for d in body.detections
    ]
    try:
        shelf = reconciler.ingest_detections(detections, target_shelf=body.target_shelf)
    except ScanValidationError as exc:
        _raise_for(exc)
    if shelf is None:
        return DetectionResult(mapped=False)
    return DetectionResult(mapped=True, shelf=ShelfResponse.model_validate(shelf))
