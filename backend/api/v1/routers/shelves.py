"""
Shelves Router — shelf status, staff actions, and dashboard selection.
"""

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from api.deps import get_reconciler, get_store
from core.errors import ScanValidationError
from inventory.models import ShelfStatus
from inventory.queries import filter_shelves, sort_shelves
from realtime.reconciler import UpdateReconciler
from simulation.mock_data import summarize_shelves
from state.actions import ClearFilters, ClearSelectedShelf, SelectShelf, SetFilter
from state.store import StateStore

router = APIRouter(prefix="/api/v1/shelves", tags=["shelves"])


# ─── Schemas ────────────────────────────────────────────────────────────────


class ProductResponse(BaseModel):
    product: str
    count: int
    threshold: int

    model_config = {"from_attributes": True}


class ShelfResponse(BaseModel):
    id: str
    aisle: str
    items: list[ProductResponse]
    status: ShelfStatus
    last_scanned: datetime
    image_url: str | None

    model_config = {"from_attributes": True}


class ShelfSummary(BaseModel):
    total_shelves: int
    ok_shelves: int
    low_shelves: int
    empty_shelves: int
    total_alerts: int
    unacknowledged_alerts: int
    selected_shelf: str | None
    loading: bool
    error: str | None


class RestockRequest(BaseModel):
    product: str = Field(min_length=1)
    count: int | None = Field(default=None, ge=0)
    full: bool = False


class StaffActionResponse(BaseModel):
    success: bool
    message: str
    shelf_id: str
    timestamp: datetime
    shelf: ShelfResponse

    model_config = {"from_attributes": True}


class FilterRequest(BaseModel):
    aisle: str | None = None
    status: ShelfStatus | None = None


class FilterResponse(BaseModel):
    aisle: str | None
    status: ShelfStatus | None

    model_config = {"from_attributes": True}


def _raise_for(exc: ScanValidationError):
    raise HTTPException(status_code=404 if exc.not_found else 422, detail=str(exc)) from exc


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.get("/", response_model=list[ShelfResponse])
async def list_shelves(
    aisle: str | None = None,
    status: ShelfStatus | None = None,
    sort_by: Literal["aisle", "status", "last_scanned"] = "aisle",
    use_saved_filters: bool = Query(False, description="Apply the dashboard's saved filters"),
    store: StateStore = Depends(get_store),
):
    """List shelves, optionally filtered by aisle and status."""
    state = store.state
    if use_saved_filters:
        aisle = aisle or state.filter_options.aisle
        status = status or state.filter_options.status
    shelves = sort_shelves(filter_shelves(state.shelves, aisle=aisle, status=status), sort_by)
    return [ShelfResponse.model_validate(s) for s in shelves]


@router.get("/summary", response_model=ShelfSummary)
async def get_shelf_summary(store: StateStore = Depends(get_store)):
    """Status counts across all shelves."""
    state = store.state
    return ShelfSummary(
        **summarize_shelves(state.shelves, state.alerts),
        selected_shelf=state.selected_shelf,
        loading=state.loading.shelves,
        error=state.error,
    )


@router.put("/filters", response_model=FilterResponse)
async def set_filters(body: FilterRequest, store: StateStore = Depends(get_store)):
    """Save dashboard filters."""
    store.dispatch(SetFilter(key="aisle", value=body.aisle))
    store.dispatch(SetFilter(key="status", value=body.status.value if body.status else None))
    return FilterResponse.model_validate(store.state.filter_options)


@router.delete("/filters", response_model=FilterResponse)
async def clear_filters(store: StateStore = Depends(get_store)):
    store.dispatch(ClearFilters())
    return FilterResponse.model_validate(store.state.filter_options)


@router.delete("/selection", status_code=204)
async def clear_selection(store: StateStore = Depends(get_store)):
    store.dispatch(ClearSelectedShelf())


@router.get("/{shelf_id}", response_model=ShelfResponse)
async def get_shelf(shelf_id: str, store: StateStore = Depends(get_store)):
    shelf = store.state.get_shelf(shelf_id)
    if shelf is None:
        raise HTTPException(status_code=404, detail="Shelf not found")
    return ShelfResponse.model_validate(shelf)


@router.post("/{shelf_id}/select", response_model=ShelfResponse)
async def select_shelf(shelf_id: str, store: StateStore = Depends(get_store)):
    """Mark a shelf as the one the dashboard is inspecting."""
    shelf = store.state.get_shelf(shelf_id)
    if shelf is None:
        raise HTTPException(status_code=404, detail="Shelf not found")
    store.dispatch(SelectShelf(shelf_id=shelf_id))
    return ShelfResponse.model_validate(shelf)


@router.post("/{shelf_id}/rescan", response_model=ShelfResponse)
async def rescan_shelf(shelf_id: str, reconciler: UpdateReconciler = Depends(get_reconciler)):
    """Trigger an immediate scan; resolves after the simulated scan latency."""
    if reconciler.store.state.get_shelf(shelf_id) is None:
        raise HTTPException(status_code=404, detail="Shelf not found")
    try:
        shelf = await reconciler.request_rescan(shelf_id)
    except ScanValidationError as exc:
        _raise_for(exc)
    return ShelfResponse.model_validate(shelf)


@router.post("/{shelf_id}/restock", response_model=StaffActionResponse)
async def restock_shelf(
    shelf_id: str,
    body: RestockRequest,
    reconciler: UpdateReconciler = Depends(get_reconciler),
):
    """
    Mark a product restocked.

    Without ``count`` a plain restock adds one unit; ``full=true`` fills the
    product to threshold + 5..14.
    """
    try:
        if body.full:
            result = reconciler.restock_product(shelf_id, body.product, body.count)
        else:
            result = reconciler.mark_restocked(shelf_id, body.product, body.count)
    except ScanValidationError as exc:
        _raise_for(exc)
    return StaffActionResponse(
        success=result.success,
        message=result.message,
        shelf_id=result.shelf_id,
        timestamp=result.timestamp,
        shelf=ShelfResponse.model_validate(reconciler.store.state.get_shelf(shelf_id)),
    )
