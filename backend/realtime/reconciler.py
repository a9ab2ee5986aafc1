"""
Update Reconciler — merges scan updates into the State Store.

Sources:
  - push:     simulated websocket feed, fires every ``ws_update_interval_seconds``
  - polling:  fallback poller, fires every ``polling_interval_seconds``
  - rescan:   explicit staff request, always produces one update
  - detect:   camera detections mapped onto a shelf
  - external: anything handed to ``submit`` (a real transport)

Both timer channels run concurrently and feed one queue drained by a
single consumer, so updates are applied one at a time. Each application
reads the current shelf and writes the result in the same synchronous step.
"""

from __future__ import annotations

import asyncio
import itertools
import random
from collections.abc import Awaitable, Callable, Iterable

import structlog

from alerts.engine import alert_id_for, classify_product, deduplicate_alerts, detect_shelf_alerts
from core.config import Settings, get_settings
from core.errors import ConcurrencyAnomaly, ScanValidationError
from detection.mapping import Detection, detections_to_scan_update, map_detections_to_shelf
from inventory.models import Alert, ScanUpdate, Shelf, StaffActionResult, utcnow
from simulation.mock_data import (
    apply_scan_update,
    generate_random_scan_update,
    simulate_restock_product,
    simulate_shelf_scan,
)
from state.actions import (
    AcknowledgeAlert,
    FetchShelvesError,
    FetchShelvesStart,
    FetchShelvesSuccess,
    ReconcileShelf,
    ReportError,
    RequestRescan,
)
from state.store import StateStore

logger = structlog.get_logger()

PUSH_CHANNEL = "push"
POLLING_CHANNEL = "polling"
CONSUMER = "consumer"


def validate_scan_update(update: ScanUpdate, shelf: Shelf | None) -> Shelf:
    """Return the targeted shelf, or raise ScanValidationError."""
    if shelf is None:
        raise ScanValidationError(f"Shelf {update.shelf} not found", shelf_id=update.shelf, not_found=True)
    seen: set[str] = set()
    for product in update.items:
        if not product.product or not product.product.strip():
            raise ScanValidationError("Product name cannot be empty", shelf_id=update.shelf)
        if product.count < 0:
            raise ScanValidationError(
                f"Negative count {product.count} for {product.product}", shelf_id=update.shelf
            )
        if product.threshold <= 0:
            raise ScanValidationError(
                f"Threshold must be positive for {product.product}", shelf_id=update.shelf
            )
        if product.product in seen:
            raise ScanValidationError(f"Duplicate product {product.product}", shelf_id=update.shelf)
        seen.add(product.product)
    return shelf


class UpdateReconciler:
    """Serializes every shelf update into the store and keeps alerts consistent."""

    def __init__(
        self,
        store: StateStore,
        *,
        rng: random.Random | None = None,
        settings: Settings | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.store = store
        self.rng = rng if rng is not None else random.Random()
        self.settings = settings or get_settings()
        self._sleep = sleep
        self._queue: asyncio.Queue[tuple[ScanUpdate, str]] | None = None
        self._tasks: dict[str, asyncio.Task] = {}
        self._alert_seq = itertools.count(1)
        self._rescans_pending = 0
        self.logger = logger.bind(component="reconciler")

    # ── Status ──────────────────────────────────────────────────────────

    def _channel_alive(self, name: str) -> bool:
        task = self._tasks.get(name)
        return task is not None and not task.done()

    @property
    def is_running(self) -> bool:
        return any(not task.done() for task in self._tasks.values())

    @property
    def connection_status(self) -> str:
        if self._channel_alive(PUSH_CHANNEL):
            return "connected"
        if self._channel_alive(POLLING_CHANNEL):
            return "polling"
        return "disconnected"

    # ── Core reconciliation ─────────────────────────────────────────────

    def apply_update(self, update: ScanUpdate, source: str = "direct") -> Shelf:
        """
        Apply one scan update and reconcile alerts for that shelf.

        Raises ScanValidationError without touching state when the update is
        malformed. Out-of-order updates are logged and applied anyway.
        """
        current = validate_scan_update(update, self.store.state.get_shelf(update.shelf))

        if update.timestamp < current.last_scanned:
            anomaly = ConcurrencyAnomaly(
                update.shelf, update.timestamp.isoformat(), current.last_scanned.isoformat()
            )
            self.logger.warning("reconciler.out_of_order_update", source=source, detail=str(anomaly))

        updated = apply_scan_update(current, update)
        added = self._commit(current, updated)

        if updated.status != current.status:
            self.logger.info(
                "reconciler.status_changed",
                shelf_id=updated.id,
                source=source,
                previous=current.status.value,
                status=updated.status.value,
            )
        self.logger.debug("reconciler.update_applied", shelf_id=updated.id, source=source, alerts_added=len(added))
        return updated

    def _commit(self, previous: Shelf, shelf: Shelf, cleared: Iterable[str] = ()) -> list[Alert]:
        """
        Install ``shelf`` and its alert changes in a single store transition.

        - alerts for products no longer on the shelf are removed
        - alerts for products back at or above threshold are removed, as are
          alerts for any product named in ``cleared``
        - a product entering low/empty gets an alert, which supersedes any
          open alert of the other type for that product
        - a product already in that condition only gets one if it has no
          alert of that type at all
        - never a second open alert of the same type for a shelf + product
        """
        on_shelf = {p.product for p in shelf.items}
        drop = {p.product for p in shelf.items if classify_product(p) is None} | set(cleared)

        removed = [
            a
            for a in self.store.state.alerts
            if a.shelf == shelf.id and (a.product not in on_shelf or a.product in drop)
        ]
        removed_ids = {a.id for a in removed}
        existing = [a for a in self.store.state.alerts if a.id not in removed_ids]

        candidates = []
        for product, alert_type in detect_shelf_alerts(shelf):
            before = previous.find_item(product.product)
            transitioned = before is None or classify_product(before) != alert_type
            has_any = any(a.key == (shelf.id, product.product) and a.type == alert_type for a in existing)
            if not transitioned and has_any:
                continue
            candidates.append(self._new_alert(shelf.id, product.product, alert_type))
        added = deduplicate_alerts(existing, candidates)

        self.store.dispatch(
            ReconcileShelf(shelf=shelf, removed_alert_ids=tuple(a.id for a in removed), added_alerts=tuple(added))
        )
        for alert in removed:
            self.logger.info("reconciler.alert_cleared", alert_id=alert.id, shelf_id=alert.shelf, product=alert.product)
        for alert in added:
            self.logger.info(
                "reconciler.alert_created",
                alert_id=alert.id,
                shelf_id=alert.shelf,
                product=alert.product,
                alert_type=alert.type.value,
            )
        return added

    def _new_alert(self, shelf_id: str, product_name: str, alert_type) -> Alert:
        now = utcnow()
        suffix = f"{int(now.timestamp() * 1000)}-{next(self._alert_seq)}"
        return Alert(
            id=alert_id_for(shelf_id, product_name, suffix),
            shelf=shelf_id,
            product=product_name,
            type=alert_type,
            timestamp=now,
            acknowledged=False,
        )

    # ── Channels ────────────────────────────────────────────────────────

    def start(self) -> None:
        """Start push, polling, and consumer tasks. Must run inside an event loop."""
        if self.is_running:
            return
        self._queue = asyncio.Queue()
        self._tasks = {
            PUSH_CHANNEL: asyncio.create_task(
                self._run_channel(
                    PUSH_CHANNEL,
                    self.settings.ws_update_interval_seconds,
                    self.settings.ws_update_probability,
                )
            ),
            POLLING_CHANNEL: asyncio.create_task(
                self._run_channel(
                    POLLING_CHANNEL,
                    self.settings.polling_interval_seconds,
                    self.settings.polling_update_probability,
                )
            ),
            CONSUMER: asyncio.create_task(self._consume()),
        }
        self.logger.info("reconciler.started", status=self.connection_status)

    async def stop(self) -> None:
        """Cancel every outstanding task. Safe to call repeatedly."""
        tasks = list(self._tasks.values())
        self._tasks = {}
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            self.logger.info("reconciler.stopped")
        self._queue = None

    async def _run_channel(self, name: str, interval: float, probability: float) -> None:
        log = self.logger.bind(channel=name)
        while True:
            await self._sleep(interval)
            await self.tick(name, probability, log)

    async def tick(self, name: str, probability: float, log=None) -> ScanUpdate | None:
        """One timer firing: maybe enqueue a random shelf scan."""
        log = log or self.logger.bind(channel=name)
        if self.rng.random() >= probability:
            return None
        update = generate_random_scan_update(self.store.state.shelves, self.rng)
        if update is None:
            return None
        log.debug("reconciler.update_received", shelf_id=update.shelf)
        await self.submit(update, source=name)
        return update

    async def submit(self, update: ScanUpdate, source: str = "external") -> None:
        """Queue an update from any transport; applied inline when not running."""
        if self._queue is None:
            self._apply_safely(update, source)
            return
        await self._queue.put((update, source))

    async def drain(self) -> None:
        """Wait until every queued update has been applied."""
        if self._queue is not None:
            await self._queue.join()

    async def _consume(self) -> None:
        assert self._queue is not None
        queue = self._queue
        while True:
            update, source = await queue.get()
            try:
                self._apply_safely(update, source)
            finally:
                queue.task_done()

    def _apply_safely(self, update: ScanUpdate, source: str) -> Shelf | None:
        try:
            return self.apply_update(update, source)
        except ScanValidationError as exc:
            self.logger.warning("reconciler.update_dropped", shelf_id=update.shelf, source=source, error=str(exc))
        except Exception as exc:  # noqa: BLE001
            self.logger.error("reconciler.update_failed", shelf_id=update.shelf, source=source, exc_info=True)
            self.store.dispatch(ReportError(message=f"Failed to apply update for shelf {update.shelf}: {exc}"))
        return None

    # ── Staff intents ───────────────────────────────────────────────────

    async def request_rescan(self, shelf_id: str) -> Shelf:
        """
        Rescan one shelf after a simulated network delay.

        Sets the shelves loading flag until every overlapping rescan has
        finished; on failure the store carries the error message and the
        exception propagates.
        """
        self.logger.info("reconciler.rescan_requested", shelf_id=shelf_id)
        self._rescans_pending += 1
        self.store.dispatch(FetchShelvesStart())
        try:
            await self._sleep(self.settings.rescan_latency_seconds)
            shelf = self.store.state.get_shelf(shelf_id)
            if shelf is None:
                raise ScanValidationError(f"Shelf {shelf_id} not found", shelf_id=shelf_id, not_found=True)
            self.store.dispatch(RequestRescan(shelf_id=shelf_id))
            updated = self.apply_update(simulate_shelf_scan(shelf, self.rng), source="rescan")
        except Exception:
            self._rescans_pending -= 1
            self.logger.warning("reconciler.rescan_failed", shelf_id=shelf_id)
            message = f"Failed to rescan shelf {shelf_id}"
            if self._rescans_pending:
                self.store.dispatch(ReportError(message=message))
            else:
                self.store.dispatch(FetchShelvesError(message=message))
            raise
        self._rescans_pending -= 1
        if not self._rescans_pending:
            self.store.dispatch(FetchShelvesSuccess(shelves=self.store.state.shelves))
        return updated

    def acknowledge(self, alert_id: str) -> Alert:
        alert = self.store.state.get_alert(alert_id)
        if alert is None:
            raise ScanValidationError(f"Alert {alert_id} not found", not_found=True)
        if not alert.acknowledged:
            self.store.dispatch(AcknowledgeAlert(alert_id=alert_id))
            self.logger.info("reconciler.alert_acknowledged", alert_id=alert_id, shelf_id=alert.shelf)
        return self.store.state.get_alert(alert_id)

    def mark_restocked(self, shelf_id: str, product_name: str, count: int | None = None) -> StaffActionResult:
        """
        Record a restock: add one unit, or set ``count`` when given.

        The product's alerts are cleared; if it is still short afterwards a
        fresh alert for its new condition is raised.
        """
        shelf = self.store.state.get_shelf(shelf_id)
        if shelf is None:
            raise ScanValidationError(f"Shelf {shelf_id} not found", shelf_id=shelf_id, not_found=True)
        if shelf.find_item(product_name) is None:
            raise ScanValidationError(f"Product {product_name} is not on shelf {shelf_id}", shelf_id=shelf_id)
        if count is not None and count < 0:
            raise ScanValidationError(f"Negative count {count} for {product_name}", shelf_id=shelf_id)

        restocked = shelf.with_items(
            p.with_count(count if count is not None else p.count + 1) if p.product == product_name else p
            for p in shelf.items
        )
        self._commit(shelf, restocked, cleared=(product_name,))

        new_count = restocked.find_item(product_name).count
        self.logger.info("reconciler.restocked", shelf_id=shelf_id, product=product_name, count=new_count)
        return StaffActionResult(
            success=True,
            message=f"Marked {product_name} on shelf {shelf_id} as restocked ({new_count} units)",
            shelf_id=shelf_id,
        )

    def restock_product(self, shelf_id: str, product_name: str, count: int | None = None) -> StaffActionResult:
        """Full restock: ``count`` or threshold + 5..14 units."""
        shelf = self.store.state.get_shelf(shelf_id)
        if count is None and shelf is not None and shelf.find_item(product_name) is not None:
            restocked = simulate_restock_product(shelf, product_name, rng=self.rng)
            count = restocked.find_item(product_name).count
        return self.mark_restocked(shelf_id, product_name, count)

    # ── Detection ───────────────────────────────────────────────────────

    def ingest_detections(self, detections: Iterable[Detection], target_shelf: str | None = None) -> Shelf | None:
        """
        Map a frame's detections onto a shelf and apply the resulting update.

        Returns None when nothing confident maps to a shelf and no target
        shelf was given.
        """
        result = map_detections_to_shelf(detections, self.settings.detection_min_confidence)
        shelf_id = target_shelf or result.mapped_shelf
        if shelf_id is None:
            self.logger.info("reconciler.detection_unmapped", detections=len(result.detections))
            return None

        shelf = self.store.state.get_shelf(shelf_id)
        if shelf is None:
            raise ScanValidationError(f"Shelf {shelf_id} not found", shelf_id=shelf_id, not_found=True)
        update = detections_to_scan_update(shelf, result, self.settings.detection_default_threshold)
        return self.apply_update(update, source="detect")
