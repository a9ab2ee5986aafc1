"""
Demo scenarios — scripted scan updates replayed on timers.

A scenario is an ordered list of ``DemoEvent``s with literal delays from
the start of the run. ``DemoScenarioRunner`` schedules them on the event
loop, halts on the first failing step, and can resume from that step
(bounded retries) or roll the store back to its pre-scenario snapshot.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Callable

import structlog

from core.errors import SimulationFailure
from inventory.models import Product, ScanUpdate, utcnow
from state.actions import ClearError, ReportError

if TYPE_CHECKING:
    from realtime.reconciler import UpdateReconciler

logger = structlog.get_logger()


@dataclass(frozen=True)
class DemoEvent:
    id: str
    delay_ms: int
    update: ScanUpdate
    description: str


def _event(event_id: str, delay_ms: int, description: str, shelf: str, *items: tuple[str, int, int]) -> DemoEvent:
    return DemoEvent(
        id=event_id,
        delay_ms=delay_ms,
        description=description,
        update=ScanUpdate(shelf=shelf, items=tuple(Product(*item) for item in items)),
    )


def create_demo_scenario() -> list[DemoEvent]:
    """Four-step walkthrough: a stockout, a low-stock rush, a restock, a second stockout."""
    return [
        _event(
            "demo-1", 5000, "Customer purchases last Dove Soap from Shelf A1", "A1",
            ("Dove Soap 100g", 0, 10),
            ("Colgate Toothpaste", 8, 10),
            ("Head & Shoulders Shampoo", 12, 15),
        ),
        _event(
            "demo-2", 10000, "Multiple customers buy Red Bull from Shelf B2", "B2",
            ("Red Bull Energy", 2, 15),
            ("Nestle Water 6-pack", 18, 20),
            ("Kit Kat Bar", 6, 10),
        ),
        _event(
            "demo-3", 15000, "Staff restocks Dove Soap on Shelf A1", "A1",
            ("Dove Soap 100g", 15, 10),
            ("Colgate Toothpaste", 8, 10),
            ("Head & Shoulders Shampoo", 12, 15),
        ),
        _event(
            "demo-4", 20000, "Toilet paper runs completely out on Shelf C3", "C3",
            ("Charmin Toilet Paper", 0, 15),
            ("Bounty Paper Towels", 3, 15),
            ("Tide Detergent", 8, 15),
        ),
    ]


def create_advanced_demo_scenario() -> list[DemoEvent]:
    """Basic walkthrough plus a bulk restock and a rush-hour low-stock burst."""
    return create_demo_scenario() + [
        _event(
            "demo-advanced-1", 25000, "Bulk restocking of multiple items in Aisle D", "D1",
            ("AA Batteries 8-pack", 25, 20),
            ("Phone Charger", 18, 15),
            ("USB Cable", 22, 15),
        ),
        _event(
            "demo-advanced-2", 30000, "Rush hour - multiple products hit low stock simultaneously", "E2",
            ("Tylenol 100ct", 2, 10),
            ("Hand Sanitizer", 1, 8),
            ("Band-Aid Pack", 3, 10),
        ),
    ]


SCENARIOS: dict[str, Callable[[], list[DemoEvent]]] = {
    "basic": create_demo_scenario,
    "advanced": create_advanced_demo_scenario,
}


class ManualDemoController:
    """Step through a scenario by hand instead of on timers."""

    def __init__(self, scenario: list[DemoEvent] | None = None):
        self.scenario = scenario if scenario is not None else create_demo_scenario()
        self.current_step = 0

    @property
    def total_steps(self) -> int:
        return len(self.scenario)

    def next_event(self) -> DemoEvent | None:
        if self.current_step >= len(self.scenario):
            return None
        event = self.scenario[self.current_step]
        self.current_step += 1
        return event

    def reset(self) -> None:
        self.current_step = 0


class DemoScenarioRunner:
    """
    Replays a scenario through the reconciler on ``loop.call_later`` timers.

    States: idle → running → completed | failed | stopped. A failed run
    keeps its position; ``retry`` reschedules from the failed step.
    """

    def __init__(self, reconciler: UpdateReconciler, *, max_retries: int = 3):
        self.reconciler = reconciler
        self.store = reconciler.store
        self.max_retries = max_retries
        self.name: str | None = None
        self.scenario: list[DemoEvent] = []
        self.state = "idle"
        self.completed_steps = 0
        self.failed_step: int | None = None
        self.retries = 0
        self.error: str | None = None
        self._handles: list[asyncio.TimerHandle] = []
        self._finished = asyncio.Event()
        self.logger = logger.bind(component="scenario")

    @property
    def is_running(self) -> bool:
        return self.state == "running"

    def start(self, name: str = "basic", scenario: list[DemoEvent] | None = None) -> None:
        """Schedule every event of ``scenario`` (or the named one) from now."""
        if scenario is None:
            factory = SCENARIOS.get(name)
            if factory is None:
                raise ValueError(f"Unknown scenario '{name}'. Choose from {sorted(SCENARIOS)}")
            scenario = factory()

        self._cancel_timers()
        self.name = name
        self.scenario = list(scenario)
        self.completed_steps = 0
        self.failed_step = None
        self.retries = 0
        self.error = None
        self.logger = logger.bind(component="scenario", scenario=name)

        self.store.snapshot()
        self.logger.info("scenario.started", steps=len(self.scenario))
        self._schedule_from(0)

    def _schedule_from(self, index: int) -> None:
        loop = asyncio.get_running_loop()
        self.state = "running"
        self._finished.clear()
        if index >= len(self.scenario):
            self._finish("completed")
            return
        offset = self.scenario[index].delay_ms
        for step in range(index, len(self.scenario)):
            delay = max(0, self.scenario[step].delay_ms - offset) / 1000
            self._handles.append(loop.call_later(delay, self._fire, step))

    def _fire(self, index: int) -> None:
        if self.state != "running" or index != self.completed_steps:
            return
        event = self.scenario[index]
        try:
            # Scripted snapshots are stamped when they fire
            self.reconciler.apply_update(replace(event.update, timestamp=utcnow()), source="demo")
        except Exception as exc:  # noqa: BLE001
            failure = SimulationFailure(f"Demo step '{event.id}' failed: {exc}", step=index)
            self._cancel_timers()
            self.failed_step = index
            self.error = str(failure)
            self.logger.error("scenario.step_failed", step=index, event_id=event.id, error=str(exc))
            self.store.dispatch(ReportError(message=self.error))
            self._finish("failed")
            return

        self.completed_steps = index + 1
        self.logger.info("scenario.step_applied", step=index, event_id=event.id, description=event.description)
        if self.completed_steps == len(self.scenario):
            self._handles.clear()
            self._finish("completed")

    def _finish(self, state: str) -> None:
        self.state = state
        self._finished.set()
        if state == "completed":
            self.logger.info("scenario.completed", steps=self.completed_steps)

    def retry(self) -> None:
        """Resume a failed run from the step that failed."""
        if self.state != "failed" or self.failed_step is None:
            raise SimulationFailure("No failed scenario to retry")
        if self.retries >= self.max_retries:
            raise SimulationFailure(
                f"Retry limit reached ({self.max_retries}); reset the scenario", step=self.failed_step
            )
        self.retries += 1
        step = self.failed_step
        self.failed_step = None
        self.error = None
        self.store.dispatch(ClearError())
        self.logger.info("scenario.retry", step=step, attempt=self.retries)
        self._schedule_from(step)

    def stop(self) -> None:
        """Cancel pending steps. Safe to call in any state."""
        had_timers = self._cancel_timers()
        if self.state == "running":
            self._finish("stopped")
        if had_timers:
            self.logger.info("scenario.stopped", completed=self.completed_steps)

    def reset(self) -> None:
        """Stop and restore the store to its state before the scenario started."""
        self._cancel_timers()
        if self.name is not None:
            self.store.restore()
        self.state = "idle"
        self.completed_steps = 0
        self.failed_step = None
        self.retries = 0
        self.error = None
        self._finished.set()
        self.logger.info("scenario.reset")

    async def wait(self, timeout: float | None = None) -> str:
        """Block until the run completes, fails, or is stopped."""
        await asyncio.wait_for(self._finished.wait(), timeout)
        return self.state

    def _cancel_timers(self) -> bool:
        handles, self._handles = self._handles, []
        for handle in handles:
            handle.cancel()
        return bool(handles)

    def status(self) -> dict:
        return {
            "scenario": self.name,
            "state": self.state,
            "current_step": self.completed_steps,
            "total_steps": len(self.scenario),
            "failed_step": self.failed_step,
            "retries": self.retries,
            "remaining_retries": max(0, self.max_retries - self.retries),
            "error": self.error,
            "events": [
                {"id": e.id, "delay_ms": e.delay_ms, "shelf": e.update.shelf, "description": e.description}
                for e in self.scenario
            ],
        }
