"""
Tests for scripted demo scenarios and the timer-driven runner.
"""

import asyncio
from dataclasses import replace

import pytest

from core.errors import SimulationFailure
from inventory.models import AlertType, Product, ScanUpdate, Shelf, ShelfStatus, utcnow
from simulation.scenarios import (
    DemoEvent,
    ManualDemoController,
    create_advanced_demo_scenario,
    create_demo_scenario,
)
from state.actions import UpsertShelf


def _fast(events, step_ms=10):
    """Same events, compressed to a few milliseconds apart."""
    return [replace(e, delay_ms=i * step_ms) for i, e in enumerate(events)]


def _event(event_id, shelf, delay_ms=0, count=0):
    return DemoEvent(
        id=event_id,
        delay_ms=delay_ms,
        description=f"{event_id} on {shelf}",
        update=ScanUpdate(shelf=shelf, items=(Product("Widget", count, 10),)),
    )


class TestScenarioDefinitions:
    def test_basic_scenario(self):
        events = create_demo_scenario()
        assert [e.delay_ms for e in events] == [5000, 10000, 15000, 20000]
        assert [e.update.shelf for e in events] == ["A1", "B2", "A1", "C3"]
        assert events[0].update.items[0] == Product("Dove Soap 100g", 0, 10)

    def test_advanced_scenario_extends_basic(self):
        events = create_advanced_demo_scenario()
        assert len(events) == 6
        assert [e.id for e in events[:4]] == [e.id for e in create_demo_scenario()]
        assert [e.update.shelf for e in events[4:]] == ["D1", "E2"]
        assert [e.delay_ms for e in events[4:]] == [25000, 30000]

    def test_manual_controller(self):
        controller = ManualDemoController()
        assert controller.total_steps == 4
        ids = [controller.next_event().id for _ in range(4)]
        assert ids == ["demo-1", "demo-2", "demo-3", "demo-4"]
        assert controller.next_event() is None
        controller.reset()
        assert controller.current_step == 0
        assert controller.next_event().id == "demo-1"


@pytest.mark.asyncio
class TestScenarioRunner:
    async def test_runs_scenario_to_completion(self, runner, store):
        runner.start("basic", _fast(create_demo_scenario()))
        assert await runner.wait(timeout=2) == "completed"

        assert runner.completed_steps == 4
        a1 = store.state.get_shelf("A1")
        assert a1.find_item("Dove Soap 100g").count == 15
        assert not [a for a in store.state.alerts if a.key == ("A1", "Dove Soap 100g")]
        c3 = store.state.get_shelf("C3")
        assert c3.status == ShelfStatus.EMPTY
        assert any(
            a.key == ("C3", "Charmin Toilet Paper") and a.type == AlertType.EMPTY for a in store.state.alerts
        )

    async def test_events_are_stamped_when_fired(self, runner, store):
        started = utcnow()
        runner.start("basic", _fast(create_demo_scenario()[:1]))
        await runner.wait(timeout=2)
        assert store.state.get_shelf("A1").last_scanned >= started

    async def test_unknown_scenario_name(self, runner):
        with pytest.raises(ValueError):
            runner.start("nope")

    async def test_stop_cancels_pending_events(self, runner, store):
        events = [_event("now", "A1", 0), _event("later", "A2", 5000)]
        before_a2 = store.state.get_shelf("A2")
        runner.start("custom", events)
        await asyncio.sleep(0.05)
        runner.stop()
        runner.stop()
        assert runner.state == "stopped"
        assert runner.completed_steps == 1
        assert store.state.get_shelf("A2") == before_a2

    async def test_failure_halts_and_reports(self, runner, store):
        events = [_event("ok", "A1", 0), _event("bad", "Z9", 10), _event("after", "A2", 20)]
        runner.start("custom", events)
        assert await runner.wait(timeout=2) == "failed"

        assert runner.failed_step == 1
        assert runner.completed_steps == 1
        assert "Demo step 'bad' failed" in store.state.error
        assert store.state.get_shelf("A2").find_item("Widget") is None

    async def test_retry_resumes_from_failed_step(self, runner, store, now):
        events = [_event("ok", "A1", 0), _event("bad", "Z9", 10), _event("after", "A2", 20)]
        runner.start("custom", events)
        await runner.wait(timeout=2)

        store.dispatch(UpsertShelf(Shelf("Z9", "Aisle Z", (Product("Widget", 3, 10),), now)))
        runner.retry()
        assert store.state.error is None
        assert await runner.wait(timeout=2) == "completed"
        assert runner.retries == 1
        assert store.state.get_shelf("Z9").find_item("Widget").count == 0
        assert store.state.get_shelf("A2").find_item("Widget").count == 0

    async def test_retry_is_bounded(self, runner):
        runner.start("custom", [_event("bad", "Z9", 0)])
        await runner.wait(timeout=2)
        for _ in range(3):
            runner.retry()
            assert await runner.wait(timeout=2) == "failed"
        with pytest.raises(SimulationFailure):
            runner.retry()
        assert runner.status()["remaining_retries"] == 0

    async def test_retry_without_failure(self, runner):
        with pytest.raises(SimulationFailure):
            runner.retry()

    async def test_reset_restores_snapshot(self, runner, store):
        original = store.state
        runner.start("basic", _fast(create_demo_scenario()))
        await runner.wait(timeout=2)
        assert store.state != original

        runner.reset()
        assert store.state == original
        assert runner.state == "idle"
        assert runner.status()["current_step"] == 0

    async def test_status_lists_events(self, runner):
        runner.start("advanced")
        status = runner.status()
        runner.stop()
        assert status["scenario"] == "advanced"
        assert status["state"] == "running"
        assert status["total_steps"] == 6
        assert status["events"][0] == {
            "id": "demo-1",
            "delay_ms": 5000,
            "shelf": "A1",
            "description": "Customer purchases last Dove Soap from Shelf A1",
        }
