"""
Test Configuration — Fixtures for seeded mock data, store, reconciler, and test client.

Every fixture that generates data takes a fixed seed and a fixed ``now`` so
shelves, alerts, and simulated scans are reproducible.
"""

import random
from datetime import datetime, timezone

import pytest
from httpx import ASGITransport, AsyncClient

from api.deps import get_reconciler, get_scenario_runner, get_store
from api.main import app
from core.config import Settings
from inventory.models import Product, Shelf
from realtime.reconciler import UpdateReconciler
from simulation.mock_data import generate_mock_data
from simulation.scenarios import DemoScenarioRunner
from state.actions import AppState
from state.store import StateStore

NOW = datetime(2025, 6, 2, 15, 30, tzinfo=timezone.utc)
SEED = 1234


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def rng():
    return random.Random(SEED)


@pytest.fixture
def mock_data(now):
    return generate_mock_data(random.Random(SEED), now=now)


@pytest.fixture
def a1_shelf(now):
    """Shelf A1 with one low product and one healthy-looking product."""
    return Shelf(
        id="A1",
        aisle="Aisle A",
        items=(Product("Soap", 5, 10), Product("Paste", 8, 10)),
        last_scanned=now,
    )


@pytest.fixture
def test_settings():
    """Fast timings: no rescan delay, short channel intervals."""
    return Settings(
        app_env="test",
        simulation_seed=SEED,
        rescan_latency_seconds=0.0,
        ws_update_interval_seconds=0.01,
        polling_interval_seconds=0.01,
        ws_update_probability=1.0,
        polling_update_probability=1.0,
        heartbeat_interval_seconds=0.05,
    )


@pytest.fixture
def store(mock_data):
    store = StateStore(AppState(shelves=tuple(mock_data["shelves"]), alerts=tuple(mock_data["alerts"])))
    store.snapshot()
    return store


@pytest.fixture
async def reconciler(store, test_settings):
    reconciler = UpdateReconciler(store, rng=random.Random(SEED), settings=test_settings)
    yield reconciler
    await reconciler.stop()


@pytest.fixture
def runner(reconciler):
    runner = DemoScenarioRunner(reconciler, max_retries=3)
    yield runner
    runner.stop()


@pytest.fixture
async def client(store, reconciler, runner):
    """Create an async test client with dependency overrides."""
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_reconciler] = lambda: reconciler
    app.dependency_overrides[get_scenario_runner] = lambda: runner

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
