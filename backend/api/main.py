"""
ShelfScan API — FastAPI Application Entry Point
"""

import random
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.config import Settings, get_settings
from realtime.reconciler import UpdateReconciler
from simulation.mock_data import generate_mock_data
from simulation.scenarios import DemoScenarioRunner
from state.actions import AppState
from state.store import StateStore

settings = get_settings()
logger = structlog.get_logger()


def build_components(config: Settings, rng: random.Random | None = None) -> tuple[StateStore, UpdateReconciler, DemoScenarioRunner]:
    """Seed a store from mock data and wire the reconciler and demo runner to it."""
    rng = rng if rng is not None else random.Random(config.simulation_seed)
    data = generate_mock_data(
        rng,
        aisle_letters=config.aisle_letters,
        shelves_per_aisle=config.shelves_per_aisle,
        min_empty=config.min_empty_shelves,
        min_low=config.min_low_shelves,
    )
    store = StateStore(AppState(shelves=tuple(data["shelves"]), alerts=tuple(data["alerts"])))
    store.snapshot()
    reconciler = UpdateReconciler(store, rng=rng, settings=config)
    runner = DemoScenarioRunner(reconciler, max_retries=config.scenario_max_retries)
    logger.info("api.store_seeded", **data["stats"])
    return store, reconciler, runner


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("ShelfScan API starting up", version=settings.app_version)
    store, reconciler, runner = build_components(settings)
    app.state.store = store
    app.state.reconciler = reconciler
    app.state.scenario_runner = runner
    if settings.simulation_enabled:
        reconciler.start()
    yield
    runner.stop()
    await reconciler.stop()
    logger.info("ShelfScan API shutting down")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Real-time retail shelf inventory monitoring",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Import and register routers
from alerts.websocket import router as ws_router
from api.v1.routers import alerts, demo, scans, shelves

app.include_router(shelves.router)
app.include_router(alerts.router)
app.include_router(scans.router)
app.include_router(demo.router)
app.include_router(ws_router)


@app.get("/health")
async def health_check():
    """Health check endpoint for load balancers."""
    return {"status": "healthy", "version": settings.app_version}
