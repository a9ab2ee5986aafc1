"""
ShelfScan API Dependencies

Dependency injection for the state store, reconciler, and demo runner.
All three live on ``app.state`` (built in the lifespan) so tests can swap
them through ``app.dependency_overrides``.
"""

from fastapi import HTTPException, Request, WebSocket, status

from realtime.reconciler import UpdateReconciler
from simulation.scenarios import DemoScenarioRunner
from state.store import StateStore


def _from_app_state(request: Request, name: str):
    component = getattr(request.app.state, name, None)
    if component is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{name.replace('_', ' ').capitalize()} not initialized",
        )
    return component


def get_store(request: Request) -> StateStore:
    return _from_app_state(request, "store")


def get_ws_store(websocket: WebSocket) -> StateStore:
    return websocket.app.state.store


def get_reconciler(request: Request) -> UpdateReconciler:
    return _from_app_state(request, "reconciler")


def get_scenario_runner(request: Request) -> DemoScenarioRunner:
    return _from_app_state(request, "scenario_runner")
