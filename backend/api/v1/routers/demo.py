"""
Demo Router — scripted scenario playback and mock-data health checks.
"""

import random

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from api.deps import get_scenario_runner
from core.errors import SimulationFailure
from simulation.scenarios import SCENARIOS, DemoScenarioRunner
from simulation.validation import generate_demo_report

router = APIRouter(prefix="/api/v1/demo", tags=["demo"])


# ─── Schemas ────────────────────────────────────────────────────────────────


class StartRequest(BaseModel):
    scenario: str = "basic"


class DemoEventResponse(BaseModel):
    id: str
    delay_ms: int
    shelf: str
    description: str


class DemoStatus(BaseModel):
    scenario: str | None
    state: str
    current_step: int
    total_steps: int
    failed_step: int | None
    retries: int
    remaining_retries: int
    error: str | None
    events: list[DemoEventResponse]


class ValidationResponse(BaseModel):
    is_valid: bool
    summary: str
    score: int
    recommendations: list[str]
    data_overview: dict[str, int]
    details: dict[str, dict]


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.post("/start", response_model=DemoStatus)
async def start_demo(body: StartRequest, runner: DemoScenarioRunner = Depends(get_scenario_runner)):
    """Start (or restart) a scripted scenario."""
    if body.scenario not in SCENARIOS:
        raise HTTPException(status_code=422, detail=f"Unknown scenario '{body.scenario}'")
    runner.start(body.scenario)
    return runner.status()


@router.post("/stop", response_model=DemoStatus)
async def stop_demo(runner: DemoScenarioRunner = Depends(get_scenario_runner)):
    runner.stop()
    return runner.status()


@router.get("/status", response_model=DemoStatus)
async def demo_status(runner: DemoScenarioRunner = Depends(get_scenario_runner)):
    return runner.status()


@router.post("/retry", response_model=DemoStatus)
async def retry_demo(runner: DemoScenarioRunner = Depends(get_scenario_runner)):
    """Resume a failed scenario from the step that failed."""
    try:
        runner.retry()
    except SimulationFailure as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return runner.status()


@router.post("/reset", response_model=DemoStatus)
async def reset_demo(runner: DemoScenarioRunner = Depends(get_scenario_runner)):
    """Stop the scenario and restore the store to its pre-scenario state."""
    runner.reset()
    return runner.status()


@router.get("/validation", response_model=ValidationResponse)
async def validate_demo_data(seed: int | None = None):
    """Validate a freshly generated dataset and score its demo readiness."""
    report = generate_demo_report(random.Random(seed))
    return ValidationResponse(
        is_valid=report["validation"]["is_valid"],
        summary=report["validation"]["summary"],
        score=report["demo_readiness"]["score"],
        recommendations=report["demo_readiness"]["recommendations"],
        data_overview=report["data_overview"],
        details=report["validation"]["details"],
    )
