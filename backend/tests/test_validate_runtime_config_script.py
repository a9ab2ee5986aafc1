from __future__ import annotations

import json
import os
import subprocess
import sys
from pathlib import Path


def _parse_json_output(stdout: str) -> dict:
    lines = [line.strip() for line in stdout.splitlines() if line.strip()]
    return json.loads(lines[-1])


def _run(env_overrides: dict[str, str], *args: str) -> subprocess.CompletedProcess:
    repo_root = Path(__file__).resolve().parents[2]
    script_path = repo_root / "backend" / "scripts" / "validate_runtime_config.py"

    env = os.environ.copy()
    for key in ("SIMULATION_SEED", "POLLING_INTERVAL_SECONDS", "WS_UPDATE_INTERVAL_SECONDS"):
        env.pop(key, None)
    env["APP_ENV"] = "test"
    env["DEBUG"] = "false"
    env.update(env_overrides)

    return subprocess.run(
        [sys.executable, str(script_path), *args],
        cwd=str(repo_root),
        env=env,
        capture_output=True,
        text=True,
        check=False,
    )


def test_validate_runtime_config_fails_when_seed_required_but_missing():
    completed = _run({}, "--require-seed")
    assert completed.returncode == 1
    payload = _parse_json_output(completed.stdout)
    assert payload["status"] == "failed"
    assert any("SIMULATION_SEED" in message for message in payload["failures"])


def test_validate_runtime_config_flags_slow_polling():
    completed = _run({"SIMULATION_SEED": "7", "POLLING_INTERVAL_SECONDS": "10", "WS_UPDATE_INTERVAL_SECONDS": "8"})
    assert completed.returncode == 1
    payload = _parse_json_output(completed.stdout)
    assert any("POLLING_INTERVAL_SECONDS" in message for message in payload["failures"])


def test_validate_runtime_config_reports_guardrail_errors():
    completed = _run({"WS_UPDATE_PROBABILITY": "1.5"})
    assert completed.returncode == 1
    payload = _parse_json_output(completed.stdout)
    assert payload["status"] == "failed"
    assert "ws_update_probability" in payload["error"]


def test_validate_runtime_config_passes_with_seed():
    completed = _run({"SIMULATION_SEED": "7"}, "--require-seed")
    assert completed.returncode == 0
    payload = _parse_json_output(completed.stdout)
    assert payload["status"] == "success"
    assert payload["failures"] == []
    assert payload["total_shelves"] == 15
