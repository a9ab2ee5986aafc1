#!/usr/bin/env python3
"""Validate runtime configuration before starting the API.

Examples:
  python backend/scripts/validate_runtime_config.py
  python backend/scripts/validate_runtime_config.py --require-seed --pretty
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from typing import Any

# Add backend/ to path when run as a script.
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.config import get_settings


def _is_local_env(raw_env: str) -> bool:
    env = raw_env.strip().lower()
    return env in {"", "local", "dev", "development", "test"}


def _validate_settings(*, require_seed: bool) -> tuple[list[str], dict[str, Any]]:
    # Guardrails inside get_settings() raise on hard misconfiguration
    settings = get_settings()
    local_env = _is_local_env(settings.app_env)
    failures: list[str] = []

    if require_seed and settings.simulation_seed is None:
        failures.append("SIMULATION_SEED is required when --require-seed is set")
    if settings.polling_interval_seconds >= settings.ws_update_interval_seconds:
        failures.append("POLLING_INTERVAL_SECONDS should be shorter than WS_UPDATE_INTERVAL_SECONDS")
    shelves = len(settings.aisle_letters) * settings.shelves_per_aisle
    if settings.min_empty_shelves + settings.min_low_shelves > shelves:
        failures.append(
            f"MIN_EMPTY_SHELVES + MIN_LOW_SHELVES exceeds the {shelves}-shelf grid"
        )

    summary = {
        "status": "success" if not failures else "failed",
        "app_env": settings.app_env,
        "local_env": local_env,
        "simulation_enabled": settings.simulation_enabled,
        "total_shelves": shelves,
        "require_seed": bool(require_seed),
        "failures": failures,
    }
    return failures, summary


def main() -> int:
    parser = argparse.ArgumentParser(description="Validate deployment runtime config")
    parser.add_argument(
        "--require-seed",
        action="store_true",
        help="Require a fixed SIMULATION_SEED (reproducible demos)",
    )
    parser.add_argument("--pretty", action="store_true", help="Pretty-print JSON output")
    args = parser.parse_args()

    try:
        failures, summary = _validate_settings(require_seed=bool(args.require_seed))
    except Exception as exc:  # noqa: BLE001
        summary = {
            "status": "failed",
            "error": str(exc),
            "require_seed": bool(args.require_seed),
        }
        failures = [str(exc)]

    if args.pretty:
        print(json.dumps(summary, indent=2, sort_keys=True))
    else:
        print(json.dumps(summary))

    return 0 if not failures else 1


if __name__ == "__main__":
    raise SystemExit(main())
