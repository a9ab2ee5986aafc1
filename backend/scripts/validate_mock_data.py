#!/usr/bin/env python3
"""Validate generated mock data and score demo readiness.

Examples:
  python backend/scripts/validate_mock_data.py
  python backend/scripts/validate_mock_data.py --seed 7 --report --pretty
"""

from __future__ import annotations

import argparse
import json
import os
import random
import sys
from dataclasses import asdict, is_dataclass
from datetime import datetime
from enum import Enum
from typing import Any

# Add backend/ to path when run as a script.
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from simulation.mock_data import generate_mock_data
from simulation.validation import generate_demo_report, run_comprehensive_validation


def _to_jsonable(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        return _to_jsonable(asdict(value))
    if isinstance(value, dict):
        return {k: _to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_jsonable(v) for v in value]
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


def _build_summary(*, seed: int | None, report: bool) -> tuple[bool, dict[str, Any]]:
    rng = random.Random(seed)
    if report:
        demo_report = generate_demo_report(rng)
        is_valid = demo_report["validation"]["is_valid"]
        return is_valid, {"status": "success" if is_valid else "failed", "seed": seed, **demo_report}

    validation = run_comprehensive_validation(generate_mock_data(rng))
    summary = {
        "status": "success" if validation["is_valid"] else "failed",
        "seed": seed,
        "summary": validation["summary"],
        "details": {name: r.to_dict() for name, r in validation["details"].items()},
    }
    return validation["is_valid"], summary


def main() -> int:
    parser = argparse.ArgumentParser(description="Validate generated shelf/alert mock data")
    parser.add_argument("--seed", type=int, default=None, help="Seed for reproducible generation")
    parser.add_argument("--report", action="store_true", help="Emit the full demo-readiness report")
    parser.add_argument("--pretty", action="store_true", help="Pretty-print JSON output")
    args = parser.parse_args()

    try:
        is_valid, summary = _build_summary(seed=args.seed, report=bool(args.report))
    except Exception as exc:  # noqa: BLE001
        is_valid = False
        summary = {"status": "failed", "seed": args.seed, "error": str(exc)}

    payload = _to_jsonable(summary)
    if args.pretty:
        print(json.dumps(payload, indent=2, sort_keys=True))
    else:
        print(json.dumps(payload))

    return 0 if is_valid else 1


if __name__ == "__main__":
    raise SystemExit(main())
