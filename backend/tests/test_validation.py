"""
Tests for mock data validation and the validate_mock_data script.
"""

import json
import random
import subprocess
import sys
from pathlib import Path

from inventory.models import Alert, AlertType, Product, Shelf
from simulation.validation import (
    generate_demo_report,
    run_comprehensive_validation,
    validate_mock_alerts,
    validate_mock_shelves,
    validate_products,
)


def _shelf(now, shelf_id, *items):
    return Shelf(id=shelf_id, aisle=f"Aisle {shelf_id[0]}", items=items, last_scanned=now)


class TestValidators:
    def test_generated_data_is_valid(self, mock_data):
        result = run_comprehensive_validation(mock_data)
        assert result["is_valid"] is True
        assert result["summary"].startswith("Validation Results: PASSED")

    def test_shelf_count_and_duplicates(self, now):
        shelves = [_shelf(now, "A1", Product("X", 5, 10))] * 2
        report = validate_mock_shelves(shelves)
        assert not report.is_valid
        assert any("Invalid shelf count" in e for e in report.errors)
        assert "Duplicate shelf IDs found" in report.errors

    def test_alert_consistency_errors(self, now):
        shelves = [_shelf(now, "A1", Product("Soap", 4, 10), Product("Paste", 0, 10))]
        alerts = [
            Alert("a1", "Z9", "Soap", AlertType.LOW, now),
            Alert("a2", "A1", "Missing", AlertType.LOW, now),
            Alert("a3", "A1", "Soap", AlertType.EMPTY, now),
            Alert("a4", "A1", "Paste", AlertType.LOW, now),
        ]
        report = validate_mock_alerts(alerts, shelves)
        assert len(report.errors) == 4

    def test_duplicate_open_alerts_flagged(self, now):
        shelves = [_shelf(now, "A1", Product("Soap", 0, 10))]
        alerts = [Alert("a1", "A1", "Soap", AlertType.EMPTY, now), Alert("a2", "A1", "Soap", AlertType.EMPTY, now)]
        report = validate_mock_alerts(alerts, shelves)
        assert any("open empty alerts" in e for e in report.errors)

    def test_all_acknowledged_warning(self, now):
        shelves = [_shelf(now, "A1", Product("Soap", 0, 10))]
        report = validate_mock_alerts([Alert("a1", "A1", "Soap", AlertType.EMPTY, now, True)], shelves)
        assert report.is_valid
        assert report.warnings

    def test_product_errors_and_distribution(self, now):
        shelves = [
            _shelf(
                now,
                "A1",
                Product("", 1, 10),
                Product("Neg", -1, 10),
                Product("Zero", 1, 0),
                Product("Huge", 100, 60),
                Product("Over", 40, 10),
            )
        ]
        report = validate_products(shelves)
        assert len(report.errors) == 3
        assert any("High threshold" in w for w in report.warnings)
        assert report.stats["count_distribution"]["overstocked"] == 2


class TestDemoReport:
    def test_report_shape(self, now):
        report = generate_demo_report(random.Random(5), now=now)
        assert report["timestamp"] == now.isoformat()
        assert 0 <= report["demo_readiness"]["score"] <= 100
        assert len(report["sample_data"]["critical_alerts"]) <= 3
        assert len(report["sample_data"]["problematic_shelves"]) <= 5
        assert len(report["sample_data"]["demonstration_flow"]) == 6
        assert report["validation"]["is_valid"] is True


def _parse_json_output(stdout: str) -> dict:
    lines = [line.strip() for line in stdout.splitlines() if line.strip()]
    return json.loads(lines[-1])


def test_validate_mock_data_script_passes_with_seed():
    repo_root = Path(__file__).resolve().parents[2]
    script_path = repo_root / "backend" / "scripts" / "validate_mock_data.py"

    completed = subprocess.run(
        [sys.executable, str(script_path), "--seed", "7", "--report"],
        cwd=str(repo_root),
        capture_output=True,
        text=True,
        check=False,
    )
    assert completed.returncode == 0
    payload = _parse_json_output(completed.stdout)
    assert payload["status"] == "success"
    assert payload["seed"] == 7
    assert payload["data_overview"]["total_shelves"] == 15
