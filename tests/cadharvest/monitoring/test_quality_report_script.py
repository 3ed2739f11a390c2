"""
Tests for the data-quality report script
"""
import json

import pytest

from scripts.data_quality_report import main


def write_results(path, rows):
    path.write_text(json.dumps(rows), encoding="utf-8")
    return path


class TestDataQualityReport:
    """Tests for scripts/data_quality_report.py."""

    def test_report_from_results_file(self, tmp_path, capsys):
        results = write_results(tmp_path / "results.json", [
            {"identifier": "1", "success": True, "skipped": False,
             "validation": {"is_valid": True}, "quality": {"score": 80, "tier": "high"}},
            {"identifier": "2", "success": True, "skipped": False,
             "validation": {"is_valid": False}, "quality": {"score": 40, "tier": "low"}},
            {"identifier": "3", "success": False, "skipped": False,
             "error": "server error", "error_type": "ServerError"},
            {"identifier": "4", "success": False, "skipped": True},
        ])

        metrics = main([str(results)])

        assert metrics["total"] == 4
        assert metrics["successful"] == 2
        assert metrics["failed"] == 1
        assert metrics["skipped"] == 1
        assert metrics["valid"] == 1
        assert metrics["error_types"] == {"ServerError": 1}
        assert metrics["mean_quality_score"] == 60.0

        out = capsys.readouterr().out
        assert "ServerError: 1" in out
        assert "high: 1" in out

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            main([str(tmp_path / "missing.json")])
