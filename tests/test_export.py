"""Tests for summary text and JSON export."""

import json
from datetime import datetime

from nethealth.export import export_json, format_summary, write_to_file
from nethealth.models import FieldStats, Issue, Report, Status

GENERATED = datetime(2025, 12, 11, 18, 0, 0)


def make_report() -> Report:
    return Report(
        total=4,
        issue_count=1,
        issue_pct=25.0,
        status_counts={"OK": 3, "HIGH_LATENCY": 0, "SLOW_SPEED": 0, "PACKET_LOSS": 1},
        latency=FieldStats(count=3, avg=20.0, min=10.0, max=30.0),
        speed=FieldStats(),
    )


class TestFormatSummary:

    def test_sections(self):
        issues = [Issue(datetime(2025, 12, 11, 17, 0, 0), Status.PACKET_LOSS)]
        text = format_summary(make_report(), issues, generated=GENERATED)

        assert "Generated: 2025-12-11 18:00:00" in text
        assert "LATENCY STATISTICS:\n  Average: 20.00 ms\n  Minimum: 10.00 ms\n  Maximum: 30.00 ms" in text
        assert "No valid bandwidth data found" in text
        assert "Total tests conducted: 4" in text
        assert "RECENT ISSUES (Last 24 hours):\n  2025-12-11 17:00:00: PACKET_LOSS" in text

    def test_no_data(self):
        text = format_summary(Report(), [], generated=GENERATED)
        assert "No monitoring data available yet." in text
        assert "LATENCY" not in text

    def test_no_recent_issues(self):
        text = format_summary(make_report(), [], generated=GENERATED, window_hours=6)
        assert "RECENT ISSUES (Last 6 hours):\n  None" in text


class TestExportJson:

    def test_structure(self):
        issues = [Issue(datetime(2025, 12, 11, 17, 0, 0), Status.PACKET_LOSS)]
        data = json.loads(export_json(make_report(), issues))

        assert data["total"] == 4
        assert data["issue_pct"] == 25.0
        assert data["latency_ms"] == {"count": 3, "avg": 20.0, "min": 10.0, "max": 30.0}
        assert data["download_speed_mbps"]["avg"] is None
        assert data["recent_issues"] == [{"timestamp": "2025-12-11 17:00:00", "status": "PACKET_LOSS"}]

    def test_write_to_file(self, tmp_path):
        target = tmp_path / "out.json"
        write_to_file("{}", target)
        assert target.read_text() == "{}"
