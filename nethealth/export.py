"""Summary text and JSON export for reports."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence, Union

from nethealth.config import ISSUE_WINDOW_HOURS, TIMESTAMP_FORMAT
from nethealth.models import FieldStats, Issue, Report


def _stats_block(title: str, stats: FieldStats, unit: str, label: str) -> list[str]:
    lines = [f"{title}:"]
    if stats.count:
        lines.append(f"  Average: {stats.avg:.2f} {unit}")
        lines.append(f"  Minimum: {stats.min:.2f} {unit}")
        lines.append(f"  Maximum: {stats.max:.2f} {unit}")
    else:
        lines.append(f"  No valid {label} data found")
    return lines


def format_summary(
    report: Report,
    issues: Sequence[Issue],
    generated: Optional[datetime] = None,
    window_hours: int = ISSUE_WINDOW_HOURS,
) -> str:
    """Render the plain-text summary written to the summary file."""
    generated = generated or datetime.now()
    lines = [
        "Network Health Monitor Summary",
        f"Generated: {generated:{TIMESTAMP_FORMAT}}",
        "==================================",
        "",
    ]
    if not report.has_data:
        lines.append("No monitoring data available yet.")
        return "\n".join(lines) + "\n"

    lines.extend(_stats_block("LATENCY STATISTICS", report.latency, "ms", "latency"))
    lines.append("")
    lines.extend(_stats_block("BANDWIDTH STATISTICS", report.speed, "Mbps", "bandwidth"))
    lines.append("")
    lines.append(f"Total tests conducted: {report.total}")
    lines.append(f"Issues detected: {report.issue_count} ({report.issue_pct:.1f}%)")
    lines.append("")
    lines.append(f"RECENT ISSUES (Last {window_hours} hours):")
    if issues:
        for issue in issues:
            lines.append(f"  {issue.timestamp:{TIMESTAMP_FORMAT}}: {issue.status.value}")
    else:
        lines.append("  None")
    return "\n".join(lines) + "\n"


def export_json(report: Report, issues: Sequence[Issue], indent: int = 2) -> str:
    """Export a report and its issue list as a JSON string."""
    data = _build_export_dict(report, issues)
    return json.dumps(data, indent=indent, default=str)


def write_to_file(content: str, filepath: Union[str, Path]) -> None:
    """Write export content to a file."""
    with open(filepath, "w", encoding="utf-8") as f:
        f.write(content)


def _stats_to_dict(stats: FieldStats) -> dict:
    return {
        "count": stats.count,
        "avg": stats.avg,
        "min": stats.min,
        "max": stats.max,
    }


def _build_export_dict(report: Report, issues: Sequence[Issue]) -> dict:
    """Build a serializable dictionary from a Report."""
    return {
        "total": report.total,
        "issue_count": report.issue_count,
        "issue_pct": report.issue_pct,
        "status_counts": dict(report.status_counts),
        "latency_ms": _stats_to_dict(report.latency),
        "download_speed_mbps": _stats_to_dict(report.speed),
        "recent_issues": [
            {"timestamp": issue.timestamp.strftime(TIMESTAMP_FORMAT), "status": issue.status.value}
            for issue in issues
        ],
    }
