"""Statistical aggregation over stored records."""

from __future__ import annotations

from collections import Counter, deque
from datetime import datetime
from typing import Iterable, Optional, Sequence

from nethealth.models import FieldStats, Issue, Record, Report, Status


def compute_field_stats(values: Sequence[float]) -> FieldStats:
    """Compute count/avg/min/max from a list of present values."""
    if not values:
        return FieldStats()

    return FieldStats(
        count=len(values),
        avg=round(sum(values) / len(values), 2),
        min=min(values),
        max=max(values),
    )


def summarize(records: Iterable[Record]) -> Report:
    """Aggregate *records* into a Report in a single pass.

    Latency and speed statistics only include records where the field has
    data; an absent value is neither a zero nor a failure. A speed of 0 is
    the failed-download marker and is left out of the speed statistics too.
    """
    total = 0
    statuses: Counter[str] = Counter()
    latencies: list[float] = []
    speeds: list[float] = []

    for record in records:
        total += 1
        statuses[record.status.value] += 1
        if record.sample.avg_latency_ms is not None:
            latencies.append(record.sample.avg_latency_ms)
        if record.sample.download_speed_mbps:
            speeds.append(record.sample.download_speed_mbps)

    issue_count = total - statuses[Status.OK.value]
    return Report(
        total=total,
        issue_count=issue_count,
        issue_pct=round(issue_count / total * 100, 1) if total else 0.0,
        status_counts={s.value: statuses[s.value] for s in Status},
        latency=compute_field_stats(latencies),
        speed=compute_field_stats(speeds),
    )


def summarize_since(records: Iterable[Record], cutoff: datetime) -> list[Issue]:
    """Return (timestamp, status) for every non-OK record after *cutoff*."""
    return [
        Issue(record.timestamp, record.status)
        for record in records
        if record.timestamp > cutoff and record.is_issue
    ]


def recent(records: Iterable[Record], limit: int) -> list[Record]:
    """Return the trailing *limit* records, oldest first."""
    if limit <= 0:
        return []
    return list(deque(records, maxlen=limit))


def current_status(records: Iterable[Record]) -> Optional[Status]:
    """Status of the newest record, or None if there are no records."""
    last = recent(records, 1)
    return last[0].status if last else None
