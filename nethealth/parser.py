"""Normalize raw probe output into typed samples.

All knowledge of ping/transfer output formats lives here:

- Latency: the aggregate summary line is preferred
  (``rtt min/avg/max/mdev = 9.8/12.3/15.1/2.0 ms`` on Linux,
  ``round-trip min/avg/max/stddev = ...`` on macOS/BSD,
  ``Minimum = 9ms, Maximum = 15ms, Average = 12ms`` on Windows).
  Without it, individual ``time=N ms`` replies are averaged and
  min = max = avg.
- Packet loss: ``N% packet loss`` / ``(N% loss)``. Missing figure on a
  successful probe means 0; a failed probe means 100.
- Bandwidth: ``bytes / elapsed / 1048576``, guarded against zero elapsed
  time and empty transfers.

Values only count as measurements if they look like plain non-negative
decimals; anything else is "no data" (``None``), never coerced to 0.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from nethealth.config import BYTES_PER_MEGABYTE
from nethealth.models import BandwidthProbeResult, LatencyProbeResult, Sample

logger = logging.getLogger(__name__)

_NUMBER_RE = re.compile(r"^\d+(?:\.\d+)?$")

_UNIX_SUMMARY_RE = re.compile(
    r"(?:rtt|round-trip)\s+min/avg/max(?:/\w+)?\s*=\s*"
    r"([^/\s]+)/([^/\s]+)/([^/\s]+)",
    re.IGNORECASE,
)
_WINDOWS_SUMMARY_RE = re.compile(
    r"Minimum\s*=\s*(\S+?)\s*ms,\s*Maximum\s*=\s*(\S+?)\s*ms,\s*Average\s*=\s*(\S+?)\s*ms",
    re.IGNORECASE,
)
_REPLY_TIME_RE = re.compile(r"time\s*([=<])\s*(\S+?)\s*ms", re.IGNORECASE)
_LOSS_RE = re.compile(r"(\S+?)%\s+packet\s+loss", re.IGNORECASE)
_WINDOWS_LOSS_RE = re.compile(r"\((\S+?)%\s+loss\)", re.IGNORECASE)


@dataclass
class LatencyReading:
    """Latency figures extracted from one latency probe."""

    avg_ms: Optional[float] = None
    min_ms: Optional[float] = None
    max_ms: Optional[float] = None
    packet_loss_pct: float = 0.0
    error: Optional[str] = None


@dataclass
class BandwidthReading:
    """Throughput figures extracted from one bandwidth probe."""

    speed_mbps: Optional[float] = None
    time_sec: Optional[float] = None
    error: Optional[str] = None


def parse_measurement(text: Optional[str]) -> Optional[float]:
    """Return *text* as a float if it is a plain non-negative decimal.

    >>> parse_measurement("12.5")
    12.5
    >>> parse_measurement("abc") is None
    True
    """
    if text is None:
        return None
    text = text.strip()
    if not _NUMBER_RE.match(text):
        return None
    return float(text)


def _parse_summary(output: str) -> Optional[tuple[float, float, float]]:
    """Return (min, avg, max) from an aggregate summary line, if present."""
    match = _UNIX_SUMMARY_RE.search(output)
    if match:
        values = [parse_measurement(g) for g in match.groups()]
        if all(v is not None for v in values):
            return values[0], values[1], values[2]  # type: ignore[return-value]

    match = _WINDOWS_SUMMARY_RE.search(output)
    if match:
        minimum, maximum, average = (parse_measurement(g) for g in match.groups())
        if minimum is not None and maximum is not None and average is not None:
            return minimum, average, maximum
    return None


def _parse_reply_times(output: str) -> list[float]:
    """Return every individual round-trip time found in *output*."""
    times = []
    for operator, raw in _REPLY_TIME_RE.findall(output):
        value = parse_measurement(raw)
        if value is None:
            continue
        # Windows "time<1ms": take the midpoint of the bound
        times.append(value / 2.0 if operator == "<" else value)
    return times


def parse_packet_loss(output: str) -> Optional[float]:
    """Return the reported loss percentage, or None if no figure is present."""
    for pattern in (_LOSS_RE, _WINDOWS_LOSS_RE):
        match = pattern.search(output)
        if match:
            value = parse_measurement(match.group(1))
            if value is not None:
                return min(value, 100.0)
    return None


def parse_latency(result: LatencyProbeResult) -> LatencyReading:
    """Extract latency and packet loss from a latency probe result."""
    if not result.ok:
        return LatencyReading(
            packet_loss_pct=100.0,
            error=result.error or "latency probe failed",
        )

    output = result.output or ""
    reading = LatencyReading()

    summary = _parse_summary(output)
    if summary is not None:
        reading.min_ms, reading.avg_ms, reading.max_ms = summary
    else:
        times = _parse_reply_times(output)
        if times:
            avg = round(sum(times) / len(times), 2)
            reading.avg_ms = reading.min_ms = reading.max_ms = avg
            logger.debug("No summary line; averaged %d reply times", len(times))
        else:
            logger.debug("No latency figures in probe output: %r", output[:100])

    loss = parse_packet_loss(output)
    reading.packet_loss_pct = loss if loss is not None else 0.0
    return reading


def compute_speed_mbps(bytes_transferred: int, elapsed_sec: float) -> Optional[float]:
    """Throughput in megabytes per second, or None when it cannot be computed.

    A real transfer never reports 0, which is reserved for failures.
    """
    if bytes_transferred <= 0 or elapsed_sec <= 0:
        return None
    return max(round(bytes_transferred / elapsed_sec / BYTES_PER_MEGABYTE, 2), 0.01)


def parse_bandwidth(result: BandwidthProbeResult) -> BandwidthReading:
    """Extract throughput from a bandwidth probe result."""
    if not result.ok:
        return BandwidthReading(
            speed_mbps=0.0,
            time_sec=None,
            error=result.error or "bandwidth probe failed",
        )

    elapsed = max(result.elapsed_sec, 0.0)
    speed = compute_speed_mbps(result.bytes_transferred, elapsed)
    if speed is None:
        return BandwidthReading(
            speed_mbps=0.0,
            time_sec=round(elapsed, 2),
            error=(
                f"invalid transfer: {result.bytes_transferred} bytes "
                f"in {elapsed:.3f}s"
            ),
        )
    return BandwidthReading(speed_mbps=speed, time_sec=round(elapsed, 2))


def build_sample(
    timestamp: datetime,
    host: str,
    latency_result: LatencyProbeResult,
    bandwidth_result: BandwidthProbeResult,
) -> Sample:
    """Combine both probe results into one normalized Sample."""
    latency = parse_latency(latency_result)
    bandwidth = parse_bandwidth(bandwidth_result)
    return Sample(
        timestamp=timestamp,
        target_host=host,
        avg_latency_ms=latency.avg_ms,
        min_latency_ms=latency.min_ms,
        max_latency_ms=latency.max_ms,
        packet_loss_pct=latency.packet_loss_pct,
        download_speed_mbps=bandwidth.speed_mbps,
        download_time_sec=bandwidth.time_sec,
        latency_error=latency.error,
        bandwidth_error=bandwidth.error,
    )
