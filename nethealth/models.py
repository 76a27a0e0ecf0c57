"""Data models for nethealth."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import NamedTuple, Optional


class Status(str, enum.Enum):
    """Health label assigned to one monitoring cycle."""

    OK = "OK"
    HIGH_LATENCY = "HIGH_LATENCY"
    SLOW_SPEED = "SLOW_SPEED"
    PACKET_LOSS = "PACKET_LOSS"

    def __str__(self) -> str:
        return self.value


@dataclass
class LatencyProbeResult:
    """Raw outcome of a latency probe (e.g. the system ping binary)."""

    output: str = ""
    ok: bool = True
    error: Optional[str] = None


@dataclass
class BandwidthProbeResult:
    """Raw outcome of a bandwidth probe (one timed download)."""

    bytes_transferred: int = 0
    elapsed_sec: float = 0.0
    ok: bool = True
    error: Optional[str] = None


@dataclass(frozen=True)
class Sample:
    """One cycle's normalized measurements. ``None`` means no data."""

    timestamp: datetime
    target_host: str
    avg_latency_ms: Optional[float] = None
    min_latency_ms: Optional[float] = None
    max_latency_ms: Optional[float] = None
    packet_loss_pct: float = 0.0
    download_speed_mbps: Optional[float] = None
    download_time_sec: Optional[float] = None
    # Failure flags, kept in memory only
    latency_error: Optional[str] = field(default=None, compare=False)
    bandwidth_error: Optional[str] = field(default=None, compare=False)

    @property
    def failed(self) -> bool:
        return self.latency_error is not None or self.bandwidth_error is not None


@dataclass(frozen=True)
class Record:
    """A classified sample, as persisted in the record store."""

    sample: Sample
    status: Status

    @property
    def timestamp(self) -> datetime:
        return self.sample.timestamp

    @property
    def is_issue(self) -> bool:
        return self.status is not Status.OK


@dataclass
class FieldStats:
    """Min/avg/max over the present values of one numeric field."""

    count: int = 0
    avg: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None


@dataclass
class Report:
    """Aggregate statistics over a set of records."""

    total: int = 0
    issue_count: int = 0
    issue_pct: float = 0.0
    status_counts: dict[str, int] = field(default_factory=dict)
    latency: FieldStats = field(default_factory=FieldStats)
    speed: FieldStats = field(default_factory=FieldStats)

    @property
    def has_data(self) -> bool:
        return self.total > 0


class Issue(NamedTuple):
    """A non-OK record in the windowed view."""

    timestamp: datetime
    status: Status


@dataclass
class HopInfo:
    """A single hop in a network path trace."""

    hop_number: int
    ip: Optional[str] = None  # None if hop timed out (*)
    hostname: Optional[str] = None  # Reverse DNS, None if no PTR
    rtt_ms: list[float] = field(default_factory=list)

    @property
    def avg_rtt(self) -> Optional[float]:
        return sum(self.rtt_ms) / len(self.rtt_ms) if self.rtt_ms else None

    @property
    def is_timeout(self) -> bool:
        return self.ip is None


@dataclass
class NetworkPath:
    """Complete traceroute result for one host."""

    host: str
    target_ip: Optional[str] = None
    hops: list[HopInfo] = field(default_factory=list)
    reached_target: bool = False
    method: Optional[str] = None  # icmplib | traceroute | tracepath | mtr

    @property
    def total_hops(self) -> int:
        return len(self.hops)


@dataclass(frozen=True)
class MonitorConfig:
    """Configuration for monitoring cycles, loaded once per invocation."""

    ping_host: str = "8.8.8.8"
    ping_count: int = 4
    download_url: str = "http://speedtest.ftp.otenet.gr/files/test1Mb.db"
    latency_threshold_ms: float = 100.0
    speed_threshold_mbps: float = 1.0
    timeout_sec: float = 30.0
    packet_loss_threshold_pct: float = 5.0
    enable_network_scan: bool = False
    network_range: str = "192.168.1.0/24"
