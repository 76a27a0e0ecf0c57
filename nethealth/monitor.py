"""One monitoring cycle: probe, classify, store."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from nethealth.classifier import classify
from nethealth.models import (
    BandwidthProbeResult,
    LatencyProbeResult,
    MonitorConfig,
    Record,
)
from nethealth.parser import build_sample
from nethealth.probes import BandwidthProbe, DownloadProbe, LatencyProbe, PingProbe
from nethealth.store import RecordStore

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _run_latency_probe(probe: LatencyProbe, host: str) -> LatencyProbeResult:
    try:
        return probe.probe(host)
    except Exception as exc:
        logger.error("Latency probe raised for %s: %s", host, exc, exc_info=True)
        return LatencyProbeResult(ok=False, error=str(exc) or type(exc).__name__)


def _run_bandwidth_probe(probe: BandwidthProbe, url: str) -> BandwidthProbeResult:
    try:
        return probe.probe(url)
    except Exception as exc:
        logger.error("Bandwidth probe raised for %s: %s", url, exc, exc_info=True)
        return BandwidthProbeResult(ok=False, error=str(exc) or type(exc).__name__)


def run_cycle(
    config: MonitorConfig,
    store: RecordStore,
    latency_probe: Optional[LatencyProbe] = None,
    bandwidth_probe: Optional[BandwidthProbe] = None,
    clock: Optional[Clock] = None,
) -> Record:
    """Run one probe -> classify -> store cycle and return the stored Record.

    Probe failures never abort the cycle: they become failure values in the
    sample (100% packet loss, zero speed). Store failures raise StoreError.
    """
    if latency_probe is None:
        latency_probe = PingProbe(count=config.ping_count, timeout_sec=config.timeout_sec)
    if bandwidth_probe is None:
        bandwidth_probe = DownloadProbe(timeout_sec=config.timeout_sec)

    store.initialize()
    timestamp = (clock or datetime.now)().replace(microsecond=0)
    last = store.last_record()
    if last is not None and timestamp < last.timestamp:
        logger.warning(
            "Clock is behind the last stored record (%s < %s); using the stored time",
            timestamp,
            last.timestamp,
        )
        timestamp = last.timestamp

    logger.info("Starting network health monitoring...")
    latency_result = _run_latency_probe(latency_probe, config.ping_host)
    bandwidth_result = _run_bandwidth_probe(bandwidth_probe, config.download_url)

    sample = build_sample(timestamp, config.ping_host, latency_result, bandwidth_result)
    if sample.bandwidth_error and bandwidth_result.ok:
        logger.error("Invalid download: %s", sample.bandwidth_error)

    record = Record(sample=sample, status=classify(sample, config))
    store.append(record)

    logger.info("Network monitoring completed: %s", record.status.value)
    return record
