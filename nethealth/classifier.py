"""Threshold-based health classification.

Checks run in a fixed order and each breached check overwrites the
status set by the previous one:

    latency  -> HIGH_LATENCY
    speed    -> SLOW_SPEED
    loss     -> PACKET_LOSS

so packet loss is reported whenever it breaches, even if latency and
speed breached too. Fields without data never breach; a probe that failed
outright still surfaces through its 100% packet loss or zero speed.
"""

from __future__ import annotations

import logging

from nethealth.models import MonitorConfig, Sample, Status

logger = logging.getLogger(__name__)


def evaluate_breaches(sample: Sample, config: MonitorConfig) -> list[tuple[Status, str]]:
    """Return every breached check, in evaluation order, with a description."""
    breaches: list[tuple[Status, str]] = []

    if sample.avg_latency_ms is not None and sample.avg_latency_ms > config.latency_threshold_ms:
        breaches.append((
            Status.HIGH_LATENCY,
            f"High latency detected: {sample.avg_latency_ms}ms "
            f"(threshold: {config.latency_threshold_ms:g}ms)",
        ))

    if (
        sample.download_speed_mbps is not None
        and sample.download_speed_mbps < config.speed_threshold_mbps
    ):
        breaches.append((
            Status.SLOW_SPEED,
            f"Slow internet detected: {sample.download_speed_mbps}Mbps "
            f"(threshold: {config.speed_threshold_mbps:g}Mbps)",
        ))

    if sample.packet_loss_pct > config.packet_loss_threshold_pct:
        breaches.append((
            Status.PACKET_LOSS,
            f"High packet loss detected: {sample.packet_loss_pct:g}% "
            f"(threshold: {config.packet_loss_threshold_pct:g}%)",
        ))

    return breaches


def classify(sample: Sample, config: MonitorConfig) -> Status:
    """Assign exactly one Status to *sample* (last breached check wins)."""
    status = Status.OK
    for breached, message in evaluate_breaches(sample, config):
        logger.warning(message)
        status = breached
    return status
