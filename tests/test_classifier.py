"""Tests for threshold classification and its override order."""

from datetime import datetime

import pytest

from nethealth.classifier import classify, evaluate_breaches
from nethealth.models import MonitorConfig, Sample, Status

CONFIG = MonitorConfig(latency_threshold_ms=100, speed_threshold_mbps=1, packet_loss_threshold_pct=5)


def make_sample(**overrides) -> Sample:
    values = dict(
        timestamp=datetime(2025, 12, 11, 12, 0, 0),
        target_host="8.8.8.8",
        avg_latency_ms=20.0,
        min_latency_ms=15.0,
        max_latency_ms=25.0,
        packet_loss_pct=0.0,
        download_speed_mbps=10.0,
        download_time_sec=0.1,
    )
    values.update(overrides)
    return Sample(**values)


class TestSingleChecks:
    """Each predicate on its own."""

    def test_healthy_sample_is_ok(self):
        assert classify(make_sample(), CONFIG) is Status.OK

    def test_high_latency(self):
        assert classify(make_sample(avg_latency_ms=150.0), CONFIG) is Status.HIGH_LATENCY

    def test_latency_at_threshold_is_ok(self):
        assert classify(make_sample(avg_latency_ms=100.0), CONFIG) is Status.OK

    def test_slow_speed(self):
        assert classify(make_sample(download_speed_mbps=0.5), CONFIG) is Status.SLOW_SPEED

    def test_speed_at_threshold_is_ok(self):
        assert classify(make_sample(download_speed_mbps=1.0), CONFIG) is Status.OK

    def test_packet_loss(self):
        assert classify(make_sample(packet_loss_pct=10.0), CONFIG) is Status.PACKET_LOSS

    def test_loss_at_threshold_is_ok(self):
        assert classify(make_sample(packet_loss_pct=5.0), CONFIG) is Status.OK

    def test_loss_threshold_is_configurable(self):
        strict = MonitorConfig(packet_loss_threshold_pct=0)
        assert classify(make_sample(packet_loss_pct=1.0), strict) is Status.PACKET_LOSS


class TestOverrideOrder:
    """Later checks overwrite earlier ones: latency, then speed, then loss."""

    def test_loss_overrides_latency(self):
        sample = make_sample(avg_latency_ms=500.0, packet_loss_pct=50.0)
        assert classify(sample, CONFIG) is Status.PACKET_LOSS

    def test_speed_overrides_latency(self):
        sample = make_sample(avg_latency_ms=500.0, download_speed_mbps=0.1)
        assert classify(sample, CONFIG) is Status.SLOW_SPEED

    def test_loss_overrides_everything(self):
        sample = make_sample(avg_latency_ms=500.0, download_speed_mbps=0.1, packet_loss_pct=50.0)
        assert classify(sample, CONFIG) is Status.PACKET_LOSS

    def test_breaches_listed_in_evaluation_order(self):
        sample = make_sample(avg_latency_ms=500.0, download_speed_mbps=0.1, packet_loss_pct=50.0)
        statuses = [status for status, _ in evaluate_breaches(sample, CONFIG)]
        assert statuses == [Status.HIGH_LATENCY, Status.SLOW_SPEED, Status.PACKET_LOSS]


class TestUnknownFields:
    """Fields without data never breach a threshold."""

    def test_unknown_latency_passes(self):
        sample = make_sample(avg_latency_ms=None, min_latency_ms=None, max_latency_ms=None)
        assert classify(sample, CONFIG) is Status.OK

    def test_unknown_speed_passes(self):
        sample = make_sample(download_speed_mbps=None, download_time_sec=None)
        assert classify(sample, CONFIG) is Status.OK

    def test_total_ping_failure_surfaces_as_loss(self):
        sample = make_sample(
            avg_latency_ms=None,
            min_latency_ms=None,
            max_latency_ms=None,
            packet_loss_pct=100.0,
        )
        assert classify(sample, CONFIG) is Status.PACKET_LOSS

    def test_failed_download_surfaces_as_slow_speed(self):
        sample = make_sample(download_speed_mbps=0.0, bandwidth_error="connection refused")
        assert classify(sample, CONFIG) is Status.SLOW_SPEED

    @pytest.mark.parametrize("latency", [None, 0.0, 99.9, 100.1, 10_000.0])
    @pytest.mark.parametrize("speed", [None, 0.0, 0.99, 1.0, 500.0])
    @pytest.mark.parametrize("loss", [0.0, 5.0, 5.1, 100.0])
    def test_always_exactly_one_status(self, latency, speed, loss):
        sample = make_sample(avg_latency_ms=latency, download_speed_mbps=speed, packet_loss_pct=loss)
        assert classify(sample, CONFIG) in set(Status)


class TestLogging:
    """Breaches are logged as warnings."""

    def test_breach_logged(self, caplog):
        with caplog.at_level("WARNING", logger="nethealth.classifier"):
            classify(make_sample(avg_latency_ms=250.0), CONFIG)
        assert "High latency detected: 250.0ms" in caplog.text
