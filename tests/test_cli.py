"""CLI tests using click's CliRunner with stubbed probes."""

import json
from datetime import datetime, timedelta

import pytest
from click.testing import CliRunner

from nethealth import cli
from nethealth.models import BandwidthProbeResult, LatencyProbeResult, NetworkPath, HopInfo, Record, Sample, Status
from nethealth.store import RecordStore

HEALTHY_PING = "4 packets transmitted, 4 received, 0% packet loss\nrtt min/avg/max/mdev = 9.0/10.0/11.0/0.5 ms\n"


class FakePing:
    def __init__(self, count=4, timeout_sec=30.0):
        pass

    def probe(self, host):
        return LatencyProbeResult(output=HEALTHY_PING)


class FakeDownload:
    def __init__(self, timeout_sec=30.0):
        pass

    def probe(self, url):
        return BandwidthProbeResult(bytes_transferred=4 * 1048576, elapsed_sec=1.0)


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def fake_probes(monkeypatch):
    from nethealth import monitor

    monkeypatch.setattr(monitor, "PingProbe", FakePing)
    monkeypatch.setattr(monitor, "DownloadProbe", FakeDownload)


def seed_store(data_dir, statuses):
    store = RecordStore(data_dir / "network_health.csv")
    start = datetime.now().replace(microsecond=0) - timedelta(minutes=len(statuses))
    for i, status in enumerate(statuses):
        sample = Sample(
            timestamp=start + timedelta(minutes=i),
            target_host="8.8.8.8",
            avg_latency_ms=50.0 * (i + 1),
            min_latency_ms=40.0,
            max_latency_ms=60.0,
            packet_loss_pct=0.0,
            download_speed_mbps=3.0,
            download_time_sec=1.0,
        )
        store.append(Record(sample=sample, status=status))
    return store


class TestMonitorCommand:

    def test_default_command_runs_cycle(self, runner, tmp_path, fake_probes):
        result = runner.invoke(cli.main, ["--data-dir", str(tmp_path)])

        assert result.exit_code == 0, result.output
        assert "Network Health Results" in result.output
        [record] = RecordStore(tmp_path / "network_health.csv").scan()
        assert record.status is Status.OK
        assert record.sample.download_speed_mbps == 4.0

    def test_creates_default_config(self, runner, tmp_path, fake_probes):
        runner.invoke(cli.main, ["--data-dir", str(tmp_path), "monitor"])
        assert (tmp_path / "network_config.conf").exists()

    def test_cli_overrides(self, runner, tmp_path, fake_probes):
        result = runner.invoke(cli.main, ["--data-dir", str(tmp_path), "--ping-host", "1.1.1.1", "monitor"])

        assert result.exit_code == 0, result.output
        [record] = RecordStore(tmp_path / "network_health.csv").scan()
        assert record.sample.target_host == "1.1.1.1"

    def test_store_failure_exits_nonzero(self, runner, tmp_path, fake_probes):
        (tmp_path / "network_health.csv").mkdir()
        result = runner.invoke(cli.main, ["--data-dir", str(tmp_path), "monitor"])

        assert result.exit_code == 1
        assert "Error" in result.output

    def test_scan_failure_is_not_fatal(self, runner, tmp_path, fake_probes):
        config = tmp_path / "custom.conf"
        config.write_text("ENABLE_NETWORK_SCAN=true\nNETWORK_RANGE=bogus\n")
        result = runner.invoke(cli.main, ["--data-dir", str(tmp_path), "--config", str(config), "monitor"])

        assert result.exit_code == 0, result.output
        assert "Network scan failed" in result.output


class TestSummaryCommand:

    def test_no_data(self, runner, tmp_path):
        result = runner.invoke(cli.main, ["--data-dir", str(tmp_path), "summary"])

        assert result.exit_code == 0
        assert "No monitoring data available yet" in result.output
        assert not (tmp_path / "network_summary.txt").exists()

    def test_summary_writes_file(self, runner, tmp_path):
        seed_store(tmp_path, [Status.OK, Status.HIGH_LATENCY, Status.OK])
        result = runner.invoke(cli.main, ["--data-dir", str(tmp_path), "summary"])

        assert result.exit_code == 0, result.output
        text = (tmp_path / "network_summary.txt").read_text()
        assert "Average: 100.00 ms" in text
        assert "HIGH_LATENCY" in text

    def test_summary_json(self, runner, tmp_path, monkeypatch):
        monkeypatch.setenv("NETHEALTH_LOG_LEVEL", "ERROR")
        seed_store(tmp_path, [Status.OK, Status.PACKET_LOSS])
        result = runner.invoke(cli.main, ["--data-dir", str(tmp_path), "summary", "--json"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["total"] == 2
        assert data["issue_count"] == 1
        assert data["recent_issues"][0]["status"] == "PACKET_LOSS"


class TestDashboardCommand:

    def test_dashboard(self, runner, tmp_path):
        seed_store(tmp_path, [Status.OK] * 12 + [Status.SLOW_SPEED])
        result = runner.invoke(cli.main, ["--data-dir", str(tmp_path), "dashboard", "-n", "5"])

        assert result.exit_code == 0, result.output
        assert "Recent Tests (Last 5)" in result.output
        assert "Network issues detected" in result.output
        assert "Total tests: 13" in result.output

    def test_dashboard_no_data(self, runner, tmp_path):
        result = runner.invoke(cli.main, ["--data-dir", str(tmp_path), "dashboard"])

        assert result.exit_code == 0
        assert "No monitoring data available yet" in result.output


class TestConfigCommand:

    def test_show_defaults(self, runner, tmp_path):
        config = tmp_path / "missing.conf"
        result = runner.invoke(cli.main, ["--data-dir", str(tmp_path), "--config", str(config), "config"])

        assert result.exit_code == 0
        assert 'PING_HOST="8.8.8.8"' in result.output
        assert "built-in defaults" in result.output

    def test_init(self, runner, tmp_path):
        config = tmp_path / "fresh.conf"
        result = runner.invoke(cli.main, ["--data-dir", str(tmp_path), "--config", str(config), "config", "--init"])

        assert result.exit_code == 0
        assert config.exists()


class TestTracerouteCommand:

    def test_renders_path(self, runner, tmp_path, monkeypatch):
        from nethealth import trace

        async def fake_trace(host, max_hops=30):
            return NetworkPath(
                host=host,
                target_ip="9.9.9.9",
                hops=[HopInfo(hop_number=1, ip="9.9.9.9", rtt_ms=[5.0])],
                reached_target=True,
                method="traceroute",
            )

        monkeypatch.setattr(trace, "trace_path", fake_trace)
        result = runner.invoke(cli.main, ["--data-dir", str(tmp_path), "traceroute", "9.9.9.9"])

        assert result.exit_code == 0, result.output
        assert "target reached" in result.output

    def test_no_hops_is_error(self, runner, tmp_path, monkeypatch):
        from nethealth import trace

        async def fake_trace(host, max_hops=30):
            return NetworkPath(host=host)

        monkeypatch.setattr(trace, "trace_path", fake_trace)
        result = runner.invoke(cli.main, ["--data-dir", str(tmp_path), "traceroute"])

        assert result.exit_code == 1
