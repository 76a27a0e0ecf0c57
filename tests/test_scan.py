"""Tests for the network discovery sweep."""

import asyncio
import ipaddress

import pytest

from nethealth import scan
from nethealth.scan import parse_nmap_output, scan_network

NMAP_OUTPUT = """Starting Nmap 7.94 ( https://nmap.org )
Nmap scan report for router.lan (192.168.1.1)
Host is up (0.0021s latency).
Nmap scan report for 192.168.1.23
Host is up (0.0105s latency).
Nmap done: 256 IP addresses (2 hosts up) scanned in 2.51 seconds
"""


class TestParseNmap:

    def test_addresses(self):
        assert parse_nmap_output(NMAP_OUTPUT) == ["192.168.1.1", "192.168.1.23"]

    def test_no_hosts(self):
        assert parse_nmap_output("Nmap done: 256 IP addresses (0 hosts up)") == []


class TestScanNetwork:

    def test_ping_sweep_writes_side_log(self, tmp_path, monkeypatch):
        async def fake_ping(ip):
            return ip.endswith(".2")

        monkeypatch.setattr(scan.shutil, "which", lambda name: None)
        monkeypatch.setattr(scan, "_ping_once", fake_ping)
        log_path = tmp_path / "network_scan.log"

        live = asyncio.run(scan_network("10.0.0.0/29", log_path))

        assert live == ["10.0.0.2"]
        lines = log_path.read_text().splitlines()
        assert "Starting network scan of 10.0.0.0/29" in lines[0]
        assert lines[1].endswith("Active IP found: 10.0.0.2")

    def test_appends_not_overwrites(self, tmp_path, monkeypatch):
        async def nobody(ip):
            return False

        monkeypatch.setattr(scan.shutil, "which", lambda name: None)
        monkeypatch.setattr(scan, "_ping_once", nobody)
        log_path = tmp_path / "network_scan.log"
        log_path.write_text("earlier\n")

        asyncio.run(scan_network("10.0.0.0/30", log_path))
        assert log_path.read_text().startswith("earlier\n")

    def test_uses_nmap_when_available(self, tmp_path, monkeypatch):
        async def fake_nmap(network_range):
            return ["192.168.1.1"]

        monkeypatch.setattr(scan.shutil, "which", lambda name: "/usr/bin/nmap")
        monkeypatch.setattr(scan, "nmap_sweep", fake_nmap)

        live = asyncio.run(scan_network("192.168.1.0/24", tmp_path / "scan.log"))
        assert live == ["192.168.1.1"]
        assert "(nmap)" in (tmp_path / "scan.log").read_text()

    def test_sweep_covers_every_host(self, monkeypatch):
        seen = []

        async def record(ip):
            seen.append(ip)
            return False

        monkeypatch.setattr(scan, "_ping_once", record)
        asyncio.run(scan.ping_sweep(ipaddress.ip_network("10.1.0.0/28")))
        assert sorted(seen, key=ipaddress.ip_address) == [f"10.1.0.{i}" for i in range(1, 15)]

    def test_sweep_returns_live_hosts_in_order(self, monkeypatch):
        async def odd_hosts(ip):
            return int(ip.rsplit(".", 1)[1]) % 2 == 1

        monkeypatch.setattr(scan, "_ping_once", odd_hosts)
        live = asyncio.run(scan.ping_sweep(ipaddress.ip_network("10.1.0.0/28")))
        assert live == [f"10.1.0.{i}" for i in range(1, 15, 2)]

    def test_single_address_pinged_once(self, monkeypatch):
        seen = []

        async def record(ip):
            seen.append(ip)
            return True

        monkeypatch.setattr(scan, "_ping_once", record)
        assert asyncio.run(scan.ping_sweep(ipaddress.ip_network("10.1.0.7/32"))) == ["10.1.0.7"]
        assert seen == ["10.1.0.7"]

    def test_oversized_range_rejected(self, tmp_path, monkeypatch):
        monkeypatch.setattr(scan.shutil, "which", lambda name: None)
        with pytest.raises(ValueError, match="limit"):
            asyncio.run(scan_network("10.0.0.0/8", tmp_path / "scan.log"))
        assert not (tmp_path / "scan.log").exists()

    def test_bad_range(self, tmp_path):
        with pytest.raises(ValueError):
            asyncio.run(scan_network("not-a-range", tmp_path / "scan.log"))
