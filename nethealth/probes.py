"""Probe collaborators: system ping for latency, HTTP download for bandwidth.

Probes never raise for network trouble. Every outcome, including timeouts
and missing binaries, comes back as a LatencyProbeResult or
BandwidthProbeResult with ``ok=False`` and an error description.
"""

from __future__ import annotations

import logging
import math
import platform
import subprocess
import time
from typing import Optional, Protocol

import httpx

from nethealth.config import DEFAULT_PING_COUNT, DEFAULT_TIMEOUT_SEC, USER_AGENT
from nethealth.models import BandwidthProbeResult, LatencyProbeResult

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024


class LatencyProbe(Protocol):
    """Anything that can send round trips to a host and report raw output."""

    def probe(self, host: str) -> LatencyProbeResult:
        ...


class BandwidthProbe(Protocol):
    """Anything that can time one transfer from a URL."""

    def probe(self, url: str) -> BandwidthProbeResult:
        ...


class PingProbe:
    """Latency probe that runs the operating system's ``ping`` binary."""

    def __init__(
        self,
        count: int = DEFAULT_PING_COUNT,
        timeout_sec: float = DEFAULT_TIMEOUT_SEC,
        system: Optional[str] = None,
    ):
        if count <= 0:
            raise ValueError("count must be positive")
        if timeout_sec <= 0:
            raise ValueError("timeout_sec must be positive")

        self.count = count
        self.timeout_sec = timeout_sec
        self.system = system or platform.system()

    def build_command(self, host: str) -> list[str]:
        """Build the platform-specific ping command line."""
        if self.system == "Windows":
            return ["ping", "-n", str(self.count), "-w", str(int(self.timeout_sec * 1000)), host]
        if self.system == "Linux":
            return ["ping", "-c", str(self.count), "-W", str(max(1, math.ceil(self.timeout_sec))), host]
        # macOS/BSD: -W is in milliseconds there, rely on the subprocess timeout
        return ["ping", "-c", str(self.count), host]

    def probe(self, host: str) -> LatencyProbeResult:
        if not host or not host.strip():
            return LatencyProbeResult(ok=False, error="no ping host configured")

        cmd = self.build_command(host)
        # Every reply may take up to the per-reply timeout
        deadline = self.timeout_sec * self.count + 5
        logger.info("Testing latency to %s with %d pings...", host, self.count)

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=deadline,
                shell=False,
            )
        except subprocess.TimeoutExpired:
            logger.error("Ping to %s timed out after %.0fs", host, deadline)
            return LatencyProbeResult(ok=False, error=f"timed out after {deadline:.0f}s")
        except OSError as exc:
            logger.error("Ping to %s could not run: %s", host, exc)
            return LatencyProbeResult(ok=False, error=str(exc))

        output = result.stdout + result.stderr
        if result.returncode != 0:
            logger.error("Ping to %s failed (exit code %d)", host, result.returncode)
            return LatencyProbeResult(
                output=output,
                ok=False,
                error=f"ping exited with code {result.returncode}",
            )

        logger.debug("Ping to %s completed: %s", host, output[-200:])
        return LatencyProbeResult(output=output, ok=True)


class DownloadProbe:
    """Bandwidth probe that times one streamed HTTP download with httpx."""

    def __init__(
        self,
        timeout_sec: float = DEFAULT_TIMEOUT_SEC,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        if timeout_sec <= 0:
            raise ValueError("timeout_sec must be positive")
        self.timeout_sec = timeout_sec
        self._transport = transport

    def probe(self, url: str) -> BandwidthProbeResult:
        logger.info("Testing download speed from: %s", url)

        received = 0
        t0 = time.perf_counter()
        try:
            with httpx.Client(
                timeout=self.timeout_sec,
                follow_redirects=True,
                transport=self._transport,
                headers={"User-Agent": USER_AGENT},
            ) as client:
                with client.stream("GET", url) as response:
                    response.raise_for_status()
                    for chunk in response.iter_raw(_CHUNK_SIZE):
                        received += len(chunk)
                        if time.perf_counter() - t0 > self.timeout_sec:
                            raise httpx.ReadTimeout(
                                f"transfer exceeded {self.timeout_sec:g}s",
                                request=response.request,
                            )
        except (httpx.HTTPError, httpx.InvalidURL, httpx.StreamError) as exc:
            elapsed = time.perf_counter() - t0
            logger.error("Download failed from %s: %s", url, exc)
            return BandwidthProbeResult(
                bytes_transferred=received,
                elapsed_sec=elapsed,
                ok=False,
                error=str(exc) or type(exc).__name__,
            )

        elapsed = time.perf_counter() - t0
        logger.debug("Downloaded %d bytes in %.3fs", received, elapsed)
        return BandwidthProbeResult(bytes_transferred=received, elapsed_sec=elapsed, ok=True)
