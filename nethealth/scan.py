"""Optional network discovery sweep.

Finds live hosts in a CIDR range and appends free-text lines to a side log.
Nothing here feeds the record store.
"""

from __future__ import annotations

import asyncio
import ipaddress
import logging
import platform
import re
import shutil
from datetime import datetime
from pathlib import Path
from typing import Union

from nethealth.config import SCAN_CONCURRENCY, SCAN_MAX_ADDRESSES, SCAN_PING_TIMEOUT, TIMESTAMP_FORMAT

logger = logging.getLogger(__name__)

_NMAP_REPORT_RE = re.compile(r"Nmap scan report for (?:\S+ \()?([0-9a-fA-F:.]+)\)?")


def _append_lines(log_path: Path, lines: list[str]) -> None:
    log_path.parent.mkdir(parents=True, exist_ok=True)
    with open(log_path, "a", encoding="utf-8") as f:
        for line in lines:
            f.write(line + "\n")


def _ping_command(ip: str) -> list[str]:
    if platform.system() == "Windows":
        return ["ping", "-n", "1", "-w", str(SCAN_PING_TIMEOUT * 1000), ip]
    return ["ping", "-c", "1", "-W", str(SCAN_PING_TIMEOUT), ip]


async def _ping_once(ip: str) -> bool:
    try:
        proc = await asyncio.create_subprocess_exec(
            *_ping_command(ip),
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
        )
    except OSError as exc:
        logger.debug("Ping sweep could not probe %s: %s", ip, exc)
        return False
    try:
        returncode = await asyncio.wait_for(proc.wait(), timeout=SCAN_PING_TIMEOUT + 5)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        return False
    return returncode == 0


async def ping_sweep(network: ipaddress.IPv4Network | ipaddress.IPv6Network) -> list[str]:
    """Ping every host address in *network*; return the live ones in order.

    A fixed pool of workers pulls addresses from one shared iterator, so
    memory stays flat however large the range is.
    """
    addresses = iter(network.hosts())
    live: list[ipaddress.IPv4Address | ipaddress.IPv6Address] = []

    async def worker() -> None:
        for ip in addresses:
            if await _ping_once(str(ip)):
                live.append(ip)

    await asyncio.gather(*(worker() for _ in range(SCAN_CONCURRENCY)))
    return [str(ip) for ip in sorted(live)]


async def nmap_sweep(network_range: str) -> list[str]:
    """Run ``nmap -sn`` and return the addresses it reports as up."""
    proc = await asyncio.create_subprocess_exec(
        "nmap", "-sn", network_range,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.DEVNULL,
    )
    stdout, _ = await proc.communicate()
    return parse_nmap_output(stdout.decode(errors="replace"))


def parse_nmap_output(output: str) -> list[str]:
    """Extract the addresses from ``Nmap scan report for ...`` lines."""
    return [m.group(1) for m in _NMAP_REPORT_RE.finditer(output)]


async def scan_network(network_range: str, log_path: Union[str, Path]) -> list[str]:
    """Discover live hosts in *network_range* and record them in *log_path*.

    Raises ValueError for a malformed CIDR range or one larger than
    SCAN_MAX_ADDRESSES.
    """
    network = ipaddress.ip_network(network_range, strict=False)
    if network.num_addresses > SCAN_MAX_ADDRESSES:
        raise ValueError(
            f"{network} has {network.num_addresses} addresses; "
            f"the limit is {SCAN_MAX_ADDRESSES}"
        )
    log_path = Path(log_path)
    started = datetime.now()
    logger.info("Scanning network range: %s", network)

    if shutil.which("nmap"):
        live = await nmap_sweep(str(network))
        method = "nmap"
    else:
        live = await ping_sweep(network)
        method = "ping sweep"

    lines = [f"{started:{TIMESTAMP_FORMAT}}: Starting network scan of {network} ({method})"]
    lines.extend(f"{datetime.now():{TIMESTAMP_FORMAT}}: Active IP found: {ip}" for ip in live)
    _append_lines(log_path, lines)

    logger.info("Network scan found %d active host(s)", len(live))
    return live
