"""Network path tracing.

Traces the route from this host to the monitored target and lists every
hop with its reverse-DNS name.

Primary strategy uses icmplib's traceroute (pure Python, supports
unprivileged ICMP sockets on macOS and Linux). Falls back to shelling out
to the first available of ``traceroute``, ``tracepath`` or ``mtr``.
"""

from __future__ import annotations

import asyncio
import ipaddress
import logging
import re
import shutil
from typing import Callable, Optional

import dns.asyncresolver
import dns.rdatatype
import dns.reversename

from nethealth.config import DEFAULT_MAX_HOPS, TRACE_HOP_TIMEOUT, TRACE_PROBES_PER_HOP
from nethealth.models import HopInfo, NetworkPath

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# DNS helpers
# ---------------------------------------------------------------------------

def _is_ip(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
        return True
    except ValueError:
        return False


async def resolve_host(host: str, timeout: float = TRACE_HOP_TIMEOUT * 2) -> Optional[str]:
    """Resolve *host* to an IP address (A first, then AAAA)."""
    if _is_ip(host):
        return host

    resolver = dns.asyncresolver.Resolver()
    resolver.lifetime = timeout
    for rdtype in (dns.rdatatype.A, dns.rdatatype.AAAA):
        try:
            answer = await resolver.resolve(host, rdtype)
            return str(answer[0])
        except Exception as exc:
            logger.debug("Resolving %s (%s) failed: %s", host, dns.rdatatype.to_text(rdtype), exc)
    return None


async def _reverse_dns(
    ip: str,
    resolver: dns.asyncresolver.Resolver,
) -> Optional[str]:
    """Return the PTR hostname for *ip*, or None on failure."""
    try:
        rev_name = dns.reversename.from_address(ip)
        answers = await resolver.resolve(rev_name, "PTR")
        return str(answers[0]).rstrip(".")
    except Exception:
        logger.debug("Reverse DNS lookup failed for %s", ip)
        return None


async def _enrich_hops(hops: list[HopInfo]) -> None:
    """Fill in hostnames for every responding hop, concurrently."""
    resolver = dns.asyncresolver.Resolver()
    resolver.lifetime = TRACE_HOP_TIMEOUT

    targets = [hop for hop in hops if hop.ip is not None and hop.hostname is None]
    names = await asyncio.gather(
        *(_reverse_dns(hop.ip, resolver) for hop in targets),  # type: ignore[arg-type]
        return_exceptions=True,
    )
    for hop, name in zip(targets, names):
        if isinstance(name, str):
            hop.hostname = name


# ---------------------------------------------------------------------------
# Output parsers for the system binaries
# ---------------------------------------------------------------------------

_RTT_RE = re.compile(r"([\d.]+)\s*ms")

# " 3  96.120.68.137  8.432 ms  7.891 ms  8.123 ms"
_TRACEROUTE_LINE_RE = re.compile(r"^\s*(\d+)\s+(\S+)(.*)$")

# " 2:  10.0.0.1    5.123ms" / " 1?: [LOCALHOST]  pmtu 1500"
_TRACEPATH_LINE_RE = re.compile(r"^\s*(\d+)\??:\s+(\S+)(.*)$")

# "  1.|-- 192.168.1.1   0.0%     5    0.5   0.6   0.5   0.8   0.1"
_MTR_LINE_RE = re.compile(
    r"^\s*(\d+)\.\|--\s+(\S+)\s+([\d.]+)%?\s+\d+\s+([\d.]+)\s+([\d.]+)"
)


def parse_traceroute_output(output: str) -> list[HopInfo]:
    """Parse the textual output of ``traceroute -n``."""
    hops: list[HopInfo] = []
    for line in output.splitlines():
        match = _TRACEROUTE_LINE_RE.match(line)
        if not match:
            continue

        hop_num = int(match.group(1))
        first_token, remainder = match.group(2), match.group(3)

        # Full timeout line: "* * *"
        if first_token == "*" and remainder.replace("*", "").strip() == "":
            hops.append(HopInfo(hop_number=hop_num))
            continue

        rtts = [float(m.group(1)) for m in _RTT_RE.finditer(first_token + remainder)]
        ip_addr = first_token if _is_ip(first_token) else None
        hops.append(HopInfo(hop_number=hop_num, ip=ip_addr, rtt_ms=rtts))

    return hops


def parse_tracepath_output(output: str) -> list[HopInfo]:
    """Parse the textual output of ``tracepath -n``."""
    by_number: dict[int, HopInfo] = {}
    for line in output.splitlines():
        match = _TRACEPATH_LINE_RE.match(line)
        if not match:
            continue

        hop_num = int(match.group(1))
        token, remainder = match.group(2), match.group(3)
        if token.startswith("[") or token == "Resume:":
            continue

        if token == "no":  # "no reply"
            hop = HopInfo(hop_number=hop_num)
        else:
            rtts = [float(m.group(1)) for m in _RTT_RE.finditer(remainder)]
            hop = HopInfo(hop_number=hop_num, ip=token if _is_ip(token) else None, rtt_ms=rtts)

        existing = by_number.get(hop_num)
        if existing is None or (existing.ip is None and hop.ip is not None):
            by_number[hop_num] = hop

    return [by_number[n] for n in sorted(by_number)]


def parse_mtr_output(output: str) -> list[HopInfo]:
    """Parse the report produced by ``mtr -r -n``."""
    hops: list[HopInfo] = []
    for line in output.splitlines():
        match = _MTR_LINE_RE.match(line)
        if not match:
            continue
        hop_num, token = int(match.group(1)), match.group(2)
        if not _is_ip(token):
            hops.append(HopInfo(hop_number=hop_num))
            continue
        hops.append(HopInfo(hop_number=hop_num, ip=token, rtt_ms=[float(match.group(5))]))
    return hops


# Binary -> (argument builder, parser), in order of preference
_FALLBACKS: list[tuple[str, Callable[[str, int], list[str]], Callable[[str], list[HopInfo]]]] = [
    (
        "traceroute",
        lambda ip, max_hops: [
            "-n", "-m", str(max_hops),
            "-q", str(TRACE_PROBES_PER_HOP),
            "-w", str(int(TRACE_HOP_TIMEOUT)),
            ip,
        ],
        parse_traceroute_output,
    ),
    ("tracepath", lambda ip, max_hops: ["-n", "-m", str(max_hops), ip], parse_tracepath_output),
    ("mtr", lambda ip, max_hops: ["-r", "-n", "-c", "5", "-m", str(max_hops), ip], parse_mtr_output),
]


# ---------------------------------------------------------------------------
# Traceroute strategies
# ---------------------------------------------------------------------------

async def _traceroute_icmplib(target_ip: str, max_hops: int) -> list[HopInfo]:
    """Run icmplib's synchronous traceroute in a thread executor.

    Raises on permission errors so the caller can fall back to a binary.
    """
    from functools import partial

    from icmplib import traceroute  # local import to allow fallback

    loop = asyncio.get_running_loop()
    icmp_hops = await loop.run_in_executor(
        None,
        partial(
            traceroute,
            target_ip,
            count=TRACE_PROBES_PER_HOP,
            timeout=TRACE_HOP_TIMEOUT,
            max_hops=max_hops,
        ),
    )

    return [
        HopInfo(hop_number=hop.distance, ip=hop.address, rtt_ms=list(hop.rtts))
        for hop in icmp_hops
    ]


async def _traceroute_fallback(target_ip: str, max_hops: int) -> tuple[str, list[HopInfo]]:
    """Shell out to the first available traceroute-like binary."""
    for name, build_args, parse in _FALLBACKS:
        binary = shutil.which(name)
        if binary is None:
            continue

        cmd = [binary, *build_args(target_ip, max_hops)]
        logger.debug("Fallback traceroute command: %s", " ".join(cmd))

        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(),
                timeout=max_hops * TRACE_HOP_TIMEOUT * TRACE_PROBES_PER_HOP + 10,
            )
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise

        if proc.returncode != 0:
            err_text = stderr.decode(errors="replace").strip()
            logger.warning("%s exited %d: %s", name, proc.returncode, err_text)

        return name, parse(stdout.decode(errors="replace"))

    raise FileNotFoundError("No traceroute, tracepath, or mtr command available")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

async def trace_path(host: str, max_hops: int = DEFAULT_MAX_HOPS) -> NetworkPath:
    """Trace the network path to *host*.

    Returns a NetworkPath with no hops when the host cannot be resolved or
    every tracing method fails.
    """
    path = NetworkPath(host=host)

    target_ip = await resolve_host(host)
    if target_ip is None:
        logger.error("Could not resolve %s", host)
        return path
    path.target_ip = target_ip

    try:
        hops = await _traceroute_icmplib(target_ip, max_hops)
        path.method = "icmplib"
    except Exception as exc:
        logger.debug("icmplib traceroute failed (%s), falling back to system binaries", exc)
        try:
            path.method, hops = await _traceroute_fallback(target_ip, max_hops)
        except Exception as fallback_exc:
            logger.error(
                "Traceroute to %s failed: %s / %s", host, exc, fallback_exc,
            )
            return path

    if hops:
        try:
            await _enrich_hops(hops)
        except Exception as exc:
            logger.warning("Hop enrichment failed for %s: %s", host, exc)

    path.hops = hops
    path.reached_target = any(h.ip == target_ip for h in hops)
    return path
