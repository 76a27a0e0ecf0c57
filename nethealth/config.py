"""Constants and configuration for nethealth."""

from __future__ import annotations

import dataclasses
import logging
import re
from pathlib import Path
from typing import Callable, Union

from nethealth.models import MonitorConfig

logger = logging.getLogger(__name__)

# Probe defaults; MonitorConfig holds the canonical values
_DEFAULTS = MonitorConfig()
DEFAULT_PING_COUNT = _DEFAULTS.ping_count
DEFAULT_TIMEOUT_SEC = _DEFAULTS.timeout_sec

# Files inside the data directory
LOG_FILENAME = "network_health.csv"
CONFIG_FILENAME = "network_config.conf"
SUMMARY_FILENAME = "network_summary.txt"
SCAN_LOG_FILENAME = "network_scan.log"

# Fixed-width, zero-padded: lexical order equals chronological order
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

# Reporting windows
ISSUE_WINDOW_HOURS = 24
DASHBOARD_RECENT_LIMIT = 10

# Traceroute / sweep settings
DEFAULT_MAX_HOPS = 30
TRACE_PROBES_PER_HOP = 3
TRACE_HOP_TIMEOUT = 2.0
SCAN_PING_TIMEOUT = 1
SCAN_CONCURRENCY = 64
# Largest range a scan accepts (a /16)
SCAN_MAX_ADDRESSES = 65536

# 1 "Mbps" in the log is 1048576 bytes per second
BYTES_PER_MEGABYTE = 1048576

# User agent for HTTP requests
USER_AGENT = "nethealth/0.1.0"

# Status display styles
STATUS_STYLES = {
    "OK": "green",
    "HIGH_LATENCY": "yellow",
    "SLOW_SPEED": "yellow",
    "PACKET_LOSS": "red",
}

_LINE_RE = re.compile(r"^\s*(?:export\s+)?([A-Za-z_][A-Za-z0-9_]*)\s*=\s*(.*?)\s*$")


def _parse_bool(value: str) -> bool:
    lowered = value.lower()
    if lowered in ("true", "yes", "1", "on"):
        return True
    if lowered in ("false", "no", "0", "off", ""):
        return False
    raise ValueError(f"not a boolean: {value!r}")


def _parse_positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise ValueError(f"must be positive: {value!r}")
    return number


def _parse_non_negative_float(value: str) -> float:
    number = float(value)
    if number < 0 or number != number:
        raise ValueError(f"must be a non-negative number: {value!r}")
    return number


def _parse_positive_float(value: str) -> float:
    number = _parse_non_negative_float(value)
    if number == 0:
        raise ValueError(f"must be positive: {value!r}")
    return number


def _parse_percentage(value: str) -> float:
    number = _parse_non_negative_float(value)
    if number > 100:
        raise ValueError(f"must be between 0 and 100: {value!r}")
    return number


def _parse_text(value: str) -> str:
    if not value:
        raise ValueError("must not be empty")
    return value


# Config file key -> (MonitorConfig field, converter)
CONFIG_KEYS: dict[str, tuple[str, Callable[[str], object]]] = {
    "PING_HOST": ("ping_host", _parse_text),
    "PING_COUNT": ("ping_count", _parse_positive_int),
    "DOWNLOAD_URL": ("download_url", _parse_text),
    "LATENCY_THRESHOLD": ("latency_threshold_ms", _parse_non_negative_float),
    "SPEED_THRESHOLD": ("speed_threshold_mbps", _parse_non_negative_float),
    "TIMEOUT": ("timeout_sec", _parse_positive_float),
    "PACKET_LOSS_THRESHOLD": ("packet_loss_threshold_pct", _parse_percentage),
    "ENABLE_NETWORK_SCAN": ("enable_network_scan", _parse_bool),
    "NETWORK_RANGE": ("network_range", _parse_text),
}


def _unquote(value: str) -> str:
    """Strip one layer of shell quotes and any trailing comment."""
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value.split(" #", 1)[0].strip()


def parse_config_text(text: str) -> MonitorConfig:
    """Build a MonitorConfig from ``KEY=VALUE`` text.

    Malformed values fall back to that field's default; the rest of the
    file is still applied.
    """
    overrides: dict[str, object] = {}
    for lineno, raw_line in enumerate(text.splitlines(), 1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        match = _LINE_RE.match(line)
        if not match:
            logger.warning("Ignoring malformed config line %d: %r", lineno, raw_line)
            continue
        key, value = match.group(1).upper(), _unquote(match.group(2))
        if key not in CONFIG_KEYS:
            logger.debug("Ignoring unknown config key %s", key)
            continue
        field_name, convert = CONFIG_KEYS[key]
        try:
            overrides[field_name] = convert(value)
        except ValueError as exc:
            logger.warning("Invalid value for %s (%s); using default", key, exc)
    return MonitorConfig(**overrides)


def load_config(path: Union[str, Path]) -> MonitorConfig:
    """Load configuration from *path*, falling back to built-in defaults."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.debug("No config file at %s; using defaults", path)
        return MonitorConfig()
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Could not read config file %s (%s); using defaults", path, exc)
        return MonitorConfig()
    return parse_config_text(text)


def format_config(config: MonitorConfig) -> str:
    """Render *config* in the config file format."""
    values = dataclasses.asdict(config)
    lines = ["# Network Monitor Configuration"]
    for key, (field_name, _) in CONFIG_KEYS.items():
        value = values[field_name]
        if isinstance(value, bool):
            rendered = "true" if value else "false"
        elif isinstance(value, str):
            rendered = f'"{value}"'
        elif isinstance(value, float) and value.is_integer():
            rendered = str(int(value))
        else:
            rendered = str(value)
        lines.append(f"{key}={rendered}")
    return "\n".join(lines) + "\n"


def write_default_config(path: Union[str, Path]) -> bool:
    """Create the default config file at *path* unless it already exists.

    Returns True if a file was written.
    """
    path = Path(path)
    if path.exists():
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "x", encoding="utf-8") as f:
        f.write(format_config(MonitorConfig()))
    logger.info("Created default config file: %s", path)
    return True
