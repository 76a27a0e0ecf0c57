"""CLI entry point and orchestration for nethealth."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import sys
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

import click

from nethealth import __version__
from nethealth.config import (
    CONFIG_FILENAME,
    DASHBOARD_RECENT_LIMIT,
    DEFAULT_MAX_HOPS,
    ISSUE_WINDOW_HOURS,
    LOG_FILENAME,
    SCAN_LOG_FILENAME,
    SUMMARY_FILENAME,
)
from nethealth.models import MonitorConfig
from nethealth.store import RecordStore, StoreError

logger = logging.getLogger(__name__)


@dataclasses.dataclass
class AppContext:
    """Per-invocation state shared by all subcommands."""

    data_dir: Path
    config_path: Path
    config: MonitorConfig

    @property
    def log_path(self) -> Path:
        return self.data_dir / LOG_FILENAME

    @property
    def summary_path(self) -> Path:
        return self.data_dir / SUMMARY_FILENAME

    @property
    def scan_log_path(self) -> Path:
        return self.data_dir / SCAN_LOG_FILENAME

    def store(self) -> RecordStore:
        return RecordStore(self.log_path)


@click.group(invoke_without_command=True)
@click.option(
    "--data-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=".",
    envvar="NETHEALTH_DIR",
    show_default=True,
    help="Directory holding the log, config and summary files",
)
@click.option(
    "-c", "--config", "config_file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help=f"Config file [default: DATA_DIR/{CONFIG_FILENAME}]",
)
@click.option("--ping-host", default=None, help="Override PING_HOST")
@click.option("--ping-count", type=click.IntRange(min=1), default=None, help="Override PING_COUNT")
@click.option("--download-url", default=None, help="Override DOWNLOAD_URL")
@click.option("--timeout", type=click.FloatRange(min=0, min_open=True), default=None, help="Override TIMEOUT (seconds)")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.version_option(version=__version__)
@click.pass_context
def main(
    ctx: click.Context,
    data_dir: Path,
    config_file: Optional[Path],
    ping_host: Optional[str],
    ping_count: Optional[int],
    download_url: Optional[str],
    timeout: Optional[float],
    verbose: bool,
) -> None:
    """nethealth: network latency and bandwidth health monitor.

    Runs one monitoring cycle when no command is given.
    """
    from nethealth.config import load_config, write_default_config
    from nethealth.logging_config import configure_logging

    configure_logging(verbose)

    config_path = config_file or data_dir / CONFIG_FILENAME
    if config_file is None:
        try:
            write_default_config(config_path)
        except OSError as exc:
            logger.warning("Could not create default config file %s: %s", config_path, exc)

    config = load_config(config_path)
    overrides = {
        "ping_host": ping_host,
        "ping_count": ping_count,
        "download_url": download_url,
        "timeout_sec": timeout,
    }
    config = dataclasses.replace(config, **{k: v for k, v in overrides.items() if v is not None})

    ctx.obj = AppContext(data_dir=data_dir, config_path=config_path, config=config)
    if ctx.invoked_subcommand is None:
        ctx.invoke(monitor)


@main.command()
@click.option("--no-scan", is_flag=True, help="Skip the network scan even if enabled")
@click.pass_obj
def monitor(app: AppContext, no_scan: bool) -> None:
    """Run one monitoring cycle and append it to the log."""
    from nethealth.display import render_error, render_record
    from nethealth.monitor import run_cycle

    try:
        record = run_cycle(app.config, app.store())
    except StoreError as exc:
        render_error(str(exc))
        sys.exit(1)

    render_record(record)

    if app.config.enable_network_scan and not no_scan:
        _run_scan(app, app.config.network_range, fatal=False)


@main.command()
@click.option("--json", "json_output", is_flag=True, help="Output JSON to stdout")
@click.option(
    "--hours",
    type=click.IntRange(min=1),
    default=ISSUE_WINDOW_HOURS,
    show_default=True,
    help="Recent-issues window",
)
@click.pass_obj
def summary(app: AppContext, json_output: bool, hours: int) -> None:
    """Show statistics and recent issues; write the summary file."""
    from nethealth.display import console, render_error, render_report
    from nethealth.export import export_json, format_summary, write_to_file
    from nethealth.stats import summarize, summarize_since

    store = app.store()
    cutoff = datetime.now() - timedelta(hours=hours)
    try:
        report = summarize(store.scan())
        issues = summarize_since(store.scan(), cutoff)
    except StoreError as exc:
        render_error(str(exc))
        sys.exit(1)

    if json_output:
        click.echo(export_json(report, issues))
        return

    render_report(report, issues, hours)
    if report.has_data:
        try:
            write_to_file(format_summary(report, issues, window_hours=hours), app.summary_path)
        except OSError as exc:
            render_error(f"Could not write summary file {app.summary_path}: {exc}")
            sys.exit(1)
        console.print(f"\n[dim]Summary written to {app.summary_path}[/dim]")


@main.command()
@click.option(
    "-n", "--limit",
    type=click.IntRange(min=1),
    default=DASHBOARD_RECENT_LIMIT,
    show_default=True,
    help="Number of recent tests to show",
)
@click.pass_obj
def dashboard(app: AppContext, limit: int) -> None:
    """Show recent tests, current status and quick statistics."""
    from nethealth.display import render_dashboard, render_error
    from nethealth.stats import recent, summarize, summarize_since

    store = app.store()
    cutoff = datetime.now() - timedelta(hours=ISSUE_WINDOW_HOURS)
    try:
        records = recent(store.scan(), limit)
        report = summarize(store.scan())
        issues = summarize_since(store.scan(), cutoff)
    except StoreError as exc:
        render_error(str(exc))
        sys.exit(1)

    render_dashboard(records, report, issues)


@main.command()
@click.argument("host", required=False)
@click.option("--max-hops", default=DEFAULT_MAX_HOPS, show_default=True, help="Max hops for traceroute")
@click.pass_obj
def traceroute(app: AppContext, host: Optional[str], max_hops: int) -> None:
    """Trace the network path to HOST (default: the ping host)."""
    from nethealth.display import console, render_error, render_path
    from nethealth.trace import trace_path

    target = host or app.config.ping_host
    console.print(f"[bold]Running traceroute to {target}...[/bold]")
    path = asyncio.run(trace_path(target, max_hops=max_hops))
    if not path.hops:
        render_error(f"Traceroute to {target} produced no hops")
        sys.exit(1)
    render_path(path)


@main.command()
@click.argument("network_range", required=False)
@click.pass_obj
def scan(app: AppContext, network_range: Optional[str]) -> None:
    """Discover live hosts in NETWORK_RANGE (default: NETWORK_RANGE setting)."""
    _run_scan(app, network_range or app.config.network_range, fatal=True)


@main.command(name="config")
@click.option("--init", is_flag=True, help="Write the default config file if missing")
@click.pass_obj
def show_config(app: AppContext, init: bool) -> None:
    """Show the active configuration."""
    from nethealth.config import format_config, write_default_config
    from nethealth.display import console, render_config

    if init:
        if write_default_config(app.config_path):
            console.print(f"Created {app.config_path}")
        else:
            console.print(f"[dim]{app.config_path} already exists[/dim]")
        return

    source = str(app.config_path) if app.config_path.exists() else "built-in defaults"
    render_config(format_config(app.config), source)


def _run_scan(app: AppContext, network_range: str, fatal: bool) -> None:
    from nethealth.display import render_error, render_scan, render_warning
    from nethealth.scan import scan_network

    try:
        live = asyncio.run(scan_network(network_range, app.scan_log_path))
    except (ValueError, OSError) as exc:
        if fatal:
            render_error(f"Network scan failed: {exc}")
            sys.exit(1)
        render_warning(f"Network scan failed: {exc}")
        return
    render_scan(network_range, live, str(app.scan_log_path))


if __name__ == "__main__":
    main()
