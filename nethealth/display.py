"""Rich terminal output for nethealth."""

from __future__ import annotations

from typing import Optional, Sequence

from rich.console import Console
from rich.table import Table
from rich.text import Text

from nethealth.config import ISSUE_WINDOW_HOURS, STATUS_STYLES, TIMESTAMP_FORMAT
from nethealth.models import FieldStats, Issue, MonitorConfig, NetworkPath, Record, Report, Status

console = Console()


def _fmt(value: Optional[float], unit: str) -> Text:
    """Format a measurement, or a dim dash when there is no data."""
    if value is None:
        return Text("—", style="dim")
    return Text(f"{value:.2f}{unit}")


def _status_text(status: Status) -> Text:
    return Text(status.value, style=f"bold {STATUS_STYLES.get(status.value, 'white')}")


# ── Single cycle ──────────────────────────────────────────────────────


def render_record(record: Record) -> None:
    """Print the result block for one monitoring cycle."""
    s = record.sample
    table = Table(
        show_header=False,
        border_style="bright_black",
        expand=False,
        title="[bold]Network Health Results[/bold]",
        title_style="",
    )
    table.add_column("Field", style="bold", min_width=14)
    table.add_column("Value", min_width=24)

    table.add_row("Timestamp", s.timestamp.strftime(TIMESTAMP_FORMAT))
    table.add_row("Ping Host", s.target_host)
    latency = Text.assemble(
        "Avg: ", _fmt(s.avg_latency_ms, "ms"),
        "  Min: ", _fmt(s.min_latency_ms, "ms"),
        "  Max: ", _fmt(s.max_latency_ms, "ms"),
    )
    table.add_row("Latency", latency)
    table.add_row("Packet Loss", f"{s.packet_loss_pct:g}%")
    table.add_row("Download Speed", _fmt(s.download_speed_mbps, " Mbps"))
    table.add_row("Download Time", _fmt(s.download_time_sec, "s"))
    table.add_row("Status", _status_text(record.status))

    console.print()
    console.print(table)
    if s.latency_error:
        console.print(f"  [red]Latency probe: {s.latency_error}[/red]")
    if s.bandwidth_error:
        console.print(f"  [red]Bandwidth probe: {s.bandwidth_error}[/red]")


# ── Reports ───────────────────────────────────────────────────────────


def _build_stats_table(report: Report) -> Table:
    table = Table(
        show_header=True,
        border_style="bright_black",
        expand=False,
        header_style="bold",
    )
    table.add_column("Metric", style="bold", min_width=10)
    table.add_column("Samples", justify="right")
    table.add_column("Avg", justify="right", min_width=9)
    table.add_column("Min", justify="right", min_width=9)
    table.add_column("Max", justify="right", min_width=9)

    def _row(label: str, stats: FieldStats, unit: str) -> None:
        if not stats.count:
            table.add_row(label, "0", Text("no valid data", style="dim"), "", "")
            return
        table.add_row(
            label,
            str(stats.count),
            _fmt(stats.avg, unit),
            _fmt(stats.min, unit),
            _fmt(stats.max, unit),
        )

    _row("Latency", report.latency, "ms")
    _row("Bandwidth", report.speed, " Mbps")
    return table


def render_issues(issues: Sequence[Issue], window_hours: int = ISSUE_WINDOW_HOURS) -> None:
    """Print the recent-issues list."""
    console.print(f"[bold]Issues in Last {window_hours} Hours:[/bold]")
    if not issues:
        console.print(f"  [green]No issues detected in the last {window_hours} hours[/green]")
        return
    console.print(f"  Found {len(issues)} issue(s):")
    for issue in issues:
        line = Text(f"  {issue.timestamp:{TIMESTAMP_FORMAT}}: ")
        line.append_text(_status_text(issue.status))
        console.print(line)


def render_report(
    report: Report,
    issues: Sequence[Issue],
    window_hours: int = ISSUE_WINDOW_HOURS,
) -> None:
    """Print summary statistics and the recent-issues list."""
    if not report.has_data:
        render_no_data()
        return

    console.print("[bold]Network Health Monitor Summary[/bold]")
    console.print(_build_stats_table(report))
    console.print(
        f"Total tests conducted: [bold]{report.total}[/bold]  "
        f"Issues: [bold]{report.issue_count}[/bold] ({report.issue_pct:.1f}%)"
    )
    console.print()
    render_issues(issues, window_hours)


def render_no_data() -> None:
    console.print("[dim]No monitoring data available yet.[/dim]")
    console.print("[dim]Run 'nethealth monitor' to start collecting data.[/dim]")


# ── Dashboard ─────────────────────────────────────────────────────────


def _build_recent_table(records: Sequence[Record]) -> Table:
    table = Table(
        show_header=True,
        border_style="bright_black",
        expand=False,
        header_style="bold",
        title=f"[bold]Recent Tests (Last {len(records)})[/bold]",
        title_style="",
    )
    table.add_column("Timestamp")
    table.add_column("Host")
    table.add_column("Avg Latency", justify="right")
    table.add_column("Loss", justify="right")
    table.add_column("Speed", justify="right")
    table.add_column("Status")

    for r in records:
        s = r.sample
        table.add_row(
            s.timestamp.strftime(TIMESTAMP_FORMAT),
            s.target_host,
            _fmt(s.avg_latency_ms, "ms"),
            f"{s.packet_loss_pct:g}%",
            _fmt(s.download_speed_mbps, " Mbps"),
            _status_text(r.status),
        )
    return table


def render_dashboard(
    records: Sequence[Record],
    report: Report,
    issues: Sequence[Issue],
    window_hours: int = ISSUE_WINDOW_HOURS,
) -> None:
    """Print recent tests, current status, quick statistics and recent issues."""
    console.print("[bold]=== Network Health Dashboard ===[/bold]")
    if not report.has_data:
        render_no_data()
        return

    console.print(_build_recent_table(records))
    console.print()

    current = records[-1].status if records else None
    if current is Status.OK:
        console.print("[bold]Current Status:[/bold] [green]✓ Network is healthy[/green]")
    elif current is not None:
        line = Text.from_markup("[bold]Current Status:[/bold] [yellow]⚠ Network issues detected:[/yellow] ")
        line.append_text(_status_text(current))
        console.print(line)
    console.print()

    console.print("[bold]Quick Statistics:[/bold]")
    console.print(f"  Total tests: {report.total}")
    console.print(f"  Issues detected: {report.issue_count} ({report.issue_pct:.1f}%)")
    if report.latency.count:
        console.print(f"  Average latency: {report.latency.avg:.2f} ms")
    if report.speed.count:
        console.print(f"  Average speed: {report.speed.avg:.2f} Mbps")
    console.print()
    render_issues(issues, window_hours)


# ── Traceroute ────────────────────────────────────────────────────────


def render_path(path: NetworkPath) -> None:
    """Print the hop-by-hop traceroute table."""
    if not path.hops:
        console.print(f"[dim]No traceroute data available for {path.host}[/dim]")
        return

    console.print(
        f"[bold]Network Path to {path.host}[/bold] "
        f"[dim]({path.target_ip}, {path.total_hops} hops via {path.method})[/dim]"
    )
    table = Table(
        show_header=True,
        border_style="bright_black",
        expand=False,
        header_style="bold",
    )
    table.add_column("Hop", justify="center", width=4)
    table.add_column("IP", min_width=16)
    table.add_column("Hostname", min_width=24, max_width=40, overflow="ellipsis")
    table.add_column("RTT", justify="right", min_width=8)

    for hop in path.hops:
        if hop.is_timeout:
            table.add_row(str(hop.hop_number), Text("*", style="red dim"), "", Text("*", style="red dim"))
            continue
        ip_style = "bold green" if hop.ip == path.target_ip else ""
        avg = hop.avg_rtt
        table.add_row(
            str(hop.hop_number),
            Text(hop.ip or "", style=ip_style),
            Text(hop.hostname or "—", style="" if hop.hostname else "dim"),
            Text(f"{avg:.1f}ms" if avg is not None else "*", style="" if avg is not None else "dim"),
        )

    console.print(table)
    if path.reached_target:
        console.print("  [green]target reached ✓[/green]")
    else:
        console.print("  [red]target not reached ✗[/red]")


# ── Misc ──────────────────────────────────────────────────────────────


def render_config(config_text: str, source: str) -> None:
    """Display the active configuration."""
    console.print(f"[bold]Current Configuration[/bold] [dim]({source})[/dim]")
    console.print(config_text.rstrip(), highlight=False, markup=False)


def render_scan(network_range: str, live: Sequence[str], log_path: str) -> None:
    console.print(f"[bold]Network scan of {network_range}:[/bold] {len(live)} active host(s)")
    for ip in live:
        console.print(f"  {ip}")
    console.print(f"[dim]Results appended to {log_path}[/dim]")


def render_error(message: str) -> None:
    """Display an error message."""
    console.print(f"[bold red]Error:[/bold red] {message}")


def render_warning(message: str) -> None:
    """Display a warning message."""
    console.print(f"[yellow]Warning:[/yellow] {message}")
