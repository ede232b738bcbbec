from __future__ import annotations

from typing import Optional

from rich import box
from rich.console import Console
from rich.table import Table

from score_updater.domain.models import RunReport


def _format_bytes(value: Optional[int]) -> str:
    if not value:
        return "N/A"
    return f"{value / (1024 * 1024):.2f}"


def print_report(report: RunReport, console: Optional[Console] = None) -> None:
    """
    Render a run summary (and any failed batches) as rich tables.
    """
    console = console or Console()
    result = report.result

    title = "Score Update Run"
    if report.degraded:
        title = f"{title}\n[red]{len(report.failed_batches)} batch(es) failed[/red]"

    table = Table(title=title, box=box.ROUNDED)
    table.add_column("Rows", justify="right", style="magenta")
    table.add_column("Batches", justify="right", style="blue")
    table.add_column("Rows Written", justify="right", style="cyan")
    table.add_column("Duration (s)", justify="right", style="green")
    table.add_column("Peak Memory (MB)", justify="right", style="yellow")
    table.add_column("CPU %", justify="right", style="red")

    profile = report.profile
    cpu = profile.cpu_percent if profile and profile.cpu_percent is not None else None
    table.add_row(
        f"{result.total_rows:,}",
        f"{result.num_batches:,}",
        f"{report.rows_written:,}",
        str(result.elapsed_seconds),
        _format_bytes(profile.peak_rss_bytes if profile else None),
        f"{cpu:.1f}" if cpu is not None else "N/A",
    )
    console.print(table)

    if not report.degraded:
        return

    failures = Table(title="Failed Batches", box=box.SIMPLE)
    failures.add_column("Batch", justify="right", style="cyan")
    failures.add_column("Offset", justify="right")
    failures.add_column("Error Type", style="red")
    failures.add_column("Error")
    for outcome in report.failed_batches:
        failures.add_row(
            str(outcome.batch_index),
            str(outcome.offset),
            outcome.error_type or "",
            outcome.error or "",
        )
    console.print(failures)


__all__ = ["print_report"]
