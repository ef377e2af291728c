"""Rich-based display functions for Mail Day Tracker."""

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .models import ReconcileResult, ScanSummary

console = Console()


def display_scan_summary(summary: ScanSummary, countries: tuple[str, ...] | list[str]) -> None:
    """Display per-country counters, then one row per day with any match."""
    totals = Table(title="Country Counts")
    totals.add_column("Country")
    totals.add_column("Days", justify="right")
    totals.add_column("Emails", justify="right")
    for country in countries:
        totals.add_row(
            country,
            f"[bold]{summary.day_match_count.get(country, 0)}[/bold]",
            str(summary.email_match_count.get(country, 0)),
        )
    console.print(totals)

    days = Table(title="Days")
    days.add_column("Day")
    for country in countries:
        days.add_column(country, justify="center")
    for day, record in sorted(summary.records.items()):
        days.add_row(
            day.isoformat(),
            *("[green]x[/green]" if record.country_flags.get(c) else "" for c in countries),
        )
    if summary.records:
        console.print(days)

    if summary.warnings:
        console.print(
            Panel("\n".join(summary.warnings), title=f"Warnings ({len(summary.warnings)})", style="yellow")
        )
    if summary.cleaned:
        console.print(f"[dim]Cleaned up {len(summary.cleaned)} redundant messages[/dim]")


def display_reconcile_result(result: ReconcileResult) -> None:
    """Display a summary of one reconciliation pass."""
    lines = [
        f"[bold]Created:[/bold] {len(result.created)}",
        f"[bold]Merged:[/bold] {len(result.merged)}",
        f"[bold]Unchanged:[/bold] {len(result.unchanged)}",
    ]
    if result.errors:
        lines.append(f"[bold red]Failed:[/bold red] {len(result.errors)}")
        for day, exc in result.errors:
            lines.append(f"  - {day.isoformat()}: {exc}")

    style = "red" if result.errors else "green"
    console.print(Panel("\n".join(lines), title="Days API Sync", border_style=style))
