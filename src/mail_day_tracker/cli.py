"""CLI entry point for Mail Day Tracker."""

from __future__ import annotations

import json
import signal
import threading

import click

from . import __version__
from .config import ConfigError, Settings
from .days_api import DaysApiClient
from .display import console, display_reconcile_result, display_scan_summary
from .export import export_days
from .imap_client import MailboxError
from .log import setup_logging
from .scanner import ScanCancelled, check_mailbox, scan_mailbox
from .scheduler import SyncService, run_forever, start_background_sync


def _load_settings() -> Settings:
    try:
        settings = Settings.from_env()
    except ConfigError as e:
        raise click.ClickException(str(e)) from e
    setup_logging(settings.log_level)
    return settings


def _scan(settings: Settings):
    try:
        return scan_mailbox(settings)
    except (MailboxError, ScanCancelled) as e:
        raise click.ClickException(str(e)) from e


def _days_api(settings: Settings, stop: threading.Event | None = None) -> DaysApiClient:
    try:
        return DaysApiClient.from_settings(settings, cancel=stop)
    except ConfigError as e:
        raise click.ClickException(str(e)) from e


@click.group()
@click.version_option(version=__version__, prog_name="mail-day-tracker")
def cli() -> None:
    """Mail Day Tracker - count days per country from location ping emails."""


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Print the summary as JSON.")
def count(as_json: bool) -> None:
    """Scan the mailbox once and show day counts per country."""
    settings = _load_settings()
    summary = _scan(settings)

    if as_json:
        click.echo(json.dumps(summary.to_dict(), indent=2))
        return
    display_scan_summary(summary, settings.countries)


@cli.command()
@click.option("--once", is_flag=True, help="Run a single scan + sync cycle and exit.")
def sync(once: bool) -> None:
    """Push day presence to the days API (every SYNC_INTERVAL seconds)."""
    settings = _load_settings()
    stop = threading.Event()
    with _days_api(settings, stop) as store:
        service = SyncService(settings, store)
        if once:
            result = service.run_cycle()
            if result is None:
                raise click.ClickException("Scan failed, nothing was synced.")
            display_reconcile_result(result)
            return

        signal.signal(signal.SIGTERM, lambda *_: stop.set())
        try:
            run_forever(service, settings.sync_interval, stop)
        except KeyboardInterrupt:
            stop.set()
            console.print("[dim]Stopped.[/dim]")


@cli.command()
@click.option("--host", default="0.0.0.0", show_default=True, help="Interface to bind.")
@click.option("--port", default=None, type=int, help="Port to listen on (default: PORT or 8080).")
@click.option("--update", is_flag=True, help="Also run the days API sync loop in the background.")
def serve(host: str, port: int | None, update: bool) -> None:
    """Serve /api/health and /api/count over HTTP."""
    import uvicorn

    from .api import create_app

    settings = _load_settings()
    stop = threading.Event()
    store = _days_api(settings, stop) if update else None
    service = SyncService(settings, store)

    worker = start_background_sync(service, stop) if update else None
    try:
        uvicorn.run(create_app(service), host=host, port=port or settings.port, log_config=None)
    finally:
        stop.set()
        if worker is not None:
            worker.join(timeout=10)
        if store is not None:
            store.close()


@cli.command()
def health() -> None:
    """Check that the mailbox can be reached."""
    settings = _load_settings()
    try:
        check_mailbox(settings)
    except MailboxError as e:
        raise click.ClickException(f"Mailbox unreachable: {e}") from e
    console.print(f"[green]Mailbox {settings.mailbox} on {settings.imap_server} is reachable.[/green]")


@cli.command(name="export")
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["csv", "json"]),
    default="csv",
    help="Output format.",
)
@click.option("-o", "--output", required=True, help="Output file path.")
def export_cmd(fmt: str, output: str) -> None:
    """Scan the mailbox and export day records to CSV or JSON."""
    settings = _load_settings()
    summary = _scan(settings)
    export_days(summary, settings.countries, format=fmt, output_path=output)
    console.print(f"Results saved to {output}")
