"""CLI entry point for Collection Watch.

Provides the ``collection-watch`` command with subcommands for running the
monitor, inspecting one partition snapshot, probing a single collection ID,
and checking external dependencies.

This is the ONLY module where console output is allowed. All other modules
use ``logging``. Async internals are bridged to typer's synchronous interface
via ``asyncio.run()``.
"""

from __future__ import annotations

import asyncio
import contextlib
import signal
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from Collection_Watch.config import Settings, load_settings
from Collection_Watch.logging_config import configure_logging
from Collection_Watch.models import Collection, MonitorStatus, PartitionType
from Collection_Watch.monitor import CollectionMonitor
from Collection_Watch.services import HealthService, MarketplaceClient
from Collection_Watch.utils.exceptions import ConfigurationError, MarketplaceError

# ---------------------------------------------------------------------------
# Typer app
# ---------------------------------------------------------------------------

app = typer.Typer(name="collection-watch", help="Marketplace collection monitor")

# Rich console for formatted output
console = Console()

_VERBOSE_HELP: str = "Enable debug logging"
_QUIET_HELP: str = "Suppress info logging"


def _load_settings_or_exit() -> Settings:
    """Load settings, turning a configuration problem into exit code 1."""
    try:
        return load_settings()
    except ConfigurationError as exc:
        console.print(f"[red]Configuration error: {exc}[/red]")
        raise typer.Exit(code=1) from exc


def _status_cell(ok: bool) -> str:
    return "[green]OK[/green]" if ok else "[red]DOWN[/red]"


# ---------------------------------------------------------------------------
# run command
# ---------------------------------------------------------------------------


@app.command()
def run(
    once: Annotated[
        bool, typer.Option("--once", help="Run a single main cycle and exit")
    ] = False,
    log_level: Annotated[str, typer.Option("--log-level", help="Root log level")] = "",
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help=_VERBOSE_HELP)] = False,
    quiet: Annotated[bool, typer.Option("--quiet", "-q", help=_QUIET_HELP)] = False,
) -> None:
    """Start monitoring until interrupted with Ctrl+C."""
    configure_logging(level=log_level, verbose=verbose, quiet=quiet)
    settings = _load_settings_or_exit()
    asyncio.run(_run_async(settings, once=once))


async def _run_async(settings: Settings, *, once: bool) -> None:
    """Build the monitor and drive it until stopped."""
    monitor = CollectionMonitor.from_settings(settings)
    try:
        if once:
            sent = await monitor.run_main_cycle()
            _render_status(monitor.status())
            console.print(f"[green]Cycle complete: {sent} alert(s) sent.[/green]")
            return

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            # Not available on every platform; Ctrl+C then falls back to KeyboardInterrupt
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(sig, monitor.stop)

        console.print(f"[bold]Monitoring started ({settings.environment}).[/bold]")
        await monitor.run()
        console.print("[yellow]Monitoring stopped.[/yellow]")
    finally:
        await monitor.aclose()


def _render_status(status: MonitorStatus) -> None:
    table = Table(title="Monitor Status", show_header=False)
    table.add_column("Metric", style="bold", width=22)
    table.add_column("Value", justify="right", width=12)
    table.add_row("Regular", str(status.store.regular_count))
    table.add_row("Partner", str(status.store.partner_count))
    table.add_row("Time-boxed", str(status.store.time_boxed_count))
    table.add_row("Unique collections", str(status.store.total_collections))
    table.add_row("Discovery phase", status.discovery.phase.value)
    table.add_row("Highest known ID", str(status.discovery.highest_known_id))
    table.add_row("Scheduled alerts", str(status.scheduled_alerts))
    console.print(table)


# ---------------------------------------------------------------------------
# snapshot command
# ---------------------------------------------------------------------------


@app.command()
def snapshot(
    partition: Annotated[PartitionType, typer.Argument(help="Partition to fetch")],
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help=_VERBOSE_HELP)] = False,
) -> None:
    """Fetch one partition listing and print it."""
    configure_logging(verbose=verbose, quiet=not verbose)
    settings = _load_settings_or_exit()
    asyncio.run(_snapshot_async(settings, partition))


async def _snapshot_async(settings: Settings, partition: PartitionType) -> None:
    marketplace = MarketplaceClient(settings.base_url, public_url=settings.public_url)
    try:
        collections = await marketplace.fetch_collections(partition)
    finally:
        await marketplace.aclose()

    if not collections:
        console.print(f"[yellow]No collections in the {partition.value} partition.[/yellow]")
        return
    _render_collections(collections, title=f"Snapshot: {partition.value}")


def _render_collections(collections: list[Collection], *, title: str) -> None:
    table = Table(title=title)
    table.add_column("ID", justify="right", width=6)
    table.add_column("Name", style="bold", width=30)
    table.add_column("Progress", justify="right", width=10)
    table.add_column("Reward in", justify="right", width=10)
    table.add_column("Type", width=10)

    for c in collections:
        reward = f"{c.days_until_reward:.1f}d" if c.reward_date else "-"
        kind = "time-boxed" if c.is_time_boxed else "standard"
        table.add_row(str(c.id), c.name, f"{c.percent:.2f}%", reward, kind)

    console.print(table)
    console.print(f"\n[dim]Total: {len(collections)} collections[/dim]")


# ---------------------------------------------------------------------------
# probe command
# ---------------------------------------------------------------------------


@app.command()
def probe(
    collection_id: Annotated[int, typer.Argument(help="Collection ID to probe")],
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help=_VERBOSE_HELP)] = False,
) -> None:
    """Check whether a collection ID exists and show its details."""
    configure_logging(verbose=verbose, quiet=not verbose)
    settings = _load_settings_or_exit()
    asyncio.run(_probe_async(settings, collection_id))


async def _probe_async(settings: Settings, collection_id: int) -> None:
    marketplace = MarketplaceClient(settings.base_url, public_url=settings.public_url)
    try:
        try:
            result = await marketplace.probe_collection(collection_id)
            detail = await marketplace.fetch_detail(result.slug) if result else None
        except MarketplaceError as exc:
            console.print(f"[red]Probe failed for {collection_id}: {exc}[/red]")
            raise typer.Exit(code=1) from exc
    finally:
        await marketplace.aclose()

    if result is None:
        console.print(f"[yellow]Collection {collection_id} does not exist yet.[/yellow]")
        return

    console.print(f"\n[bold underline]Collection {collection_id}[/bold underline]\n")
    console.print(f"URL:   {result.url}")
    console.print(f"Items: {result.total_items}")
    if detail is not None:
        console.print(f"Name:     {detail.name}")
        console.print(f"Progress: {detail.percent:.2f}%")
        if detail.live_date:
            console.print(f"Goes live in: {detail.live_date:.0f}s")


# ---------------------------------------------------------------------------
# health command
# ---------------------------------------------------------------------------


@app.command()
def health(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help=_VERBOSE_HELP)] = False,
) -> None:
    """Check the health of all external dependencies."""
    configure_logging(verbose=verbose, quiet=not verbose)
    settings = _load_settings_or_exit()
    asyncio.run(_health_async(settings))


async def _health_async(settings: Settings) -> None:
    health_service = HealthService(settings)
    try:
        console.print("\n[bold]Running health checks...[/bold]\n")
        status = await health_service.check_all()
    finally:
        await health_service.aclose()

    table = Table(title="Health Status")
    table.add_column("Service", style="bold", width=15)
    table.add_column("Status", width=12)
    table.add_column("Details", width=40)

    table.add_row("Marketplace", _status_cell(status.marketplace_available), settings.base_url)
    table.add_row("Telegram", _status_cell(status.telegram_available), "Main bot getMe")
    table.add_row(
        "Farmer bot",
        _status_cell(status.privileged_available),
        "Bot getMe" if settings.privileged_configured else "Not configured",
    )
    table.add_row(
        "YoAI",
        "[green]SET[/green]" if status.yo_configured else "[yellow]OFF[/yellow]",
        "API key configured" if status.yo_configured else "Not configured",
    )

    console.print(table)
    console.print(f"\n[dim]Last check: {status.last_check.isoformat()}[/dim]")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    app()
