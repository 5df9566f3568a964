"""CLI for Letovo Archive.

Commands:
    init-db                  - Create the blob root and ledger tables
    archive <source>         - Run one source (or "all") through the pipeline
    latest <kind>            - Show the most recent snapshots of a kind
    history <kind> [key]     - Show every snapshot of one natural key
    show <kind> <id>         - Show one snapshot row
    blob-info <id>           - Show blob metadata
    blob-export <id> <dest>  - Copy a blob's bytes to a file
    blob-remove <id>         - Delete a blob (administrative)
    stats                    - Row counts per kind
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from enum import Enum
from pathlib import Path
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from letovo_archive.config import settings
from letovo_archive.errors import NotFoundError
from letovo_archive.ingestion import IngestionPipeline, RunStats
from letovo_archive.kinds import get_kind_spec
from letovo_archive.models import EntityKind, SnapshotRow
from letovo_archive.sources import (
    SourceOutcome,
    archive_all,
    archive_capture,
    archive_crtsh,
    archive_ddg_docs,
    archive_hhru,
    archive_library,
    archive_website,
    load_producers,
)
from letovo_archive.storage import Archive, BlobStore

app = typer.Typer(
    name="letovo-archive",
    help="Letovo Archive: append-only history of school data sources",
    no_args_is_help=True,
)
console = Console()


class Source(str, Enum):
    """Sources runnable from the command line."""

    DDG = "ddg"
    HH = "hh"
    CRTSH = "crtsh"
    CAPTURE = "capture"
    WEBSITE = "website"
    LIBRARY = "library"
    ALL = "all"


def run_async(coro):
    """Run an async coroutine in sync context."""
    return asyncio.run(coro)


def open_archive() -> Archive:
    return Archive.from_settings(settings)


def _truncate(value: Any, width: int = 60) -> str:
    text = "-" if value is None else str(value)
    return text[:width] + "..." if len(text) > width else text


def _rows_table(title: str, rows: Sequence[SnapshotRow]) -> Table:
    table = Table(title=title)
    if not rows:
        return table
    columns = list(rows[0].to_dict())
    for name in columns:
        table.add_column(name, justify="right" if name in ("id", "date") else "left")
    for row in rows:
        values = row.to_dict()
        table.add_row(*(_truncate(values[name]) for name in columns))
    return table


def _print_stats(stats: RunStats) -> None:
    console.print(
        f"  [cyan]{stats.kind.value}[/cyan]: "
        f"[green]{stats.committed} committed[/green], {stats.skipped} unchanged"
        + (f", [yellow]{stats.failures} failure(s)[/yellow]" if stats.failures else "")
    )


def _print_outcome(outcome: SourceOutcome) -> None:
    if not outcome.ok:
        console.print(f"[red]FAILED[/red] {outcome.source}: {outcome.error}")
        return
    console.print(f"[green]OK[/green] {outcome.source}")
    results = outcome.result if isinstance(outcome.result, list) else [outcome.result]
    for stats in results:
        _print_stats(stats)


@app.callback()
def main_callback(
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Show debug logging")
    ] = False,
):
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else settings.log_level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


@app.command("init-db")
def init_db():
    """Create the blob root and any missing ledger tables."""
    async def _init():
        async with open_archive():
            console.print("[green]Archive initialized.[/green]")

    run_async(_init())


@app.command()
def archive(
    source: Annotated[Source, typer.Argument(help="Source to archive")],
):
    """Fetch a source and commit every changed snapshot.

    Producers are loaded from LETOVO_ARCHIVE_PRODUCERS (module:factory).
    """
    if source == Source.HH and not settings.hh_email:
        console.print("[red]Error:[/red] Check settings: hh_email")
        raise typer.Exit(1)
    if source == Source.LIBRARY and not (settings.lib_username and settings.lib_password):
        console.print("[red]Error:[/red] Check settings: lib_username, lib_password")
        raise typer.Exit(1)

    try:
        producers = load_producers(settings)
    except (ValueError, TypeError, ImportError, AttributeError) as e:
        console.print(f"[red]Error loading producers:[/red] {e}")
        raise typer.Exit(1) from None

    runners = {
        Source.DDG: (producers.ddg, archive_ddg_docs),
        Source.HH: (producers.hh, archive_hhru),
        Source.CRTSH: (producers.crtsh, archive_crtsh),
        Source.CAPTURE: (producers.capture, archive_capture),
        Source.WEBSITE: (producers.website, archive_website),
        Source.LIBRARY: (producers.library, archive_library),
    }

    async def _archive():
        async with open_archive() as store:
            pipeline = IngestionPipeline(store, max_page_failures=settings.max_page_failures)

            if source == Source.ALL:
                outcomes = await archive_all(pipeline, producers, settings)
                for outcome in outcomes.values():
                    _print_outcome(outcome)
                if any(not outcome.ok for outcome in outcomes.values()):
                    raise typer.Exit(1)
                return

            producer, runner = runners[source]
            if producer is None:
                console.print(f"[red]Error:[/red] No producer configured for {source.value}")
                raise typer.Exit(1)
            result = await runner(pipeline, producer)
            for stats in result if isinstance(result, list) else [result]:
                _print_stats(stats)

    run_async(_archive())
    console.print("[bold]Done![/bold]")


@app.command()
def latest(
    kind: Annotated[str, typer.Argument(help="Entity kind (e.g. news, vacancy, doc)")],
    limit: Annotated[int, typer.Option("--limit", "-n", min=1, help="Number of rows")] = 10,
):
    """Show the most recent snapshots of a kind."""
    async def _latest():
        async with open_archive() as store:
            rows = await store.get_latest_n(kind, limit)
        if not rows:
            console.print(f"[yellow]No {kind} snapshots yet.[/yellow]")
            return
        console.print(_rows_table(f"Latest {kind}", rows))

    _guarded(_latest)


@app.command()
def history(
    kind: Annotated[str, typer.Argument(help="Entity kind")],
    key: Annotated[
        str | None, typer.Argument(help="Natural key (omit for singleton streams)")
    ] = None,
):
    """Show every snapshot of one natural key, newest first."""
    async def _history():
        spec = get_kind_spec(kind)
        natural_key = spec.coerce_key(key)
        async with open_archive() as store:
            rows = await store.get_by_key(kind, natural_key)
        if not rows:
            console.print(f"[yellow]No {kind} snapshots for key {key!r}.[/yellow]")
            return
        console.print(_rows_table(f"History of {kind} {key or ''}".rstrip(), rows))

    _guarded(_history)


@app.command()
def show(
    kind: Annotated[str, typer.Argument(help="Entity kind")],
    row_id: Annotated[int, typer.Argument(help="Row id")],
):
    """Show one snapshot row in full."""
    async def _show():
        async with open_archive() as store:
            row = await store.get_by_id(kind, row_id)
        lines = [f"[bold]{name}:[/bold] {value}" for name, value in row.to_dict().items()]
        console.print(Panel("\n".join(lines), title=f"{kind} #{row_id}"))

    _guarded(_show)


@app.command("blob-info")
def blob_info(
    blob_id: Annotated[str, typer.Argument(help="Blob id (UUID)")],
):
    """Show blob metadata and size."""
    blobs = BlobStore(settings.blob_root)
    try:
        meta = blobs.read_meta(blob_id)
        size = len(blobs.read_data(blob_id))
    except NotFoundError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None
    console.print(Panel(
        f"[bold]ID:[/bold] {blob_id}\n"
        f"[bold]Name:[/bold] {meta.name}\n"
        f"[bold]Size:[/bold] {size:,} bytes",
        title="Blob",
    ))


@app.command("blob-export")
def blob_export(
    blob_id: Annotated[str, typer.Argument(help="Blob id (UUID)")],
    dest: Annotated[Path, typer.Argument(help="Destination file")],
):
    """Write a blob's bytes to a file."""
    blobs = BlobStore(settings.blob_root)
    try:
        data = blobs.read_data(blob_id)
    except NotFoundError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None
    dest.write_bytes(data)
    console.print(f"[green]Wrote {len(data):,} bytes to {dest}[/green]")


@app.command("blob-remove")
def blob_remove(
    blob_id: Annotated[str, typer.Argument(help="Blob id (UUID)")],
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Skip confirmation prompt")
    ] = False,
):
    """Delete a blob. Ledger rows referencing it are kept.

    WARNING: The bytes are gone for good.
    """
    if not force:
        confirm = typer.confirm(f"Delete blob {blob_id}?", default=False)
        if not confirm:
            console.print("[yellow]Aborted.[/yellow]")
            raise typer.Exit(0)

    blobs = BlobStore(settings.blob_root)
    try:
        blobs.remove(blob_id)
    except NotFoundError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None
    console.print(f"[green]Removed blob {blob_id}.[/green]")


@app.command()
def stats():
    """Show row counts per entity kind."""
    async def _stats():
        async with open_archive() as store:
            table = Table(title="Snapshots by Kind")
            table.add_column("Kind", style="cyan")
            table.add_column("Table")
            table.add_column("Policy")
            table.add_column("Rows", justify="right")
            total = 0
            for spec in store.kinds:
                count = await store.ledger(spec.kind).count()
                total += count
                table.add_row(spec.kind.value, spec.table_name, spec.policy.value, str(count))
        console.print(table)
        console.print(f"\n[dim]{total} snapshots across {len(EntityKind)} kinds[/dim]")

    run_async(_stats())


def _guarded(func) -> None:
    """Run an async command body, turning lookup errors into exit code 1."""
    try:
        run_async(func())
    except (NotFoundError, ValueError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
