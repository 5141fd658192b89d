"""
CLI for the remote caching system.

Commands:
    remote-caching stats - Show entry count, size and expired entries
    remote-caching clear [--key KEY] - Clear the whole cache or one entry
    remote-caching sweep - Remove expired entries
    remote-caching config - Show current configuration
    remote-caching version - Print version
"""

from __future__ import annotations

import asyncio
import sqlite3
from pathlib import Path
from typing import Annotated, Any, Coroutine, Optional, TypeVar

import typer
from rich.console import Console
from rich.table import Table

from remote_caching import __version__
from remote_caching.cache import RemoteCaching
from remote_caching.config import Settings, clear_settings_cache, get_settings
from remote_caching.types import CachingStats

app = typer.Typer(
    name="remote-caching",
    help="Remote Caching - inspect and maintain the persistent TTL cache",
    no_args_is_help=True,
)

console = Console()
error_console = Console(stderr=True)

T = TypeVar("T")

DbOption = Annotated[
    Optional[Path],
    typer.Option("--db", "-d", help="Cache database file (defaults to configured path)"),
]


def _get_settings_safe() -> Settings | None:
    """Get settings, returning None if configuration is invalid."""
    try:
        clear_settings_cache()
        return get_settings()
    except Exception:
        return None


def _open_cache(db: Path | None) -> RemoteCaching:
    settings = _get_settings_safe()
    if settings is None:
        error_console.print(
            "[red]Error:[/red] Configuration is invalid. "
            "Run 'remote-caching config' to see what's wrong."
        )
        raise typer.Exit(1)
    return RemoteCaching(db_path=db, settings=settings)


def _run(work: Coroutine[Any, Any, T]) -> T:
    """Run a cache coroutine, turning database failures into a clean exit."""
    try:
        return asyncio.run(work)
    except sqlite3.Error as e:
        error_console.print(f"[red]Error:[/red] Cache database is unusable: {e}")
        raise typer.Exit(1)


def _format_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    value = size / 1024
    for unit in ("KB", "MB"):
        if value < 1024:
            return f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GB"


def _print_stats(stats: CachingStats) -> None:
    table = Table(title="Cache Statistics", show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Total entries", str(stats.total_entries))
    table.add_row("Valid entries", str(stats.valid_entries))
    table.add_row("Expired entries", str(stats.expired_entries))
    table.add_row("Total size", _format_size(stats.total_size_bytes))
    console.print(table)


@app.command()
def stats(
    db: DbOption = None,
    show_keys: Annotated[
        bool,
        typer.Option("--keys", "-k", help="Also list stored keys"),
    ] = False,
) -> None:
    """Show cache statistics.

    Opening the cache sweeps entries that were already expired, so the
    expired count only covers entries that lapsed since then.
    """
    cache = _open_cache(db)

    async def _stats() -> tuple[CachingStats, list[str]]:
        async with cache:
            keys = await cache.keys() if show_keys else []
            return await cache.get_cache_stats(), keys

    result, keys = _run(_stats())

    console.print()
    _print_stats(result)
    if show_keys:
        console.print()
        if keys:
            for key in keys:
                console.print(f"  {key}")
        else:
            console.print("[dim]No keys stored.[/dim]")
    console.print()


@app.command()
def clear(
    db: DbOption = None,
    key: Annotated[
        Optional[str],
        typer.Option("--key", help="Only clear this key"),
    ] = None,
) -> None:
    """Clear the whole cache, or a single key."""
    cache = _open_cache(db)

    async def _clear() -> bool:
        async with cache:
            if key is None:
                await cache.clear_cache()
                return True
            return await cache.clear_cache_for_key(key)

    removed = _run(_clear())

    if key is None:
        console.print("[green]Cache cleared.[/green]")
    elif removed:
        console.print(f"[green]Cleared entry:[/green] {key}")
    else:
        console.print(f"[yellow]No entry for key:[/yellow] {key}")


@app.command()
def sweep(db: DbOption = None) -> None:
    """Remove expired entries and report what is left."""
    cache = _open_cache(db)

    async def _sweep() -> CachingStats:
        async with cache:
            return await cache.get_cache_stats()

    result = _run(_sweep())
    console.print(
        f"[green]Expired entries removed.[/green] {result.total_entries} entries remain."
    )


@app.command()
def config() -> None:
    """Show current configuration."""
    console.print()
    console.print("[bold]Remote Caching Configuration[/bold]")
    console.print()

    settings = _get_settings_safe()

    if settings is None:
        error_console.print("[red]Configuration is invalid.[/red]")
        error_console.print()
        error_console.print("Check REMOTE_CACHING_* environment variables and .env.")
        raise typer.Exit(1)

    table = Table(title="Settings", show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    for name, value in settings.display_values().items():
        table.add_row(name, str(value))

    console.print(table)
    console.print()


@app.command()
def version() -> None:
    """Print the version number."""
    console.print(f"remote-caching version {__version__}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
