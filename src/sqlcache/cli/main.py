"""
CLI for sqlcache.

Commands:
    sqlcache get KEY - Print a cached value
    sqlcache set KEY VALUE - Store a value
    sqlcache delete KEY... - Delete keys
    sqlcache keys - List live keys
    sqlcache ttl KEY - Milliseconds left for a key
    sqlcache purge - Remove expired entries now
    sqlcache reset - Remove every entry
    sqlcache config - Show current configuration
    sqlcache version - Print version
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Annotated, Any, Awaitable, Callable, Optional, TypeVar

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from sqlcache import __version__
from sqlcache.cache.sqlite_store import SqliteStore
from sqlcache.config import Settings, clear_settings_cache, get_settings, sqlite_store_from_settings
from sqlcache.exceptions import SqlCacheError
from sqlcache.logging import log_context, setup_logging

app = typer.Typer(
    name="sqlcache",
    help="sqlcache - TTL-aware key-value cache on SQLite",
    no_args_is_help=True,
)

console = Console()
error_console = Console(stderr=True)

T = TypeVar("T")


class _Options:
    path: str | None = None
    name: str | None = None


def _load_settings(ctx: typer.Context) -> Settings:
    """Load settings and apply --path/--name overrides, exiting on invalid config."""
    try:
        clear_settings_cache()
        settings = get_settings()
    except ValidationError as e:
        error_console.print(f"[red]Error:[/red] Configuration is invalid.\n{e}")
        raise typer.Exit(1)

    options: _Options = ctx.obj or _Options()
    updates: dict[str, Any] = {}
    if options.path is not None:
        updates["PATH"] = options.path
    if options.name is not None:
        updates["NAME"] = options.name
    if updates:
        try:
            settings = Settings(**{**settings.model_dump(), **updates})
        except ValidationError as e:
            error_console.print(f"[red]Error:[/red] Invalid option.\n{e}")
            raise typer.Exit(1)

    setup_logging(log_level=settings.LOG_LEVEL, log_file=settings.LOG_FILE)
    return settings


def _run(ctx: typer.Context, action: Callable[[SqliteStore], Awaitable[T]]) -> T:
    """Open the configured store, run one action against it, and close it."""
    settings = _load_settings(ctx)

    async def runner() -> T:
        store = await sqlite_store_from_settings(settings)
        try:
            with log_context(store=store.name):
                return await action(store)
        finally:
            await store.close()

    try:
        return asyncio.run(runner())
    except SqlCacheError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


def _format_value(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False, default=str)


@app.callback()
def main_options(
    ctx: typer.Context,
    path: Annotated[
        Optional[Path],
        typer.Option("--path", "-p", help="Database file (overrides SQLCACHE_PATH)"),
    ] = None,
    name: Annotated[
        Optional[str],
        typer.Option("--name", "-n", help="Store/table name (overrides SQLCACHE_NAME)"),
    ] = None,
) -> None:
    """Operate on a sqlcache store."""
    options = _Options()
    options.path = str(path) if path is not None else None
    options.name = name
    ctx.obj = options


@app.command()
def get(
    ctx: typer.Context,
    key: Annotated[str, typer.Argument(help="Cache key")],
) -> None:
    """Print the value stored under KEY. Exits 1 on a miss."""
    value = _run(ctx, lambda store: store.get(key))
    if value is None:
        error_console.print(f"[yellow]Miss:[/yellow] {key}")
        raise typer.Exit(1)
    console.print(_format_value(value), markup=False, highlight=False)


@app.command("set")
def set_(
    ctx: typer.Context,
    key: Annotated[str, typer.Argument(help="Cache key")],
    value: Annotated[str, typer.Argument(help="Value, parsed as JSON unless --raw")],
    ttl: Annotated[
        Optional[float],
        typer.Option("--ttl", "-t", help="Seconds to live (store default if omitted)"),
    ] = None,
    raw: Annotated[
        bool,
        typer.Option("--raw", "-r", help="Store VALUE as a plain string"),
    ] = False,
) -> None:
    """Store VALUE under KEY."""
    parsed: Any = value
    if not raw:
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError:
            parsed = value

    _run(ctx, lambda store: store.set(key, parsed, ttl))
    console.print(f"[green]Set[/green] {key}")


@app.command()
def delete(
    ctx: typer.Context,
    keys: Annotated[list[str], typer.Argument(help="Keys to delete")],
) -> None:
    """Delete one or more keys."""
    _run(ctx, lambda store: store.mdelete(*keys))
    console.print(f"[green]Deleted[/green] {len(keys)} key(s)")


@app.command("keys")
def list_keys(ctx: typer.Context) -> None:
    """List live keys with their remaining TTL."""

    async def collect(store: SqliteStore) -> list[tuple[str, int]]:
        names = await store.keys()
        return [(name, await store.ttl(name)) for name in names]

    entries = _run(ctx, collect)

    table = Table(title="Keys", show_header=True)
    table.add_column("Key", style="cyan")
    table.add_column("TTL (ms)", style="green", justify="right")
    for name, remaining in entries:
        table.add_row(name, str(remaining))
    console.print(table)


@app.command()
def ttl(
    ctx: typer.Context,
    key: Annotated[str, typer.Argument(help="Cache key")],
) -> None:
    """Print milliseconds left for KEY (-1 if absent or expired)."""
    remaining = _run(ctx, lambda store: store.ttl(key))
    console.print(str(remaining))


@app.command()
def purge(ctx: typer.Context) -> None:
    """Remove expired entries now."""
    removed = _run(ctx, lambda store: store.purge_expired())
    console.print(f"[green]Purged[/green] {removed} expired entr{'y' if removed == 1 else 'ies'}")


@app.command()
def reset(
    ctx: typer.Context,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation"),
    ] = False,
) -> None:
    """Remove every entry from the store."""
    if not yes:
        typer.confirm("Remove every entry from the store?", abort=True)
    _run(ctx, lambda store: store.reset())
    console.print("[green]Store reset[/green]")


@app.command()
def config(ctx: typer.Context) -> None:
    """Show current configuration."""
    settings = _load_settings(ctx)

    table = Table(title="Settings", show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    for key, value in settings.display().items():
        display_value = str(value) if value is not None else "[dim]not set[/dim]"
        table.add_row(key, display_value)

    console.print()
    console.print(table)
    console.print()


@app.command()
def version() -> None:
    """Print the version number."""
    console.print(f"sqlcache version {__version__}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
