"""
CLI for the bucket cache.

Commands:
    bucketcache get KEY - Write a cached payload to stdout or a file
    bucketcache set KEY - Cache stdin or a file
    bucketcache expire KEY - Change or end a bucket's end of life
    bucketcache path KEY - Print the bucket file used for a key
    bucketcache config - Show current configuration
    bucketcache version - Print version
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Annotated, Awaitable, BinaryIO, Callable, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from bucketcache import __version__
from bucketcache.cache.file_cache import FileCache
from bucketcache.cache.stream import BucketStream
from bucketcache.config import Settings, clear_settings_cache, get_settings
from bucketcache.exceptions import FileCacheError
from bucketcache.logging import log_context, setup_logging

app = typer.Typer(
    name="bucketcache",
    help="Bucket cache - filesystem key/value cache with expiring entries",
    no_args_is_help=True,
)

console = Console()
error_console = Console(stderr=True)

DirOption = Annotated[
    Optional[Path],
    typer.Option("--dir", "-d", help="Base cache directory (overrides CACHE_DIR)"),
]
DomainOption = Annotated[
    Optional[str],
    typer.Option("--domain", help="Cache domain (overrides CACHE_DOMAIN)"),
]


def _get_settings_safe() -> Settings | None:
    """Get settings, returning None if configuration is invalid."""
    try:
        clear_settings_cache()
        return get_settings()
    except ValueError:
        return None


def _open_cache(cache_dir: Path | None, domain: str | None) -> FileCache:
    settings = _get_settings_safe()
    if settings is None:
        error_console.print(
            "[red]Error:[/red] Configuration is invalid. "
            "Run 'bucketcache config' to see what's wrong."
        )
        raise typer.Exit(1)

    setup_logging(log_level=settings.LOG_LEVEL)

    overrides: dict[str, object] = {}
    if cache_dir is not None:
        overrides["CACHE_DIR"] = cache_dir
    if domain is not None:
        overrides["CACHE_DOMAIN"] = domain
    if overrides:
        settings = settings.model_copy(update=overrides)

    try:
        return FileCache.from_settings(settings)
    except FileCacheError as e:
        error_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)


def _run(
    operation: str, key: str, coro_factory: Callable[[], Awaitable[None]]
) -> None:
    """Run a cache coroutine, turning cache errors into exit code 1."""
    try:
        with log_context(key=key, operation=operation):
            asyncio.run(coro_factory())
    except FileCacheError as e:
        error_console.print(f"[red]Error:[/red] {e.code}: {escape(str(e))}")
        raise typer.Exit(1)
    except OSError as e:
        error_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)


async def _drain(stream: BucketStream, sink: BinaryIO) -> None:
    """Copy a bucket stream into a binary file in worker threads."""
    async for chunk in stream:
        await asyncio.to_thread(sink.write, chunk)
    await asyncio.to_thread(sink.flush)

@app.command()
def get(
    key: Annotated[str, typer.Argument(help="Cache key")],
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Write the payload to this file"),
    ] = None,
    cache_dir: DirOption = None,
    domain: DomainOption = None,
) -> None:
    """Write the payload cached under KEY to stdout (or --output)."""
    cache = _open_cache(cache_dir, domain)

    async def _get() -> None:
        async with await cache.get_stream(key) as stream:
            if output is None:
                await _drain(stream, sys.stdout.buffer)
            else:
                fh = await asyncio.to_thread(output.open, "wb")
                try:
                    await _drain(stream, fh)
                finally:
                    await asyncio.to_thread(fh.close)

    _run("get", key, _get)


@app.command("set")
def set_(
    key: Annotated[str, typer.Argument(help="Cache key")],
    input_file: Annotated[
        Optional[Path],
        typer.Option("--input", "-i", help="Read the payload from this file"),
    ] = None,
    ttl: Annotated[
        Optional[float],
        typer.Option("--ttl", help="Lifetime in milliseconds from now"),
    ] = None,
    eol: Annotated[
        Optional[float],
        typer.Option("--eol", help="Absolute end of life (ms since epoch)"),
    ] = None,
    cache_dir: DirOption = None,
    domain: DomainOption = None,
) -> None:
    """Cache stdin (or --input) under KEY."""
    if ttl is not None and eol is not None:
        error_console.print("[red]Error:[/red] --ttl and --eol are mutually exclusive")
        raise typer.Exit(2)

    cache = _open_cache(cache_dir, domain)

    async def _set() -> None:
        await cache.init()
        effective_eol = eol
        if ttl is not None:
            effective_eol = cache.store.clock() + ttl
        if input_file is None:
            await cache.set_stream(key, sys.stdin.buffer, effective_eol)
        else:
            with input_file.open("rb") as fh:
                await cache.set_stream(key, fh, effective_eol)

    _run("set", key, _set)


@app.command()
def expire(
    key: Annotated[str, typer.Argument(help="Cache key")],
    eol: Annotated[
        float,
        typer.Option("--eol", help="New end of life (ms since epoch); past values delete"),
    ] = 0,
    cache_dir: DirOption = None,
    domain: DomainOption = None,
) -> None:
    """Change the end of life of KEY, deleting it by default."""
    cache = _open_cache(cache_dir, domain)
    _run("set_eol", key, lambda: cache.set_eol(key, eol))


@app.command()
def path(
    key: Annotated[str, typer.Argument(help="Cache key")],
    cache_dir: DirOption = None,
    domain: DomainOption = None,
) -> None:
    """Print the bucket file used for KEY."""
    cache = _open_cache(cache_dir, domain)
    console.print(
        str(cache.key_to_path(key)), soft_wrap=True, highlight=False, markup=False
    )


@app.command()
def config() -> None:
    """Show current configuration."""
    console.print()
    console.print("[bold]Bucket Cache Configuration[/bold]")
    console.print()

    settings = _get_settings_safe()

    if settings is None:
        error_console.print("[red]Configuration is invalid.[/red]")
        error_console.print()
        error_console.print("Check these environment variables:")
        error_console.print("  - DEFAULT_TTL_MS (must be positive)")
        error_console.print("  - LOCK_BACKEND (memory or file)")
        error_console.print("  - READ_CHUNK_SIZE (must be positive)")
        raise typer.Exit(1)

    table = Table(title="Settings", show_header=True)
    table.add_column("Setting", style="cyan", no_wrap=True)
    table.add_column("Value", style="green")

    for name, value in settings.redacted_display().items():
        display_value = str(value) if value is not None else "[dim]not set[/dim]"
        table.add_row(name, display_value)

    console.print(table)
    console.print()


@app.command()
def version() -> None:
    """Print the version number."""
    console.print(f"bucketcache version {__version__}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
