"""
CLI commands for the media cache.

Provides ``cinevault cache`` commands to mirror a TMDb image into object
storage, warm the CDN for a set of object keys, drop cached hints for a
key, and run the scheduled CDN warmup job once.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from cinevault.config.logging import configure_logging
from cinevault.config.settings import get_settings
from cinevault.container import Container
from cinevault.exceptions import CineVaultError, OriginFetchError
from cinevault.models.enums import TmdbSize, WarmupScope
from cinevault.models.media import (
    RemoteMediaDescriptor,
    WarmOptions,
    WarmResult,
    WarmupRunResult,
)

console = Console()

# Valid --size values (from TmdbSize enum)
_VALID_SIZES = {s.value for s in TmdbSize}

# Valid --scope values (``both`` is accepted as an alias of ``all``)
_VALID_SCOPES = {s.value for s in WarmupScope} | {"both"}

app = typer.Typer(
    name="cache",
    help="Manage the remote media cache and CDN warmup.",
    no_args_is_help=True,
)


def _build_container() -> Container:
    """Build a container from application settings and set up logging."""
    settings = get_settings()
    configure_logging(settings.log_level)
    return Container(settings)


# ---------------------------------------------------------------------------
# ensure
# ---------------------------------------------------------------------------


@app.command(name="ensure")
def ensure(
    file_path: str = typer.Argument(..., help="TMDb file path, e.g. /abc.jpg"),
    size: str = typer.Option(
        "original",
        "--size",
        "-s",
        help="TMDb size variant (w92 ... w1280, original)",
    ),
) -> None:
    """
    Mirror a TMDb image into object storage and print its key and URL.

    Examples:
        cinevault cache ensure /abc.jpg --size w500
    """
    if size not in _VALID_SIZES:
        console.print(
            f'[red]Error: Invalid --size "{size}". '
            f"Must be one of: {', '.join(sorted(_VALID_SIZES))}[/red]"
        )
        raise typer.Exit(code=2)

    try:
        descriptor = RemoteMediaDescriptor(file_path=file_path, size=TmdbSize(size))
    except ValueError as e:
        console.print(f"[red]Error: Invalid file path: {e}[/red]")
        raise typer.Exit(code=2)

    asyncio.run(_ensure_async(descriptor))


async def _ensure_async(descriptor: RemoteMediaDescriptor) -> None:
    container = _build_container()
    try:
        key = await container.media_cache.ensure_cached(descriptor)
        url = container.object_store.public_url(key)
    except OriginFetchError as e:
        console.print(f"[red]Origin fetch failed after {e.attempts} attempts: {e.url}[/red]")
        raise typer.Exit(code=1)
    except CineVaultError as e:
        console.print(f"[red]Error: {e.message}[/red]")
        raise typer.Exit(code=1)
    finally:
        await container.aclose()

    console.print(f"[green]✓[/green] Cached [bold]{key}[/bold]")
    if url:
        console.print(f"  URL: {url}")


# ---------------------------------------------------------------------------
# warm
# ---------------------------------------------------------------------------


def _read_keys_file(path: Path) -> list[str]:
    """One key per line; blank lines and ``#`` comments are skipped."""
    keys = []
    for line in path.read_text(encoding="utf-8").splitlines():
        stripped = line.strip()
        if stripped and not stripped.startswith("#"):
            keys.append(stripped)
    return keys


@app.command(name="warm")
def warm(
    keys: Optional[list[str]] = typer.Argument(None, help="Object keys or absolute URLs"),
    from_file: Optional[Path] = typer.Option(
        None,
        "--from-file",
        "-f",
        help="Read additional keys from a file (one per line)",
        exists=True,
        dir_okay=False,
        readable=True,
    ),
    concurrency: int = typer.Option(
        10, "--concurrency", "-c", help="Parallel requests", min=1
    ),
    timeout_ms: int = typer.Option(
        8000, "--timeout-ms", help="Per-request timeout in milliseconds", min=1
    ),
    retries: int = typer.Option(
        2, "--retries", "-r", help="Extra attempts per URL", min=0
    ),
    skip_recent_ttl: int = typer.Option(
        0,
        "--skip-recent-ttl",
        help="Skip URLs warmed within this many seconds (0 disables)",
        min=0,
    ),
) -> None:
    """
    Warm the CDN for object keys by requesting their public URLs.

    Examples:
        cinevault cache warm tmdb/w500/abc.jpg tmdb/original/def.jpg
        cinevault cache warm --from-file keys.txt --concurrency 16
        cinevault cache warm --from-file keys.txt --skip-recent-ttl 3600
    """
    all_keys = list(keys or [])
    if from_file is not None:
        all_keys.extend(_read_keys_file(from_file))

    if not all_keys:
        console.print("[red]Error: No keys given. Pass keys or --from-file.[/red]")
        raise typer.Exit(code=2)

    options = WarmOptions(
        timeout_ms=timeout_ms,
        retries=retries,
        skip_recently_warmed_ttl_seconds=skip_recent_ttl,
    )

    try:
        result = asyncio.run(_warm_async(all_keys, concurrency, options))
    except KeyboardInterrupt:
        console.print("\n[yellow]CDN warmup interrupted by user[/yellow]")
        raise typer.Exit(code=130)

    _display_warm_summary(result)
    if result.failed > 0:
        raise typer.Exit(code=1)


async def _warm_async(keys: list[str], concurrency: int, options: WarmOptions) -> WarmResult:
    container = _build_container()
    try:
        return await container.warmup_engine.warm(keys, concurrency, options)
    finally:
        await container.aclose()


def _display_warm_summary(result: WarmResult) -> None:
    table = Table(title="CDN Warm Summary")
    table.add_column("Requested", style="bold", justify="right")
    table.add_column("Warmed", style="green", justify="right")
    table.add_column("Skipped", style="blue", justify="right")
    table.add_column("Failed", style="red", justify="right")
    table.add_column("No URL", style="yellow", justify="right")
    table.add_row(
        str(result.requested),
        str(result.warmed),
        str(result.skipped),
        str(result.failed),
        str(result.unresolved),
    )
    console.print(table)


# ---------------------------------------------------------------------------
# invalidate
# ---------------------------------------------------------------------------


@app.command(name="invalidate")
def invalidate(
    key: str = typer.Argument(..., help="Object key, e.g. tmdb/w500/abc.jpg"),
) -> None:
    """
    Drop the cached existence flag, stored hint and signed URLs of a key.

    Examples:
        cinevault cache invalidate tmdb/w500/abc.jpg
    """
    asyncio.run(_invalidate_async(key))
    console.print(f"[green]✓[/green] Invalidated cache entries for [bold]{key}[/bold]")


async def _invalidate_async(key: str) -> None:
    container = _build_container()
    try:
        await container.object_store.invalidate(key)
    finally:
        await container.aclose()


# ---------------------------------------------------------------------------
# run-warmup
# ---------------------------------------------------------------------------


@app.command(name="run-warmup")
def run_warmup(
    scope: Optional[str] = typer.Option(
        None,
        "--scope",
        help='Catalog area: "movies", "collections", "series" or "all"',
    ),
    limit: Optional[int] = typer.Option(
        None, "--limit", "-l", help="Newest rows per entity (1-5000)"
    ),
    concurrency: Optional[int] = typer.Option(
        None, "--concurrency", "-c", help="Parallel requests (1-24)"
    ),
) -> None:
    """
    Run the scheduled CDN warmup job once.

    Examples:
        cinevault cache run-warmup
        cinevault cache run-warmup --scope movies --limit 100
    """
    if scope is not None and scope not in _VALID_SCOPES:
        console.print(
            f'[red]Error: Invalid --scope "{scope}". '
            f"Must be one of: {', '.join(sorted(_VALID_SCOPES))}[/red]"
        )
        raise typer.Exit(code=2)

    try:
        result = asyncio.run(_run_warmup_async(scope, limit, concurrency))
    except KeyboardInterrupt:
        console.print("\n[yellow]CDN warmup interrupted by user[/yellow]")
        raise typer.Exit(code=130)

    table = Table(title="CDN Warmup Run")
    table.add_column("Scope", style="cyan")
    table.add_column("Limit", justify="right")
    table.add_column("Concurrency", justify="right")
    table.add_column("Keys", style="green", justify="right")
    table.add_row(
        result.scope.value,
        str(result.limit),
        str(result.concurrency),
        str(result.warmed),
    )
    console.print(table)

    for error in result.errors:
        console.print(f"  [red]✗ {error}[/red]")
    if result.errors:
        raise typer.Exit(code=1)


async def _run_warmup_async(
    scope: Optional[str], limit: Optional[int], concurrency: Optional[int]
) -> WarmupRunResult:
    container = _build_container()
    try:
        return await container.warmup_job.run(
            scope=scope, limit=limit, concurrency=concurrency
        )
    finally:
        await container.aclose()
