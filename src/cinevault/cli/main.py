"""
Main CLI entry point for cinevault.
"""

from __future__ import annotations

import typer
from rich.console import Console
from rich.panel import Panel

from cinevault import __version__
from cinevault.cli.commands.api import api_app
from cinevault.cli.commands.cache import app as cache_app

console = Console()

app = typer.Typer(
    name="cinevault",
    help="CineVault remote media cache and CDN warmup",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# Add subcommands
app.add_typer(cache_app, name="cache", help="Media cache commands")
app.add_typer(api_app, name="api", help="API server commands")


@app.command()
def version() -> None:
    """Show version information."""
    console.print(
        Panel(
            f"[bold blue]cinevault[/bold blue] v{__version__}",
            title="Version",
            border_style="blue",
        )
    )


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", "-v", help="Show version and exit"
    ),
) -> None:
    """
    cinevault - remote media cache and CDN warmup.

    Mirrors TMDb artwork into object storage and keeps the CDN warm.
    """
    if version:
        console.print(f"cinevault v{__version__}")
        raise typer.Exit(code=0)

    if ctx.invoked_subcommand is None:
        console.print(
            "[yellow]Use 'cinevault --help' for available commands[/yellow]"
        )
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
