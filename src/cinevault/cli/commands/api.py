"""CLI commands for API server management."""

from __future__ import annotations

import typer

api_app = typer.Typer(
    name="api",
    help="API server management commands",
    no_args_is_help=True,
)


@api_app.command()
def start(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind"),
    port: int = typer.Option(8000, "--port", "-p", help="Port to run the server on"),
    production: bool = typer.Option(
        False, "--production", help="Run in production mode"
    ),
) -> None:
    """
    Start the cinevault media API server.

    Development mode (default): Auto-reload enabled, info logging.
    Production mode: No reload, warning-level logging. A single worker
    is used so the warmup scheduler runs once per deployment.

    Examples:
        cinevault api start
        cinevault api start --port 3000
        cinevault api start --host 0.0.0.0 --production
    """
    import uvicorn

    if production:
        uvicorn.run(
            "cinevault.api.main:app",
            host=host,
            port=port,
            workers=1,
            log_level="warning",
        )
    else:
        uvicorn.run(
            "cinevault.api.main:app",
            host=host,
            port=port,
            reload=True,
            log_level="info",
        )
