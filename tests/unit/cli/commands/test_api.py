"""
Unit tests for the API server CLI commands.
"""

from __future__ import annotations

from unittest.mock import patch

from typer.testing import CliRunner

from cinevault.cli.main import app

runner = CliRunner()


def test_start_development_mode():
    with patch("uvicorn.run") as mock_run:
        result = runner.invoke(app, ["api", "start", "--port", "9000"])

    assert result.exit_code == 0
    mock_run.assert_called_once_with(
        "cinevault.api.main:app",
        host="127.0.0.1",
        port=9000,
        reload=True,
        log_level="info",
    )


def test_start_production_mode():
    with patch("uvicorn.run") as mock_run:
        result = runner.invoke(app, ["api", "start", "--production", "--host", "0.0.0.0"])

    assert result.exit_code == 0
    mock_run.assert_called_once_with(
        "cinevault.api.main:app",
        host="0.0.0.0",
        port=8000,
        workers=1,
        log_level="warning",
    )
