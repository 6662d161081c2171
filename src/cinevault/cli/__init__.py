"""
CLI interface module for cinevault.

Provides Typer-based command-line interface for the media cache and
CDN warmup.
"""

from __future__ import annotations

__all__: list[str] = []
