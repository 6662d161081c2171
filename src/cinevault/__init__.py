"""
cinevault - Personal media catalog.

This package holds the remote-media caching and CDN-warmup engine: a
content-addressed pull-through cache that mirrors TMDb artwork into
S3-compatible object storage and keeps the CDN edge warm.
"""

from __future__ import annotations

__version__ = "1.0.0"
__author__ = "cinevault"
__email__ = "noreply@cinevault.dev"
__license__ = "AGPL-3.0-or-later"

__all__ = ["__version__", "__author__", "__email__", "__license__"]
