# src/kubefeed/cli/__init__.py
"""
KubeFeed CLI Package

Exposes the top-level Typer `app` used by the console entrypoint.
"""

from .main import app

__all__ = ["app"]
