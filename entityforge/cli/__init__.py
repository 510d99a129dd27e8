"""Command-line interface for EntityForge."""

from .app import app

__all__ = ["app"]
