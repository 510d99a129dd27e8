"""CLI commands for EntityForge."""

from . import config, create

__all__ = [
    "config",
    "create",
]
