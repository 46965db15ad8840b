"""Command modules for gdapexport."""

from . import config, directory, export

__all__ = [
    "config",
    "directory",
    "export",
]
