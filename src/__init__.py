# src/__init__.py - v1
"""filerecon: reconcile proposed files against an existing project."""

from filerecon.version import __version__

__all__ = ["__version__"]
