# src/__init__.py — v1
"""bitecache: cache-first dish photo analysis."""

from bitecache.version import __version__

__all__ = ["__version__"]
