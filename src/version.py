# src/version.py — v1
"""Package version, read by the CLI and packaging metadata."""

__version__ = "0.1.0"
