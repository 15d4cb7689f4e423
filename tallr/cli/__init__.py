"""Command-line interface for Tallr."""

from tallr.cli.app import app

__all__ = ["app"]
