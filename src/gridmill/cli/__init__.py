"""Command-line interface for Gridmill."""

from gridmill.cli.app import app

__all__ = ["app"]
