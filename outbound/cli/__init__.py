"""Command-line interface."""

from outbound.cli.main import cli


__all__ = ["cli"]
