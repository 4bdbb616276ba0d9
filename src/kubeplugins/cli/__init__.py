"""Command line utilities for kubeplugins."""

from kubeplugins.cli.app import main, run_cli

__all__ = ["main", "run_cli"]
