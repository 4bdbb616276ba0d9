"""Logging utilities for kubeplugins."""

from kubeplugins.logging.config import JsonFormatter, setup_logging

__all__ = ["JsonFormatter", "setup_logging"]
