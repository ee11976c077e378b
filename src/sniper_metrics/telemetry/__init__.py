"""Logging setup for the metrics engine and its CLI."""

from .logging import configure_logging

__all__ = ["configure_logging"]
