"""Logging sink configuration for CLI and embedded use."""

from __future__ import annotations

import logging

from rich.logging import RichHandler

LOGGER_NAME = "sniper_metrics"


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Attach a rich console handler to the package logger once."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level.upper())
    if not any(isinstance(handler, RichHandler) for handler in logger.handlers):
        logger.addHandler(RichHandler(show_path=False, rich_tracebacks=True))
    return logger
