"""Structured logging configuration."""

import logging
import sys

from stats_shared.logging.formatter import JSONLogFormatter


def configure_logging(service: str = "stats-sync", level: str | int = logging.INFO) -> None:
    """Set up structured JSON logging on the root logger."""
    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONLogFormatter(service=service))
    root.addHandler(handler)
