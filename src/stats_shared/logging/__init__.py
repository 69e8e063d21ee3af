"""Structured logging: JSON formatter and setup."""

from stats_shared.logging.formatter import JSONLogFormatter
from stats_shared.logging.setup import configure_logging

__all__ = ["JSONLogFormatter", "configure_logging"]
