"""Shared configuration."""

from stats_shared.config.database import DEFAULT_DATABASE_URL, DatabaseSettings

__all__ = [
    "DEFAULT_DATABASE_URL",
    "DatabaseSettings",
]
