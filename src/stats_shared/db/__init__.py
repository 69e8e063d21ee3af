"""Shared database package -- convenience re-exports.

Importing this module registers all models with Base.metadata.
"""

from stats_shared.db.base import Base
from stats_shared.db.models import Artist, ListeningEvent, Song, SpotifyConnection, User
from stats_shared.db.session import DatabaseManager

__all__ = [
    # Base
    "Base",
    # Models
    "Artist",
    "ListeningEvent",
    "Song",
    "SpotifyConnection",
    "User",
    # Session
    "DatabaseManager",
]
