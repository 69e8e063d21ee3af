"""Re-export all model classes."""

from stats_shared.db.models.music import Artist, ListeningEvent, Song
from stats_shared.db.models.user import SpotifyConnection, User

__all__ = [
    "Artist",
    "ListeningEvent",
    "Song",
    "SpotifyConnection",
    "User",
]
