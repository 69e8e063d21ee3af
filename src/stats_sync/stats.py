"""Listening stats: live top items from Spotify and cached recent history."""

import logging
from datetime import datetime

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stats_shared.db.base import ensure_utc
from stats_shared.db.models.music import Artist, ListeningEvent, Song
from stats_shared.spotify.client import SpotifyClient
from stats_shared.spotify.constants import TIME_RANGES
from stats_shared.spotify.models import SpotifyArtistFull, SpotifyTrack
from stats_sync.exceptions import NotConnectedError
from stats_sync.settings import SyncSettings
from stats_sync.tokens import TokenRefresher

logger = logging.getLogger(__name__)


class HistoryEntry(BaseModel):
    """One cached play joined with its song and artist."""

    played_at: datetime
    duration_seconds: int | None
    song_id: int
    spotify_track_id: str
    track_name: str
    album_name: str | None
    album_image_url: str | None
    artist_id: int
    spotify_artist_id: str
    artist_name: str


class ListeningStatsService:
    """Read-side views over a user's listening.

    Top artists and tracks come straight from Spotify using a valid token.
    Recent history is read back from the local catalog only.
    """

    def __init__(self, token_refresher: TokenRefresher, settings: SyncSettings) -> None:
        self._token_refresher = token_refresher
        self._settings = settings

    async def get_top_artists(
        self,
        user_id: int,
        session: AsyncSession,
        *,
        time_range: str = "short_term",
        limit: int = 20,
    ) -> list[SpotifyArtistFull]:
        """The user's top artists for *time_range* (short_term, medium_term, long_term)."""
        client = await self._client(user_id, session, time_range)
        response = await client.get_top_artists(time_range=time_range, limit=limit)
        return response.items

    async def get_top_tracks(
        self,
        user_id: int,
        session: AsyncSession,
        *,
        time_range: str = "short_term",
        limit: int = 20,
    ) -> list[SpotifyTrack]:
        """The user's top tracks for *time_range* (short_term, medium_term, long_term)."""
        client = await self._client(user_id, session, time_range)
        response = await client.get_top_tracks(time_range=time_range, limit=limit)
        return response.items

    @staticmethod
    async def get_recent_history(user_id: int, session: AsyncSession, *, limit: int = 50) -> list[HistoryEntry]:
        """Most recent recorded plays, newest first."""
        stmt = (
            select(
                ListeningEvent.played_at,
                ListeningEvent.duration_seconds,
                Song.id.label("song_id"),
                Song.spotify_track_id,
                Song.name.label("track_name"),
                Song.album_name,
                Song.album_image_url,
                Artist.id.label("artist_id"),
                Artist.spotify_artist_id,
                Artist.name.label("artist_name"),
            )
            .select_from(ListeningEvent)
            .join(Song, ListeningEvent.song_id == Song.id)
            .join(Artist, Song.artist_id == Artist.id)
            .where(ListeningEvent.user_id == user_id)
            .order_by(ListeningEvent.played_at.desc(), ListeningEvent.id.desc())
            .limit(max(1, limit))
        )
        result = await session.execute(stmt)
        entries = []
        for row in result.all():
            values = dict(row._mapping)
            values["played_at"] = ensure_utc(values["played_at"])
            entries.append(HistoryEntry(**values))
        return entries

    async def _client(self, user_id: int, session: AsyncSession, time_range: str) -> SpotifyClient:
        if time_range not in TIME_RANGES:
            raise ValueError(f"Unknown time_range {time_range!r}; expected one of {', '.join(TIME_RANGES)}")
        access_token = await self._token_refresher.get_valid_access_token(user_id, session)
        if access_token is None:
            raise NotConnectedError(user_id)
        logger.debug("Fetching top items (%s) for user %d", time_range, user_id, extra={"user_id": user_id})
        return SpotifyClient(access_token=access_token, request_timeout=self._settings.SPOTIFY_REQUEST_TIMEOUT)
