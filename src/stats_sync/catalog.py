"""Catalog upsert engine: artists, songs and listening events keyed by natural keys."""

import logging
from datetime import datetime
from typing import Any, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import InstrumentedAttribute

from stats_shared.db.base import Base, utc_now
from stats_shared.db.models.music import Artist, ListeningEvent, Song
from stats_sync.exceptions import MalformedEntityError
from stats_sync.inputs import ArtistInput, TrackInput
from stats_sync.normalizers import parse_played_at

logger = logging.getLogger(__name__)

_RowT = TypeVar("_RowT", bound=Base)


class CatalogRepository:
    """Idempotent writes of Spotify catalog data.

    Artists and songs are matched on their Spotify id and overwritten with the
    latest sighting. Listening events are matched on (user, song, played_at)
    and never overwritten: replaying a sync window adds nothing.
    """

    async def upsert_artist(self, artist: ArtistInput, session: AsyncSession) -> Artist:
        """Insert or update an artist, returning the row with its local id."""
        return await self._upsert(
            Artist,
            Artist.spotify_artist_id,
            artist.spotify_id,
            {
                "name": artist.name,
                "image_url": artist.image_url,
                "popularity": artist.popularity,
                "genres": list(artist.genres),
            },
            session,
        )

    async def upsert_song(self, track: TrackInput, artist_id: int, session: AsyncSession) -> Song:
        """Insert or update a song, always pointing it at *artist_id*.

        If Spotify changed the track's primary artist, the song is re-pointed.
        """
        return await self._upsert(
            Song,
            Song.spotify_track_id,
            track.spotify_id,
            {
                "name": track.name,
                "artist_id": artist_id,
                "album_name": track.album_name,
                "album_image_url": track.album_image_url,
                "duration_ms": track.duration_ms,
                "popularity": track.popularity,
            },
            session,
        )

    async def record_listening_event(
        self,
        user_id: int,
        song_id: int,
        played_at: datetime | str,
        duration_seconds: int | None = None,
        *,
        session: AsyncSession,
    ) -> ListeningEvent | None:
        """Insert a listening event, returning None if it already exists (dedup).

        *played_at* may be a datetime or an ISO 8601 string. *duration_seconds*
        is the observed listening time in seconds, not the track length.
        """
        played_at = parse_played_at(played_at)
        if duration_seconds is not None and duration_seconds < 0:
            raise MalformedEntityError(f"negative listening duration: {duration_seconds}s")

        result = await session.execute(
            select(ListeningEvent.id).where(
                ListeningEvent.user_id == user_id,
                ListeningEvent.song_id == song_id,
                ListeningEvent.played_at == played_at,
            )
        )
        if result.scalar_one_or_none() is not None:
            logger.debug("Listening event for user %d song %d at %s already recorded", user_id, song_id, played_at)
            return None

        event = ListeningEvent(
            user_id=user_id,
            song_id=song_id,
            played_at=played_at,
            duration_seconds=duration_seconds,
        )
        try:
            async with session.begin_nested():
                session.add(event)
                await session.flush()
        except IntegrityError as exc:
            # Only a duplicate-key collision means "already recorded"; FK violations still raise.
            if _is_duplicate_key(exc):
                return None
            raise
        return event

    async def _upsert(
        self,
        model: type[_RowT],
        key_column: InstrumentedAttribute[Any],
        key: str,
        values: dict[str, Any],
        session: AsyncSession,
    ) -> _RowT:
        """Find by natural key, then insert or overwrite, atomically per row.

        A concurrent insert of the same key makes our insert fail on the
        unique constraint; the winner's row is then overwritten instead.
        """
        try:
            async with session.begin_nested():
                row = await _find(model, key_column, key, session)
                if row is None:
                    row = model(**{key_column.key: key}, **values)
                    session.add(row)
                else:
                    _apply(row, values)
                await session.flush()
        except IntegrityError:
            row = await _find(model, key_column, key, session)
            if row is None:
                raise
            _apply(row, values)
            await session.flush()
        return row


async def _find(
    model: type[_RowT],
    key_column: InstrumentedAttribute[Any],
    key: str,
    session: AsyncSession,
) -> _RowT | None:
    result = await session.execute(select(model).where(key_column == key))
    return result.scalar_one_or_none()


def _apply(row: Base, values: dict[str, Any]) -> None:
    for field, value in values.items():
        setattr(row, field, value)
    row.updated_at = utc_now()  # type: ignore[attr-defined]


def _is_duplicate_key(exc: IntegrityError) -> bool:
    exc_text = str(exc.orig).lower() if exc.orig else str(exc).lower()
    return "unique" in exc_text or "duplicate" in exc_text
