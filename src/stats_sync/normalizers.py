"""Normalizers that turn raw Spotify payloads into catalog inputs.

Every function raises :class:`MalformedEntityError` when a payload lacks
what the catalog needs, so callers can skip that single entry.
"""

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError

from stats_shared.spotify.models import (
    SpotifyArtistFull,
    SpotifyArtistSimplified,
    SpotifyPlayHistoryItem,
    SpotifyTrack,
)
from stats_sync.exceptions import MalformedEntityError
from stats_sync.inputs import ArtistInput, PlayEventInput, TrackInput


def parse_played_at(value: datetime | str) -> datetime:
    """Coerce a datetime or ISO 8601 string (``Z`` allowed) to aware UTC.

    Naive values are taken to be UTC already.
    """
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as exc:
            raise MalformedEntityError(f"unparseable played_at timestamp: {value!r}") from exc
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def normalize_artist(artist: SpotifyArtistSimplified) -> ArtistInput:
    """Build an ArtistInput; full artist objects also contribute image, popularity and genres."""
    if not artist.id:
        raise MalformedEntityError(f"artist {artist.name!r} has no Spotify id")
    if not artist.name.strip():
        raise MalformedEntityError(f"artist {artist.id} has an empty name")

    if isinstance(artist, SpotifyArtistFull):
        return ArtistInput(
            spotify_id=artist.id,
            name=artist.name,
            image_url=artist.images[0].url if artist.images else None,
            popularity=artist.popularity,
            genres=tuple(artist.genres),
        )
    return ArtistInput(spotify_id=artist.id, name=artist.name)


def normalize_track(track: SpotifyTrack) -> TrackInput:
    """Build a TrackInput. The first listed artist becomes the owning artist."""
    if not track.id:
        raise MalformedEntityError(f"track {track.name!r} has no Spotify id (local file?)")
    if not track.name.strip():
        raise MalformedEntityError(f"track {track.id} has an empty name")
    if not track.artists:
        raise MalformedEntityError(f"track {track.id} has no artists")
    primary = track.artists[0]
    if not primary.id:
        raise MalformedEntityError(f"track {track.id} primary artist has no Spotify id")

    album = track.album
    return TrackInput(
        spotify_id=track.id,
        name=track.name,
        primary_artist_spotify_id=primary.id,
        album_name=album.name if album else None,
        album_image_url=album.images[0].url if album and album.images else None,
        duration_ms=track.duration_ms,
        popularity=track.popularity,
    )


def normalize_play_item(
    raw: Any,
    artist_details: Mapping[str, SpotifyArtistFull] | None = None,
) -> PlayEventInput:
    """Validate one raw recently-played entry and build a PlayEventInput.

    *artist_details* maps Spotify artist ids to full artist objects fetched
    separately; when the primary artist is present there, its image,
    popularity and genres are used instead of the simplified embed.
    """
    try:
        item = SpotifyPlayHistoryItem.model_validate(raw)
    except ValidationError as exc:
        raise MalformedEntityError(f"invalid play history item ({exc.error_count()} validation errors)") from exc

    track = normalize_track(item.track)
    primary: SpotifyArtistSimplified = item.track.artists[0]
    if artist_details and track.primary_artist_spotify_id in artist_details:
        primary = artist_details[track.primary_artist_spotify_id]

    return PlayEventInput(
        artist=normalize_artist(primary),
        track=track,
        played_at=parse_played_at(item.played_at),
    )


def primary_artist_ids(raw_items: list[Any]) -> list[str]:
    """Collect unique primary-artist ids from raw items, in first-seen order.

    Entries that are too broken to carry an id are ignored here; they are
    reported when the entry itself is normalized.
    """
    seen: dict[str, None] = {}
    for raw in raw_items:
        if not isinstance(raw, dict):
            continue
        track = raw.get("track")
        if not isinstance(track, dict):
            continue
        artists = track.get("artists")
        if not isinstance(artists, list) or not artists or not isinstance(artists[0], dict):
            continue
        artist_id = artists[0].get("id")
        if isinstance(artist_id, str) and artist_id:
            seen.setdefault(artist_id, None)
    return list(seen)
