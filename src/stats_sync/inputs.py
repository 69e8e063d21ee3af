"""Validated, provider-agnostic inputs for the catalog upsert engine.

Produced by :mod:`stats_sync.normalizers` at the Spotify boundary; the
catalog code trusts every required field to be present.
"""

from datetime import datetime

from pydantic import BaseModel


class ArtistInput(BaseModel):
    """An artist sighting. ``genres`` keeps Spotify's order."""

    model_config = {"frozen": True}

    spotify_id: str
    name: str
    image_url: str | None = None
    popularity: int | None = None
    genres: tuple[str, ...] = ()


class TrackInput(BaseModel):
    """A track sighting. ``duration_ms`` is the track length in milliseconds."""

    model_config = {"frozen": True}

    spotify_id: str
    name: str
    primary_artist_spotify_id: str
    album_name: str | None = None
    album_image_url: str | None = None
    duration_ms: int | None = None
    popularity: int | None = None


class PlayEventInput(BaseModel):
    """One recently-played entry with its track and primary artist.

    ``duration_seconds`` is how long the user actually listened, when known.
    """

    model_config = {"frozen": True}

    artist: ArtistInput
    track: TrackInput
    played_at: datetime  # timezone-aware UTC
    duration_seconds: int | None = None
