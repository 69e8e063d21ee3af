"""Pydantic models for Spotify Web API and accounts-service responses.

These are pure data models matching Spotify's JSON structure.
No DB or auth dependencies.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------


class SpotifyImage(BaseModel):
    """Image object returned by Spotify (album art, artist photos, avatars)."""

    url: str
    height: int | None = None
    width: int | None = None


# ---------------------------------------------------------------------------
# Artists
# ---------------------------------------------------------------------------


class SpotifyArtistSimplified(BaseModel):
    """Simplified artist object (embedded in tracks, albums)."""

    id: str | None = None
    name: str
    uri: str | None = None


class SpotifyArtistFull(SpotifyArtistSimplified):
    """Full artist object (from /artists endpoint or top artists)."""

    genres: list[str] = Field(default_factory=list)
    popularity: int | None = None
    images: list[SpotifyImage] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Albums and tracks
# ---------------------------------------------------------------------------


class SpotifyAlbumSimplified(BaseModel):
    """Simplified album object (embedded in tracks)."""

    id: str | None = None
    name: str | None = None
    images: list[SpotifyImage] = Field(default_factory=list)


class SpotifyTrack(BaseModel):
    """Full track object from Spotify."""

    id: str | None = None
    name: str
    uri: str | None = None
    duration_ms: int | None = None
    popularity: int | None = None
    is_local: bool = False
    artists: list[SpotifyArtistSimplified] = Field(default_factory=list)
    album: SpotifyAlbumSimplified | None = None


# ---------------------------------------------------------------------------
# Play history
# ---------------------------------------------------------------------------


class SpotifyContext(BaseModel):
    """Playback context (playlist, album, artist, etc.)."""

    type: str | None = None
    uri: str | None = None


class SpotifyPlayHistoryItem(BaseModel):
    """Single item from /me/player/recently-played."""

    track: SpotifyTrack
    played_at: datetime
    context: SpotifyContext | None = None


class SpotifyCursors(BaseModel):
    """Cursors for cursor-based paging."""

    after: str | None = None
    before: str | None = None


class RecentlyPlayedResponse(BaseModel):
    """Response from GET /me/player/recently-played.

    ``items`` are kept as raw JSON so a single malformed entry cannot fail
    the whole page; each one is validated on its own by the caller.
    """

    items: list[Any] = Field(default_factory=list)
    next: str | None = None
    cursors: SpotifyCursors | None = None
    limit: int | None = None


# ---------------------------------------------------------------------------
# Batch and top items
# ---------------------------------------------------------------------------


class BatchArtistsResponse(BaseModel):
    """Response from GET /artists?ids=..."""

    artists: list[SpotifyArtistFull | None] = Field(default_factory=list)


class TopArtistsResponse(BaseModel):
    """Response from GET /me/top/artists."""

    items: list[SpotifyArtistFull] = Field(default_factory=list)
    total: int | None = None
    limit: int | None = None
    offset: int | None = None
    next: str | None = None


class TopTracksResponse(BaseModel):
    """Response from GET /me/top/tracks."""

    items: list[SpotifyTrack] = Field(default_factory=list)
    total: int | None = None
    limit: int | None = None
    offset: int | None = None
    next: str | None = None


# ---------------------------------------------------------------------------
# Accounts service
# ---------------------------------------------------------------------------


class SpotifyTokenResponse(BaseModel):
    """Response from Spotify's /api/token endpoint.

    ``refresh_token`` is absent on most refresh responses; Spotify only
    rotates it occasionally.
    """

    access_token: str
    token_type: str = "Bearer"
    expires_in: int
    refresh_token: str | None = None
    scope: str | None = None


class SpotifyProfile(BaseModel):
    """User profile from Spotify's /v1/me endpoint."""

    id: str
    display_name: str | None = None
    email: str | None = None
    country: str | None = None
    product: str | None = None
    images: list[SpotifyImage] = Field(default_factory=list)
