"""Spotify API clients and models."""

from stats_shared.spotify.client import SpotifyClient
from stats_shared.spotify.exceptions import (
    SpotifyAuthError,
    SpotifyClientError,
    SpotifyRateLimitError,
    SpotifyRequestError,
    SpotifyServerError,
    SpotifyTokenEndpointError,
)
from stats_shared.spotify.oauth import SpotifyOAuthClient

__all__ = [
    "SpotifyClient",
    "SpotifyOAuthClient",
    "SpotifyAuthError",
    "SpotifyClientError",
    "SpotifyRateLimitError",
    "SpotifyRequestError",
    "SpotifyServerError",
    "SpotifyTokenEndpointError",
]
