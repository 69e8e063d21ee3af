"""Client for Spotify's accounts service: authorize URL, code exchange, refresh, profile."""

import logging
from urllib.parse import urlencode

import httpx

from stats_shared.spotify.constants import (
    DEFAULT_REQUEST_TIMEOUT,
    ME_URL,
    SPOTIFY_AUTHORIZE_URL,
    SPOTIFY_SCOPES,
    SPOTIFY_TOKEN_URL,
)
from stats_shared.spotify.exceptions import SpotifyTokenEndpointError
from stats_shared.spotify.models import SpotifyProfile, SpotifyTokenResponse

logger = logging.getLogger(__name__)


class SpotifyOAuthClient:
    """Talks to the Spotify accounts service on behalf of one registered app.

    Non-2xx responses raise :class:`SpotifyTokenEndpointError`. Transport
    failures (connection errors, timeouts) propagate as :class:`httpx.HTTPError`.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        *,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._redirect_uri = redirect_uri
        self._request_timeout = request_timeout

    def authorization_url(self, state: str | None = None) -> str:
        """Build the Spotify consent-screen URL.

        ``show_dialog`` forces the consent screen so a user can pick a
        different Spotify account when reconnecting.
        """
        params = {
            "client_id": self._client_id,
            "response_type": "code",
            "redirect_uri": self._redirect_uri,
            "scope": " ".join(SPOTIFY_SCOPES),
            "show_dialog": "true",
        }
        if state:
            params["state"] = state
        return f"{SPOTIFY_AUTHORIZE_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> SpotifyTokenResponse:
        """Exchange an authorization code for access and refresh tokens."""
        return await self._token_request(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self._redirect_uri,
            },
            action="exchange authorization code",
        )

    async def refresh(self, refresh_token: str) -> SpotifyTokenResponse:
        """Trade a refresh token for a new access token (and maybe a new refresh token)."""
        return await self._token_request(
            {
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
            },
            action="refresh access token",
        )

    async def get_profile(self, access_token: str) -> SpotifyProfile:
        """GET /me for the account that owns *access_token*."""
        async with httpx.AsyncClient(timeout=self._request_timeout) as client:
            response = await client.get(ME_URL, headers={"Authorization": f"Bearer {access_token}"})
        self._check_response(response, "fetch user profile")
        return SpotifyProfile.model_validate(response.json())

    async def _token_request(self, data: dict[str, str], *, action: str) -> SpotifyTokenResponse:
        async with httpx.AsyncClient(timeout=self._request_timeout) as client:
            response = await client.post(
                SPOTIFY_TOKEN_URL,
                data={**data, "client_id": self._client_id, "client_secret": self._client_secret},
            )
        self._check_response(response, action)
        return SpotifyTokenResponse.model_validate(response.json())

    @staticmethod
    def _check_response(response: httpx.Response, action: str) -> None:
        """Raise SpotifyTokenEndpointError with a descriptive message if the response is not OK."""
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if status == 429:
                detail = f"Rate limited by Spotify while trying to {action}."
            elif status >= 500:
                detail = f"Spotify server error while trying to {action}."
            elif status == 401:
                detail = f"Spotify authentication failed while trying to {action}. Check client credentials."
            elif status == 400:
                detail = f"Spotify rejected the request to {action}. The code or refresh token may be invalid."
            else:
                detail = f"Spotify returned HTTP {status} while trying to {action}."
            logger.debug("Spotify accounts error body for %s: %s", action, exc.response.text[:200])
            raise SpotifyTokenEndpointError(action=action, status_code=status, detail=detail) from exc
