"""Spotify connect flow: consent URL, callback handling, disconnect and status."""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from stats_shared.db.base import ensure_utc
from stats_shared.db.models.user import SpotifyConnection
from stats_shared.spotify.oauth import SpotifyOAuthClient
from stats_sync.connections import ConnectionStore
from stats_sync.exceptions import ConnectError, InvalidStateError
from stats_sync.state import OAuthStateManager

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ConnectResult:
    """Outcome of a successful OAuth callback."""

    connection: SpotifyConnection
    next_url: str | None


@dataclass(frozen=True, slots=True)
class ConnectionStatus:
    """What a dashboard needs to know about a user's Spotify link."""

    connected: bool
    spotify_account_id: str | None = None
    expires_at: datetime | None = None


class SpotifyConnectService:
    """Links a local user to a Spotify account.

    The route layer authenticates the user and passes their ``user_id``;
    this service handles the OAuth state, the code exchange and persistence.
    """

    def __init__(
        self,
        oauth_client: SpotifyOAuthClient,
        store: ConnectionStore,
        state_manager: OAuthStateManager,
    ) -> None:
        self._oauth_client = oauth_client
        self._store = store
        self._state_manager = state_manager

    def get_authorization_url(self, next_url: str | None = None) -> str:
        """Return the Spotify consent URL with a signed state parameter."""
        return self._oauth_client.authorization_url(self._state_manager.generate(next_url))

    async def complete_authorization(
        self,
        user_id: int,
        code: str,
        state: str,
        session: AsyncSession,
    ) -> ConnectResult:
        """Exchange the callback code, read the Spotify profile, and store the connection.

        Raises:
            InvalidStateError: If the state parameter is invalid or expired.
            ConnectError: If Spotify did not issue a refresh token.
            SpotifyTokenEndpointError: If Spotify rejects the exchange or profile call.
            httpx.HTTPError: On transport failures.
        """
        if not self._state_manager.verify(state):
            raise InvalidStateError("Invalid or expired state parameter")
        if not code:
            raise ConnectError("authorization code is required")

        tokens = await self._oauth_client.exchange_code(code)
        if not tokens.refresh_token:
            raise ConnectError("Spotify did not return a refresh token")
        profile = await self._oauth_client.get_profile(tokens.access_token)

        connection = await self._store.upsert_connection(
            user_id,
            profile.id,
            tokens.access_token,
            tokens.refresh_token,
            tokens.expires_in,
            session,
        )
        logger.info(
            "Connected Spotify account %s to user %d", profile.id, user_id, extra={"user_id": user_id}
        )
        return ConnectResult(connection=connection, next_url=self._state_manager.extract_next_url(state))

    async def disconnect(self, user_id: int, session: AsyncSession) -> None:
        """Deactivate the user's connection; tokens are kept but no longer used."""
        await self._store.deactivate(user_id, session)

    async def get_status(self, user_id: int, session: AsyncSession) -> ConnectionStatus:
        connection = await self._store.get_connection(user_id, session)
        if connection is None:
            return ConnectionStatus(connected=False)
        return ConnectionStatus(
            connected=connection.is_active,
            spotify_account_id=connection.spotify_account_id,
            expires_at=ensure_utc(connection.token_expires_at),
        )
