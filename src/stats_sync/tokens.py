"""Token refresher: hands out a usable Spotify access token or None."""

import logging
from datetime import timedelta

import httpx
from cryptography.fernet import InvalidToken
from sqlalchemy.ext.asyncio import AsyncSession

from stats_shared.db.base import ensure_utc, utc_now
from stats_shared.spotify.exceptions import SpotifyTokenEndpointError
from stats_shared.spotify.oauth import SpotifyOAuthClient
from stats_sync.connections import ConnectionStore
from stats_sync.settings import SyncSettings

logger = logging.getLogger(__name__)


class TokenRefresher:
    """Manages the Spotify access-token lifecycle for one user at a time.

    A stored token is reused while it has not expired. Once expired, the
    refresh token is exchanged exactly once; if Spotify (or the network)
    refuses, the connection is deactivated and every later call returns
    None cheaply until the user reconnects.
    """

    def __init__(
        self,
        settings: SyncSettings,
        store: ConnectionStore,
        oauth_client: SpotifyOAuthClient,
    ) -> None:
        self._settings = settings
        self._store = store
        self._oauth_client = oauth_client

    async def get_valid_access_token(self, user_id: int, session: AsyncSession) -> str | None:
        """Return a valid access token, refreshing if needed, or None if not connected.

        Refresh failures are not raised; None is the whole failure signal.
        Storage errors still propagate.
        """
        connection = await self._store.get_connection(user_id, session)
        if connection is None or not connection.is_active:
            return None

        buffer = timedelta(seconds=self._settings.TOKEN_EXPIRY_BUFFER_SECONDS)
        if ensure_utc(connection.token_expires_at) > utc_now() + buffer:
            return connection.access_token

        logger.info("Access token expired for user %d, refreshing", user_id, extra={"user_id": user_id})
        try:
            current_refresh_token = self._store.get_refresh_token(connection)
            token_data = await self._oauth_client.refresh(current_refresh_token)
        except (SpotifyTokenEndpointError, httpx.HTTPError, InvalidToken, ValueError) as exc:
            logger.warning(
                "Token refresh failed for user %d (%s); connection deactivated",
                user_id,
                _describe(exc),
                extra={"user_id": user_id},
            )
            await self._store.deactivate(user_id, session)
            return None

        await self._store.upsert_connection(
            user_id,
            connection.spotify_account_id,
            token_data.access_token,
            token_data.refresh_token or current_refresh_token,
            token_data.expires_in,
            session,
        )
        return token_data.access_token


def _describe(exc: Exception) -> str:
    if isinstance(exc, InvalidToken):
        return "stored refresh token cannot be decrypted with the configured keys"
    return str(exc) or type(exc).__name__
