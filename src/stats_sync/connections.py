"""Credential store: the single Spotify connection row of each user."""

import logging
from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from stats_shared.crypto import TokenEncryptor
from stats_shared.db.base import utc_now
from stats_shared.db.models.user import SpotifyConnection

logger = logging.getLogger(__name__)


class ConnectionStore:
    """Reads and writes ``spotify_connections``, one row per user id.

    Refresh tokens are stored Fernet-encrypted; access tokens are short-lived
    and kept in plain text so a valid one can be returned without decryption.
    Storage errors propagate to the caller.
    """

    def __init__(self, encryptor: TokenEncryptor) -> None:
        self._encryptor = encryptor

    async def upsert_connection(
        self,
        user_id: int,
        spotify_account_id: str,
        access_token: str,
        refresh_token: str,
        expires_in_seconds: int,
        session: AsyncSession,
    ) -> SpotifyConnection:
        """Write or replace the user's connection and mark it active.

        Expiry is computed as now + *expires_in_seconds*. A fresh OAuth
        callback always reactivates a connection that was deactivated earlier.
        """
        now = utc_now()
        values = {
            "spotify_account_id": spotify_account_id,
            "access_token": access_token,
            "encrypted_refresh_token": self._encryptor.encrypt(refresh_token),
            "token_expires_at": now + timedelta(seconds=expires_in_seconds),
            "is_active": True,
            "updated_at": now,
        }

        try:
            async with session.begin_nested():
                connection = await self.get_connection(user_id, session)
                if connection is None:
                    connection = SpotifyConnection(user_id=user_id, **values)
                    session.add(connection)
                else:
                    _apply(connection, values)
                await session.flush()
        except IntegrityError:
            # A concurrent writer inserted the row first; overwrite it (last write wins).
            connection = await self.get_connection(user_id, session)
            if connection is None:
                raise
            _apply(connection, values)
            await session.flush()

        logger.debug("Stored Spotify connection for user %d", user_id, extra={"user_id": user_id})
        return connection

    async def get_connection(self, user_id: int, session: AsyncSession) -> SpotifyConnection | None:
        """Return the user's connection, or None if they never connected."""
        result = await session.execute(select(SpotifyConnection).where(SpotifyConnection.user_id == user_id))
        return result.scalar_one_or_none()

    def get_refresh_token(self, connection: SpotifyConnection) -> str:
        """Decrypt the stored refresh token."""
        return self._encryptor.decrypt(connection.encrypted_refresh_token)

    async def deactivate(self, user_id: int, session: AsyncSession) -> None:
        """Mark the user's connection inactive. No connection is a no-op."""
        connection = await self.get_connection(user_id, session)
        if connection is None:
            return
        connection.is_active = False
        connection.updated_at = utc_now()
        await session.flush()
        logger.info("Deactivated Spotify connection for user %d", user_id, extra={"user_id": user_id})


def _apply(connection: SpotifyConnection, values: dict[str, object]) -> None:
    for field, value in values.items():
        setattr(connection, field, value)
