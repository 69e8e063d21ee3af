"""Tests for TokenRefresher."""

from collections.abc import Awaitable, Callable
from datetime import timedelta

import httpx
import respx
from sqlalchemy.ext.asyncio import AsyncSession

from stats_shared.db.base import ensure_utc, utc_now
from stats_shared.db.models.user import SpotifyConnection, User
from stats_shared.spotify.oauth import SpotifyOAuthClient
from stats_sync.connections import ConnectionStore
from stats_sync.settings import SyncSettings
from stats_sync.tokens import TokenRefresher

TOKEN_URL = "https://accounts.spotify.com/api/token"

UserFactory = Callable[..., Awaitable[User]]
ConnectionFactory = Callable[..., Awaitable[SpotifyConnection]]
SettingsFactory = Callable[..., SyncSettings]


async def test_no_connection_returns_none(async_session: AsyncSession, refresher: TokenRefresher) -> None:
    assert await refresher.get_valid_access_token(999, async_session) is None


@respx.mock
async def test_inactive_connection_returns_none_without_network(
    async_session: AsyncSession,
    refresher: TokenRefresher,
    create_user: UserFactory,
    create_connection: ConnectionFactory,
) -> None:
    """An inactive connection is 'not connected' even if its token looks valid."""
    route = respx.post(TOKEN_URL).mock(return_value=httpx.Response(500))
    user = await create_user()
    await create_connection(user, expires_in=timedelta(minutes=-5), is_active=False)

    assert await refresher.get_valid_access_token(user.id, async_session) is None
    assert not route.called


@respx.mock
async def test_valid_token_returned_without_network(
    async_session: AsyncSession,
    refresher: TokenRefresher,
    create_user: UserFactory,
    create_connection: ConnectionFactory,
) -> None:
    route = respx.post(TOKEN_URL).mock(return_value=httpx.Response(500))
    user = await create_user()
    await create_connection(user, access_token="valid-token", expires_in=timedelta(hours=1))

    assert await refresher.get_valid_access_token(user.id, async_session) == "valid-token"
    assert not route.called


@respx.mock
async def test_expired_token_is_refreshed_and_persisted(
    async_session: AsyncSession,
    refresher: TokenRefresher,
    store: ConnectionStore,
    create_user: UserFactory,
    create_connection: ConnectionFactory,
) -> None:
    route = respx.post(TOKEN_URL).mock(
        return_value=httpx.Response(
            200,
            json={
                "access_token": "new-access-token",
                "token_type": "Bearer",
                "expires_in": 3600,
                "refresh_token": "rotated-refresh-token",
            },
        )
    )
    user = await create_user()
    old = await create_connection(user, access_token="expired-token", expires_in=timedelta(minutes=-5))
    old_expiry = ensure_utc(old.token_expires_at)

    result = await refresher.get_valid_access_token(user.id, async_session)

    assert result == "new-access-token"
    assert route.call_count == 1
    assert b"grant_type=refresh_token" in route.calls[0].request.content
    connection = await store.get_connection(user.id, async_session)
    assert connection is not None
    assert connection.access_token == "new-access-token"
    assert connection.is_active is True
    assert ensure_utc(connection.token_expires_at) > utc_now() + timedelta(minutes=55)
    assert ensure_utc(connection.token_expires_at) > old_expiry
    assert store.get_refresh_token(connection) == "rotated-refresh-token"


@respx.mock
async def test_refresh_without_rotation_keeps_old_refresh_token(
    async_session: AsyncSession,
    refresher: TokenRefresher,
    store: ConnectionStore,
    create_user: UserFactory,
    create_connection: ConnectionFactory,
) -> None:
    respx.post(TOKEN_URL).mock(
        return_value=httpx.Response(200, json={"access_token": "new-access-token", "expires_in": 3600})
    )
    user = await create_user()
    await create_connection(user, refresh_token="stored-refresh", expires_in=timedelta(seconds=-1))

    assert await refresher.get_valid_access_token(user.id, async_session) == "new-access-token"
    connection = await store.get_connection(user.id, async_session)
    assert connection is not None
    assert store.get_refresh_token(connection) == "stored-refresh"


@respx.mock
async def test_rejected_refresh_deactivates_connection(
    async_session: AsyncSession,
    refresher: TokenRefresher,
    store: ConnectionStore,
    create_user: UserFactory,
    create_connection: ConnectionFactory,
) -> None:
    route = respx.post(TOKEN_URL).mock(return_value=httpx.Response(400, json={"error": "invalid_grant"}))
    user = await create_user()
    await create_connection(user, expires_in=timedelta(minutes=-5))

    assert await refresher.get_valid_access_token(user.id, async_session) is None
    connection = await store.get_connection(user.id, async_session)
    assert connection is not None
    assert connection.is_active is False

    # Later calls return None without contacting Spotify again.
    assert await refresher.get_valid_access_token(user.id, async_session) is None
    assert route.call_count == 1


@respx.mock
async def test_refresh_timeout_deactivates_connection(
    async_session: AsyncSession,
    refresher: TokenRefresher,
    store: ConnectionStore,
    create_user: UserFactory,
    create_connection: ConnectionFactory,
) -> None:
    respx.post(TOKEN_URL).mock(side_effect=httpx.ReadTimeout("timed out"))
    user = await create_user()
    await create_connection(user, expires_in=timedelta(minutes=-5))

    assert await refresher.get_valid_access_token(user.id, async_session) is None
    connection = await store.get_connection(user.id, async_session)
    assert connection is not None
    assert connection.is_active is False


@respx.mock
async def test_unparseable_refresh_body_deactivates_connection(
    async_session: AsyncSession,
    refresher: TokenRefresher,
    store: ConnectionStore,
    create_user: UserFactory,
    create_connection: ConnectionFactory,
) -> None:
    respx.post(TOKEN_URL).mock(return_value=httpx.Response(200, text="not json"))
    user = await create_user()
    await create_connection(user, expires_in=timedelta(minutes=-5))

    assert await refresher.get_valid_access_token(user.id, async_session) is None
    connection = await store.get_connection(user.id, async_session)
    assert connection is not None
    assert connection.is_active is False


@respx.mock
async def test_expiry_buffer_refreshes_early(
    async_session: AsyncSession,
    store: ConnectionStore,
    oauth_client: SpotifyOAuthClient,
    create_user: UserFactory,
    create_connection: ConnectionFactory,
    make_settings: SettingsFactory,
) -> None:
    respx.post(TOKEN_URL).mock(
        return_value=httpx.Response(200, json={"access_token": "early-token", "expires_in": 3600})
    )
    refresher = TokenRefresher(make_settings(TOKEN_EXPIRY_BUFFER_SECONDS=300), store, oauth_client)
    user = await create_user()
    await create_connection(user, access_token="almost-expired", expires_in=timedelta(minutes=2))

    assert await refresher.get_valid_access_token(user.id, async_session) == "early-token"


@respx.mock
async def test_freshly_stored_token_returned_without_refresh(
    async_session: AsyncSession, refresher: TokenRefresher, store: ConnectionStore, create_user: UserFactory
) -> None:
    route = respx.post(TOKEN_URL).mock(return_value=httpx.Response(500))
    user = await create_user()
    await store.upsert_connection(user.id, "spotify-1", "just-stored", "refresh-1", 3600, async_session)

    assert await refresher.get_valid_access_token(user.id, async_session) == "just-stored"
    assert not route.called
