"""Tests for SpotifyOAuthClient and SpotifyConnectService."""

from collections.abc import Awaitable, Callable
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
import respx
from sqlalchemy.ext.asyncio import AsyncSession

from stats_shared.db.models.user import User
from stats_shared.spotify.exceptions import SpotifyTokenEndpointError
from stats_shared.spotify.oauth import SpotifyOAuthClient
from stats_sync.connections import ConnectionStore
from stats_sync.exceptions import ConnectError, InvalidStateError
from stats_sync.oauth import SpotifyConnectService
from stats_sync.state import OAuthStateManager

TOKEN_URL = "https://accounts.spotify.com/api/token"
ME_URL = "https://api.spotify.com/v1/me"
STATE_KEY = "test-state-key"

UserFactory = Callable[..., Awaitable[User]]


def _token_json(refresh_token: str | None = "new-refresh-token") -> dict[str, object]:
    body: dict[str, object] = {"access_token": "new-access-token", "token_type": "Bearer", "expires_in": 3600}
    if refresh_token is not None:
        body["refresh_token"] = refresh_token
    return body


@pytest.fixture
def state_manager() -> OAuthStateManager:
    return OAuthStateManager(key=STATE_KEY, ttl_seconds=300)


@pytest.fixture
def connect_service(
    oauth_client: SpotifyOAuthClient, store: ConnectionStore, state_manager: OAuthStateManager
) -> SpotifyConnectService:
    return SpotifyConnectService(oauth_client, store, state_manager)


class TestSpotifyOAuthClient:
    def test_authorization_url_contents(self, oauth_client: SpotifyOAuthClient) -> None:
        url = oauth_client.authorization_url("abc")
        parsed = urlparse(url)
        params = parse_qs(parsed.query)

        assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == "https://accounts.spotify.com/authorize"
        assert params["client_id"] == ["test-client-id"]
        assert params["response_type"] == ["code"]
        assert params["redirect_uri"] == ["http://localhost/callback"]
        assert params["show_dialog"] == ["true"]
        assert params["state"] == ["abc"]
        assert "user-read-recently-played" in params["scope"][0].split(" ")

    @respx.mock
    async def test_exchange_code_posts_credentials(self, oauth_client: SpotifyOAuthClient) -> None:
        route = respx.post(TOKEN_URL).mock(return_value=httpx.Response(200, json=_token_json()))

        tokens = await oauth_client.exchange_code("auth-code")

        assert tokens.access_token == "new-access-token"
        assert tokens.refresh_token == "new-refresh-token"
        body = parse_qs(route.calls[0].request.content.decode())
        assert body["grant_type"] == ["authorization_code"]
        assert body["code"] == ["auth-code"]
        assert body["client_id"] == ["test-client-id"]
        assert body["client_secret"] == ["test-client-secret"]

    @respx.mock
    async def test_refresh_rejection_raises_token_endpoint_error(self, oauth_client: SpotifyOAuthClient) -> None:
        respx.post(TOKEN_URL).mock(return_value=httpx.Response(400, json={"error": "invalid_grant"}))

        with pytest.raises(SpotifyTokenEndpointError) as exc_info:
            await oauth_client.refresh("revoked")

        assert exc_info.value.status_code == 400
        assert exc_info.value.action == "refresh access token"

    @respx.mock
    async def test_get_profile(self, oauth_client: SpotifyOAuthClient) -> None:
        route = respx.get(ME_URL).mock(
            return_value=httpx.Response(200, json={"id": "spotify-user", "display_name": "Spotify User"})
        )

        profile = await oauth_client.get_profile("access")

        assert profile.id == "spotify-user"
        assert route.calls[0].request.headers["Authorization"] == "Bearer access"


class TestSpotifyConnectService:
    def test_authorization_url_carries_verifiable_state(
        self, connect_service: SpotifyConnectService, state_manager: OAuthStateManager
    ) -> None:
        url = connect_service.get_authorization_url(next_url="/dashboard")
        state = parse_qs(urlparse(url).query)["state"][0]

        assert state_manager.verify(state) is True
        assert state_manager.extract_next_url(state) == "/dashboard"

    @respx.mock
    async def test_complete_authorization_stores_connection(
        self,
        async_session: AsyncSession,
        connect_service: SpotifyConnectService,
        state_manager: OAuthStateManager,
        store: ConnectionStore,
        create_user: UserFactory,
    ) -> None:
        respx.post(TOKEN_URL).mock(return_value=httpx.Response(200, json=_token_json()))
        respx.get(ME_URL).mock(return_value=httpx.Response(200, json={"id": "spotify-user"}))
        user = await create_user()

        result = await connect_service.complete_authorization(
            user.id, "auth-code", state_manager.generate("/stats"), async_session
        )

        assert result.next_url == "/stats"
        assert result.connection.spotify_account_id == "spotify-user"
        assert result.connection.access_token == "new-access-token"
        assert store.get_refresh_token(result.connection) == "new-refresh-token"
        status = await connect_service.get_status(user.id, async_session)
        assert status.connected is True
        assert status.spotify_account_id == "spotify-user"

    @respx.mock
    async def test_reconnect_reactivates_connection(
        self,
        async_session: AsyncSession,
        connect_service: SpotifyConnectService,
        state_manager: OAuthStateManager,
        create_user: UserFactory,
    ) -> None:
        respx.post(TOKEN_URL).mock(return_value=httpx.Response(200, json=_token_json()))
        respx.get(ME_URL).mock(return_value=httpx.Response(200, json={"id": "spotify-user"}))
        user = await create_user()

        await connect_service.complete_authorization(user.id, "code-1", state_manager.generate(), async_session)
        await connect_service.disconnect(user.id, async_session)
        assert (await connect_service.get_status(user.id, async_session)).connected is False

        await connect_service.complete_authorization(user.id, "code-2", state_manager.generate(), async_session)
        assert (await connect_service.get_status(user.id, async_session)).connected is True

    @respx.mock
    async def test_invalid_state_rejected_before_exchange(
        self, async_session: AsyncSession, connect_service: SpotifyConnectService
    ) -> None:
        route = respx.post(TOKEN_URL).mock(return_value=httpx.Response(200, json=_token_json()))

        with pytest.raises(InvalidStateError):
            await connect_service.complete_authorization(1, "auth-code", "0:.forged", async_session)
        assert not route.called

    @respx.mock
    async def test_missing_refresh_token_is_connect_error(
        self,
        async_session: AsyncSession,
        connect_service: SpotifyConnectService,
        state_manager: OAuthStateManager,
        create_user: UserFactory,
    ) -> None:
        respx.post(TOKEN_URL).mock(return_value=httpx.Response(200, json=_token_json(refresh_token=None)))
        user = await create_user()

        with pytest.raises(ConnectError, match="refresh token"):
            await connect_service.complete_authorization(user.id, "auth-code", state_manager.generate(), async_session)

    async def test_status_without_connection(
        self, async_session: AsyncSession, connect_service: SpotifyConnectService
    ) -> None:
        status = await connect_service.get_status(42, async_session)
        assert status.connected is False
        assert status.spotify_account_id is None
