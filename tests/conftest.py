"""Shared test configuration and fixtures."""

from collections.abc import Awaitable, Callable
from datetime import timedelta

import pytest
from cryptography.fernet import Fernet
from sqlalchemy import BigInteger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.ext.compiler import compiles

from stats_shared.crypto import TokenEncryptor
from stats_shared.db.base import Base, utc_now
from stats_shared.db.models.user import SpotifyConnection, User
from stats_shared.spotify.oauth import SpotifyOAuthClient
from stats_sync.connections import ConnectionStore
from stats_sync.settings import SyncSettings
from stats_sync.tokens import TokenRefresher

_FERNET_KEY = Fernet.generate_key().decode()


# Register a compilation rule so BigInteger renders as INTEGER on SQLite,
# which enables autoincrement on primary key columns during tests.
@compiles(BigInteger, "sqlite")  # type: ignore[misc]
def _compile_big_integer_sqlite(type_: BigInteger, compiler: object, **kw: object) -> str:
    return "INTEGER"


def _make_settings(**overrides: object) -> SyncSettings:
    values: dict[str, object] = {
        "SPOTIFY_CLIENT_ID": "test-client-id",
        "SPOTIFY_CLIENT_SECRET": "test-client-secret",
        "TOKEN_ENCRYPTION_KEY": _FERNET_KEY,
    }
    values.update(overrides)
    return SyncSettings(**values)  # type: ignore[arg-type]


def _play_item(
    index: int,
    *,
    track_id: str | None = None,
    artist_id: str | None = None,
    played_at: str | None = None,
) -> dict[str, object]:
    """A recently-played entry shaped like Spotify's JSON."""
    return {
        "track": {
            "id": track_id or f"track{index}",
            "name": f"Track {index}",
            "duration_ms": 180000 + index,
            "popularity": 50,
            "artists": [{"id": artist_id or f"artist{index}", "name": f"Artist {index}"}],
            "album": {"name": f"Album {index}", "images": [{"url": f"https://img.example/{index}.jpg"}]},
        },
        "played_at": played_at or f"2024-01-15T10:{index:02d}:00Z",
    }


@pytest.fixture
def fernet_key() -> str:
    """The key the ``settings`` and ``encryptor`` fixtures encrypt with."""
    return _FERNET_KEY


@pytest.fixture
def make_settings() -> Callable[..., SyncSettings]:
    """Build test settings with field overrides, e.g. ``make_settings(SYNC_PAGE_SIZE=20)``."""
    return _make_settings


@pytest.fixture
def settings() -> SyncSettings:
    return _make_settings()


@pytest.fixture
def play_item() -> Callable[..., dict[str, object]]:
    return _play_item


@pytest.fixture
def encryptor() -> TokenEncryptor:
    return TokenEncryptor(_FERNET_KEY)


@pytest.fixture
def store(encryptor: TokenEncryptor) -> ConnectionStore:
    return ConnectionStore(encryptor)


@pytest.fixture
def oauth_client() -> SpotifyOAuthClient:
    return SpotifyOAuthClient("test-client-id", "test-client-secret", "http://localhost/callback")


@pytest.fixture
def refresher(settings: SyncSettings, store: ConnectionStore, oauth_client: SpotifyOAuthClient) -> TokenRefresher:
    return TokenRefresher(settings, store, oauth_client)


@pytest.fixture
async def async_engine():  # type: ignore[no-untyped-def]
    engine = create_async_engine("sqlite+aiosqlite://", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def async_session(async_engine):  # type: ignore[no-untyped-def]
    session_factory = async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
def create_user(async_session: AsyncSession) -> Callable[..., Awaitable[User]]:
    """Insert a user into ``async_session``; *subject* must be unique per test."""

    async def _create(subject: str = "google-sub-1") -> User:
        user = User(google_subject_id=subject, email=f"{subject}@example.com", display_name="Test User")
        async_session.add(user)
        await async_session.flush()
        return user

    return _create


@pytest.fixture
def create_connection(
    async_session: AsyncSession, encryptor: TokenEncryptor
) -> Callable[..., Awaitable[SpotifyConnection]]:
    """Insert a Spotify connection row directly, bypassing ConnectionStore."""

    async def _create(
        user: User,
        *,
        access_token: str = "existing-access-token",
        refresh_token: str = "test-refresh-token",
        expires_in: timedelta = timedelta(hours=1),
        is_active: bool = True,
    ) -> SpotifyConnection:
        connection = SpotifyConnection(
            user_id=user.id,
            spotify_account_id="spotify-account",
            access_token=access_token,
            encrypted_refresh_token=encryptor.encrypt(refresh_token),
            token_expires_at=utc_now() + expires_in,
            is_active=is_active,
        )
        async_session.add(connection)
        await async_session.flush()
        return connection

    return _create
