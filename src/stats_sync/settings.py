"""Sync service configuration loaded from environment variables."""

import functools

from pydantic_settings import BaseSettings

DEFAULT_SPOTIFY_REDIRECT_URI = "http://localhost:3000/auth/spotify/callback"


class SyncSettings(BaseSettings):
    """Sync service configuration."""

    # Spotify credentials
    SPOTIFY_CLIENT_ID: str = ""
    SPOTIFY_CLIENT_SECRET: str = ""
    SPOTIFY_REDIRECT_URI: str = DEFAULT_SPOTIFY_REDIRECT_URI
    SPOTIFY_REQUEST_TIMEOUT: float = 30.0

    # Encryption (comma-separated previous keys stay readable after rotation)
    TOKEN_ENCRYPTION_KEY: str = ""
    TOKEN_ENCRYPTION_PREVIOUS_KEYS: str = ""

    # Tokens are reused until expiry minus this buffer
    TOKEN_EXPIRY_BUFFER_SECONDS: int = 0
    OAUTH_STATE_TTL_SECONDS: int = 300

    # Sync
    SYNC_PAGE_SIZE: int = 50
    SYNC_ENRICH_ARTISTS: bool = True

    # Logging
    LOG_LEVEL: str = "INFO"

    model_config = {"env_prefix": ""}

    @property
    def previous_encryption_keys(self) -> list[str]:
        return [key.strip() for key in self.TOKEN_ENCRYPTION_PREVIOUS_KEYS.split(",") if key.strip()]

    def require_spotify_credentials(self) -> None:
        """Raise ``ValueError`` naming every missing Spotify/encryption variable."""
        missing = [
            name
            for name in ("SPOTIFY_CLIENT_ID", "SPOTIFY_CLIENT_SECRET", "TOKEN_ENCRYPTION_KEY")
            if not getattr(self, name)
        ]
        if missing:
            raise ValueError(f"Spotify configuration errors: {', '.join(f'{name} is required' for name in missing)}")


@functools.lru_cache(maxsize=1)
def get_settings() -> SyncSettings:
    """Return cached settings singleton."""
    return SyncSettings()
