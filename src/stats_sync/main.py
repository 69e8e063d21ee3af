"""Command-line entry point: run one sync pass for a user.

Usage::

    python -m stats_sync.main sync --user-id 42
"""

import argparse
import asyncio
import logging
import sys

from stats_shared.crypto import TokenEncryptor
from stats_shared.db import DatabaseManager
from stats_shared.logging import configure_logging
from stats_shared.spotify.oauth import SpotifyOAuthClient
from stats_sync.connections import ConnectionStore
from stats_sync.exceptions import NotConnectedError
from stats_sync.settings import SyncSettings, get_settings
from stats_sync.sync import SyncResult, SyncService
from stats_sync.tokens import TokenRefresher

logger = logging.getLogger(__name__)


def build_sync_service(settings: SyncSettings) -> SyncService:
    """Wire the credential store, token refresher and sync orchestrator together."""
    settings.require_spotify_credentials()
    encryptor = TokenEncryptor(settings.TOKEN_ENCRYPTION_KEY, settings.previous_encryption_keys)
    oauth_client = SpotifyOAuthClient(
        settings.SPOTIFY_CLIENT_ID,
        settings.SPOTIFY_CLIENT_SECRET,
        settings.SPOTIFY_REDIRECT_URI,
        request_timeout=settings.SPOTIFY_REQUEST_TIMEOUT,
    )
    token_refresher = TokenRefresher(settings, ConnectionStore(encryptor), oauth_client)
    return SyncService(settings, token_refresher)


async def run_sync(service: SyncService, user_id: int, db_manager: DatabaseManager) -> SyncResult:
    """Run one sync for *user_id*, then release the engine.

    Token state commits in its own transaction before the sync pass starts: a
    refreshed token, or a deactivation after a refused refresh, is kept even
    when the pass fails and its transaction rolls back.
    """
    try:
        await db_manager.ensure_schema()
        async with db_manager.session() as session:
            access_token = await service.refresh_access_token(user_id, session)
        if access_token is None:
            raise NotConnectedError(user_id)

        async with db_manager.session() as session:
            return await service.sync_recent_activity(user_id, session)
    finally:
        await db_manager.dispose()


def format_summary(user_id: int, result: SyncResult) -> str:
    lines = [
        f"user {user_id}: synced {result.synced_count}/{result.total_fetched} "
        f"({result.recorded_count} new, {result.duplicate_count} already recorded, {len(result.skipped)} skipped)"
    ]
    lines.extend(f"  skipped #{skip.index} [{skip.reason}]: {skip.detail}" for skip in result.skipped)
    return "\n".join(lines)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="stats_sync", description="Spotify listening-history sync")
    commands = parser.add_subparsers(dest="command", required=True)
    sync_parser = commands.add_parser("sync", help="Fetch recent plays for one user and store them")
    sync_parser.add_argument("--user-id", type=int, required=True, help="Local user id")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(level=settings.LOG_LEVEL.upper())

    try:
        service = build_sync_service(settings)
    except ValueError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 2

    try:
        result = asyncio.run(run_sync(service, args.user_id, DatabaseManager.from_env()))
    except NotConnectedError as exc:
        logger.error("%s", exc, extra={"user_id": exc.user_id})
        print(f"user {exc.user_id} is not connected to Spotify; reconnect and retry", file=sys.stderr)
        return 1

    print(format_summary(args.user_id, result))
    return 0


if __name__ == "__main__":
    sys.exit(main())
