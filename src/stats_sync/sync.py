"""Sync orchestrator: materializes a user's recently-played page into the catalog."""

import enum
import logging
from dataclasses import dataclass, field
from typing import Any

import httpx
from sqlalchemy.exc import DataError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from stats_shared.spotify.client import SpotifyClient
from stats_shared.spotify.exceptions import SpotifyClientError
from stats_shared.spotify.models import SpotifyArtistFull
from stats_sync.catalog import CatalogRepository
from stats_sync.exceptions import MalformedEntityError, NotConnectedError
from stats_sync.normalizers import normalize_play_item, primary_artist_ids
from stats_sync.settings import SyncSettings
from stats_sync.tokens import TokenRefresher

logger = logging.getLogger(__name__)


class EventOutcome(enum.StrEnum):
    """How a fully processed play event landed in the catalog."""

    RECORDED = "recorded"
    DUPLICATE = "duplicate"


class SkipReason(enum.StrEnum):
    """Why a play event was left out of the catalog."""

    MALFORMED = "malformed"
    REJECTED_BY_STORAGE = "rejected_by_storage"


@dataclass(frozen=True, slots=True)
class SkippedEvent:
    """A play event that could not be processed; *index* is its position in the page."""

    index: int
    reason: SkipReason
    detail: str


@dataclass(slots=True)
class SyncResult:
    """Summary of one sync pass.

    ``synced_count`` counts every fully processed event, including ones that
    were already recorded by an earlier, overlapping sync.
    """

    total_fetched: int
    recorded_count: int = 0
    duplicate_count: int = 0
    skipped: list[SkippedEvent] = field(default_factory=list)

    @property
    def synced_count(self) -> int:
        return self.recorded_count + self.duplicate_count

    def add(self, outcome: EventOutcome | SkippedEvent) -> None:
        if isinstance(outcome, SkippedEvent):
            self.skipped.append(outcome)
        elif outcome is EventOutcome.RECORDED:
            self.recorded_count += 1
        else:
            self.duplicate_count += 1


class SyncService:
    """Pulls one page of recent plays for a user and upserts it.

    Each event is processed inside its own savepoint, so a bad event only
    rolls back its own partial writes; events already handled in the same
    pass stay put.
    """

    def __init__(
        self,
        settings: SyncSettings,
        token_refresher: TokenRefresher,
        catalog: CatalogRepository | None = None,
    ) -> None:
        self._settings = settings
        self._token_refresher = token_refresher
        self._catalog = catalog or CatalogRepository()

    async def refresh_access_token(self, user_id: int, session: AsyncSession) -> str | None:
        """Return a usable access token for *user_id*, refreshing an expired one.

        A caller that owns the transaction can commit this step on its own
        before the sync pass, so a rotated refresh token or a deactivation is
        kept even when the pass later fails.
        """
        return await self._token_refresher.get_valid_access_token(user_id, session)

    async def sync_recent_activity(self, user_id: int, session: AsyncSession) -> SyncResult:
        """Fetch the most recent plays and materialize them.

        Raises:
            NotConnectedError: If the user has no usable Spotify connection.
            SpotifyClientError: If Spotify rejects the recently-played request.
            httpx.HTTPError: If the recently-played request cannot be completed.
        """
        access_token = await self.refresh_access_token(user_id, session)
        if access_token is None:
            raise NotConnectedError(user_id)

        client = SpotifyClient(
            access_token=access_token,
            request_timeout=self._settings.SPOTIFY_REQUEST_TIMEOUT,
        )
        response = await client.get_recently_played(limit=self._settings.SYNC_PAGE_SIZE)
        raw_items = response.items
        logger.info(
            "Fetched %d recently-played items for user %d", len(raw_items), user_id, extra={"user_id": user_id}
        )

        artist_details: dict[str, SpotifyArtistFull] = {}
        if self._settings.SYNC_ENRICH_ARTISTS and raw_items:
            artist_details = await self._fetch_artist_details(client, raw_items, user_id)

        result = SyncResult(total_fetched=len(raw_items))
        for index, raw in enumerate(raw_items):
            result.add(await self._process_item(index, raw, user_id, artist_details, session))

        logger.info(
            "Sync complete for user %d: %d/%d synced (%d new, %d already recorded, %d skipped)",
            user_id,
            result.synced_count,
            result.total_fetched,
            result.recorded_count,
            result.duplicate_count,
            len(result.skipped),
            extra={"user_id": user_id},
        )
        return result

    async def _process_item(
        self,
        index: int,
        raw: Any,
        user_id: int,
        artist_details: dict[str, SpotifyArtistFull],
        session: AsyncSession,
    ) -> EventOutcome | SkippedEvent:
        """Upsert artist, then song, then record the event; report the outcome."""
        try:
            play = normalize_play_item(raw, artist_details)
            async with session.begin_nested():
                artist = await self._catalog.upsert_artist(play.artist, session)
                song = await self._catalog.upsert_song(play.track, artist.id, session)
                event = await self._catalog.record_listening_event(
                    user_id,
                    song.id,
                    play.played_at,
                    play.duration_seconds,
                    session=session,
                )
        except MalformedEntityError as exc:
            logger.warning(
                "Skipping malformed play event %d for user %d: %s",
                index,
                user_id,
                exc.detail,
                extra={"user_id": user_id},
            )
            return SkippedEvent(index=index, reason=SkipReason.MALFORMED, detail=exc.detail)
        except (IntegrityError, DataError) as exc:
            detail = str(exc.orig or exc)[:500]
            logger.warning(
                "Storage rejected play event %d for user %d: %s",
                index,
                user_id,
                detail,
                extra={"user_id": user_id},
            )
            return SkippedEvent(index=index, reason=SkipReason.REJECTED_BY_STORAGE, detail=detail)

        return EventOutcome.RECORDED if event is not None else EventOutcome.DUPLICATE

    @staticmethod
    async def _fetch_artist_details(
        client: SpotifyClient,
        raw_items: list[Any],
        user_id: int,
    ) -> dict[str, SpotifyArtistFull]:
        """Batch-fetch full artist objects for the page's primary artists.

        Enrichment is best effort: on failure the simplified artists embedded
        in each track are used.
        """
        artist_ids = primary_artist_ids(raw_items)
        if not artist_ids:
            return {}
        try:
            response = await client.get_artists(artist_ids)
        except (SpotifyClientError, httpx.HTTPError, ValueError) as exc:
            logger.warning(
                "Artist enrichment failed for user %d, using simplified artists: %s",
                user_id,
                exc,
                extra={"user_id": user_id},
            )
            return {}
        return {artist.id: artist for artist in response.artists if artist is not None and artist.id}
