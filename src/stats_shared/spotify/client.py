"""Read-only Spotify Web API client used by sync and stats."""

import asyncio
import logging
from typing import Any

import httpx

from stats_shared.spotify.constants import (
    ARTISTS_URL,
    DEFAULT_CONCURRENCY_LIMIT,
    DEFAULT_MAX_RETRIES,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_RETRY_BASE_DELAY,
    MAX_ARTISTS_PER_REQUEST,
    MAX_RECENTLY_PLAYED_LIMIT,
    MAX_TOP_ITEMS_LIMIT,
    RECENTLY_PLAYED_URL,
    TIME_RANGES,
    TOP_ARTISTS_URL,
    TOP_TRACKS_URL,
)
from stats_shared.spotify.exceptions import (
    SpotifyAuthError,
    SpotifyClientError,
    SpotifyRateLimitError,
    SpotifyRequestError,
    SpotifyServerError,
)
from stats_shared.spotify.models import (
    BatchArtistsResponse,
    RecentlyPlayedResponse,
    TopArtistsResponse,
    TopTracksResponse,
)

logger = logging.getLogger(__name__)


class SpotifyClient:
    """Async client for the handful of Web API reads this project needs.

    One instance per access token. Rate limits (429) and server errors (5xx)
    are retried with exponential backoff, honouring ``Retry-After``; a 401 is
    raised at once because obtaining a fresh token is the token refresher's
    job. Transport failures (connection errors, timeouts) surface as
    :class:`httpx.HTTPError`.
    """

    def __init__(
        self,
        access_token: str,
        *,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_base_delay: float = DEFAULT_RETRY_BASE_DELAY,
        concurrency_limit: int = DEFAULT_CONCURRENCY_LIMIT,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ) -> None:
        self._headers = {"Authorization": f"Bearer {access_token}"}
        self._max_retries = max_retries
        self._retry_base_delay = retry_base_delay
        self._semaphore = asyncio.Semaphore(concurrency_limit)
        self._request_timeout = request_timeout

    async def get_recently_played(self, *, limit: int = MAX_RECENTLY_PLAYED_LIMIT) -> RecentlyPlayedResponse:
        """GET /me/player/recently-played, newest first. *limit* is clamped to 1..50."""
        body = await self._get(RECENTLY_PLAYED_URL, {"limit": _clamp(limit, MAX_RECENTLY_PLAYED_LIMIT)})
        return RecentlyPlayedResponse.model_validate(body)

    async def get_artists(self, artist_ids: list[str]) -> BatchArtistsResponse:
        """GET /artists?ids=... for up to 50 ids; extra ids are ignored."""
        if not artist_ids:
            return BatchArtistsResponse()
        body = await self._get(ARTISTS_URL, {"ids": ",".join(artist_ids[:MAX_ARTISTS_PER_REQUEST])})
        return BatchArtistsResponse.model_validate(body)

    async def get_top_artists(
        self,
        *,
        time_range: str = "short_term",
        limit: int = 20,
        offset: int = 0,
    ) -> TopArtistsResponse:
        body = await self._get(TOP_ARTISTS_URL, _top_params(time_range, limit, offset))
        return TopArtistsResponse.model_validate(body)

    async def get_top_tracks(
        self,
        *,
        time_range: str = "short_term",
        limit: int = 20,
        offset: int = 0,
    ) -> TopTracksResponse:
        body = await self._get(TOP_TRACKS_URL, _top_params(time_range, limit, offset))
        return TopTracksResponse.model_validate(body)

    async def _get(self, url: str, params: dict[str, str | int]) -> Any:
        """GET *url* and return the decoded JSON body, retrying 429 and 5xx."""
        attempt = 0
        while True:
            async with self._semaphore, httpx.AsyncClient(timeout=self._request_timeout) as client:
                response = await client.get(url, params=params, headers=self._headers)
            if response.is_success:
                return response.json()

            delay = self._retry_delay(response, attempt)
            if attempt >= self._max_retries:
                raise _retries_exhausted(response, delay)
            logger.warning(
                "Spotify returned %d, sleeping %.1fs (attempt %d/%d)",
                response.status_code,
                delay,
                attempt + 1,
                self._max_retries,
            )
            await asyncio.sleep(delay)
            attempt += 1

    def _retry_delay(self, response: httpx.Response, attempt: int) -> float:
        """Seconds to wait before retrying *response*; raises if it must not be retried."""
        status = response.status_code
        backoff = self._retry_base_delay * (2**attempt)
        if status == 401:
            raise SpotifyAuthError("Spotify returned 401 Unauthorized")
        if status == 429:
            retry_after = response.headers.get("Retry-After")
            if retry_after:
                try:
                    return float(retry_after)
                except ValueError:
                    logger.debug("Ignoring unparseable Retry-After header %r", retry_after)
            return backoff
        if status >= 500:
            return backoff
        raise SpotifyRequestError(status_code=status, detail=_error_detail(response))


def _retries_exhausted(response: httpx.Response, last_delay: float) -> SpotifyClientError:
    if response.status_code == 429:
        return SpotifyRateLimitError(retry_after=last_delay)
    return SpotifyServerError(status_code=response.status_code, detail="Max retries exhausted")


def _clamp(limit: int, maximum: int) -> int:
    return max(1, min(limit, maximum))


def _top_params(time_range: str, limit: int, offset: int) -> dict[str, str | int]:
    if time_range not in TIME_RANGES:
        raise ValueError(f"Unknown time_range {time_range!r}; expected one of {', '.join(TIME_RANGES)}")
    return {"time_range": time_range, "limit": _clamp(limit, MAX_TOP_ITEMS_LIMIT), "offset": offset}


def _error_detail(response: httpx.Response) -> str:
    """Spotify's error message from a failed response, or a short fallback."""
    try:
        body: Any = response.json()
    except ValueError:
        return response.text[:200] or f"HTTP {response.status_code}"
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if isinstance(error, str):
        return str(body.get("error_description") or error)
    return f"HTTP {response.status_code}"
