"""Thin async client for the YouTube Data API v3 with quota metering."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import httpx

from ytmirror.core.config import Settings, settings
from ytmirror.core.errors import NotFoundError, QuotaExhaustedError, UpstreamUnavailableError
from ytmirror.services.quota_ledger import QuotaLedger

logger = logging.getLogger(__name__)

_THUMBNAIL_PREFERENCE = ("medium", "default", "high")


@dataclass(slots=True)
class VideoSummary:
    """A video as returned by search.list."""

    video_id: str
    title: str
    thumbnail_url: str | None = None
    channel_id: str | None = None
    channel_title: str | None = None
    published_at: datetime | None = None


@dataclass(slots=True)
class VideoDetails:
    duration: str | None
    view_count: int | None


@dataclass(slots=True)
class ChannelDetails:
    channel_id: str
    title: str
    description: str | None
    thumbnail_url: str | None
    subscriber_count: int | None


@dataclass(slots=True, frozen=True)
class QuotaCosts:
    """Units charged per endpoint call."""

    search: int = 100
    channels: int = 1
    videos: int = 1

    @classmethod
    def from_settings(cls, config: Settings) -> "QuotaCosts":
        return cls(
            search=config.quota_cost_search,
            channels=config.quota_cost_channels,
            videos=config.quota_cost_videos,
        )


def parse_timestamp(value: Any) -> datetime | None:
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _parse_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def pick_thumbnail(snippet: dict[str, Any], preference: tuple[str, ...] = _THUMBNAIL_PREFERENCE) -> str | None:
    thumbnails = snippet.get("thumbnails") or {}
    for size in preference:
        url = (thumbnails.get(size) or {}).get("url")
        if url:
            return url
    return None


def _video_summary_from_search_item(item: dict[str, Any]) -> VideoSummary | None:
    video_id = (item.get("id") or {}).get("videoId")
    if not video_id:
        return None
    snippet = item.get("snippet") or {}
    return VideoSummary(
        video_id=video_id,
        title=snippet.get("title") or "",
        thumbnail_url=pick_thumbnail(snippet),
        channel_id=snippet.get("channelId"),
        channel_title=snippet.get("channelTitle"),
        published_at=parse_timestamp(snippet.get("publishedAt")),
    )


class YouTubeDataClient:
    """YouTube Data API calls; each one reserves its quota cost before going out.

    Construct without a ledger (or via :meth:`unmetered`) when the caller has
    already reserved the units itself.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        access_token: str | None = None,
        api_key: str | None = None,
        ledger: QuotaLedger | None = None,
        costs: QuotaCosts | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self._http = http_client
        self._access_token = access_token
        self._api_key = api_key
        self._ledger = ledger
        self.costs = costs or QuotaCosts.from_settings(settings)
        self._base_url = (base_url or settings.youtube_api_base).rstrip("/")
        self._timeout = timeout if timeout is not None else settings.youtube_timeout_seconds

    @property
    def has_credentials(self) -> bool:
        return bool(self._access_token or self._api_key)

    def unmetered(self) -> "YouTubeDataClient":
        return YouTubeDataClient(
            self._http,
            access_token=self._access_token,
            api_key=self._api_key,
            ledger=None,
            costs=self.costs,
            base_url=self._base_url,
            timeout=self._timeout,
        )

    async def _get(self, path: str, params: dict[str, Any], *, cost: int) -> dict[str, Any]:
        if not self.has_credentials:
            raise UpstreamUnavailableError("No YouTube credentials available")

        if self._ledger is not None and not self._ledger.try_reserve(cost):
            raise QuotaExhaustedError(cost, self._ledger.remaining)

        query = dict(params)
        headers: dict[str, str] = {}
        if self._access_token:
            headers["Authorization"] = f"Bearer {self._access_token}"
        else:
            query["key"] = self._api_key

        url = f"{self._base_url}/{path}"
        try:
            response = await self._http.get(url, params=query, headers=headers, timeout=self._timeout)
        except httpx.HTTPError as exc:
            raise UpstreamUnavailableError("Unable to contact YouTube Data API") from exc

        if response.status_code == httpx.codes.NOT_FOUND:
            raise NotFoundError(f"YouTube resource not found: {path}")
        if response.is_error:
            logger.warning(
                "YouTube Data API error",
                extra={"path": path, "status": response.status_code, "body": response.text[:200]},
            )
            raise UpstreamUnavailableError(f"YouTube Data API returned HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamUnavailableError("Invalid response from YouTube Data API") from exc
        if not isinstance(payload, dict):
            raise UpstreamUnavailableError("Invalid response from YouTube Data API")
        return payload

    async def search_videos(self, query: str, max_results: int = 20) -> list[VideoSummary]:
        params = {
            "part": "snippet",
            "type": "video",
            "order": "relevance",
            "maxResults": min(max(max_results, 1), 50),
            "q": query,
        }
        payload = await self._get("search", params, cost=self.costs.search)
        results: list[VideoSummary] = []
        for item in payload.get("items") or []:
            summary = _video_summary_from_search_item(item)
            if summary is not None:
                results.append(summary)
        return results

    async def get_channel_latest_video(self, channel_id: str) -> VideoSummary | None:
        """Most recent upload of a channel, or None when the channel has no videos."""

        params = {
            "part": "snippet",
            "type": "video",
            "order": "date",
            "maxResults": 1,
            "channelId": channel_id,
        }
        payload = await self._get("search", params, cost=self.costs.search)
        for item in payload.get("items") or []:
            summary = _video_summary_from_search_item(item)
            if summary is not None:
                return summary
        return None

    async def get_channel_details(self, channel_id: str) -> ChannelDetails:
        params = {"part": "snippet,statistics", "id": channel_id, "maxResults": 1}
        payload = await self._get("channels", params, cost=self.costs.channels)
        items = payload.get("items") or []
        if not items:
            raise NotFoundError(f"Channel not found: {channel_id}")

        item = items[0]
        snippet = item.get("snippet") or {}
        statistics = item.get("statistics") or {}
        return ChannelDetails(
            channel_id=item.get("id") or channel_id,
            title=snippet.get("title") or channel_id,
            description=snippet.get("description"),
            thumbnail_url=pick_thumbnail(snippet, ("default", "medium", "high")),
            subscriber_count=_parse_int(statistics.get("subscriberCount")),
        )

    async def get_video_details(self, video_id: str) -> VideoDetails | None:
        params = {"part": "contentDetails,statistics", "id": video_id, "maxResults": 1}
        payload = await self._get("videos", params, cost=self.costs.videos)
        items = payload.get("items") or []
        if not items:
            return None
        item = items[0]
        return VideoDetails(
            duration=(item.get("contentDetails") or {}).get("duration"),
            view_count=_parse_int((item.get("statistics") or {}).get("viewCount")),
        )

    async def resolve_handle(self, handle: str) -> str:
        """Resolve a YouTube `@handle` into a channel id."""

        params = {"part": "id", "forHandle": handle.lstrip("@").strip()}
        payload = await self._get("channels", params, cost=self.costs.channels)
        for item in payload.get("items") or []:
            channel_id = item.get("id")
            if channel_id:
                return channel_id
        raise NotFoundError(f"Channel handle not found: {handle}")
