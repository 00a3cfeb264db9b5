"""Decides which cached channels to refresh and fans the refreshes out."""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Awaitable, Callable

from ytmirror.db.models import Channel
from ytmirror.services.channel_cache import ChannelCache, channel_is_stale
from ytmirror.services.quota_ledger import QuotaLedger
from ytmirror.services.youtube_client import VideoDetails, VideoSummary

logger = logging.getLogger(__name__)

LatestVideoFetcher = Callable[[str], Awaitable[VideoSummary | None]]
VideoDetailsFetcher = Callable[[str], Awaitable[VideoDetails | None]]


class RefreshStatus(str, Enum):
    FRESH = "fresh"
    REFRESHED = "refreshed"
    UNCHANGED = "unchanged"
    QUOTA_EXHAUSTED = "quota_exhausted"
    FAILED = "failed"


@dataclass(slots=True)
class RefreshOutcome:
    """What happened to one channel during a refresh run."""

    channel_id: str
    status: RefreshStatus
    reason: str | None = None
    latest_video_id: str | None = None


def summarise_outcomes(outcomes: Sequence[RefreshOutcome]) -> dict[str, int]:
    counts = Counter(outcome.status for outcome in outcomes)
    stats = {status.value: counts.get(status, 0) for status in RefreshStatus}
    stats["checked"] = len(outcomes)
    return stats


def _needs_details(channel: Channel, video_id: str) -> bool:
    if channel.latest_video_id != video_id:
        return True
    return not channel.latest_video_duration or channel.latest_video_view_count is None


class SyncEngine:
    """Refreshes stale channels within the quota budget.

    Quota for the latest-video lookup is reserved up front, in input order,
    before any call goes out; channels that cannot be reserved are reported
    as ``quota_exhausted`` and keep serving their cached data. Reserved
    channels are drained from a queue by at most ``max_concurrent`` workers.
    A failing or timed-out channel never affects its siblings.
    """

    def __init__(
        self,
        *,
        ledger: QuotaLedger,
        cache: ChannelCache,
        fetch_latest: LatestVideoFetcher,
        cost_per_call: int,
        fetch_details: VideoDetailsFetcher | None = None,
        details_cost: int = 1,
        call_timeout: float | None = None,
    ) -> None:
        self._ledger = ledger
        self._cache = cache
        self._fetch_latest = fetch_latest
        self._cost_per_call = cost_per_call
        self._fetch_details = fetch_details
        self._details_cost = details_cost
        self._call_timeout = call_timeout

    async def refresh_if_stale(
        self,
        channels: Sequence[Channel],
        max_age: timedelta,
        max_concurrent: int,
    ) -> list[RefreshOutcome]:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")

        unique: list[Channel] = []
        seen: set[str] = set()
        for channel in channels:
            if channel.external_id in seen:
                continue
            seen.add(channel.external_id)
            unique.append(channel)

        now = self._cache.now()
        outcomes: dict[str, RefreshOutcome] = {}
        queue: asyncio.Queue[Channel] = asyncio.Queue()

        for channel in unique:
            if not channel_is_stale(channel, max_age, now):
                outcomes[channel.external_id] = RefreshOutcome(channel.external_id, RefreshStatus.FRESH)
            elif self._ledger.try_reserve(self._cost_per_call):
                queue.put_nowait(channel)
            else:
                outcomes[channel.external_id] = RefreshOutcome(
                    channel.external_id,
                    RefreshStatus.QUOTA_EXHAUSTED,
                    reason="quota_exhausted",
                    latest_video_id=channel.latest_video_id,
                )

        reserved = queue.qsize()
        if reserved:
            workers = [
                asyncio.create_task(self._worker(queue, outcomes))
                for _ in range(min(max_concurrent, reserved))
            ]
            await asyncio.gather(*workers)

        logger.info(
            "Refresh run complete",
            extra={"user_id": self._cache.user_id, "channels": len(unique), "reserved": reserved},
        )
        return [outcomes[channel.external_id] for channel in unique]

    async def _worker(self, queue: asyncio.Queue[Channel], outcomes: dict[str, RefreshOutcome]) -> None:
        while True:
            try:
                channel = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            outcomes[channel.external_id] = await self._refresh_one(channel)

    async def _call(self, awaitable: Awaitable):
        if self._call_timeout is None:
            return await awaitable
        return await asyncio.wait_for(awaitable, timeout=self._call_timeout)

    async def _refresh_one(self, channel: Channel) -> RefreshOutcome:
        channel_id = channel.external_id
        try:
            return await self._fetch_and_store(channel)
        except asyncio.TimeoutError:
            logger.warning("Latest video lookup timed out", extra={"channel_id": channel_id})
            return RefreshOutcome(channel_id, RefreshStatus.FAILED, reason="timeout", latest_video_id=channel.latest_video_id)
        except Exception as exc:  # noqa: BLE001 - isolated per channel
            logger.exception("Channel refresh failed", extra={"channel_id": channel_id})
            return RefreshOutcome(
                channel_id,
                RefreshStatus.FAILED,
                reason=str(exc) or exc.__class__.__name__,
                latest_video_id=channel.latest_video_id,
            )

    async def _fetch_and_store(self, channel: Channel) -> RefreshOutcome:
        channel_id = channel.external_id
        latest = await self._call(self._fetch_latest(channel_id))

        checked_at = self._cache.now()
        if latest is None:
            await self._cache.touch(channel_id, checked_at)
            return RefreshOutcome(channel_id, RefreshStatus.UNCHANGED, latest_video_id=channel.latest_video_id)

        details = await self._maybe_fetch_details(channel, latest.video_id)
        changed = await self._cache.upsert_latest_video(
            channel_id,
            latest.video_id,
            latest.title,
            latest.thumbnail_url,
            checked_at,
            published_at=latest.published_at,
            duration=details.duration if details else None,
            view_count=details.view_count if details else None,
        )
        status = RefreshStatus.REFRESHED if changed else RefreshStatus.UNCHANGED
        return RefreshOutcome(channel_id, status, latest_video_id=latest.video_id)

    async def _maybe_fetch_details(self, channel: Channel, video_id: str) -> VideoDetails | None:
        if self._fetch_details is None or not _needs_details(channel, video_id):
            return None
        if not self._ledger.try_reserve(self._details_cost):
            return None
        try:
            return await self._call(self._fetch_details(video_id))
        except Exception as exc:  # noqa: BLE001 - enrichment only
            logger.warning(
                "Video details lookup failed; caching without them",
                extra={"channel_id": channel.external_id, "video_id": video_id, "error": str(exc)},
            )
            return None
