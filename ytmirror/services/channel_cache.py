"""Locally mirrored channel records and their cached latest upload."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ytmirror.core.errors import NotFoundError
from ytmirror.db.models import Channel, as_utc, utcnow

logger = logging.getLogger(__name__)


def channel_is_stale(channel: Channel, max_age: timedelta, now: datetime) -> bool:
    """True when the channel was never checked or its last check is older than ``max_age``."""

    last_checked = as_utc(channel.last_checked_at)
    if last_checked is None:
        return True
    return now - last_checked > max_age


def _advance_checked_at(channel: Channel, checked_at: datetime) -> None:
    previous = as_utc(channel.last_checked_at)
    if previous is None or checked_at > previous:
        channel.last_checked_at = checked_at


class ChannelCache:
    """One user's channel mirror on top of a database session.

    The presentation layer reads only from here. Reads never refresh; the
    sync engine is the only writer of the latest-video fields. Writes are
    serialised so concurrent refresh workers can share the session.
    """

    def __init__(
        self,
        session: AsyncSession,
        user_id: str,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session = session
        self.user_id = user_id
        self._clock = clock
        self._lock = asyncio.Lock()

    def now(self) -> datetime:
        return self._clock()

    async def get(self, channel_id: str) -> Channel | None:
        return await self._session.scalar(
            select(Channel).where(Channel.user_id == self.user_id, Channel.external_id == channel_id)
        )

    async def _require(self, channel_id: str) -> Channel:
        channel = await self.get(channel_id)
        if channel is None:
            raise NotFoundError(f"Channel not cached: {channel_id}")
        return channel

    async def is_stale(self, channel_id: str, max_age: timedelta) -> bool:
        channel = await self._require(channel_id)
        return channel_is_stale(channel, max_age, self.now())

    async def upsert_latest_video(
        self,
        channel_id: str,
        video_id: str,
        title: str | None,
        thumbnail_url: str | None,
        checked_at: datetime,
        *,
        published_at: datetime | None = None,
        duration: str | None = None,
        view_count: int | None = None,
    ) -> bool:
        """Record the latest upload seen for a channel; returns True if it changed.

        An unchanged video id keeps the cached triple (so no new "NEW" badge)
        and only fills in missing duration / view count.
        """

        async with self._lock:
            channel = await self._require(channel_id)
            changed = channel.latest_video_id != video_id

            if changed:
                channel.latest_video_id = video_id
                channel.latest_video_title = title
                channel.latest_video_thumbnail_url = thumbnail_url
                channel.latest_video_published_at = published_at
                channel.latest_video_duration = duration
                channel.latest_video_view_count = view_count
                channel.latest_video_changed_at = checked_at
                logger.info(
                    "New latest video cached",
                    extra={"channel_id": channel_id, "video_id": video_id, "user_id": self.user_id},
                )
            else:
                if not channel.latest_video_duration and duration:
                    channel.latest_video_duration = duration
                if channel.latest_video_view_count is None and view_count is not None:
                    channel.latest_video_view_count = view_count

            _advance_checked_at(channel, checked_at)
            await self._session.flush()
            return changed

    async def touch(self, channel_id: str, checked_at: datetime) -> None:
        """Mark a successful check that found no uploads."""

        async with self._lock:
            channel = await self._require(channel_id)
            _advance_checked_at(channel, checked_at)
            await self._session.flush()
