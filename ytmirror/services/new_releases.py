"""Builds the "new releases" feed from cached latest uploads.

Reads only the channel cache; never calls YouTube.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta

from ytmirror.db.models import Channel, as_utc


@dataclass(slots=True)
class NewRelease:
    video_id: str
    title: str | None
    thumbnail_url: str | None
    channel_id: str
    channel_title: str
    is_artist: bool
    published_at: datetime | None
    duration: str | None
    view_count: int | None
    is_new: bool


def _sort_key(channel: Channel) -> tuple:
    published = as_utc(channel.latest_video_published_at)
    # Known dates first, newest first; then title.
    return (
        published is None,
        -published.timestamp() if published else 0.0,
        (channel.latest_video_title or "").lower(),
    )


def collect_new_releases(
    channels: Sequence[Channel],
    *,
    limit: int,
    now: datetime,
    badge_window: timedelta,
) -> list[NewRelease]:
    """Latest cached upload per channel, newest first, one entry per video."""

    if limit < 1:
        return []

    candidates = sorted((channel for channel in channels if channel.latest_video_id), key=_sort_key)

    releases: list[NewRelease] = []
    seen: set[str] = set()
    for channel in candidates:
        video_id = channel.latest_video_id
        if video_id in seen:
            continue
        seen.add(video_id)

        changed_at = as_utc(channel.latest_video_changed_at)
        releases.append(
            NewRelease(
                video_id=video_id,
                title=channel.latest_video_title,
                thumbnail_url=channel.latest_video_thumbnail_url,
                channel_id=channel.external_id,
                channel_title=channel.title,
                is_artist=bool(channel.is_artist),
                published_at=as_utc(channel.latest_video_published_at),
                duration=channel.latest_video_duration,
                view_count=channel.latest_video_view_count,
                is_new=changed_at is not None and now - changed_at <= badge_window,
            )
        )
        if len(releases) >= limit:
            break
    return releases
