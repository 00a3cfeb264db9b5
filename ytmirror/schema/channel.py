"""Pydantic models for channel and artist endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from ytmirror.schema.common import ApiModel


class ChannelCreateRequest(ApiModel):
    """Inbound payload to subscribe to a channel."""

    channel_id: str = Field(..., min_length=1, description="YouTube channel id, channel URL, or @handle")


class LatestVideo(ApiModel):
    video_id: str
    title: str | None
    thumbnail_url: str | None
    published_at: datetime | None = None
    duration: str | None = None
    view_count: int | None = None


class ChannelResponse(ApiModel):
    """A subscribed channel with its cached latest upload."""

    id: int
    channel_id: str
    title: str
    description: str | None
    thumbnail_url: str | None
    is_artist: bool
    subscribed_at: datetime | None
    last_checked_at: datetime | None
    latest_video: LatestVideo | None
    stale: bool = False


class RefreshOutcomeResponse(ApiModel):
    channel_id: str
    status: str
    reason: str | None = None
    latest_video_id: str | None = None


class RefreshStats(ApiModel):
    checked: int
    refreshed: int
    unchanged: int
    fresh: int
    quota_exhausted: int
    failed: int


class QuotaResponse(ApiModel):
    window_start: datetime
    resets_at: datetime
    units_consumed: int
    units_budget: int
    remaining: int


class RefreshResponse(ApiModel):
    ok: bool
    stats: RefreshStats
    outcomes: list[RefreshOutcomeResponse]
    quota: QuotaResponse


class NewReleaseResponse(ApiModel):
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
