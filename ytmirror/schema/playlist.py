"""Pydantic models for playlist endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field

from ytmirror.schema.common import ApiModel


class PlaylistCreateRequest(ApiModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    origin: Literal["video", "music"] = "video"


class PlaylistUpdateRequest(ApiModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None


class PlaylistItemRequest(ApiModel):
    video_id: str = Field(..., min_length=1, max_length=64)
    title: str = ""
    artist_or_channel: str = ""
    duration: str | None = None
    thumbnail_url: str | None = None


class PlaylistItemResponse(ApiModel):
    video_id: str
    position: int
    title: str
    artist_or_channel: str
    duration: str | None
    thumbnail_url: str | None
    added_at: datetime | None


class PlaylistSummary(ApiModel):
    id: int
    name: str
    description: str | None
    origin: str
    item_count: int
    created_at: datetime | None
    updated_at: datetime | None


class PlaylistResponse(PlaylistSummary):
    items: list[PlaylistItemResponse]


class AddItemResponse(ApiModel):
    added: bool
    playlist: PlaylistResponse


class ImportStatsResponse(ApiModel):
    total: int
    added: int


class ImportResponse(ApiModel):
    playlist_id: int
    stats: ImportStatsResponse
