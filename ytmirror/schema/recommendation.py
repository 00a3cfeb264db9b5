"""Pydantic models for recommendations and search."""

from __future__ import annotations

from datetime import datetime

from ytmirror.schema.common import ApiModel


class RecommendationResponse(ApiModel):
    channel_id_or_video_id: str
    title: str
    reason: str
    thumbnail_url: str | None = None


class SearchResultResponse(ApiModel):
    video_id: str
    title: str
    thumbnail_url: str | None
    channel_id: str | None
    channel_title: str | None
    published_at: datetime | None
