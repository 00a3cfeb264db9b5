"""Channel and video suggestions derived from a user's subscriptions."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Awaitable, Callable

from ytmirror.db.models import Channel

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ChannelSummary:
    """What a suggestion backend gets to see about one subscription."""

    channel_id: str
    title: str
    is_artist: bool = False
    description: str | None = None

    @classmethod
    def from_channel(cls, channel: Channel) -> "ChannelSummary":
        return cls(
            channel_id=channel.external_id,
            title=channel.title,
            is_artist=bool(channel.is_artist),
            description=channel.description,
        )


@dataclass(slots=True, frozen=True)
class Recommendation:
    channel_id_or_video_id: str
    title: str
    reason: str
    thumbnail_url: str | None = None


SuggestionFunction = Callable[[Sequence[ChannelSummary]], Awaitable[list[Recommendation]]]


class RecommendationAggregator:
    """Filters raw suggestions against what the user already follows.

    A failing or empty suggestion backend yields an empty list; nothing is
    raised to the caller.
    """

    def __init__(self, suggest: SuggestionFunction, *, limit: int = 5) -> None:
        if limit < 1:
            raise ValueError("limit must be at least 1")
        self._suggest = suggest
        self._limit = limit

    async def recommend(self, subscribed_channels: Sequence[Channel | ChannelSummary]) -> list[Recommendation]:
        summaries = [
            item if isinstance(item, ChannelSummary) else ChannelSummary.from_channel(item)
            for item in subscribed_channels
        ]

        try:
            suggestions = await self._suggest(summaries)
        except Exception:  # noqa: BLE001 - suggestions are best effort
            logger.exception("Suggestion backend failed", extra={"channels": len(summaries)})
            return []

        if not suggestions:
            logger.info("Suggestion backend returned nothing", extra={"channels": len(summaries)})
            return []

        subscribed_ids = {summary.channel_id for summary in summaries}
        subscribed_titles = {summary.title.strip().lower() for summary in summaries if summary.title}

        results: list[Recommendation] = []
        picked: set[str] = set()
        for suggestion in suggestions:
            key = suggestion.channel_id_or_video_id
            if not key or key in picked:
                continue
            if key in subscribed_ids:
                continue
            if key.strip().lower() in subscribed_titles or suggestion.title.strip().lower() in subscribed_titles:
                continue
            picked.add(key)
            results.append(suggestion)
            if len(results) >= self._limit:
                break
        return results
