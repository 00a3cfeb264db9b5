"""Suggestion backends for the recommendation aggregator."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Sequence
from functools import lru_cache

from openai import AsyncOpenAI

from ytmirror.core.config import Settings, settings
from ytmirror.core.errors import UpstreamUnavailableError
from ytmirror.services.recommendations import ChannelSummary, Recommendation, SuggestionFunction

logger = logging.getLogger(__name__)

_CATEGORY_PATTERNS: dict[str, re.Pattern[str]] = {
    "music": re.compile(r"\b(topic|vevo|music|album|mv|live|official)\b", re.IGNORECASE),
    "tech": re.compile(r"\b(tech|gadget|review|iphone|android|pc|laptop)\b", re.IGNORECASE),
    "gaming": re.compile(r"\b(game|gaming|switch|ps\d|xbox|let's play)\b", re.IGNORECASE),
    "cooking": re.compile(r"\b(recipe|recipes|cooking|kitchen)\b", re.IGNORECASE),
    "science": re.compile(r"\b(science|math|physics|chemistry|education|explained)\b", re.IGNORECASE),
    "programming": re.compile(r"\b(programming|developer|javascript|typescript|python|coding)\b", re.IGNORECASE),
    "fitness": re.compile(r"\b(workout|fitness|gym|yoga)\b", re.IGNORECASE),
    "vlogs": re.compile(r"\b(vlog|daily|life|routine)\b", re.IGNORECASE),
}

_CATEGORY_QUERIES: dict[str, list[tuple[str, str, str]]] = {
    "music": [
        ("Discover new background music", "lofi hip hop live", "Many of your subscriptions are music channels"),
        ("New releases", "new music playlist", "Keep up with current music"),
        ("Live sessions", "live session music", "Explore live performances"),
    ],
    "tech": [
        ("Latest gadget comparisons", "smartphone comparison", "You follow tech channels"),
        ("Unboxing and reviews", "laptop review", "You seem to like reviews"),
    ],
    "gaming": [
        ("New let's play channels", "lets play recommended", "You follow gaming channels"),
        ("Game release news", "new game releases", "Catch upcoming titles"),
    ],
    "cooking": [
        ("Quick recipes", "quick easy recipes", "You follow cooking channels"),
        ("Meal prep", "meal prep for the week", "Practical everyday cooking"),
    ],
    "science": [
        ("Science deep dives", "science explained", "You like explainers"),
        ("Everyday maths", "math explained", "More videos that build understanding"),
    ],
    "programming": [
        ("Practical TypeScript", "TypeScript best practices", "You follow developer channels"),
        ("Modern frontend", "React patterns", "Keep up with frontend trends"),
    ],
    "fitness": [
        ("Home workouts", "home workout 20 minutes", "You follow fitness channels"),
        ("Stretching and recovery", "stretch routine", "Routines that are easy to keep"),
    ],
    "vlogs": [
        ("Morning routines", "morning routine vlog", "You follow lifestyle channels"),
        ("Study with me", "study with me", "Calm background videos"),
    ],
}

_DEFAULT_CATEGORIES = ("music", "tech", "science", "gaming")


def rank_categories(channels: Sequence[ChannelSummary]) -> list[str]:
    """Return categories with a positive score, highest first."""

    scores = dict.fromkeys(_CATEGORY_PATTERNS, 0)
    for channel in channels:
        text = f"{channel.title} {channel.description or ''}"
        if channel.is_artist:
            scores["music"] += 2
        for category, pattern in _CATEGORY_PATTERNS.items():
            if pattern.search(text):
                scores[category] += 1

    ranked = sorted((item for item in scores.items() if item[1] > 0), key=lambda item: item[1], reverse=True)
    return [category for category, _ in ranked]


async def suggest_from_channels(channels: Sequence[ChannelSummary]) -> list[Recommendation]:
    """Keyword heuristic that costs no quota and needs no API key."""

    if not channels:
        return []

    ordered = rank_categories(channels) or list(_DEFAULT_CATEGORIES)
    suggestions: list[Recommendation] = []
    for category in ordered:
        for title, query, reason in _CATEGORY_QUERIES[category]:
            suggestions.append(Recommendation(channel_id_or_video_id=query, title=title, reason=reason))
    return suggestions


@lru_cache
def _get_openai_client() -> AsyncOpenAI:
    if not settings.openai_api_key:
        raise ValueError("OpenAI API key is not configured")
    kwargs: dict[str, str] = {"api_key": settings.openai_api_key}
    if settings.openai_base_url:
        kwargs["base_url"] = settings.openai_base_url
    return AsyncOpenAI(**kwargs)


def _response_text(response) -> str:
    raw_text = getattr(response, "output_text", "") or ""
    if not raw_text:
        chunks: list[str] = []
        for item in getattr(response, "output", []) or []:
            for piece in getattr(item, "content", []) or []:
                text = getattr(piece, "text", None)
                if text:
                    chunks.append(text)
        raw_text = "".join(chunks)
    return raw_text.strip()


def parse_suggestion_payload(content: str) -> list[Recommendation]:
    """Extract the JSON array of suggestions from a model answer."""

    start = content.find("[")
    end = content.rfind("]")
    if start < 0 or end <= start:
        raise ValueError("No JSON array in suggestion response")

    payload = json.loads(content[start : end + 1])
    if not isinstance(payload, list):
        raise ValueError("Suggestion response is not a list")

    suggestions: list[Recommendation] = []
    for entry in payload:
        if not isinstance(entry, dict):
            continue
        title = str(entry.get("title") or "").strip()
        query = str(entry.get("channelTitle") or entry.get("id") or "").strip()
        if not title or not query:
            continue
        suggestions.append(
            Recommendation(
                channel_id_or_video_id=query,
                title=title,
                reason=str(entry.get("reason") or "").strip(),
            )
        )
    return suggestions


async def suggest_via_openai(channels: Sequence[ChannelSummary]) -> list[Recommendation]:
    """Ask an OpenAI model for channels the user is likely not subscribed to yet."""

    if not settings.openai_api_key:
        raise ValueError("OpenAI API key is not configured")

    hints = [
        {"title": channel.title, "isArtist": channel.is_artist}
        for channel in channels[: settings.openai_max_channels]
    ]
    prompt = (
        "Using the subscribed channels below, suggest 5 search keywords or channel names"
        " the user is probably not subscribed to yet."
        " Return only a JSON array whose elements are objects with keys"
        " title (string), channelTitle (string used as a YouTube search query) and reason (string)."
        " Avoid names that look already subscribed."
    )

    client = _get_openai_client()
    try:
        response = await client.responses.create(
            model=settings.openai_model,
            timeout=settings.openai_timeout_seconds,
            input=[
                {"role": "system", "content": "Always answer with a valid JSON array and nothing else."},
                {"role": "user", "content": f"{prompt}\n\n{json.dumps(hints, ensure_ascii=False)}"},
            ],
        )
    except Exception as exc:  # noqa: BLE001
        raise UpstreamUnavailableError("Unable to reach the suggestion backend") from exc

    content = _response_text(response)
    try:
        return parse_suggestion_payload(content)
    except ValueError as exc:
        logger.exception("Failed to parse suggestion response", extra={"snippet": content[:200]})
        raise RuntimeError("Unable to parse LLM response") from exc


def select_suggester(channel_count: int, config: Settings | None = None) -> SuggestionFunction:
    """OpenAI when configured and there is enough to go on, otherwise the heuristic."""

    config = config or settings
    if config.openai_api_key and channel_count >= config.recommendation_min_channels:
        return suggest_via_openai
    return suggest_from_channels


__all__ = [
    "parse_suggestion_payload",
    "rank_categories",
    "select_suggester",
    "suggest_from_channels",
    "suggest_via_openai",
]
