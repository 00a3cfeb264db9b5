"""Tests for recommendation filtering and the suggestion backends."""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from ytmirror.core.config import Settings
from ytmirror.core.errors import UpstreamUnavailableError
from ytmirror.db.models import Channel
from ytmirror.services import suggestion_utils
from ytmirror.services.recommendations import ChannelSummary, Recommendation, RecommendationAggregator

pytest_plugins = ("pytest_asyncio",)


def _fixed(*suggestions: Recommendation):
    async def suggest(channels):
        return list(suggestions)

    return suggest


def _rec(key: str, title: str | None = None) -> Recommendation:
    return Recommendation(channel_id_or_video_id=key, title=title or key, reason="because")


@pytest.mark.asyncio
async def test_subscribed_channels_are_excluded() -> None:
    subscribed = [ChannelSummary(channel_id="c1", title="Channel One")]
    aggregator = RecommendationAggregator(_fixed(_rec("c1"), _rec("c2")))

    result = await aggregator.recommend(subscribed)

    assert [item.channel_id_or_video_id for item in result] == ["c2"]


@pytest.mark.asyncio
async def test_titles_match_case_insensitively() -> None:
    subscribed = [ChannelSummary(channel_id="c1", title="Lofi Girl")]
    aggregator = RecommendationAggregator(_fixed(_rec("lofi girl"), _rec("x", title="LOFI GIRL"), _rec("c3")))

    result = await aggregator.recommend(subscribed)

    assert [item.channel_id_or_video_id for item in result] == ["c3"]


@pytest.mark.asyncio
async def test_duplicates_dropped_and_limit_applied() -> None:
    aggregator = RecommendationAggregator(
        _fixed(_rec("a", "first"), _rec("a", "second"), _rec("b"), _rec("c"), _rec("d")),
        limit=3,
    )

    result = await aggregator.recommend([])

    assert [(item.channel_id_or_video_id, item.title) for item in result] == [("a", "first"), ("b", "b"), ("c", "c")]


@pytest.mark.asyncio
async def test_failing_backend_yields_empty_list() -> None:
    async def broken(channels):
        raise UpstreamUnavailableError("down")

    assert await RecommendationAggregator(broken).recommend([]) == []


@pytest.mark.asyncio
async def test_empty_backend_yields_empty_list() -> None:
    assert await RecommendationAggregator(_fixed()).recommend([ChannelSummary("c1", "One")]) == []


@pytest.mark.asyncio
async def test_orm_channels_are_summarised() -> None:
    seen: list[ChannelSummary] = []

    async def capture(channels):
        seen.extend(channels)
        return []

    channel = Channel(user_id="u", external_id="UCx", title="Band", is_artist=True, description="Official")
    await RecommendationAggregator(capture).recommend([channel])

    assert seen == [ChannelSummary(channel_id="UCx", title="Band", is_artist=True, description="Official")]


def test_rank_categories_prefers_artists_for_music() -> None:
    channels = [
        ChannelSummary("c1", "Some Band", is_artist=True),
        ChannelSummary("c2", "Gadget Review Daily"),
    ]

    ranked = suggestion_utils.rank_categories(channels)

    assert ranked[0] == "music"
    assert "tech" in ranked


@pytest.mark.asyncio
async def test_heuristic_falls_back_to_default_categories() -> None:
    suggestions = await suggestion_utils.suggest_from_channels([ChannelSummary("c1", "zzz")])

    assert suggestions
    assert suggestions[0].channel_id_or_video_id == "lofi hip hop live"


@pytest.mark.asyncio
async def test_heuristic_needs_channels() -> None:
    assert await suggestion_utils.suggest_from_channels([]) == []


def test_parse_suggestion_payload_handles_code_fences() -> None:
    content = '```json\n[{"title": "Synthwave", "channelTitle": "synthwave mix", "reason": "r"}, {"title": ""}]\n```'

    parsed = suggestion_utils.parse_suggestion_payload(content)

    assert parsed == [Recommendation(channel_id_or_video_id="synthwave mix", title="Synthwave", reason="r")]


def test_parse_suggestion_payload_requires_array() -> None:
    with pytest.raises(ValueError):
        suggestion_utils.parse_suggestion_payload('{"title": "x"}')


def test_select_suggester() -> None:
    with_key = Settings(openai_api_key="sk-test", recommendation_min_channels=3)
    without_key = Settings(openai_api_key=None)

    assert suggestion_utils.select_suggester(5, with_key) is suggestion_utils.suggest_via_openai
    assert suggestion_utils.select_suggester(2, with_key) is suggestion_utils.suggest_from_channels
    assert suggestion_utils.select_suggester(5, without_key) is suggestion_utils.suggest_from_channels


@pytest.mark.asyncio
async def test_suggest_via_openai_parses_response(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict = {}

    class FakeResponses:
        async def create(self, **kwargs):
            captured.update(kwargs)
            return SimpleNamespace(
                output_text='[{"title": "Jazz", "channelTitle": "jazz live", "reason": "You like music"}]'
            )

    monkeypatch.setattr(suggestion_utils.settings, "openai_api_key", "sk-test")
    monkeypatch.setattr(suggestion_utils.settings, "openai_max_channels", 1)
    monkeypatch.setattr(suggestion_utils, "_get_openai_client", lambda: SimpleNamespace(responses=FakeResponses()))

    result = await suggestion_utils.suggest_via_openai(
        [ChannelSummary("c1", "First Channel"), ChannelSummary("c2", "Second Channel")]
    )

    assert result == [Recommendation(channel_id_or_video_id="jazz live", title="Jazz", reason="You like music")]
    user_prompt = captured["input"][1]["content"]
    assert "First Channel" in user_prompt
    assert "Second Channel" not in user_prompt
    assert captured["timeout"] == suggestion_utils.settings.openai_timeout_seconds


@pytest.mark.asyncio
async def test_suggest_via_openai_wraps_transport_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    class FailingResponses:
        async def create(self, **kwargs):
            raise ConnectionError("offline")

    monkeypatch.setattr(suggestion_utils.settings, "openai_api_key", "sk-test")
    monkeypatch.setattr(suggestion_utils, "_get_openai_client", lambda: SimpleNamespace(responses=FailingResponses()))

    with pytest.raises(UpstreamUnavailableError):
        await suggestion_utils.suggest_via_openai([ChannelSummary("c1", "One")])
