"""Tests for the channel registry helpers."""

from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import channel_id
from ytmirror.core.errors import NotFoundError
from ytmirror.db.models import Channel
from ytmirror.services import channel_registry
from ytmirror.services.youtube_client import ChannelDetails

pytest_plugins = ("pytest_asyncio",)


@pytest.mark.asyncio
async def test_subscribe_is_idempotent(session: AsyncSession) -> None:
    details = ChannelDetails(
        channel_id=channel_id("A"),
        title="Channel A",
        description="About A",
        thumbnail_url="https://yt3.ggpht.com/a.jpg",
        subscriber_count=10,
    )
    channel, created = await channel_registry.subscribe_channel(
        session, "user-1", channel_id=channel_id("A"), details=details
    )
    assert isinstance(channel, Channel)
    assert created is True
    assert channel.title == "Channel A"
    assert channel.latest_video_id is None
    assert channel.last_checked_at is None

    again, created = await channel_registry.subscribe_channel(session, "user-1", channel_id=channel_id("A"))
    assert created is False
    assert again is channel
    assert again.title == "Channel A"


@pytest.mark.asyncio
async def test_subscribe_without_details_uses_channel_id_as_title(session: AsyncSession) -> None:
    channel, _ = await channel_registry.subscribe_channel(session, "user-1", channel_id=channel_id("B"))
    assert channel.title == channel_id("B")


@pytest.mark.asyncio
async def test_list_channels_is_per_user_and_sorted(session: AsyncSession) -> None:
    for seed, title in (("A", "beta"), ("B", "Alpha"), ("C", "gamma")):
        await channel_registry.subscribe_channel(
            session,
            "user-1",
            channel_id=channel_id(seed),
            details=ChannelDetails(channel_id(seed), title, None, None, None),
            is_artist=seed == "C",
        )
    await channel_registry.subscribe_channel(session, "user-2", channel_id=channel_id("D"))

    channels = await channel_registry.list_channels(session, "user-1")
    assert [ch.title for ch in channels] == ["Alpha", "beta", "gamma"]

    artists = await channel_registry.list_channels(session, "user-1", artists_only=True)
    assert [ch.title for ch in artists] == ["gamma"]

    assert await channel_registry.list_user_ids(session) == ["user-1", "user-2"]


@pytest.mark.asyncio
async def test_remove_channel_by_local_or_external_id(session: AsyncSession) -> None:
    first, _ = await channel_registry.subscribe_channel(session, "user-1", channel_id=channel_id("A"))
    await channel_registry.subscribe_channel(session, "user-1", channel_id=channel_id("B"))

    removed = await channel_registry.remove_channel(session, "user-1", str(first.id))
    assert removed.external_id == channel_id("A")

    removed = await channel_registry.remove_channel(session, "user-1", channel_id("B"))
    assert removed.external_id == channel_id("B")

    assert await channel_registry.list_channels(session, "user-1") == []


@pytest.mark.asyncio
async def test_remove_unknown_channel(session: AsyncSession) -> None:
    with pytest.raises(NotFoundError):
        await channel_registry.remove_channel(session, "user-1", "invalid")


@pytest.mark.asyncio
async def test_remove_does_not_cross_users(session: AsyncSession) -> None:
    await channel_registry.subscribe_channel(session, "user-2", channel_id=channel_id("A"))
    with pytest.raises(NotFoundError):
        await channel_registry.remove_channel(session, "user-1", channel_id("A"))


@pytest.mark.asyncio
async def test_set_artist_flag(session: AsyncSession) -> None:
    await channel_registry.subscribe_channel(session, "user-1", channel_id=channel_id("A"))

    channel = await channel_registry.set_artist_flag(session, "user-1", channel_id("A"), True)
    assert channel.is_artist is True

    with pytest.raises(NotFoundError):
        await channel_registry.set_artist_flag(session, "user-1", channel_id("Z"), True)
