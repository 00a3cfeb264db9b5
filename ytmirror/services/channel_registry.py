"""Helpers for managing a user's subscribed channels."""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ytmirror.core.errors import NotFoundError
from ytmirror.db.models import Channel
from ytmirror.services.youtube_client import ChannelDetails


async def list_channels(
    session: AsyncSession,
    user_id: str,
    *,
    artists_only: bool | None = None,
) -> Sequence[Channel]:
    """Return the user's channels ordered by title."""

    stmt = select(Channel).where(Channel.user_id == user_id)
    if artists_only is not None:
        stmt = stmt.where(Channel.is_artist == artists_only)
    result = await session.scalars(stmt.order_by(func.lower(Channel.title), Channel.id))
    return list(result)


async def list_user_ids(session: AsyncSession) -> list[str]:
    """Return every user id that has at least one subscription."""

    result = await session.scalars(select(Channel.user_id).distinct().order_by(Channel.user_id))
    return list(result)


async def get_channel(session: AsyncSession, user_id: str, identifier: str) -> Channel | None:
    """Fetch a channel by local id or by external channel id."""

    if identifier.isdigit():
        channel = await session.scalar(
            select(Channel).where(Channel.user_id == user_id, Channel.id == int(identifier))
        )
        if channel is not None:
            return channel
    return await session.scalar(
        select(Channel).where(Channel.user_id == user_id, Channel.external_id == identifier)
    )


async def subscribe_channel(
    session: AsyncSession,
    user_id: str,
    *,
    channel_id: str,
    details: ChannelDetails | None = None,
    is_artist: bool = False,
) -> tuple[Channel, bool]:
    """Fetch or create the user's subscription; returns (channel, created).

    New subscriptions start with an empty latest-video cache.
    """

    existing = await session.scalar(
        select(Channel).where(Channel.user_id == user_id, Channel.external_id == channel_id)
    )
    if existing is not None:
        return existing, False

    channel = Channel(
        user_id=user_id,
        external_id=channel_id,
        title=details.title if details else channel_id,
        description=details.description if details else None,
        thumbnail_url=details.thumbnail_url if details else None,
        is_artist=is_artist,
    )
    session.add(channel)
    await session.flush()
    return channel, True


async def remove_channel(session: AsyncSession, user_id: str, identifier: str) -> Channel:
    """Delete the user's subscription identified by local or external id."""

    channel = await get_channel(session, user_id, identifier)
    if channel is None:
        raise NotFoundError("Channel not subscribed")

    await session.delete(channel)
    await session.flush()
    return channel


async def set_artist_flag(session: AsyncSession, user_id: str, identifier: str, is_artist: bool) -> Channel:
    channel = await get_channel(session, user_id, identifier)
    if channel is None:
        raise NotFoundError("Channel not subscribed")
    channel.is_artist = is_artist
    await session.flush()
    return channel
