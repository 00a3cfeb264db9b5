"""User-scoped playlist persistence."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ytmirror.core.errors import NotFoundError, PlaylistValidationError
from ytmirror.db.models import Playlist, utcnow
from ytmirror.services.playlist_merger import PLAYLIST_ORIGINS

logger = logging.getLogger(__name__)


def _clean_name(name: str | None) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise PlaylistValidationError("Playlist name must not be empty")
    return cleaned


async def list_playlists(session: AsyncSession, user_id: str) -> Sequence[Playlist]:
    """Return the user's playlists, most recently updated first."""

    result = await session.scalars(
        select(Playlist).where(Playlist.user_id == user_id).order_by(Playlist.updated_at.desc(), Playlist.id.desc())
    )
    return list(result)


async def get_playlist(session: AsyncSession, user_id: str, playlist_id: int | str) -> Playlist:
    try:
        local_id = int(playlist_id)
    except (TypeError, ValueError) as exc:
        raise NotFoundError("Playlist not found") from exc

    playlist = await session.scalar(
        select(Playlist).where(Playlist.user_id == user_id, Playlist.id == local_id)
    )
    if playlist is None:
        raise NotFoundError("Playlist not found")
    return playlist


async def create_playlist(
    session: AsyncSession,
    user_id: str,
    *,
    name: str,
    description: str | None = None,
    origin: str = "video",
    now: datetime | None = None,
) -> Playlist:
    if origin not in PLAYLIST_ORIGINS:
        raise PlaylistValidationError(f"Unknown playlist origin: {origin}")

    now = now or utcnow()
    playlist = Playlist(
        user_id=user_id,
        name=_clean_name(name),
        description=description,
        origin=origin,
        created_at=now,
        updated_at=now,
        items=[],
    )
    session.add(playlist)
    await session.flush()
    logger.info("Playlist created", extra={"user_id": user_id, "playlist_id": playlist.id})
    return playlist


async def update_playlist(
    session: AsyncSession,
    user_id: str,
    playlist_id: int | str,
    *,
    name: str | None = None,
    description: str | None = None,
    now: datetime | None = None,
) -> Playlist:
    """Rename or re-describe a playlist; ``updated_at`` moves only on a real change."""

    playlist = await get_playlist(session, user_id, playlist_id)
    changed = False

    if name is not None:
        cleaned = _clean_name(name)
        if cleaned != playlist.name:
            playlist.name = cleaned
            changed = True
    if description is not None and description != playlist.description:
        playlist.description = description
        changed = True

    if changed:
        playlist.updated_at = now or utcnow()
        await session.flush()
    return playlist


async def delete_playlist(session: AsyncSession, user_id: str, playlist_id: int | str) -> None:
    playlist = await get_playlist(session, user_id, playlist_id)
    await session.delete(playlist)
    await session.flush()
    logger.info("Playlist deleted", extra={"user_id": user_id, "playlist_id": playlist.id})
