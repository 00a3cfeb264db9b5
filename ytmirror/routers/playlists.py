"""API endpoints for local playlists, including JSON import and export."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ytmirror.core.errors import NotFoundError, PlaylistValidationError
from ytmirror.core.identity import UserContext, get_user_context
from ytmirror.db.models import Playlist, as_utc, utcnow
from ytmirror.db.session import get_session
from ytmirror.schema.common import Page, paginate
from ytmirror.schema.playlist import (
    AddItemResponse,
    ImportResponse,
    ImportStatsResponse,
    PlaylistCreateRequest,
    PlaylistItemRequest,
    PlaylistItemResponse,
    PlaylistResponse,
    PlaylistSummary,
    PlaylistUpdateRequest,
)
from ytmirror.services.playlist_merger import (
    DEFAULT_IMPORT_NAME,
    ItemData,
    add_item,
    export_playlist,
    import_playlist,
    parse_import_payload,
    remove_item,
)
from ytmirror.services.playlist_store import (
    create_playlist,
    delete_playlist,
    get_playlist,
    list_playlists,
    update_playlist,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/playlists", tags=["playlists"])


def _summary_fields(playlist: Playlist) -> dict[str, Any]:
    return {
        "id": playlist.id,
        "name": playlist.name,
        "description": playlist.description,
        "origin": playlist.origin,
        "item_count": len(playlist.items),
        "created_at": as_utc(playlist.created_at),
        "updated_at": as_utc(playlist.updated_at),
    }


def to_playlist_response(playlist: Playlist) -> PlaylistResponse:
    return PlaylistResponse(
        **_summary_fields(playlist),
        items=[
            PlaylistItemResponse(
                video_id=item.video_id,
                position=item.position,
                title=item.title,
                artist_or_channel=item.artist_or_channel,
                duration=item.duration,
                thumbnail_url=item.thumbnail_url,
                added_at=as_utc(item.added_at),
            )
            for item in playlist.items
        ],
    )


async def _load(session: AsyncSession, user_id: str, playlist_id: str) -> Playlist:
    try:
        return await get_playlist(session, user_id, playlist_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.get("", response_model=Page[PlaylistSummary])
async def list_user_playlists(
    page_token: str | None = Query(None, alias="pageToken"),
    limit: int = Query(50, ge=1, le=200),
    user: UserContext = Depends(get_user_context),
    session: AsyncSession = Depends(get_session),
) -> Page[PlaylistSummary]:
    playlists = list(await list_playlists(session, user.user_id))
    page, next_token = paginate(playlists, page_token=page_token, limit=limit)
    items = [PlaylistSummary(**_summary_fields(playlist)) for playlist in page]
    return Page[PlaylistSummary](items=items, next_page_token=next_token)


@router.post("", response_model=PlaylistResponse, status_code=status.HTTP_201_CREATED)
async def create_user_playlist(
    payload: PlaylistCreateRequest,
    user: UserContext = Depends(get_user_context),
    session: AsyncSession = Depends(get_session),
) -> PlaylistResponse:
    try:
        playlist = await create_playlist(
            session,
            user.user_id,
            name=payload.name,
            description=payload.description,
            origin=payload.origin,
        )
    except PlaylistValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    await session.commit()
    return to_playlist_response(playlist)


@router.post("/import", response_model=ImportResponse)
async def import_user_playlist(
    payload: Any = Body(...),
    user: UserContext = Depends(get_user_context),
    session: AsyncSession = Depends(get_session),
) -> ImportResponse:
    """Merge an exported playlist into an existing playlist or a new one."""

    try:
        parsed = parse_import_payload(payload)
    except PlaylistValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc

    if parsed.playlist_id is not None:
        target = await _load(session, user.user_id, parsed.playlist_id)
    else:
        target = await create_playlist(
            session,
            user.user_id,
            name=parsed.name or DEFAULT_IMPORT_NAME,
            description=parsed.description,
            origin=parsed.origin,
        )

    stats = import_playlist(target, parsed.items, now=utcnow())
    await session.commit()
    logger.info(
        "Playlist imported",
        extra={"user_id": user.user_id, "playlist_id": target.id, "total": stats.total, "added": stats.added},
    )
    return ImportResponse(playlist_id=target.id, stats=ImportStatsResponse(total=stats.total, added=stats.added))


@router.get("/{playlist_id}", response_model=PlaylistResponse)
async def get_user_playlist(
    playlist_id: str,
    user: UserContext = Depends(get_user_context),
    session: AsyncSession = Depends(get_session),
) -> PlaylistResponse:
    return to_playlist_response(await _load(session, user.user_id, playlist_id))


@router.put("/{playlist_id}", response_model=PlaylistResponse)
async def update_user_playlist(
    playlist_id: str,
    payload: PlaylistUpdateRequest,
    user: UserContext = Depends(get_user_context),
    session: AsyncSession = Depends(get_session),
) -> PlaylistResponse:
    try:
        playlist = await update_playlist(
            session,
            user.user_id,
            playlist_id,
            name=payload.name,
            description=payload.description,
        )
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except PlaylistValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    await session.commit()
    return to_playlist_response(playlist)


@router.delete("/{playlist_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user_playlist(
    playlist_id: str,
    user: UserContext = Depends(get_user_context),
    session: AsyncSession = Depends(get_session),
) -> Response:
    try:
        await delete_playlist(session, user.user_id, playlist_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    await session.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{playlist_id}/items", response_model=AddItemResponse, status_code=status.HTTP_201_CREATED)
async def add_playlist_item(
    playlist_id: str,
    payload: PlaylistItemRequest,
    response: Response,
    user: UserContext = Depends(get_user_context),
    session: AsyncSession = Depends(get_session),
) -> AddItemResponse:
    playlist = await _load(session, user.user_id, playlist_id)
    item = ItemData(
        video_id=payload.video_id.strip(),
        title=payload.title,
        artist_or_channel=payload.artist_or_channel,
        duration=payload.duration,
        thumbnail_url=payload.thumbnail_url,
    )
    added = add_item(playlist, item, now=utcnow())
    if added:
        await session.commit()
    else:
        response.status_code = status.HTTP_200_OK
    return AddItemResponse(added=added, playlist=to_playlist_response(playlist))


@router.delete("/{playlist_id}/items/{video_id}", response_model=PlaylistResponse)
async def remove_playlist_item(
    playlist_id: str,
    video_id: str,
    user: UserContext = Depends(get_user_context),
    session: AsyncSession = Depends(get_session),
) -> PlaylistResponse:
    playlist = await _load(session, user.user_id, playlist_id)
    if not remove_item(playlist, video_id, now=utcnow()):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Video not in playlist")
    await session.commit()
    return to_playlist_response(playlist)


@router.get("/{playlist_id}/export")
async def export_user_playlist(
    playlist_id: str,
    user: UserContext = Depends(get_user_context),
    session: AsyncSession = Depends(get_session),
) -> JSONResponse:
    playlist = await _load(session, user.user_id, playlist_id)
    document = export_playlist(playlist, exported_at=utcnow())
    return JSONResponse(
        content=document,
        headers={"Content-Disposition": f'attachment; filename="playlist_{playlist.id}.json"'},
    )
