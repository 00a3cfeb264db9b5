"""API endpoints for channels flagged as music artists."""

from __future__ import annotations

from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from ytmirror.core.config import settings
from ytmirror.core.dependencies import get_youtube_client
from ytmirror.core.errors import NotFoundError
from ytmirror.core.identity import UserContext, get_user_context
from ytmirror.db.models import utcnow
from ytmirror.db.session import get_session
from ytmirror.routers.channels import subscribe_from_identifier, to_channel_response
from ytmirror.schema.channel import ChannelCreateRequest, ChannelResponse, NewReleaseResponse
from ytmirror.schema.common import Page, paginate
from ytmirror.services.channel_registry import list_channels, set_artist_flag
from ytmirror.services.new_releases import collect_new_releases
from ytmirror.services.youtube_client import YouTubeDataClient

router = APIRouter(prefix="/artists", tags=["artists"])


@router.get("", response_model=Page[ChannelResponse])
async def list_artists(
    page_token: str | None = Query(None, alias="pageToken"),
    limit: int = Query(50, ge=1, le=200),
    user: UserContext = Depends(get_user_context),
    session: AsyncSession = Depends(get_session),
) -> Page[ChannelResponse]:
    artists = list(await list_channels(session, user.user_id, artists_only=True))
    page, next_token = paginate(artists, page_token=page_token, limit=limit)
    return Page[ChannelResponse](items=[to_channel_response(channel) for channel in page], next_page_token=next_token)


@router.post("", response_model=ChannelResponse, status_code=status.HTTP_201_CREATED)
async def mark_artist(
    payload: ChannelCreateRequest,
    response: Response,
    user: UserContext = Depends(get_user_context),
    session: AsyncSession = Depends(get_session),
    client: YouTubeDataClient = Depends(get_youtube_client),
) -> ChannelResponse:
    """Flag a subscription as an artist, subscribing first when needed."""

    channel, created = await subscribe_from_identifier(
        session,
        user.user_id,
        payload.channel_id,
        client,
        is_artist=True,
    )
    if not created:
        channel = await set_artist_flag(session, user.user_id, channel.external_id, True)
        await session.commit()
        response.status_code = status.HTTP_200_OK
    return to_channel_response(channel)


@router.get("/new-releases", response_model=Page[NewReleaseResponse])
async def list_artist_releases(
    limit: int | None = Query(None, ge=1, le=100),
    user: UserContext = Depends(get_user_context),
    session: AsyncSession = Depends(get_session),
) -> Page[NewReleaseResponse]:
    artists = await list_channels(session, user.user_id, artists_only=True)
    releases = collect_new_releases(
        artists,
        limit=limit or settings.new_releases_limit,
        now=utcnow(),
        badge_window=timedelta(hours=settings.new_release_badge_hours),
    )
    return Page[NewReleaseResponse](items=[NewReleaseResponse.model_validate(release) for release in releases])


@router.delete("/{identifier}", response_model=ChannelResponse)
async def unmark_artist(
    identifier: str,
    user: UserContext = Depends(get_user_context),
    session: AsyncSession = Depends(get_session),
) -> ChannelResponse:
    """Clear the artist flag; the subscription itself stays."""

    try:
        channel = await set_artist_flag(session, user.user_id, identifier, False)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    await session.commit()
    return to_channel_response(channel)
