"""API endpoints for a user's subscribed channels."""

from __future__ import annotations

import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from ytmirror.core.config import settings
from ytmirror.core.dependencies import get_quota_ledger, get_youtube_client
from ytmirror.core.errors import NotFoundError, QuotaExhaustedError, UpstreamUnavailableError
from ytmirror.core.identity import UserContext, get_user_context
from ytmirror.db.models import Channel, as_utc, utcnow
from ytmirror.db.session import get_session
from ytmirror.schema.channel import (
    ChannelCreateRequest,
    ChannelResponse,
    LatestVideo,
    NewReleaseResponse,
    QuotaResponse,
    RefreshOutcomeResponse,
    RefreshResponse,
    RefreshStats,
)
from ytmirror.schema.common import Page, paginate
from ytmirror.services.channel_cache import channel_is_stale
from ytmirror.services.channel_registry import get_channel, list_channels, remove_channel, subscribe_channel
from ytmirror.services.channel_resolver import ChannelResolutionError, resolve_channel_identifier
from ytmirror.services.new_releases import collect_new_releases
from ytmirror.services.quota_ledger import QuotaLedger
from ytmirror.services.refresh_worker import refresh_user_channels
from ytmirror.services.sync_engine import summarise_outcomes
from ytmirror.services.youtube_client import ChannelDetails, YouTubeDataClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/channels", tags=["channels"])


def to_channel_response(channel: Channel, *, stale: bool = False) -> ChannelResponse:
    latest = None
    if channel.latest_video_id:
        latest = LatestVideo(
            video_id=channel.latest_video_id,
            title=channel.latest_video_title,
            thumbnail_url=channel.latest_video_thumbnail_url,
            published_at=as_utc(channel.latest_video_published_at),
            duration=channel.latest_video_duration,
            view_count=channel.latest_video_view_count,
        )
    return ChannelResponse(
        id=channel.id,
        channel_id=channel.external_id,
        title=channel.title,
        description=channel.description,
        thumbnail_url=channel.thumbnail_url,
        is_artist=channel.is_artist,
        subscribed_at=as_utc(channel.subscribed_at),
        last_checked_at=as_utc(channel.last_checked_at),
        latest_video=latest,
        stale=stale,
    )


def quota_response(ledger: QuotaLedger) -> QuotaResponse:
    return QuotaResponse.model_validate(ledger.current_window())


async def subscribe_from_identifier(
    session: AsyncSession,
    user_id: str,
    raw_identifier: str,
    client: YouTubeDataClient,
    *,
    is_artist: bool = False,
) -> tuple[Channel, bool]:
    """Resolve ``raw_identifier`` and subscribe to it; translates failures to HTTP errors."""

    try:
        channel_id = await resolve_channel_identifier(raw_identifier, client)
    except ChannelResolutionError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except QuotaExhaustedError as exc:
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=str(exc)) from exc

    existing = await get_channel(session, user_id, channel_id)
    if existing is not None:
        return existing, False

    details: ChannelDetails | None = None
    if client.has_credentials:
        try:
            details = await client.get_channel_details(channel_id)
        except NotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Channel not found") from exc
        except (QuotaExhaustedError, UpstreamUnavailableError) as exc:
            logger.warning(
                "Subscribing without channel details",
                extra={"channel_id": channel_id, "error": str(exc)},
            )

    channel, created = await subscribe_channel(
        session,
        user_id,
        channel_id=channel_id,
        details=details,
        is_artist=is_artist,
    )
    await session.commit()
    return channel, created


@router.get("", response_model=Page[ChannelResponse])
async def list_subscribed_channels(
    max_age: int | None = Query(None, alias="maxAge", ge=0, description="Staleness threshold in seconds"),
    page_token: str | None = Query(None, alias="pageToken"),
    limit: int = Query(50, ge=1, le=200),
    user: UserContext = Depends(get_user_context),
    session: AsyncSession = Depends(get_session),
) -> Page[ChannelResponse]:
    threshold = timedelta(seconds=max_age) if max_age is not None else timedelta(minutes=settings.refresh_max_age_minutes)
    now = utcnow()

    channels = list(await list_channels(session, user.user_id))
    page, next_token = paginate(channels, page_token=page_token, limit=limit)
    items = [to_channel_response(channel, stale=channel_is_stale(channel, threshold, now)) for channel in page]
    return Page[ChannelResponse](items=items, next_page_token=next_token)


@router.post("", response_model=ChannelResponse, status_code=status.HTTP_201_CREATED)
async def add_channel(
    payload: ChannelCreateRequest,
    response: Response,
    user: UserContext = Depends(get_user_context),
    session: AsyncSession = Depends(get_session),
    client: YouTubeDataClient = Depends(get_youtube_client),
) -> ChannelResponse:
    channel, created = await subscribe_from_identifier(session, user.user_id, payload.channel_id, client)
    if not created:
        response.status_code = status.HTTP_200_OK
    return to_channel_response(channel, stale=channel.last_checked_at is None)


@router.post("/refresh", response_model=RefreshResponse)
async def refresh_channels(
    max_age: int | None = Query(None, alias="maxAge", ge=0, description="Refresh channels older than this many seconds"),
    max_concurrent: int | None = Query(None, alias="maxConcurrent", ge=1, le=10),
    user: UserContext = Depends(get_user_context),
    session: AsyncSession = Depends(get_session),
    ledger: QuotaLedger = Depends(get_quota_ledger),
    client: YouTubeDataClient = Depends(get_youtube_client),
) -> RefreshResponse:
    if not client.has_credentials:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="No YouTube credentials available")

    outcomes = await refresh_user_channels(
        session,
        user.user_id,
        ledger=ledger,
        client=client,
        max_age=timedelta(seconds=max_age) if max_age is not None else timedelta(minutes=settings.refresh_max_age_minutes),
        max_concurrent=max_concurrent or settings.refresh_max_concurrency,
    )
    await session.commit()

    stats = summarise_outcomes(outcomes)
    return RefreshResponse(
        ok=stats["failed"] == 0,
        stats=RefreshStats(**stats),
        outcomes=[
            RefreshOutcomeResponse(
                channel_id=outcome.channel_id,
                status=outcome.status.value,
                reason=outcome.reason,
                latest_video_id=outcome.latest_video_id,
            )
            for outcome in outcomes
        ],
        quota=quota_response(ledger),
    )


@router.get("/new-releases", response_model=Page[NewReleaseResponse])
async def list_new_releases(
    artists_only: bool = Query(False, alias="artistsOnly"),
    limit: int | None = Query(None, ge=1, le=100),
    user: UserContext = Depends(get_user_context),
    session: AsyncSession = Depends(get_session),
) -> Page[NewReleaseResponse]:
    channels = await list_channels(session, user.user_id, artists_only=True if artists_only else None)
    releases = collect_new_releases(
        channels,
        limit=limit or settings.new_releases_limit,
        now=utcnow(),
        badge_window=timedelta(hours=settings.new_release_badge_hours),
    )
    return Page[NewReleaseResponse](items=[NewReleaseResponse.model_validate(release) for release in releases])


@router.delete("/{identifier}", response_model=ChannelResponse)
async def delete_channel(
    identifier: str,
    user: UserContext = Depends(get_user_context),
    session: AsyncSession = Depends(get_session),
) -> ChannelResponse:
    try:
        channel = await remove_channel(session, user.user_id, identifier)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    response = to_channel_response(channel)
    await session.commit()
    return response
