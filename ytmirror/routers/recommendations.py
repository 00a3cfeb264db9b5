"""API endpoints for recommendations and video search."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ytmirror.core.config import settings
from ytmirror.core.dependencies import get_youtube_client
from ytmirror.core.errors import QuotaExhaustedError, UpstreamUnavailableError
from ytmirror.core.identity import UserContext, get_user_context
from ytmirror.db.session import get_session
from ytmirror.schema.common import Page
from ytmirror.schema.recommendation import RecommendationResponse, SearchResultResponse
from ytmirror.services.channel_registry import list_channels
from ytmirror.services.recommendations import RecommendationAggregator
from ytmirror.services.suggestion_utils import select_suggester
from ytmirror.services.youtube_client import YouTubeDataClient

router = APIRouter(tags=["recommendations"])


@router.get("/recommendations", response_model=Page[RecommendationResponse])
async def list_recommendations(
    user: UserContext = Depends(get_user_context),
    session: AsyncSession = Depends(get_session),
) -> Page[RecommendationResponse]:
    channels = await list_channels(session, user.user_id)
    aggregator = RecommendationAggregator(select_suggester(len(channels)), limit=settings.recommendation_limit)
    recommendations = await aggregator.recommend(channels)
    return Page[RecommendationResponse](
        items=[RecommendationResponse.model_validate(item) for item in recommendations]
    )


@router.get("/search", response_model=Page[SearchResultResponse])
async def search_videos(
    query: str = Query(..., min_length=1, max_length=200),
    max_results: int = Query(20, alias="maxResults", ge=1, le=50),
    user: UserContext = Depends(get_user_context),
    client: YouTubeDataClient = Depends(get_youtube_client),
) -> Page[SearchResultResponse]:
    """Quota-metered search; refused reservations surface as 429."""

    try:
        results = await client.search_videos(query, max_results=max_results)
    except QuotaExhaustedError as exc:
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=str(exc)) from exc
    except UpstreamUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return Page[SearchResultResponse](items=[SearchResultResponse.model_validate(item) for item in results])
