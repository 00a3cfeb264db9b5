"""FastAPI dependencies shared by the routers."""

from __future__ import annotations

from collections.abc import AsyncIterator

import httpx
from fastapi import Depends, Request

from ytmirror.core.config import settings
from ytmirror.core.identity import UserContext, get_user_context
from ytmirror.services.quota_ledger import QuotaLedger
from ytmirror.services.youtube_client import YouTubeDataClient


def get_quota_ledger(request: Request) -> QuotaLedger:
    """The process-wide ledger created at app start-up."""

    return request.app.state.quota_ledger


async def get_http_client() -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient() as client:
        yield client


async def get_youtube_client(
    user: UserContext = Depends(get_user_context),
    ledger: QuotaLedger = Depends(get_quota_ledger),
    http_client: httpx.AsyncClient = Depends(get_http_client),
) -> YouTubeDataClient:
    """Metered client acting with the caller's token, or the server API key."""

    return YouTubeDataClient(
        http_client,
        access_token=user.access_token,
        api_key=settings.youtube_api_key,
        ledger=ledger,
    )
