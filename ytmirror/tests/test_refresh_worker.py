"""Tests for the background refresh worker."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from conftest import FakeClock, add_channel, channel_id
from ytmirror.core.config import Settings
from ytmirror.services.channel_registry import list_channels
from ytmirror.services.quota_ledger import QuotaLedger
from ytmirror.services.refresh_worker import RefreshWorker, refresh_worker_enabled

pytest_plugins = ("pytest_asyncio",)


def _config(**overrides) -> Settings:
    values = {
        "youtube_api_key": "dummy-key",
        "youtube_api_base": "https://youtube.test/v3",
        "quota_cost_search": 100,
        "refresh_fetch_video_details": False,
        "refresh_max_concurrency": 2,
    }
    values.update(overrides)
    return Settings(**values)


def _latest(request: httpx.Request) -> httpx.Response:
    cid = request.url.params["channelId"]
    return httpx.Response(200, json={"items": [{"id": {"videoId": f"{cid[-3:]}-v"}, "snippet": {"title": "New"}}]})


@pytest.mark.asyncio
async def test_run_once_refreshes_every_user(
    session_factory: async_sessionmaker[AsyncSession],
    clock: FakeClock,
) -> None:
    async with session_factory() as session:
        await add_channel(session, "user-1", channel_id("A"))
        await add_channel(session, "user-2", channel_id("B"))
        await session.commit()

    ledger = QuotaLedger(units_budget=1000, clock=clock)
    worker = RefreshWorker(ledger, interval=timedelta(minutes=5), session_factory=session_factory, config=_config())

    async with httpx.AsyncClient(transport=httpx.MockTransport(_latest)) as http_client:
        checked = await worker.run_once(http_client)

    assert checked == 2
    assert ledger.current_window().units_consumed == 200
    async with session_factory() as session:
        first = await list_channels(session, "user-1")
        second = await list_channels(session, "user-2")
    assert first[0].latest_video_id == "AAA-v"
    assert second[0].latest_video_id == "BBB-v"


@pytest.mark.asyncio
async def test_start_and_stop(session_factory: async_sessionmaker[AsyncSession], clock: FakeClock) -> None:
    worker = RefreshWorker(
        QuotaLedger(units_budget=0, clock=clock),
        interval=timedelta(minutes=5),
        session_factory=session_factory,
        config=_config(),
    )

    worker.start()
    await asyncio.sleep(0.05)
    await worker.stop()
    await worker.stop()


def test_worker_disabled_by_default() -> None:
    assert refresh_worker_enabled(_config()) is False
    assert refresh_worker_enabled(_config(auto_refresh_interval_minutes=15)) is True
    assert refresh_worker_enabled(_config(auto_refresh_interval_minutes=15, youtube_api_key=None)) is False
