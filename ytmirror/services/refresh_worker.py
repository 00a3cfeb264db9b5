"""Refreshes stale channel caches, on request or periodically in the background."""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from typing import Callable

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from ytmirror.core.config import Settings, settings
from ytmirror.db.session import SessionLocal
from ytmirror.services.channel_cache import ChannelCache
from ytmirror.services.channel_registry import list_channels, list_user_ids
from ytmirror.services.quota_ledger import QuotaLedger
from ytmirror.services.sync_engine import RefreshOutcome, SyncEngine
from ytmirror.services.youtube_client import QuotaCosts, YouTubeDataClient

logger = logging.getLogger(__name__)


def build_sync_engine(
    session: AsyncSession,
    user_id: str,
    *,
    ledger: QuotaLedger,
    client: YouTubeDataClient,
    config: Settings = settings,
) -> SyncEngine:
    """Wire a SyncEngine for one user; the engine reserves quota, so the client runs unmetered."""

    api = client.unmetered()
    return SyncEngine(
        ledger=ledger,
        cache=ChannelCache(session, user_id),
        fetch_latest=api.get_channel_latest_video,
        cost_per_call=api.costs.search,
        fetch_details=api.get_video_details if config.refresh_fetch_video_details else None,
        details_cost=api.costs.videos,
        call_timeout=config.refresh_call_timeout_seconds,
    )


async def refresh_user_channels(
    session: AsyncSession,
    user_id: str,
    *,
    ledger: QuotaLedger,
    client: YouTubeDataClient,
    max_age: timedelta,
    max_concurrent: int,
    config: Settings = settings,
) -> list[RefreshOutcome]:
    """Refresh the stale subset of a user's channels. The caller commits."""

    channels = await list_channels(session, user_id)
    if not channels:
        return []
    engine = build_sync_engine(session, user_id, ledger=ledger, client=client, config=config)
    return await engine.refresh_if_stale(channels, max_age, max_concurrent)


class RefreshWorker:
    """Background loop that keeps every user's channel cache warm."""

    def __init__(
        self,
        ledger: QuotaLedger,
        *,
        interval: timedelta,
        session_factory: Callable[[], AsyncSession] = SessionLocal,
        config: Settings = settings,
    ) -> None:
        self._ledger = ledger
        self._interval = interval
        self._session_factory = session_factory
        self._config = config
        self._task: asyncio.Task | None = None
        self._stop_event = asyncio.Event()

    async def run_once(self, http_client: httpx.AsyncClient) -> int:
        """One pass over all users; returns the number of channels checked."""

        client = YouTubeDataClient(
            http_client,
            api_key=self._config.youtube_api_key,
            costs=QuotaCosts.from_settings(self._config),
            base_url=self._config.youtube_api_base,
            timeout=self._config.youtube_timeout_seconds,
        )
        checked = 0
        async with self._session_factory() as session:
            user_ids = await list_user_ids(session)

        for user_id in user_ids:
            async with self._session_factory() as session:
                outcomes = await refresh_user_channels(
                    session,
                    user_id,
                    ledger=self._ledger,
                    client=client,
                    max_age=timedelta(minutes=self._config.refresh_max_age_minutes),
                    max_concurrent=self._config.refresh_max_concurrency,
                    config=self._config,
                )
                await session.commit()
            checked += len(outcomes)
        return checked

    async def _run(self) -> None:
        sleep_for = self._interval.total_seconds()

        async with httpx.AsyncClient() as http_client:
            while not self._stop_event.is_set():
                try:
                    checked = await self.run_once(http_client)
                    logger.info("Refresh cycle finished", extra={"checked": checked})
                except Exception:  # pragma: no cover - defensive guard
                    logger.exception("Refresh worker iteration failed")

                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=sleep_for)
                except asyncio.TimeoutError:
                    continue

    def start(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._stop_event.set()
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:  # pragma: no cover - event loop behaviour
            pass
        finally:
            self._task = None


_refresh_worker: RefreshWorker | None = None


def refresh_worker_enabled(config: Settings = settings) -> bool:
    return bool(config.auto_refresh_interval_minutes and config.youtube_api_key)


async def start_refresh_worker(ledger: QuotaLedger) -> None:
    """Public entry for FastAPI startup hook."""

    global _refresh_worker

    if not refresh_worker_enabled():
        logger.info("Background channel refresh disabled")
        return
    if _refresh_worker is None:
        _refresh_worker = RefreshWorker(ledger, interval=timedelta(minutes=settings.auto_refresh_interval_minutes))
    _refresh_worker.start()


async def stop_refresh_worker() -> None:
    """Public entry for FastAPI shutdown hook."""

    global _refresh_worker

    if _refresh_worker is None:
        return
    await _refresh_worker.stop()
    _refresh_worker = None
