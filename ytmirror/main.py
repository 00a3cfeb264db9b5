"""FastAPI app entry point."""

from __future__ import annotations

import logging
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from ytmirror.core.config import Settings, settings
from ytmirror.routers import artists, channels, playlists, quota, recommendations
from ytmirror.services.quota_ledger import QuotaLedger
from ytmirror.services.refresh_worker import start_refresh_worker, stop_refresh_worker


def create_app(config: Settings = settings) -> FastAPI:
    """Build FastAPI application."""

    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="ytmirror", version="0.1.0")
    app.state.quota_ledger = QuotaLedger.from_settings(config)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.dashboard_cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(channels.router)
    app.include_router(artists.router)
    app.include_router(playlists.router)
    app.include_router(recommendations.router)
    app.include_router(quota.router)

    # Serve built frontend assets when present
    if Path(config.dashboard_dir).is_dir():
        app.mount("/dashboard", StaticFiles(directory=config.dashboard_dir, html=True), name="dashboard")

    @app.on_event("startup")
    async def _startup() -> None:
        await start_refresh_worker(app.state.quota_ledger)

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        await stop_refresh_worker()

    @app.get("/healthz", tags=["health"])
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()
