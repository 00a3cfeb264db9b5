"""Shared fixtures: an in-memory SQLite database per test."""

from __future__ import annotations

import uuid
from collections.abc import AsyncIterator
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from ytmirror.db.models import Base, Channel


def _memory_db_url() -> str:
    return f"sqlite+aiosqlite:///file:ytmirror_{uuid.uuid4().hex}?mode=memory&cache=shared"


class FakeClock:
    """Deterministic clock for ledger and cache tests."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def engine() -> AsyncIterator[AsyncEngine]:
    db_engine = create_async_engine(_memory_db_url(), future=True, connect_args={"uri": True})
    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield db_engine
    await db_engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    async with session_factory() as db_session:
        yield db_session
        await db_session.rollback()


def channel_id(seed: str) -> str:
    """A syntactically valid channel id built from one repeated character."""

    return "UC" + seed * 22


async def add_channel(session: AsyncSession, user_id: str, external_id: str, **fields) -> Channel:
    channel = Channel(user_id=user_id, external_id=external_id, title=fields.pop("title", external_id), **fields)
    session.add(channel)
    await session.flush()
    return channel
