from __future__ import annotations

from collections.abc import AsyncIterator

import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from vitalpath.db import make_engine
from vitalpath.models import Base


async def _engine(url: str, **kw) -> AsyncEngine:
    engine = make_engine(url, **kw)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return engine


@pytest_asyncio.fixture
async def db() -> AsyncIterator[AsyncSession]:
    engine = await _engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    maker = async_sessionmaker(engine, expire_on_commit=False)
    async with maker() as s:
        yield s
    await engine.dispose()


@pytest_asyncio.fixture
async def file_sessions(tmp_path) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Session factory over a sqlite file, for tests that need two independent connections."""
    engine = await _engine(f"sqlite+aiosqlite:///{tmp_path / 'vitalpath.sqlite3'}")
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()
