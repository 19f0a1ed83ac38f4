"""
Pytest configuration and fixtures
"""

import os

# Settings are read at import time; keep the scheduler off and secrets known
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("WARMUP_SECRET", "test-warmup-secret")

import math
from datetime import date, timedelta
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

import models  # noqa: F401  registers every table on Base.metadata
from cache.cache import get_cache, reset_cache
from models.base import Base


def make_series(days: int = 90, term_a: str = "chatgpt", term_b: str = "gemini", start: date = date(2024, 1, 1)):
    """Deterministic daily series: term_a trends up, term_b drifts down, both with a weekly wave."""
    rows = []
    for i in range(days):
        wave = 5 * math.sin(2 * math.pi * i / 7)
        rows.append({
            "date": (start + timedelta(days=i)).isoformat(),
            term_a: round(min(100, 40 + i * 0.3 + wave), 2),
            term_b: round(max(1, 45 - i * 0.1 + wave / 2), 2),
        })
    return rows


@pytest.fixture
def database_url(tmp_path):
    # File database: with NullPool every connection sees the same tables
    return f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"


@pytest_asyncio.fixture(scope="function")
async def test_engine(database_url):
    """Create test database engine"""
    engine = create_async_engine(
        database_url,
        echo=False,
        poolclass=NullPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for tests"""
    async_session_maker = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )

    async with async_session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def cache():
    """Fresh in-memory cache, also installed as the global one"""
    reset_cache()
    yield get_cache()
    reset_cache()


@pytest.fixture
def sample_series():
    return make_series()


@pytest.fixture
def series_factory():
    return make_series
