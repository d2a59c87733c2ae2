"""Pytest configuration and fixtures."""

from collections.abc import AsyncGenerator, Iterator
from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from gtfs_store.config import get_settings
from gtfs_store.database import create_engine, ensure_schema, get_session_context, sqlite_url

from .fixtures.gtfs_fixture import build_gtfs_dir


@pytest.fixture(autouse=True)
def fresh_settings() -> Iterator[None]:
    """Re-read settings from the environment for every test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "gtfs.db"


@pytest.fixture
def gtfs_dir(tmp_path: Path) -> Path:
    """The default two-agency feed."""
    return build_gtfs_dir(tmp_path / "gtfs")


@pytest.fixture
async def engine(db_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """Engine on a fresh SQLite file with the GTFS schema."""
    engine = create_engine(sqlite_url(db_path))
    await ensure_schema(engine)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
async def session(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    async with get_session_context(engine) as session:
        yield session
