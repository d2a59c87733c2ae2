"""Database connection, session and schema management."""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any

from sqlalchemy import inspect, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from gtfs_store.config import get_settings
from gtfs_store.models import Base

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Iterable

    from sqlalchemy.orm import Session


def sqlite_url(db_path: str | Path) -> str:
    """Build an async SQLAlchemy URL for a SQLite database file."""
    return f"sqlite+aiosqlite:///{Path(db_path)}"


def create_engine(database_url: str | None = None) -> AsyncEngine:
    """Create an async engine, defaulting to the configured database URL."""
    settings = get_settings()
    url = database_url or settings.database_url
    options: dict[str, Any] = {"echo": settings.debug}
    if not url.startswith("sqlite"):
        options.update(pool_pre_ping=True, pool_size=5, max_overflow=10)
    return create_async_engine(url, **options)


def get_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create a session factory bound to the engine."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@asynccontextmanager
async def get_session_context(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Context manager for database sessions."""
    factory = get_session_factory(engine)
    async with factory() as session:
        try:
            yield session
        finally:
            await session.close()


async def ensure_schema(engine: AsyncEngine) -> None:
    """Create the GTFS tables that do not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def missing_tables(session: AsyncSession, names: Iterable[str]) -> list[str]:
    """Return the subset of ``names`` that are not tables in the store."""

    def _table_names(sync_session: Session) -> set[str]:
        return set(inspect(sync_session.connection()).get_table_names())

    existing = await session.run_sync(_table_names)
    return [name for name in names if name not in existing]


async def count_rows(session: AsyncSession, table: str) -> int:
    """Count the rows of a single table."""
    result = await session.execute(text(f"SELECT COUNT(*) FROM {table}"))
    return int(result.scalar_one())


async def get_table_counts(session: AsyncSession) -> dict[str, int]:
    """Get row counts for all GTFS tables."""
    return {table: await count_rows(session, table) for table in Base.metadata.tables}
