"""Tests for settings and database helpers."""

from __future__ import annotations

from pathlib import Path

import pytest
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from gtfs_store.config import Settings, get_settings
from gtfs_store.database import (
    create_engine,
    get_table_counts,
    missing_tables,
    sqlite_url,
)
from gtfs_store.services.gtfs_static.schema import REQUIRED_TABLES


class TestSettings:
    def test_defaults(self) -> None:
        settings = Settings()
        assert settings.import_batch_size == 1000
        assert settings.import_queue_size == 1
        assert settings.gtfs_import_strict is False
        assert settings.database_url.startswith("sqlite+aiosqlite://")

    def test_environment_aliases(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GTFS_IMPORT_BATCH_SIZE", "250")
        monkeypatch.setenv("GTFS_BUILD_GIT_HASH", "cafe")

        settings = get_settings()
        assert settings.import_batch_size == 250
        assert settings.build_git_hash == "cafe"

    def test_batch_size_bounds(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("IMPORT_BATCH_SIZE", "0")
        with pytest.raises(ValueError):
            Settings()


class TestDatabaseHelpers:
    def test_sqlite_url(self, tmp_path: Path) -> None:
        assert sqlite_url(tmp_path / "x.db") == f"sqlite+aiosqlite:///{tmp_path / 'x.db'}"

    async def test_create_engine_uses_settings(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("DATABASE_URL", sqlite_url(tmp_path / "configured.db"))
        engine = create_engine()
        try:
            assert engine.url.database == str(tmp_path / "configured.db")
        finally:
            await engine.dispose()

    async def test_schema_has_all_tables(self, session: AsyncSession) -> None:
        assert await missing_tables(session, REQUIRED_TABLES) == []
        assert set((await get_table_counts(session)).values()) == {0}

    async def test_missing_tables(self, session: AsyncSession) -> None:
        await session.execute(text("DROP TABLE shapes"))
        await session.commit()

        assert await missing_tables(session, REQUIRED_TABLES) == ["shapes"]
