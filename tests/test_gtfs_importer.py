"""Tests for GtfsImporter - streaming a GTFS directory into the store."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from pathlib import Path

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gtfs_store.database import count_rows, get_table_counts
from gtfs_store.models import Agency, StopTime
from gtfs_store.services.gtfs_static import (
    BatchInserter,
    DecodeError,
    EntityKind,
    GtfsImporter,
    ImportResult,
    PersistenceError,
)
from gtfs_store.services.gtfs_static.schema import GtfsRecord

from .fixtures.gtfs_fixture import AGENCY_TXT, FEED_COUNTS, build_gtfs_dir


class TestImporterFullFeed:
    """Tests for importing a complete, valid feed."""

    async def test_imports_every_kind(self, session: AsyncSession, gtfs_dir: Path) -> None:
        report = await GtfsImporter(session).run(gtfs_dir)

        assert report.ok
        assert report.errors == []
        assert [result.kind for result in report.results] == list(EntityKind)
        assert report.counts == FEED_COUNTS
        assert all(result.batches == 1 for result in report.results)
        assert await get_table_counts(session) == FEED_COUNTS

    async def test_stores_decoded_values(self, session: AsyncSession, gtfs_dir: Path) -> None:
        await GtfsImporter(session).run(gtfs_dir)

        agency = (await session.execute(select(Agency).where(Agency.id == "1"))).scalar_one()
        assert agency.name == "S-Bahn Berlin GmbH"
        assert agency.url == "https://sbahn.berlin/"

        stmt = select(StopTime).where(StopTime.trip_id == "T2").order_by(StopTime.stop_seq)
        stop_times = (await session.execute(stmt)).scalars().all()
        assert [st.departure for st in stop_times] == [86700, 87000]
        assert [st.stop_id for st in stop_times] == ["S2", "S1"]

    async def test_progress_callback_in_order(
        self, session: AsyncSession, gtfs_dir: Path
    ) -> None:
        seen: list[ImportResult] = []

        report = await GtfsImporter(session).run(gtfs_dir, progress=seen.append)

        assert seen == report.results
        assert [result.kind for result in seen] == list(EntityKind)

    async def test_iter_import_yields_one_result_per_kind(
        self, session: AsyncSession, gtfs_dir: Path
    ) -> None:
        importer = GtfsImporter(session)
        kinds = [result.kind async for result in importer.iter_import(gtfs_dir)]
        assert kinds == list(EntityKind)

    async def test_small_batches(self, session: AsyncSession, gtfs_dir: Path) -> None:
        report = await GtfsImporter(session, batch_size=4).run(gtfs_dir)

        stop_times = report.results[list(EntityKind).index(EntityKind.STOP_TIMES)]
        assert stop_times.count == 6
        assert stop_times.batches == 2
        assert await count_rows(session, "stop_times") == 6

    async def test_byte_order_mark_is_skipped(
        self, session: AsyncSession, tmp_path: Path
    ) -> None:
        gtfs_dir = build_gtfs_dir(tmp_path / "gtfs")
        (gtfs_dir / "agency.txt").write_text("\ufeff" + AGENCY_TXT, encoding="utf-8")

        report = await GtfsImporter(session).run(gtfs_dir)

        assert report.ok
        ids = (await session.execute(select(Agency.id).order_by(Agency.id))).scalars().all()
        assert ids == ["1", "2"]

    async def test_report_to_dict(self, session: AsyncSession, gtfs_dir: Path) -> None:
        report = await GtfsImporter(session).run(gtfs_dir)
        data = report.to_dict()

        assert data["status"] == "success"
        assert data["source"] == str(gtfs_dir)
        assert data["duration_ms"] is not None
        assert [r["kind"] for r in data["results"]] == [kind.value for kind in EntityKind]


class TestImporterFailures:
    """A failing kind is reported and the import moves on."""

    async def test_missing_file(self, session: AsyncSession, tmp_path: Path) -> None:
        gtfs_dir = build_gtfs_dir(tmp_path / "gtfs", exclude_files={"shapes.txt"})

        report = await GtfsImporter(session).run(gtfs_dir)

        assert not report.ok
        assert len(report.results) == len(EntityKind)
        failed = [result for result in report.results if not result.ok]
        assert [result.kind for result in failed] == [EntityKind.SHAPES]
        assert isinstance(failed[0].error, FileNotFoundError)
        assert failed[0].count == 0
        assert report.errors == [str(failed[0])]
        assert report.errors[0].startswith("failed to import Shapes: ")

        # later kinds are still imported
        assert await count_rows(session, "calendars") == 2
        assert await count_rows(session, "calendar_dates") == 2

    async def test_decode_error_keeps_preceding_rows(
        self, session: AsyncSession, tmp_path: Path
    ) -> None:
        stop_times = (
            "trip_id,arrival_time,departure_time,stop_id,stop_sequence\n"
            "T1,06:30:00,06:30:30,S1,1\n"
            "T1,a4:37:01,06:35:30,S2,2\n"
            "T1,06:40:00,06:40:30,S3,3\n"
        )
        gtfs_dir = build_gtfs_dir(tmp_path / "gtfs", stop_times=stop_times)

        report = await GtfsImporter(session).run(gtfs_dir)

        by_kind = {result.kind: result for result in report.results}
        result = by_kind[EntityKind.STOP_TIMES]
        assert isinstance(result.error, DecodeError)
        assert result.error.line == 3
        assert result.count == 1
        assert await count_rows(session, "stop_times") == 1
        assert by_kind[EntityKind.SHAPES].ok
        assert await count_rows(session, "shapes") == FEED_COUNTS["shapes"]

    async def test_persistence_error_cancels_reading(
        self, session: AsyncSession, tmp_path: Path
    ) -> None:
        agency = (
            "agency_id,agency_name,agency_url\n"
            "1,S-Bahn Berlin GmbH,https://sbahn.berlin/\n"
            "1,Duplicate,https://dup.example/\n"
            "2,A,https://a.example/\n"
        )
        gtfs_dir = build_gtfs_dir(tmp_path / "gtfs", agency=agency)

        report = await GtfsImporter(session, batch_size=1).run(gtfs_dir)

        result = report.results[0]
        assert result.kind is EntityKind.AGENCIES
        assert isinstance(result.error, PersistenceError)
        assert result.error.batch == 2
        assert result.batches == 1
        assert await count_rows(session, "agencies") == 1

        # the session is still usable for the next kinds
        assert report.results[1].ok
        assert await count_rows(session, "routes") == FEED_COUNTS["routes"]

    async def test_missing_directory(self, session: AsyncSession, tmp_path: Path) -> None:
        report = await GtfsImporter(session).run(tmp_path / "nowhere")

        assert len(report.results) == len(EntityKind)
        assert all(isinstance(result.error, OSError) for result in report.results)
        assert report.to_dict()["status"] == "failed"

    async def test_inserter_crash_stops_the_producer(
        self, session: AsyncSession, gtfs_dir: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        async def crash(self: BatchInserter, records: AsyncIterator[GtfsRecord]) -> None:
            async for _record in records:
                raise RuntimeError("inserter crashed")

        monkeypatch.setattr(BatchInserter, "run", crash)
        importer = GtfsImporter(session)

        with pytest.raises(RuntimeError, match="inserter crashed"):
            await importer.import_kind(gtfs_dir / "stop_times.txt", EntityKind.STOP_TIMES)

        # all_tasks only lists unfinished tasks
        pending = [
            task
            for task in asyncio.all_tasks()
            if task.get_coro().__qualname__ == "GtfsImporter._produce"
        ]
        assert pending == []
