"""GTFS static importer - streams every GTFS file of a feed into the store."""

from __future__ import annotations

import asyncio
import time
from contextlib import suppress
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

from gtfs_store.config import get_settings
from gtfs_store.logging import get_logger
from gtfs_store.services.gtfs_static.inserter import BatchInserter, ImportResult
from gtfs_store.services.gtfs_static.parser import DecodeError, decode_entities
from gtfs_store.services.gtfs_static.schema import EntityKind

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable
    from typing import TextIO

    from sqlalchemy.ext.asyncio import AsyncSession

    from gtfs_store.services.gtfs_static.schema import GtfsRecord

logger = get_logger(__name__)

# Import order; each kind is read from its conventional file name
IMPORT_ORDER: tuple[EntityKind, ...] = tuple(EntityKind)

# Marks the end of the records handed from producer to consumer
_CLOSED: Any = object()


class ImportReport:
    """Collects the per-kind results of one feed import."""

    def __init__(self, source: str) -> None:
        self.source = source
        self.started_at = datetime.now(timezone.utc)
        self.ended_at: datetime | None = None
        self.duration_ms: int | None = None
        self.results: list[ImportResult] = []

    def add(self, result: ImportResult) -> None:
        self.results.append(result)

    def finish(self) -> None:
        self.ended_at = datetime.now(timezone.utc)
        self.duration_ms = int((self.ended_at - self.started_at).total_seconds() * 1000)

    @property
    def ok(self) -> bool:
        return all(result.ok for result in self.results)

    @property
    def errors(self) -> list[str]:
        return [str(result) for result in self.results if not result.ok]

    @property
    def counts(self) -> dict[str, int]:
        return {result.kind.value: result.count for result in self.results}

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": "success" if self.ok else "failed",
            "source": self.source,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "duration_ms": self.duration_ms,
            "results": [result.to_dict() for result in self.results],
            "errors": self.errors,
        }


class GtfsImporter:
    """Imports the eight GTFS files of a feed directory, one kind at a time.

    Within a kind, a producer task decodes CSV rows and hands them one by one
    to the batch inserter through a bounded queue, so memory stays flat no
    matter how large the file is. Kinds never overlap; the session is only
    ever used by the inserter of the current kind.

    Usage:
        importer = GtfsImporter(session)
        async for result in importer.iter_import("gtfs/"):
            print(result)

        # Or collect everything:
        report = await importer.run("gtfs/")
    """

    def __init__(
        self,
        session: AsyncSession,
        batch_size: int | None = None,
        queue_size: int | None = None,
    ) -> None:
        settings = get_settings()
        self.session = session
        self.batch_size = batch_size if batch_size is not None else settings.import_batch_size
        self.queue_size = queue_size if queue_size is not None else settings.import_queue_size

    async def run(
        self,
        gtfs_base: str | Path,
        progress: Callable[[ImportResult], None] | None = None,
    ) -> ImportReport:
        """Import the whole feed and return the collected results.

        Args:
            gtfs_base: Directory holding the GTFS files.
            progress: Optional callback receiving each kind's result as soon as
                the kind is done.
        """
        report = ImportReport(source=str(gtfs_base))
        async for result in self.iter_import(gtfs_base):
            report.add(result)
            if progress is not None:
                progress(result)
        report.finish()

        logger.info(
            "GTFS import complete",
            source=report.source,
            duration_ms=report.duration_ms,
            counts=report.counts,
            errors_count=len(report.errors),
        )
        return report

    async def iter_import(self, gtfs_base: str | Path) -> AsyncIterator[ImportResult]:
        """Import kind after kind, yielding exactly one result per kind.

        A kind that fails (missing file, malformed row, failed batch) is
        reported through its result and the import moves on to the next kind.
        """
        base = Path(gtfs_base)
        logger.info("Starting GTFS import", source=str(base))

        for kind in IMPORT_ORDER:
            result = await self.import_kind(base / kind.binding.filename, kind)
            if result.ok:
                logger.info(
                    "Imported entities",
                    kind=kind.label,
                    count=result.count,
                    batches=result.batches,
                    elapsed_ms=int(result.elapsed * 1000),
                )
            else:
                logger.error("Import of entities failed", kind=kind.label, error=str(result.error))
            yield result

    async def import_kind(self, csv_path: Path, kind: EntityKind) -> ImportResult:
        """Import a single GTFS file into the table of its kind."""
        start = time.perf_counter()

        try:
            stream = open(csv_path, encoding="utf-8-sig", newline="")  # noqa: SIM115
        except OSError as exc:
            return ImportResult(kind=kind, error=exc, elapsed=time.perf_counter() - start)

        with stream:
            queue: asyncio.Queue[GtfsRecord] = asyncio.Queue(maxsize=self.queue_size)
            producer = asyncio.create_task(self._produce(stream, kind, queue))
            inserter = BatchInserter(self.session, kind, batch_size=self.batch_size)
            try:
                result = await inserter.run(_drain(queue))
                if result.ok:
                    try:
                        await producer
                    except (DecodeError, OSError) as exc:
                        result.error = exc
            finally:
                if not producer.done():
                    # the consumer gave up, drop whatever the producer still holds
                    producer.cancel()
                with suppress(asyncio.CancelledError, DecodeError, OSError):
                    await producer

        result.elapsed = time.perf_counter() - start
        return result

    @staticmethod
    async def _produce(
        stream: TextIO, kind: EntityKind, queue: asyncio.Queue[GtfsRecord]
    ) -> None:
        """Decode rows into the queue and close it with the end marker."""
        try:
            for record in decode_entities(stream, kind):
                await queue.put(record)
        except Exception:
            await queue.put(_CLOSED)
            raise
        await queue.put(_CLOSED)


async def _drain(queue: asyncio.Queue[GtfsRecord]) -> AsyncIterator[GtfsRecord]:
    """Iterate the queue until the producer closes it."""
    while True:
        record = await queue.get()
        if record is _CLOSED:
            return
        yield record
