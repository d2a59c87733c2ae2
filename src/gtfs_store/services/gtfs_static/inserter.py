"""Batch inserter - persists a stream of records in fixed-size transactions."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

from sqlalchemy import insert
from sqlalchemy.exc import SQLAlchemyError

from gtfs_store.config import get_settings
from gtfs_store.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import AsyncIterable

    from sqlalchemy.ext.asyncio import AsyncSession

    from gtfs_store.services.gtfs_static.schema import EntityKind, GtfsRecord

logger = get_logger(__name__)


class PersistenceError(Exception):
    """Raised when a batch could not be written to the store."""

    def __init__(self, kind: EntityKind, batch: int, cause: Exception) -> None:
        self.kind = kind
        self.batch = batch
        super().__init__(f"failed to persist batch {batch} of {kind}: {cause}")


class ImportResult:
    """Outcome of importing one entity kind."""

    def __init__(
        self,
        kind: EntityKind,
        count: int = 0,
        batches: int = 0,
        elapsed: float = 0.0,
        error: Exception | None = None,
    ) -> None:
        self.kind = kind
        self.count = count
        self.batches = batches
        self.elapsed = elapsed
        self.error = error

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "status": "success" if self.ok else "failed",
            "count": self.count,
            "batches": self.batches,
            "elapsed_ms": int(self.elapsed * 1000),
            "error": str(self.error) if self.error else None,
        }

    def __str__(self) -> str:
        if self.error is not None:
            return f"failed to import {self.kind}: {self.error}"
        return (
            f"imported {self.count} {self.kind} in {self.batches} batches in {self.elapsed:.3f}s"
        )


class BatchInserter:
    """Buffers records of one entity kind and inserts them batch by batch.

    Every full batch is written with a single INSERT and committed on its
    own. Input is consumed until it is exhausted or a batch fails; a failed
    batch is rolled back, the rest of the input is left unread and the
    batches committed before it stay in the store.
    """

    def __init__(
        self,
        session: AsyncSession,
        kind: EntityKind,
        batch_size: int | None = None,
    ) -> None:
        self.session = session
        self.kind = kind
        self.batch_size = batch_size if batch_size is not None else get_settings().import_batch_size
        self._model = kind.binding.model

    async def run(self, records: AsyncIterable[GtfsRecord]) -> ImportResult:
        """Consume all records and report counts, batches and the first error."""
        start = time.perf_counter()
        result = ImportResult(kind=self.kind)
        batch: list[dict[str, Any]] = []

        async for record in records:
            result.count += 1
            batch.append(record.model_dump())

            if len(batch) >= self.batch_size:
                if not await self._write_batch(batch, result):
                    break
                batch = []
        else:
            # persist any incomplete batch
            if batch:
                await self._write_batch(batch, result)

        result.elapsed = time.perf_counter() - start
        return result

    async def _write_batch(self, batch: list[dict[str, Any]], result: ImportResult) -> bool:
        """Insert and commit one batch; record the failure on the result."""
        try:
            await self.session.execute(insert(self._model), batch)
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            result.error = PersistenceError(self.kind, result.batches + 1, exc)
            logger.error(
                "Batch insert failed",
                kind=self.kind.label,
                batch=result.batches + 1,
                size=len(batch),
                error=str(exc),
            )
            return False

        result.batches += 1
        logger.debug(
            "Inserted batch",
            kind=self.kind.label,
            batch=result.batches,
            size=len(batch),
        )
        return True
