"""Trim engine - reduces the store to the data of a single agency.

Design notes
------------
- The agency is found by substring match on its name; the first match by id
  wins. Case sensitivity follows the store's LIKE operator.
- Deletes run parent-first. Every statement removes the rows whose parent
  the previous statement removed, so the order below is load-bearing.
- Each step is committed on its own. A failing step aborts the trim; steps
  already committed stay committed.
- calendars and calendar_dates are left as they are.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError

from gtfs_store.database import count_rows, missing_tables
from gtfs_store.logging import get_logger
from gtfs_store.models import Agency
from gtfs_store.services.gtfs_static.schema import REQUIRED_TABLES, EntityKind

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy import TextClause
    from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


class SchemaError(Exception):
    """Raised when tables needed for trimming are missing."""


class AgencyNotFoundError(LookupError):
    """Raised when no agency name contains the requested fragment."""

    def __init__(self, fragment: str) -> None:
        self.fragment = fragment
        super().__init__(f"could not find an agency like {fragment!r}")


class TrimError(Exception):
    """Raised when a trim statement fails."""

    def __init__(self, kind: EntityKind, cause: Exception) -> None:
        self.kind = kind
        super().__init__(f"failed to trim {kind}: {cause}")


# ---------------------------------------------------------------------------
# SQL: one DELETE per step, in execution order
# ---------------------------------------------------------------------------

# agencies other than the selected one
_DELETE_AGENCIES = text("""
DELETE FROM agencies
WHERE id <> :agency_id
""")

# routes of removed agencies
_DELETE_ROUTES = text("""
DELETE FROM routes
WHERE agency_id NOT IN (SELECT DISTINCT id FROM agencies)
""")

# trips of removed routes
_DELETE_TRIPS = text("""
DELETE FROM trips
WHERE route_id NOT IN (SELECT DISTINCT id FROM routes)
""")

# stop times of removed trips
_DELETE_STOP_TIMES = text("""
DELETE FROM stop_times
WHERE trip_id NOT IN (SELECT DISTINCT id FROM trips)
""")

# stops no remaining stop time calls at
_DELETE_STOPS = text("""
DELETE FROM stops
WHERE id NOT IN (SELECT DISTINCT stop_id FROM stop_times)
""")

# shape points of shapes no remaining trip follows
_DELETE_SHAPES = text("""
DELETE FROM shapes
WHERE shape_id NOT IN (SELECT DISTINCT shape_id FROM trips)
""")

TRIM_STEPS: tuple[tuple[EntityKind, TextClause], ...] = (
    (EntityKind.AGENCIES, _DELETE_AGENCIES),
    (EntityKind.ROUTES, _DELETE_ROUTES),
    (EntityKind.TRIPS, _DELETE_TRIPS),
    (EntityKind.STOP_TIMES, _DELETE_STOP_TIMES),
    (EntityKind.STOPS, _DELETE_STOPS),
    (EntityKind.SHAPES, _DELETE_SHAPES),
)


class TrimStepResult:
    """Outcome of trimming one table."""

    def __init__(self, kind: EntityKind, affected: int, remaining: int, elapsed: float) -> None:
        self.kind = kind
        self.affected = affected
        self.remaining = remaining
        self.elapsed = elapsed

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "affected": self.affected,
            "remaining": self.remaining,
            "elapsed_ms": int(self.elapsed * 1000),
        }

    def __str__(self) -> str:
        return (
            f"trimmed {self.affected} {self.kind} to {self.remaining} in {self.elapsed:.3f}s"
        )


class TrimResult:
    """Per-kind trim results, in execution order."""

    def __init__(self, agency_id: str, agency_name: str) -> None:
        self.agency_id = agency_id
        self.agency_name = agency_name
        self.steps: dict[EntityKind, TrimStepResult] = {}

    def add(self, step: TrimStepResult) -> None:
        self.steps[step.kind] = step

    def __getitem__(self, kind: EntityKind) -> TrimStepResult:
        return self.steps[kind]

    def __iter__(self) -> Iterator[TrimStepResult]:
        return iter(self.steps.values())

    def __len__(self) -> int:
        return len(self.steps)

    def to_dict(self) -> dict[str, Any]:
        return {
            "agency_id": self.agency_id,
            "agency_name": self.agency_name,
            "steps": [step.to_dict() for step in self],
        }

    def __str__(self) -> str:
        return "\n".join(str(step) for step in self)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def trim(session: AsyncSession, fragment: str) -> TrimResult:
    """Remove everything not reachable from the agency matching ``fragment``.

    Args:
        session: Session on a populated store.
        fragment: Substring of the agency name to keep.

    Returns:
        TrimResult with rows affected and remaining per trimmed table.

    Raises:
        SchemaError: If one of the GTFS tables is missing.
        AgencyNotFoundError: If no agency matches; nothing is deleted.
        TrimError: If a delete statement fails.
    """
    missing = await missing_tables(session, REQUIRED_TABLES)
    if missing:
        msg = f"missing tables: {', '.join(missing)}"
        raise SchemaError(msg)

    agency = await find_agency(session, fragment)
    if agency is None:
        raise AgencyNotFoundError(fragment)

    logger.info("Trimming store to agency", agency_id=agency.id, agency_name=agency.name)
    result = TrimResult(agency_id=agency.id, agency_name=agency.name)

    for kind, statement in TRIM_STEPS:
        params = {"agency_id": result.agency_id} if kind is EntityKind.AGENCIES else {}
        step = await _run_step(session, kind, statement, params)
        result.add(step)
        logger.info(
            "Trimmed table",
            kind=kind.label,
            affected=step.affected,
            remaining=step.remaining,
            elapsed_ms=int(step.elapsed * 1000),
        )

    return result


async def find_agency(session: AsyncSession, fragment: str) -> Agency | None:
    """Return the first agency (by id) whose name contains ``fragment``."""
    stmt = (
        select(Agency)
        .where(Agency.name.contains(fragment, autoescape=True))
        .order_by(Agency.id)
        .limit(1)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def _run_step(
    session: AsyncSession,
    kind: EntityKind,
    statement: TextClause,
    params: dict[str, Any],
) -> TrimStepResult:
    start = time.perf_counter()
    try:
        cursor = await session.execute(statement, params)
        affected = cursor.rowcount
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.error("Trim step failed", kind=kind.label, error=str(exc))
        raise TrimError(kind, exc) from exc
    elapsed = time.perf_counter() - start

    remaining = await count_rows(session, kind.value)
    return TrimStepResult(kind=kind, affected=affected, remaining=remaining, elapsed=elapsed)
