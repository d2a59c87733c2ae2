"""Command line interface: ``gtfs-store import|trim|version``."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from gtfs_store import __version__
from gtfs_store.config import get_settings
from gtfs_store.database import create_engine, ensure_schema, get_session_context, sqlite_url
from gtfs_store.logging import bind_context, clear_context, get_logger, setup_logging
from gtfs_store.services.gtfs_static import GtfsImporter, ImportReport, ImportResult
from gtfs_store.services.trim import (
    AgencyNotFoundError,
    SchemaError,
    TrimError,
    TrimResult,
    trim,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from sqlalchemy.ext.asyncio import AsyncEngine

logger = get_logger(__name__)


class CommandError(Exception):
    """Raised when a command cannot run or fails; reported on stderr."""


def build_parser(version: str, git_hash: str) -> argparse.ArgumentParser:
    """Compose the command tree.

    Args:
        version: Release version shown by ``version``.
        git_hash: Commit the build was made from.
    """
    parser = argparse.ArgumentParser(
        prog="gtfs-store",
        description="Load GTFS feeds into a database and trim them to one agency",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # import command
    import_parser = subparsers.add_parser(
        "import",
        help="Import a GTFS directory into a fresh SQLite database",
    )
    import_parser.add_argument("gtfs_base", help="Directory holding the GTFS .txt files")
    import_parser.add_argument("db_path", help="SQLite database file (replaced if it exists)")
    import_parser.add_argument(
        "--strict",
        action="store_true",
        default=None,
        help="Exit non-zero if any GTFS file failed to import (or GTFS_IMPORT_STRICT=1)",
    )
    import_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the import report as JSON",
    )
    import_parser.set_defaults(handler=run_import)

    # trim command
    trim_parser = subparsers.add_parser(
        "trim",
        help="Remove all data not belonging to the agency matching a name fragment",
    )
    trim_parser.add_argument("db_path", help="SQLite database file")
    trim_parser.add_argument("agency", help="Fragment of the agency name to keep")
    trim_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the trim result as JSON",
    )
    trim_parser.set_defaults(handler=run_trim)

    # version command
    version_parser = subparsers.add_parser("version", help="Print version information")
    version_parser.set_defaults(handler=lambda _args: print_version(version, git_hash))

    return parser


def print_version(version: str, git_hash: str) -> int:
    print(f"gtfs-store {version} ({git_hash})")
    return 0


def run_import(args: argparse.Namespace) -> int:
    """Import GTFS files from ``args.gtfs_base`` into a new database."""
    if not args.gtfs_base:
        raise CommandError("empty GTFS base path")
    if not args.db_path:
        raise CommandError("empty database path")

    db_path = Path(args.db_path)
    try:
        db_path.unlink(missing_ok=True)
    except OSError as exc:
        raise CommandError(f"failed to remove old db file {str(db_path)!r}: {exc}") from exc

    progress = None if args.json else _print_result
    report = asyncio.run(_import(Path(args.gtfs_base), db_path, progress))
    if args.json:
        print(json.dumps(report.to_dict(), indent=2))

    strict = args.strict if args.strict is not None else get_settings().gtfs_import_strict
    if strict and not report.ok:
        raise CommandError(f"{len(report.errors)} GTFS file(s) failed to import")
    return 0


def run_trim(args: argparse.Namespace) -> int:
    """Trim the database at ``args.db_path`` to the agency like ``args.agency``."""
    if not args.db_path:
        raise CommandError("empty database path")
    if not args.agency:
        raise CommandError("empty agency")

    try:
        result = asyncio.run(_trim(Path(args.db_path), args.agency))
    except AgencyNotFoundError:
        logger.warning("Could not find a matching agency, not trimming", agency=args.agency)
        return 0
    except (SchemaError, TrimError) as exc:
        raise CommandError(f"failed to trim DB: {exc}") from exc

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print(result)
    return 0


async def _import(
    gtfs_base: Path,
    db_path: Path,
    progress: Callable[[ImportResult], None] | None,
) -> ImportReport:
    engine = create_engine(sqlite_url(db_path))
    try:
        await _migrate(engine)
        async with get_session_context(engine) as session:
            importer = GtfsImporter(session)
            return await importer.run(gtfs_base, progress=progress)
    except SQLAlchemyError as exc:
        raise CommandError(f"failed to import into DB: {exc}") from exc
    finally:
        await engine.dispose()


async def _trim(db_path: Path, agency: str) -> TrimResult:
    engine = create_engine(sqlite_url(db_path))
    try:
        await _migrate(engine)
        async with get_session_context(engine) as session:
            return await trim(session, agency)
    except SQLAlchemyError as exc:
        raise CommandError(f"failed to trim DB: {exc}") from exc
    finally:
        await engine.dispose()


async def _migrate(engine: AsyncEngine) -> None:
    """Create missing tables; the store must open as a database."""
    try:
        await ensure_schema(engine)
    except (SQLAlchemyError, OSError) as exc:
        raise CommandError(f"failed to migrate DB: {exc}") from exc


def _print_result(result: ImportResult) -> None:
    print(result, flush=True)


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point of the ``gtfs-store`` command."""
    settings = get_settings()
    parser = build_parser(__version__, settings.build_git_hash)
    args = parser.parse_args(argv)

    setup_logging("DEBUG" if args.verbose else None)
    bind_context(command=args.command)
    try:
        return args.handler(args)
    except CommandError as exc:
        print(f"gtfs-store: {exc}", file=sys.stderr)
        return 1
    finally:
        clear_context()


if __name__ == "__main__":
    sys.exit(main())
