"""GTFS CSV parser - streams typed records out of one GTFS file."""

from __future__ import annotations

import csv
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from gtfs_store.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterator
    from typing import TextIO

    from gtfs_store.services.gtfs_static.schema import EntityKind, GtfsRecord

logger = get_logger(__name__)


class DecodeError(Exception):
    """Raised when a CSV row cannot be converted into a record."""

    def __init__(
        self,
        kind: EntityKind,
        line: int,
        reason: str,
        field: str | None = None,
        value: Any = None,
    ) -> None:
        self.kind = kind
        self.line = line
        self.field = field
        self.value = value
        self.reason = reason
        if field is not None:
            msg = f"{kind} line {line}: invalid value {value!r} for {field}: {reason}"
        else:
            msg = f"{kind} line {line}: {reason}"
        super().__init__(msg)


def decode_entities(stream: TextIO, kind: EntityKind) -> Iterator[GtfsRecord]:
    """Decode a GTFS CSV stream into records of the given kind.

    Columns are bound by header name. Columns the record does not know are
    ignored, and columns missing from the file leave the field at its
    default. Rows are read lazily; the first row that cannot be converted
    raises DecodeError and ends the iteration.

    Raises:
        DecodeError: On the first malformed row.
    """
    binding = kind.binding
    reader = csv.DictReader(stream)

    try:
        fieldnames = reader.fieldnames
    except (csv.Error, UnicodeDecodeError) as exc:
        raise DecodeError(kind, 1, str(exc)) from exc

    if fieldnames is None:
        logger.info("Empty GTFS file", kind=kind.label)
        return

    known = binding.columns
    logger.debug(
        "Parsing GTFS file",
        kind=kind.label,
        missing_columns=sorted(set(known) - set(fieldnames)) or None,
        extra_columns=sorted(set(fieldnames) - set(known)) or None,
    )

    while True:
        try:
            row = next(reader)
        except StopIteration:
            return
        except (csv.Error, UnicodeDecodeError) as exc:
            raise DecodeError(kind, reader.line_num, str(exc)) from exc

        # short rows carry None for the absent cells, long rows a None key
        values = {
            column: value
            for column, value in row.items()
            if column in known and value is not None
        }
        try:
            record = binding.record.model_validate(values)
        except ValidationError as exc:
            error = exc.errors()[0]
            field = str(error["loc"][0]) if error["loc"] else None
            raise DecodeError(
                kind,
                reader.line_num,
                error["msg"],
                field=field,
                value=error.get("input"),
            ) from exc
        yield record
