"""Static GTFS import pipeline."""

from gtfs_store.services.gtfs_static.importer import GtfsImporter, ImportReport
from gtfs_store.services.gtfs_static.inserter import BatchInserter, ImportResult, PersistenceError
from gtfs_store.services.gtfs_static.parser import DecodeError, decode_entities
from gtfs_store.services.gtfs_static.schema import EntityKind

__all__ = [
    "BatchInserter",
    "DecodeError",
    "EntityKind",
    "GtfsImporter",
    "ImportReport",
    "ImportResult",
    "PersistenceError",
    "decode_entities",
]
