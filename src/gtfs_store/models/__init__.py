"""SQLAlchemy models for the GTFS store."""

from gtfs_store.models.base import Base
from gtfs_store.models.gtfs import (
    Agency,
    Calendar,
    CalendarDate,
    GtfsTimeType,
    Route,
    Shape,
    Stop,
    StopTime,
    Trip,
)

__all__ = [
    "Agency",
    "Base",
    "Calendar",
    "CalendarDate",
    "GtfsTimeType",
    "Route",
    "Shape",
    "Stop",
    "StopTime",
    "Trip",
]
