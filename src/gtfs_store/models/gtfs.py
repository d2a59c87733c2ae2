"""GTFS static data models.

References between tables (route -> agency, trip -> route, ...) are plain
string columns without foreign key constraints. Feeds are loaded table by
table in bulk, and consistency is restored afterwards by the trim.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import Float, Index, Integer, String
from sqlalchemy.engine import Dialect
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from gtfs_store.gtfs_time import MAX_GTFS_TIME, TimeRangeError
from gtfs_store.models.base import Base


class GtfsTimeType(TypeDecorator[int]):
    """GTFS time of day stored as integer seconds since midnight."""

    impl = Integer
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Dialect) -> int | None:
        if value is None:
            return None
        return _checked_time(int(value))

    def process_result_value(self, value: Any, dialect: Dialect) -> int | None:
        if value is None:
            return None
        return _checked_time(int(value))


def _checked_time(value: int) -> int:
    if value > MAX_GTFS_TIME:
        msg = f"GTFS time {value} exceeds max value {MAX_GTFS_TIME}"
        raise TimeRangeError(msg)
    return value


class Agency(Base):
    """Transit agency."""

    __tablename__ = "agencies"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False, default="")
    url: Mapped[str] = mapped_column(String, nullable=False, default="")


class Route(Base):
    """Transit route operated by an agency."""

    __tablename__ = "routes"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    agency_id: Mapped[str] = mapped_column(String, nullable=False, default="")
    short_name: Mapped[str] = mapped_column(String, nullable=False, default="")
    long_name: Mapped[str] = mapped_column(String, nullable=False, default="")
    type: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (Index("ix_routes_agency_id", "agency_id"),)


class Trip(Base):
    """Transit trip (a specific run of a route)."""

    __tablename__ = "trips"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False, default="")
    route_id: Mapped[str] = mapped_column(String, nullable=False, default="")
    service_id: Mapped[str] = mapped_column(String, nullable=False, default="")
    direction_id: Mapped[str] = mapped_column(String, nullable=False, default="")
    shape_id: Mapped[str] = mapped_column(String, nullable=False, default="")

    __table_args__ = (
        Index("ix_trips_route_id", "route_id"),
        Index("ix_trips_shape_id", "shape_id"),
    )


class Stop(Base):
    """Transit stop/station."""

    __tablename__ = "stops"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False, default="")
    latitude: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    longitude: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)


class StopTime(Base):
    """Scheduled stop time for a trip."""

    __tablename__ = "stop_times"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    stop_id: Mapped[str] = mapped_column(String, nullable=False, default="")
    trip_id: Mapped[str] = mapped_column(String, nullable=False, default="")

    # Seconds from midnight, may exceed 24h
    departure: Mapped[int] = mapped_column(GtfsTimeType, nullable=False, default=0)
    arrival: Mapped[int] = mapped_column(GtfsTimeType, nullable=False, default=0)
    stop_seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        Index("ix_stop_times_stop_id", "stop_id"),
        Index("ix_stop_times_trip_id", "trip_id"),
    )


class Shape(Base):
    """One point of a shape; points sharing ``shape_id`` form the shape."""

    __tablename__ = "shapes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    shape_id: Mapped[str] = mapped_column(String, nullable=False, default="")
    pt_lat: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    pt_lon: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    pt_sequence: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (Index("ix_shapes_shape_id", "shape_id"),)


class Calendar(Base):
    """Weekly service pattern."""

    __tablename__ = "calendars"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    service_id: Mapped[str] = mapped_column(String, nullable=False, default="")
    monday: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tuesday: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    wednesday: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    thursday: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    friday: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    saturday: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sunday: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    start_date: Mapped[str] = mapped_column(String, nullable=False, default="")  # YYYYMMDD
    end_date: Mapped[str] = mapped_column(String, nullable=False, default="")  # YYYYMMDD


class CalendarDate(Base):
    """Service exception for a single date."""

    __tablename__ = "calendar_dates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    service_id: Mapped[str] = mapped_column(String, nullable=False, default="")
    date: Mapped[str] = mapped_column(String, nullable=False, default="")  # YYYYMMDD
    exception_type: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # 1=added
