"""GTFS entity kinds and their CSV record types.

Each entity kind binds a GTFS file to a record type (a pydantic model whose
validation aliases are the CSV column names) and to the ORM model of the
table the records are stored in. Record field names match the ORM column
names, so ``record.model_dump()`` is an insertable row.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from gtfs_store.gtfs_time import parse_gtfs_time
from gtfs_store.models import (
    Agency,
    Base,
    Calendar,
    CalendarDate,
    Route,
    Shape,
    Stop,
    StopTime,
    Trip,
)


def _blank_as_zero(value: Any) -> Any:
    """Empty numeric cells decode to zero."""
    if isinstance(value, str):
        value = value.strip()
        return value or 0
    return value


def _parse_time(value: Any) -> Any:
    if isinstance(value, str):
        return parse_gtfs_time(value)
    return value


GtfsInt = Annotated[int, BeforeValidator(_blank_as_zero)]
GtfsFloat = Annotated[float, BeforeValidator(_blank_as_zero)]
GtfsTime = Annotated[int, BeforeValidator(_parse_time)]


class GtfsRecord(BaseModel):
    """Base for records decoded from a GTFS CSV row."""

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)


class AgencyRecord(GtfsRecord):
    """Row of agency.txt."""

    id: str = Field(default="", validation_alias="agency_id")
    name: str = Field(default="", validation_alias="agency_name")
    url: str = Field(default="", validation_alias="agency_url")


class RouteRecord(GtfsRecord):
    """Row of routes.txt."""

    id: str = Field(default="", validation_alias="route_id")
    agency_id: str = Field(default="", validation_alias="agency_id")
    short_name: str = Field(default="", validation_alias="route_short_name")
    long_name: str = Field(default="", validation_alias="route_long_name")
    type: GtfsInt = Field(default=0, validation_alias="route_type")


class TripRecord(GtfsRecord):
    """Row of trips.txt."""

    id: str = Field(default="", validation_alias="trip_id")
    name: str = Field(default="", validation_alias="trip_short_name")
    route_id: str = Field(default="", validation_alias="route_id")
    service_id: str = Field(default="", validation_alias="service_id")
    direction_id: str = Field(default="", validation_alias="direction_id")
    shape_id: str = Field(default="", validation_alias="shape_id")


class StopRecord(GtfsRecord):
    """Row of stops.txt."""

    id: str = Field(default="", validation_alias="stop_id")
    name: str = Field(default="", validation_alias="stop_name")
    latitude: GtfsFloat = Field(default=0.0, validation_alias="stop_lat")
    longitude: GtfsFloat = Field(default=0.0, validation_alias="stop_lon")


class StopTimeRecord(GtfsRecord):
    """Row of stop_times.txt; times are seconds since midnight."""

    stop_id: str = Field(default="", validation_alias="stop_id")
    trip_id: str = Field(default="", validation_alias="trip_id")
    departure: GtfsTime = Field(default=0, validation_alias="departure_time")
    arrival: GtfsTime = Field(default=0, validation_alias="arrival_time")
    stop_seq: GtfsInt = Field(default=0, validation_alias="stop_sequence")


class ShapeRecord(GtfsRecord):
    """Row of shapes.txt."""

    shape_id: str = Field(default="", validation_alias="shape_id")
    pt_lat: GtfsFloat = Field(default=0.0, validation_alias="shape_pt_lat")
    pt_lon: GtfsFloat = Field(default=0.0, validation_alias="shape_pt_lon")
    pt_sequence: GtfsInt = Field(default=0, validation_alias="shape_pt_sequence")


class CalendarRecord(GtfsRecord):
    """Row of calendar.txt; weekdays are 0/1 flags."""

    service_id: str = Field(default="", validation_alias="service_id")
    monday: GtfsInt = Field(default=0, validation_alias="monday")
    tuesday: GtfsInt = Field(default=0, validation_alias="tuesday")
    wednesday: GtfsInt = Field(default=0, validation_alias="wednesday")
    thursday: GtfsInt = Field(default=0, validation_alias="thursday")
    friday: GtfsInt = Field(default=0, validation_alias="friday")
    saturday: GtfsInt = Field(default=0, validation_alias="saturday")
    sunday: GtfsInt = Field(default=0, validation_alias="sunday")
    start_date: str = Field(default="", validation_alias="start_date")
    end_date: str = Field(default="", validation_alias="end_date")


class CalendarDateRecord(GtfsRecord):
    """Row of calendar_dates.txt."""

    service_id: str = Field(default="", validation_alias="service_id")
    date: str = Field(default="", validation_alias="date")
    exception_type: GtfsInt = Field(default=0, validation_alias="exception_type")


@dataclass(frozen=True)
class EntityBinding:
    """Source file, record type and table of one entity kind."""

    filename: str
    record: type[GtfsRecord]
    model: type[Base]

    @property
    def table(self) -> str:
        return self.model.__tablename__

    @property
    def columns(self) -> dict[str, str]:
        """CSV column name -> record field name."""
        return {
            str(info.validation_alias): name for name, info in self.record.model_fields.items()
        }


class EntityKind(Enum):
    """The eight GTFS entity kinds, in import order."""

    AGENCIES = "agencies"
    ROUTES = "routes"
    TRIPS = "trips"
    STOPS = "stops"
    STOP_TIMES = "stop_times"
    SHAPES = "shapes"
    CALENDARS = "calendars"
    CALENDAR_DATES = "calendar_dates"

    @property
    def label(self) -> str:
        """Human-readable name, e.g. "Stop Times"."""
        return self.value.replace("_", " ").title()

    @property
    def binding(self) -> EntityBinding:
        return ENTITY_BINDINGS[self]

    def __str__(self) -> str:
        return self.label


ENTITY_BINDINGS: dict[EntityKind, EntityBinding] = {
    EntityKind.AGENCIES: EntityBinding("agency.txt", AgencyRecord, Agency),
    EntityKind.ROUTES: EntityBinding("routes.txt", RouteRecord, Route),
    EntityKind.TRIPS: EntityBinding("trips.txt", TripRecord, Trip),
    EntityKind.STOPS: EntityBinding("stops.txt", StopRecord, Stop),
    EntityKind.STOP_TIMES: EntityBinding("stop_times.txt", StopTimeRecord, StopTime),
    EntityKind.SHAPES: EntityBinding("shapes.txt", ShapeRecord, Shape),
    EntityKind.CALENDARS: EntityBinding("calendar.txt", CalendarRecord, Calendar),
    EntityKind.CALENDAR_DATES: EntityBinding(
        "calendar_dates.txt", CalendarDateRecord, CalendarDate
    ),
}

# Tables the store must provide before an import or trim
REQUIRED_TABLES: tuple[str, ...] = tuple(kind.value for kind in EntityKind)
