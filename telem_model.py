#!/usr/bin/env python3
"""
Data models, enums and collaborator interfaces for the flight telemetry importer
"""

from dataclasses import dataclass, field
from enum import Enum
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional, Protocol, Type

from telem_constants import KnownColumnNames


class FileType(Enum):
    NONE = 0
    CSV = 1
    XML = 2
    KML = 3
    GPX = 4
    TEXT = 5
    NMEA = 6
    IGC = 7
    JSON_TELEMETRY = 8


class KnownColumnType(Enum):
    INTEGER = 0
    DECIMAL = 1
    FLOAT = 2
    STRING = 3
    LAT_LONG = 4
    DATE_TIME = 5
    POSITION = 6
    UNIX_TIMESTAMP_MILLIS = 7
    TIMEZONE_OFFSET_MINUTES = 8
    NAKED_DATE = 9
    NAKED_TIME = 10

    @classmethod
    def from_name(cls, name: str) -> 'KnownColumnType':
        """Look up a type by its external name (e.g. 'LatLong', 'UnixTimestampMillis') or ID"""
        key = name.strip()
        if key.isdigit():
            return cls(int(key))
        normalized = key.replace('_', '').lower()
        for member in cls:
            if member.name.replace('_', '').lower() == normalized:
                return member
        raise ValueError(f"Unknown column type: {name}")


class TimeKind(Enum):
    """Whether a timestamp is known to be UTC, local, or neither"""
    UNSPECIFIED = 0
    UTC = 1
    LOCAL = 2


class SpeedKind(Enum):
    REPORTED = 0
    DERIVED = 1


class AltitudeUnits(Enum):
    FEET = 0
    METERS = 1


class SpeedUnits(Enum):
    KNOTS = 0
    MILES_PER_HOUR = 1
    METERS_PER_SECOND = 2
    FEET_PER_SECOND = 3
    KM_PER_HOUR = 4


class FlyingState(Enum):
    ON_GROUND = 0
    ON_GROUND_NOT_FULLY_STOPPED = 1
    FLYING = 2


@dataclass(frozen=True)
class LatLong:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class Position:
    """A single geo-temporal sample. Optional fields are independently present or absent."""
    latitude: float
    longitude: float
    altitude: Optional[float] = None
    timestamp: Optional[datetime] = None
    speed: Optional[float] = None
    speed_kind: SpeedKind = SpeedKind.REPORTED
    comment: Optional[str] = None

    @property
    def has_altitude(self) -> bool:
        return self.altitude is not None

    @property
    def has_timestamp(self) -> bool:
        return self.timestamp is not None

    @property
    def has_speed(self) -> bool:
        return self.speed is not None

    @property
    def lat_long(self) -> LatLong:
        return LatLong(self.latitude, self.longitude)


@dataclass(frozen=True)
class KnownColumn:
    """A raw column name bound to a semantic type and parsing rule"""
    raw_name: str
    friendly_name: str
    semantic_type: KnownColumnType = KnownColumnType.STRING
    alias: Optional[str] = None
    description: Optional[str] = None
    notes: Optional[str] = None

    @property
    def header_name(self) -> str:
        """Column name used in the canonical table; enables aliasing"""
        return self.alias or self.raw_name


@dataclass(frozen=True)
class DataSourceType:
    file_type: FileType
    default_extension: str
    mimetype: str

    @classmethod
    def from_file_type(cls, file_type: FileType) -> Optional['DataSourceType']:
        for dst in KNOWN_DATA_SOURCE_TYPES:
            if dst.file_type == file_type:
                return dst
        return None


KNOWN_DATA_SOURCE_TYPES = (
    DataSourceType(FileType.CSV, "csv", "text/csv"),
    DataSourceType(FileType.GPX, "gpx", "application/gpx+xml"),
    DataSourceType(FileType.KML, "kml", "application/vnd.google-earth.kml+xml"),
    DataSourceType(FileType.TEXT, "txt", "text/plain"),
    DataSourceType(FileType.XML, "xml", "text/xml"),
    DataSourceType(FileType.NMEA, "nmea", "text/plain"),
    DataSourceType(FileType.JSON_TELEMETRY, "json", "application/json"),
    DataSourceType(FileType.IGC, "igc", "text/plain"),
)


@dataclass
class Airport:
    code: str
    latitude: float
    longitude: float

    @property
    def lat_long(self) -> LatLong:
        return LatLong(self.latitude, self.longitude)


@dataclass
class SunTimes:
    is_faa_night: bool = False
    is_faa_civil_night: bool = False


@dataclass
class EncodedPath:
    """Compact serialized trajectory plus the distance computed when it was encoded"""
    encoded_path: str
    distance: float = 0.0


@dataclass
class LogbookEntry:
    """The subset of a logbook flight record that telemetry can fill in"""
    flight_id: int = -1
    user: str = ''
    flight_date: Optional[date] = None
    route: str = ''
    comment: str = ''
    landings: int = 0
    night_landings: int = 0
    full_stop_landings: int = 0
    cross_country: float = 0.0
    total_flight_time: float = 0.0
    nighttime: float = 0.0
    flight_start: Optional[datetime] = None
    flight_end: Optional[datetime] = None
    engine_start: Optional[datetime] = None
    engine_end: Optional[datetime] = None
    hobbs_start: float = 0.0
    hobbs_end: float = 0.0
    custom_properties: Dict[str, int] = field(default_factory=dict)
    flight_data: Optional[str] = None

    def description(self) -> str:
        day = self.flight_date.isoformat() if self.flight_date else ''
        return ' '.join(part for part in (day, self.route, self.comment) if part)


# Python types produced by coercion, by semantic type
COLUMN_PYTHON_TYPES: Dict[KnownColumnType, Type] = {
    KnownColumnType.INTEGER: int,
    KnownColumnType.TIMEZONE_OFFSET_MINUTES: int,
    KnownColumnType.DECIMAL: Decimal,
    KnownColumnType.FLOAT: float,
    KnownColumnType.LAT_LONG: float,
    KnownColumnType.STRING: str,
    KnownColumnType.DATE_TIME: datetime,
    KnownColumnType.UNIX_TIMESTAMP_MILLIS: datetime,
    KnownColumnType.NAKED_DATE: datetime,
    KnownColumnType.NAKED_TIME: datetime,
    KnownColumnType.POSITION: LatLong,
}

# Column set produced from a list of Position samples
POSITION_COLUMNS = (
    (KnownColumnNames.SAMPLE, KnownColumnType.INTEGER),
    (KnownColumnNames.LAT, KnownColumnType.LAT_LONG),
    (KnownColumnNames.LON, KnownColumnType.LAT_LONG),
    (KnownColumnNames.ALT, KnownColumnType.INTEGER),
    (KnownColumnNames.TIME, KnownColumnType.DATE_TIME),
    (KnownColumnNames.TIMEKIND, KnownColumnType.INTEGER),
    (KnownColumnNames.SPEED, KnownColumnType.FLOAT),
    (KnownColumnNames.DERIVEDSPEED, KnownColumnType.FLOAT),
    (KnownColumnNames.COMMENT, KnownColumnType.STRING),
)


# Collaborators supplied by the host application

class AirportLookup(Protocol):
    def nearest_airports(self, latitude: float, longitude: float, count: int,
                         include_heliports: bool) -> List[Airport]:
        ...

    def airports_for_route(self, route: str) -> List[Airport]:
        ...


class SolarCalculator(Protocol):
    def sun_times(self, timestamp: datetime, latitude: float, longitude: float) -> SunTimes:
        ...


class PathCodec(Protocol):
    def encode(self, positions: List[Position]) -> EncodedPath:
        ...

    def decode(self, encoded_path: str) -> List[LatLong]:
        ...


class RawDataStore(Protocol):
    def save(self, flight_id: int, raw_data: str) -> None:
        ...

    def load(self, flight_id: int) -> str:
        ...

    def exists(self, flight_id: int) -> bool:
        ...

    def delete(self, flight_id: int) -> None:
        ...


class ReferenceStore(Protocol):
    def save(self, entry) -> None:
        ...

    def delete(self, flight_id: int) -> None:
        ...

    def flight_ids(self) -> List[int]:
        ...


class FlightRepository(Protocol):
    def flights_for_date(self, owner: str, day: date) -> List[LogbookEntry]:
        ...

    def commit(self, flight: LogbookEntry) -> None:
        ...


class FlightTimeCalculator(Protocol):
    def auto_totals(self, flight: LogbookEntry, options) -> None:
        ...

    def auto_hobbs(self, flight: LogbookEntry, options) -> None:
        ...

    def auto_fill_finish(self, flight: LogbookEntry, options) -> None:
        ...
