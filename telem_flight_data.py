#!/usr/bin/env python3
"""
Flight data module for the flight telemetry importer

FlightData holds one parsed telemetry document: its canonical table, the unit
conventions of its source format and a cached path distance. The trajectory
builder turns the table into Position samples with timestamps normalized to
UTC where the data allows it.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, BinaryIO, List, Optional

from telem_model import AltitudeUnits, FileType, LatLong, Position, SpeedUnits, TimeKind
from telem_table import CanonicalTable
from telem_columns import ColumnTypeRegistry
from telem_parser import FormatDetector, ParseResult
from telem_writer import GpxWriter, KmlWriter
from telem_utils import calculateDistance, parseDate
from telem_constants import (
    KnownColumnNames,
    METERS_PER_FOOT,
    METERS_PER_SECOND_PER_KNOT,
    METERS_PER_SECOND_PER_MPH,
    METERS_PER_SECOND_PER_KMH,
)

# Configure logger
logger = logging.getLogger(__name__)


def altitudeFactor(units: AltitudeUnits) -> float:
    """Factor which, multiplied by an altitude in the given units, yields meters"""
    if units == AltitudeUnits.FEET:
        return METERS_PER_FOOT
    return 1.0


def speedFactor(units: SpeedUnits) -> float:
    """Factor which, multiplied by a speed in the given units, yields meters/second"""
    if units == SpeedUnits.KNOTS:
        return METERS_PER_SECOND_PER_KNOT
    elif units == SpeedUnits.FEET_PER_SECOND:
        return METERS_PER_FOOT
    elif units == SpeedUnits.MILES_PER_HOUR:
        return METERS_PER_SECOND_PER_MPH
    elif units == SpeedUnits.KM_PER_HOUR:
        return METERS_PER_SECOND_PER_KMH
    return 1.0


def compute_distance(positions: Optional[List[Any]]) -> float:
    """Sum of great-circle legs between consecutive samples, in meters"""
    distance = 0.0
    if not positions:
        return distance
    for prev, point in zip(positions, positions[1:]):
        distance += calculateDistance(prev.latitude, prev.longitude, point.latitude, point.longitude)
    return distance


def _asDatetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return parseDate(str(value))
    except ValueError:
        return None


def _asFloat(value: Any, default: float = 0.0) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


class TrajectoryBuilder:
    """Turns a canonical table into an ordered list of Position samples"""

    @staticmethod
    def resolve_timestamp(table: CanonicalTable, row: dict, date_column: str,
                          is_utc: bool, has_utc_offset: bool, has_time_kind: bool) -> Optional[datetime]:
        """
        UTC timestamp for a row, by priority: a UTC date/time column, then the
        date column shifted by a UTC offset column, then the date column tagged
        by a time kind column, else the date column as provided.
        """
        timestamp = _asDatetime(table.get(row, date_column))
        if timestamp is None:
            return None

        if is_utc:
            return timestamp.replace(tzinfo=timezone.utc) if timestamp.tzinfo is None \
                else timestamp.astimezone(timezone.utc)

        if has_utc_offset:
            offset = table.get(row, KnownColumnNames.UTC_OFFSET)
            if offset is not None:
                return (timestamp.replace(tzinfo=None) + timedelta(minutes=int(offset))).replace(tzinfo=timezone.utc)

        if has_time_kind:
            kind = table.get(row, KnownColumnNames.TIMEKIND)
            if kind == TimeKind.UTC.value and timestamp.tzinfo is None:
                return timestamp.replace(tzinfo=timezone.utc)

        return timestamp

    def build_trajectory(self, table: Optional[CanonicalTable]) -> List[Position]:
        """Positions for every row of the table; empty if the table has no lat/long"""
        if table is None or not table.has_lat_long_info:
            return []

        separate = table.has_column(KnownColumnNames.LAT) and table.has_column(KnownColumnNames.LON)
        has_alt = table.has_altitude
        has_time = table.has_date_time
        has_speed = table.has_speed

        is_utc = table.has_utc_date_time
        date_column = KnownColumnNames.UTC_DATETIME if is_utc else table.date_column
        has_utc_offset = table.has_column(KnownColumnNames.UTC_OFFSET)
        has_time_kind = table.has_time_kind

        positions = []
        for row in table.rows:
            if separate:
                latitude = table.get(row, KnownColumnNames.LAT)
                longitude = table.get(row, KnownColumnNames.LON)
            else:
                ll = table.get(row, KnownColumnNames.POS)
                latitude, longitude = (ll.latitude, ll.longitude) if isinstance(ll, LatLong) else (None, None)

            if latitude is None or longitude is None:
                logger.debug(f"Skipping row without a position: {row}")
                continue

            timestamp = None
            if has_time:
                timestamp = self.resolve_timestamp(table, row, date_column, is_utc, has_utc_offset, has_time_kind)

            positions.append(Position(
                float(latitude),
                float(longitude),
                altitude=_asFloat(table.get(row, KnownColumnNames.ALT)) if has_alt else 0.0,
                timestamp=timestamp,
                speed=_asFloat(table.get(row, KnownColumnNames.SPEED)) if has_speed else 0.0,
            ))

        return positions


class FlightData:
    """
    A parsed telemetry document.
    Units default to feet and knots until a parser says otherwise.
    """

    def __init__(self, registry: Optional[ColumnTypeRegistry] = None, flight_id: int = 0):
        self.registry = registry or ColumnTypeRegistry()
        self.flight_id = flight_id
        self.data = CanonicalTable()
        self.data_type: Optional[FileType] = None
        self.error_string = ''
        self.altitude_units = AltitudeUnits.FEET
        self.speed_units = SpeedUnits.KNOTS
        self.metadata = {}
        self.path_distance: Optional[float] = None
        self.trajectory_builder = TrajectoryBuilder()

    def parse_flight_data(self, text: str) -> ParseResult:
        """Detect, parse and adopt the units of the source format. Not cached."""
        result = FormatDetector(self.registry).parse(text)
        self.data = result.table
        self.data_type = result.file_type
        self.error_string = result.error_string
        self.altitude_units = result.altitude_units
        self.speed_units = result.speed_units
        self.metadata = result.metadata
        self.path_distance = None
        if not result.success:
            logger.debug(f"{result.file_type.name} data parsed with errors: {result.error_string}")
        return result

    @property
    def altitude_factor(self) -> float:
        return altitudeFactor(self.altitude_units)

    @property
    def speed_factor(self) -> float:
        return speedFactor(self.speed_units)

    # What information is present?

    @property
    def has_lat_long_info(self) -> bool:
        return self.data is not None and self.data.has_lat_long_info

    @property
    def has_date_time(self) -> bool:
        return self.data is not None and self.data.has_date_time

    @property
    def has_speed(self) -> bool:
        return self.data is not None and self.data.has_speed

    @property
    def has_timezone(self) -> bool:
        return self.data is not None and self.data.has_timezone

    @property
    def has_altitude(self) -> bool:
        return self.data is not None and self.data.has_altitude

    def get_trajectory(self) -> List[Position]:
        return self.trajectory_builder.build_trajectory(self.data)

    def get_path(self) -> List[LatLong]:
        return [p.lat_long for p in self.get_trajectory()]

    def compute_path_distance(self) -> float:
        """Distance along the path in meters; cached in path_distance"""
        if self.path_distance is None:
            self.path_distance = compute_distance(self.get_trajectory())
        return self.path_distance

    def write_gpx(self, stream: BinaryIO) -> None:
        GpxWriter().write_file(stream, self)

    def write_kml(self, stream: BinaryIO) -> None:
        KmlWriter().write_file(stream, self)


# Public function - maintain backward compatibility
def parseFlightData(text: str, registry: Optional[ColumnTypeRegistry] = None) -> FlightData:
    """Parse telemetry text into a FlightData"""
    flight_data = FlightData(registry)
    flight_data.parse_flight_data(text)
    return flight_data
