#!/usr/bin/env python3
"""
AutoFill module for the flight telemetry importer

Replays telemetry samples in time order through a small state machine
(on ground, flying, landed but still rolling) and fills in the derived fields
of a logbook entry: landings, full-stop and night landings, night take-offs,
route, flight start/end and night time.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from telem_model import (
    AirportLookup,
    FlightTimeCalculator,
    FlyingState,
    LatLong,
    LogbookEntry,
    Position,
    SolarCalculator,
    TimeKind,
)
from telem_table import CanonicalTable
from telem_columns import ColumnTypeRegistry
from telem_flight_data import FlightData
from telem_utils import parseDate
from telem_constants import (
    KnownColumnNames,
    FULL_STOP_SPEED,
    DEFAULT_TAKEOFF_SPEEDS,
    DEFAULT_TAKEOFF_SPEED_INDEX,
    DEFAULT_LANDING_SPEED,
    DEFAULT_CROSS_COUNTRY_THRESHOLD,
    SPEED_BREAK_POINT,
    LANDING_SPEED_DIFFERENTIAL_LOW,
    LANDING_SPEED_DIFFERENTIAL_HIGH,
    MAX_NIGHT_SAMPLE_GAP_HOURS,
    PROP_NIGHT_TAKEOFF,
    SECONDS_PER_HOUR,
)

# Configure logger
logger = logging.getLogger(__name__)


class AutoFillTotalOption(Enum):
    NONE = 0
    FLIGHT_TIME = 1
    ENGINE_TIME = 2
    HOBBS_TIME = 3


class AutoFillHobbsOption(Enum):
    NONE = 0
    FLIGHT_TIME = 1
    ENGINE_TIME = 2
    TOTAL_TIME = 3


@dataclass
class AutoFillOptions:
    """Thresholds (knots) and policies for auto-filling a flight"""
    takeoff_speed: float = DEFAULT_TAKEOFF_SPEEDS[DEFAULT_TAKEOFF_SPEED_INDEX]
    landing_speed: float = DEFAULT_LANDING_SPEED
    cross_country_threshold: float = DEFAULT_CROSS_COUNTRY_THRESHOLD
    # Offset from UTC in minutes, used for samples with no timezone information
    timezone_offset: int = 0
    include_heliports: bool = False
    ignore_errors: bool = False
    auto_fill_total: AutoFillTotalOption = AutoFillTotalOption.ENGINE_TIME
    auto_fill_hobbs: AutoFillHobbsOption = AutoFillHobbsOption.ENGINE_TIME

    full_stop_speed = FULL_STOP_SPEED

    @staticmethod
    def default_speeds() -> tuple:
        return DEFAULT_TAKEOFF_SPEEDS

    @staticmethod
    def default_takeoff_speed() -> int:
        return DEFAULT_TAKEOFF_SPEEDS[DEFAULT_TAKEOFF_SPEED_INDEX]

    @staticmethod
    def best_landing_speed_for_takeoff_speed(takeoff_speed: int) -> int:
        """Landing speed that pairs well with a take-off speed"""
        if takeoff_speed >= SPEED_BREAK_POINT:
            return takeoff_speed - LANDING_SPEED_DIFFERENTIAL_HIGH
        return max(takeoff_speed - LANDING_SPEED_DIFFERENTIAL_LOW,
                   DEFAULT_TAKEOFF_SPEEDS[0] - LANDING_SPEED_DIFFERENTIAL_LOW)


@dataclass
class AutoFillState:
    flying_state: FlyingState = FlyingState.ON_GROUND
    has_started_flight: bool = False
    last_position: Optional[Position] = None
    last_position_was_night: bool = False
    route_so_far: List[str] = field(default_factory=list)
    total_night: float = 0.0


class AutoFillContext:
    """
    Drives the flying-state machine over samples that arrive in ascending
    time order, mutating the active flight as transitions happen.
    """

    def __init__(self, options: AutoFillOptions, flight: LogbookEntry,
                 airports: AirportLookup, solar: SolarCalculator,
                 date_column: str = '', speed_column: str = '',
                 has_time_kind: bool = False, timezone_column: str = ''):
        self.options = options
        self.flight = flight
        self.airports = airports
        self.solar = solar
        self.state = AutoFillState()
        self.date_column = date_column
        self.speed_column = speed_column
        self.has_time_kind = has_time_kind
        self.timezone_column = timezone_column

    @property
    def has_speed(self) -> bool:
        return bool(self.speed_column)

    @property
    def has_timezone(self) -> bool:
        return bool(self.timezone_column)

    def append_to_route(self, code: str) -> None:
        """Append an airport code unless it repeats the last one"""
        code = code.strip().upper()
        route = self.state.route_so_far
        if code and (not route or route[-1].strip().upper() != code):
            route.append(code)

    def append_nearest(self, position: Optional[Position]) -> None:
        if position is None:
            return
        nearest = self.airports.nearest_airports(position.latitude, position.longitude, 1,
                                                 self.options.include_heliports)
        if nearest:
            self.append_to_route(nearest[0].code)

    def _count_night_takeoff(self) -> None:
        properties = self.flight.custom_properties
        properties[PROP_NIGHT_TAKEOFF] = properties.get(PROP_NIGHT_TAKEOFF, 0) + 1

    def update_flying_state(self, speed: float, sample_time: datetime,
                            position: Optional[Position], is_night: bool) -> None:
        state = self.state
        flight = self.flight

        if state.flying_state == FlyingState.FLYING:
            if speed < self.options.landing_speed:
                logger.debug(f"Landing at {sample_time} ({speed} kt)")
                state.flying_state = FlyingState.ON_GROUND_NOT_FULLY_STOPPED
                flight.landings += 1
                self.append_nearest(position)
                flight.flight_end = sample_time
        elif speed > self.options.takeoff_speed:
            logger.debug(f"Take-off at {sample_time} ({speed} kt)")
            state.flying_state = FlyingState.FLYING

            if not state.has_started_flight:
                state.has_started_flight = True
                flight.flight_date = (sample_time + timedelta(minutes=self.options.timezone_offset)).date()

            self.append_nearest(position)

            if flight.flight_start is None:
                flight.flight_start = sample_time

            if is_night:
                self._count_night_takeoff()

        if state.flying_state == FlyingState.ON_GROUND_NOT_FULLY_STOPPED and speed < self.options.full_stop_speed:
            state.flying_state = FlyingState.ON_GROUND
            if is_night:
                flight.night_landings += 1
            else:
                flight.full_stop_landings += 1

    def sample_time(self, table: CanonicalTable, row: Dict[str, Any]) -> Optional[datetime]:
        """UTC time of a sample, or None if the row has no usable date"""
        value = table.get(row, self.date_column)
        if value is None:
            return None
        if not isinstance(value, datetime):
            try:
                value = parseDate(str(value))
            except ValueError:
                return None

        if self.has_time_kind and value.tzinfo is None and \
                table.get(row, KnownColumnNames.TIMEKIND) == TimeKind.UTC.value:
            value = value.replace(tzinfo=timezone.utc)

        if value.tzinfo is not None:
            return value.astimezone(timezone.utc)

        offset = table.get(row, self.timezone_column) if self.has_timezone else None
        minutes = int(offset) if offset is not None else -self.options.timezone_offset
        return (value + timedelta(minutes=minutes)).replace(tzinfo=timezone.utc)

    @staticmethod
    def sample_position(table: CanonicalTable, row: Dict[str, Any]) -> Optional[LatLong]:
        latitude = table.get(row, KnownColumnNames.LAT)
        longitude = table.get(row, KnownColumnNames.LON)
        if latitude is not None and longitude is not None:
            return LatLong(float(latitude), float(longitude))
        position = table.get(row, KnownColumnNames.POS)
        return position if isinstance(position, LatLong) else None

    def process_sample(self, table: CanonicalTable, row: Dict[str, Any]) -> None:
        """Read one row and advance the flight accordingly"""
        sample_time = self.sample_time(table, row)
        if sample_time is None:
            return

        speed = 0.0
        if self.has_speed:
            value = table.get(row, self.speed_column)
            speed = float(value) if value is not None else 0.0

        position = None
        is_night = is_civil_night = False
        ll = self.sample_position(table, row)
        if ll is not None:
            position = Position(ll.latitude, ll.longitude, timestamp=sample_time)
            sun = self.solar.sun_times(sample_time, ll.latitude, ll.longitude)
            is_night = sun.is_faa_night
            is_civil_night = sun.is_faa_civil_night

        self.accumulate_night(position, is_civil_night)
        self.update_flying_state(speed, sample_time, position, is_night)

    def accumulate_night(self, position: Optional[Position], is_civil_night: bool) -> None:
        """Credit the gap since the last sample if both are civil night and close together"""
        state = self.state
        last = state.last_position
        if position is not None and last is not None and is_civil_night and state.last_position_was_night:
            hours = (position.timestamp - last.timestamp).total_seconds() / SECONDS_PER_HOUR
            # Wider gaps are data dropouts
            if hours < MAX_NIGHT_SAMPLE_GAP_HOURS:
                state.total_night += hours
        state.last_position = position
        state.last_position_was_night = is_civil_night

    def finalize(self) -> None:
        """Fill in the fields that are only known once every sample has been seen"""
        self.flight.route = ' '.join(self.state.route_so_far).strip()
        self.flight.nighttime = round(self.state.total_night, 2)


def resetDerivedFields(flight: LogbookEntry) -> None:
    """Clear everything auto-fill is about to recompute"""
    flight.landings = flight.night_landings = flight.full_stop_landings = 0
    flight.cross_country = 0.0
    flight.total_flight_time = 0.0
    flight.nighttime = 0.0
    flight.flight_start = flight.flight_end = None
    if PROP_NIGHT_TAKEOFF in flight.custom_properties:
        flight.custom_properties[PROP_NIGHT_TAKEOFF] = 0


def autoFill(flight: LogbookEntry, options: AutoFillOptions,
             airports: AirportLookup, solar: SolarCalculator,
             time_calculator: Optional[FlightTimeCalculator] = None,
             registry: Optional[ColumnTypeRegistry] = None) -> Optional[FlightData]:
    """
    Update a flight with as much as can be gleaned from its telemetry.
    Returns the parsed FlightData, or None if the flight carried no telemetry.
    """
    if flight is None or options is None:
        return None

    flight_data = None
    if flight.flight_data:
        flight_data = FlightData(registry, flight.flight_id)
        result = flight_data.parse_flight_data(flight.flight_data)

        if not result.success and not options.ignore_errors:
            logger.warning(f"Not auto-filling from unparseable telemetry: {result.error_string}")
        elif flight_data.has_lat_long_info and flight_data.has_date_time:
            resetDerivedFields(flight)

            table = flight_data.data
            if table.has_speed:
                speed_column = KnownColumnNames.SPEED
            elif table.has_derived_speed:
                speed_column = KnownColumnNames.DERIVEDSPEED
            else:
                speed_column = ''

            context = AutoFillContext(
                options, flight, airports, solar,
                date_column=table.date_column,
                speed_column=speed_column,
                has_time_kind=table.has_time_kind,
                timezone_column=table.timezone_header,
            )
            for row in table.sorted_rows(table.date_column):
                context.process_sample(table, row)
            context.finalize()
            logger.info(f"Auto-filled {flight.landings} landing(s), route '{flight.route}'")

    if time_calculator is not None:
        time_calculator.auto_totals(flight, options)
        time_calculator.auto_hobbs(flight, options)

    flight.total_flight_time = round(flight.total_flight_time, 2)

    if time_calculator is not None:
        time_calculator.auto_fill_finish(flight, options)

    return flight_data
