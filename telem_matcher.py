#!/usr/bin/env python3
"""
Telemetry matcher module for the flight telemetry importer

Finds the logbook flight an uploaded telemetry file belongs to, using the
date of the first sample, the departure airport and the start time.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import List, Optional

from telem_model import AirportLookup, FlightRepository, LatLong, LogbookEntry
from telem_columns import ColumnTypeRegistry
from telem_errors import MatchError
from telem_flight_data import FlightData
from telem_utils import distanceNM, minutesBetween, parseDate
from telem_constants import MATCH_MAX_DEPARTURE_DISTANCE_NM, MATCH_MAX_TIME_DISCREPANCY_MINUTES

# Configure logger
logger = logging.getLogger(__name__)


@dataclass
class MatchResult:
    telemetry_file_name: str = ''
    flight_id: int = -1
    success: bool = False
    status: str = ''
    matched_flight_description: str = ''
    date: Optional[datetime] = None
    # Hours
    timezone_offset: float = 0.0

    @property
    def adjusted_date(self) -> Optional[datetime]:
        if self.date is None:
            return None
        return self.date + timedelta(hours=self.timezone_offset)


class TelemetryMatcher:
    """Matches telemetry to an existing flight of the same owner"""

    def __init__(self, flights: FlightRepository, airports: AirportLookup,
                 registry: Optional[ColumnTypeRegistry] = None):
        self.flights = flights
        self.airports = airports
        self.registry = registry or ColumnTypeRegistry()

    @staticmethod
    def _first_date(flight_data: FlightData) -> Optional[datetime]:
        table = flight_data.data
        if not flight_data.has_date_time or not len(table):
            return None
        value = table.get(table.rows[0], table.date_column)
        if value is None or isinstance(value, datetime):
            return value
        try:
            return parseDate(str(value))
        except ValueError:
            return None

    def close_to_departure(self, candidates: List[LogbookEntry], start: LatLong) -> List[LogbookEntry]:
        """Candidates whose first route airport is near the start of the telemetry"""
        close = []
        for flight in candidates:
            route = self.airports.airports_for_route(flight.route)
            if route and distanceNM(start.latitude, start.longitude,
                                    route[0].latitude, route[0].longitude) < MATCH_MAX_DEPARTURE_DISTANCE_NM:
                close.append(flight)
        return close

    @staticmethod
    def close_in_time(candidates: List[LogbookEntry], when: Optional[datetime]) -> List[LogbookEntry]:
        """Candidates whose engine or flight start is near the telemetry start"""
        if when is None:
            return []
        return [
            flight for flight in candidates
            if (flight.engine_start is not None and
                minutesBetween(flight.engine_start, when) < MATCH_MAX_TIME_DISCREPANCY_MINUTES) or
               (flight.flight_start is not None and
                minutesBetween(flight.flight_start, when) < MATCH_MAX_TIME_DISCREPANCY_MINUTES)
        ]

    def find_match(self, result: MatchResult, start: Optional[LatLong], owner: str) -> LogbookEntry:
        day: date = result.adjusted_date.date()
        candidates = self.flights.flights_for_date(owner, day)

        if not candidates:
            raise MatchError(f"No flight found on {day}")
        if len(candidates) == 1:
            return candidates[0]

        if start is None:
            raise MatchError("Several flights on that date and the telemetry has no position to tell them apart")

        close = self.close_to_departure(candidates, start)
        if not close:
            raise MatchError("Several flights on that date but none departs near the start of the telemetry")
        if len(close) == 1:
            return close[0]

        by_time = self.close_in_time(close, result.date)
        if len(by_time) == 1:
            return by_time[0]
        raise MatchError("Several flights on that date depart near the start of the telemetry; cannot tell which")

    def match(self, telemetry: str, owner: str, fallback_date: Optional[datetime] = None,
              file_name: str = '', timezone_offset: float = 0.0) -> MatchResult:
        """
        Attach telemetry to the owner's matching flight.
        Failures are reported in the result; an empty owner raises PermissionError.
        """
        if not owner:
            raise PermissionError("No user specified for telemetry match")

        result = MatchResult(telemetry_file_name=file_name, timezone_offset=timezone_offset)
        try:
            flight_data = FlightData(self.registry)
            parsed = flight_data.parse_flight_data(telemetry)
            if not parsed.success:
                raise MatchError(f"Telemetry could not be parsed: {parsed.error_string}")

            start = None
            if flight_data.has_lat_long_info:
                path = flight_data.get_path()
                start = path[0] if path else None
            result.date = self._first_date(flight_data)

            if result.date is None:
                if fallback_date is None:
                    raise MatchError("Telemetry has no date and none was supplied")
                result.date = fallback_date

            flight = self.find_match(result, start, owner)
        except MatchError as e:
            result.status = e.describe()
            logger.info(f"No match for {file_name or 'telemetry'}: {e}")
            return result

        flight.flight_data = telemetry
        self.flights.commit(flight)
        result.success = True
        result.status = "Match found"
        result.matched_flight_description = flight.description()
        result.flight_id = flight.flight_id
        logger.info(f"Matched {file_name or 'telemetry'} to flight {flight.flight_id}")
        return result
