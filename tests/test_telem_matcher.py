"""
Tests for telem_matcher.py matching telemetry to logbook flights
"""
import pytest
from datetime import date, datetime

from telem_matcher import MatchResult, TelemetryMatcher
from telem_model import LatLong, LogbookEntry
from conftest import FakeFlightRepository, flight_csv

TELEMETRY = flight_csv([0, 0, 80, 80, 80, 20, 20, 3, 0])
DAY = date(2024, 5, 9)


def flight(flight_id, route="KSEA KPAE", start=None, user="pilot", day=DAY):
    return LogbookEntry(flight_id=flight_id, user=user, flight_date=day, route=route, engine_start=start)


def match(flights, airports, telemetry=TELEMETRY, **kwargs):
    repository = FakeFlightRepository(flights)
    result = TelemetryMatcher(repository, airports).match(telemetry, "pilot", file_name="track.csv", **kwargs)
    return result, repository


class TestMatchResult:
    def test_adjusted_date(self):
        result = MatchResult(date=datetime(2024, 5, 9, 2, 0), timezone_offset=-3)
        assert result.adjusted_date == datetime(2024, 5, 8, 23, 0)
        assert MatchResult().adjusted_date is None


class TestMatch:
    def test_single_candidate(self, airports):
        candidate = flight(21)
        result, repository = match([candidate, flight(22, day=date(2024, 5, 10))], airports)
        assert result.success
        assert result.status == "Match found"
        assert result.flight_id == 21
        assert result.telemetry_file_name == "track.csv"
        assert result.matched_flight_description == "2024-05-09 KSEA KPAE"
        assert candidate.flight_data == TELEMETRY
        assert repository.committed == [candidate]

    def test_other_users_flights_ignored(self, airports):
        result, repository = match([flight(21, user="someone else")], airports)
        assert not result.success
        assert result.status.startswith("[match] No flight found")
        assert repository.committed == []

    def test_departure_picks_flight(self, airports):
        result, _ = match([flight(21, route="KPAE KSEA"), flight(22, route="KSEA KPAE")], airports)
        assert result.success
        assert result.flight_id == 22

    def test_start_time_picks_flight(self, airports):
        morning = flight(21, start=datetime(2024, 5, 9, 8, 0))
        noon = flight(22, start=datetime(2024, 5, 9, 12, 10))
        result, _ = match([morning, noon], airports)
        assert result.success
        assert result.flight_id == 22

    def test_ambiguous(self, airports):
        first = flight(21, start=datetime(2024, 5, 9, 12, 5))
        second = flight(22, start=datetime(2024, 5, 9, 11, 50))
        result, repository = match([first, second], airports)
        assert not result.success
        assert result.flight_id == -1
        assert result.status.startswith("[match]")
        assert repository.committed == []
        assert first.flight_data is None and second.flight_data is None

    def test_none_departs_nearby(self, airports):
        result, _ = match([flight(21, route="KPAE"), flight(22, route="")], airports)
        assert not result.success
        assert "none departs near" in result.status

    def test_timezone_changes_the_day(self, airports):
        late = flight(21, day=date(2024, 5, 8))
        result, _ = match([late], airports, timezone_offset=-13)
        assert result.success
        assert result.adjusted_date.date() == date(2024, 5, 8)

    def test_fallback_date(self, airports):
        telemetry = "LAT,LON,SPEED\n47.4502,-122.3088,0\n47.4602,-122.3088,80\n"
        result, _ = match([flight(21)], airports, telemetry=telemetry, fallback_date=datetime(2024, 5, 9, 9, 0))
        assert result.success
        assert result.date == datetime(2024, 5, 9, 9, 0)

    def test_no_date(self, airports):
        result, _ = match([flight(21)], airports, telemetry="LAT,LON\n47.4502,-122.3088\n")
        assert not result.success
        assert "no date" in result.status

    def test_no_position_with_several_candidates(self, airports):
        telemetry = "DATE,SPEED\n2024-05-09 12:00:00,0\n"
        result, _ = match([flight(21), flight(22)], airports, telemetry=telemetry)
        assert not result.success
        assert "no position" in result.status

    def test_unparseable(self, airports):
        result, _ = match([flight(21)], airports, telemetry="LAT,LON,ALT\n47.45,-122.30,-9000\n")
        assert not result.success
        assert "could not be parsed" in result.status

    def test_owner_required(self, airports):
        matcher = TelemetryMatcher(FakeFlightRepository([flight(21)]), airports)
        with pytest.raises(PermissionError):
            matcher.match(TELEMETRY, "")


class TestFilters:
    def test_close_to_departure(self, airports):
        near, far = flight(1, route="KBFI"), flight(2, route="KPAE")
        matcher = TelemetryMatcher(FakeFlightRepository(), airports)
        assert matcher.close_to_departure([near, far], LatLong(47.4502, -122.3088)) == [near]

    def test_close_in_time_uses_either_start(self):
        by_engine = flight(1, start=datetime(2024, 5, 9, 12, 15))
        by_flight = flight(2)
        by_flight.flight_start = datetime(2024, 5, 9, 11, 45)
        neither = flight(3, start=datetime(2024, 5, 9, 12, 20))
        when = datetime(2024, 5, 9, 12, 0)
        assert TelemetryMatcher.close_in_time([by_engine, by_flight, neither], when) == [by_engine, by_flight]
        assert TelemetryMatcher.close_in_time([by_engine], None) == []
