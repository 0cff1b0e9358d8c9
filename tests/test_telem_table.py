"""
Tests for telem_table.py canonical table
"""
from datetime import datetime, timezone

from telem_table import CanonicalTable, timeKindOf
from telem_model import KnownColumn, KnownColumnType, Position, SpeedKind, TimeKind
from telem_constants import KnownColumnNames


def make_table(*names):
    table = CanonicalTable()
    for name in names:
        table.add_column(KnownColumn(name, name, KnownColumnType.STRING))
    return table


class TestColumns:
    def test_names_are_case_insensitive(self):
        table = make_table("Lat")
        assert table.has_column("LAT")
        row = table.add_row({"lat": 47.5})
        assert table.get(row, "LAT") == 47.5

    def test_duplicate_header_keeps_first(self):
        table = make_table("LAT")
        key = table.add_column(KnownColumn("LATITUDE", "Latitude", KnownColumnType.LAT_LONG, "lat"))
        assert key == "LAT"
        assert table.column_names == ["LAT"]

    def test_missing_values_are_none(self):
        table = make_table("LAT", "LON")
        row = table.add_row({"LAT": 47.5})
        assert row == {"LAT": 47.5, "LON": None}
        assert table.get(row, "ALT") is None

    def test_drop_empty_columns(self):
        table = make_table("LAT", "ALT")
        table.add_row({"LAT": 47.5})
        assert table.drop_empty_columns() == ["ALT"]
        assert not table.has_altitude


class TestCapabilities:
    def test_lat_long_needs_both(self):
        assert not make_table("LAT").has_lat_long_info
        assert make_table("LAT", "LON").has_lat_long_info
        assert make_table("POSITION").has_lat_long_info

    def test_date_column_prefers_date(self):
        assert make_table("TIME", "DATE").date_column == KnownColumnNames.DATE
        assert make_table("TIME").date_column == KnownColumnNames.TIME
        assert not make_table("LAT").has_date_time

    def test_timezone_header(self):
        assert make_table("UTC Offset").timezone_header == KnownColumnNames.UTC_OFFSET
        assert make_table("TZOFFSET", "UTC Offset").timezone_header == KnownColumnNames.TZOFFSET
        assert not make_table("LAT").has_timezone


class TestSortedRows:
    def test_stable_ascending_with_missing_first(self):
        table = make_table("DATE", "N")
        table.add_row({"DATE": datetime(2024, 5, 9, 12, 2), "N": 1})
        table.add_row({"DATE": None, "N": 2})
        table.add_row({"DATE": datetime(2024, 5, 9, 12, 1), "N": 3})
        table.add_row({"DATE": datetime(2024, 5, 9, 12, 1), "N": 4})
        assert [row["N"] for row in table.sorted_rows("DATE")] == [2, 3, 4, 1]

    def test_unknown_column_keeps_order(self):
        table = make_table("N")
        table.add_row({"N": 2})
        table.add_row({"N": 1})
        assert [row["N"] for row in table.sorted_rows("DATE")] == [2, 1]


class TestFromPositions:
    def test_unused_columns_are_dropped(self):
        table = CanonicalTable.from_positions([Position(47.5, -122.3), Position(47.6, -122.3)])
        assert table.has_lat_long_info
        assert not table.has_altitude
        assert not table.has_date_time
        assert not table.has_speed
        assert [table.get(row, "SAMPLE") for row in table] == [0, 1]

    def test_reported_and_derived_speeds(self):
        when = datetime(2024, 5, 9, 12, 0, tzinfo=timezone.utc)
        table = CanonicalTable.from_positions([
            Position(47.5, -122.3, altitude=100.7, timestamp=when, speed=80.0),
            Position(47.6, -122.3, timestamp=when, speed=75.0, speed_kind=SpeedKind.DERIVED),
        ])
        first, second = table.rows
        assert table.get(first, "ALT") == 100
        assert table.get(first, "SPEED") == 80.0
        assert table.get(second, "ComputedSpeed") == 75.0
        assert table.get(first, "TIMEKIND") == TimeKind.UTC.value

    def test_time_kind(self):
        assert timeKindOf(datetime(2024, 5, 9)) == TimeKind.UNSPECIFIED
        assert timeKindOf(datetime(2024, 5, 9, tzinfo=timezone.utc)) == TimeKind.UTC
        assert timeKindOf(None) == TimeKind.UNSPECIFIED
