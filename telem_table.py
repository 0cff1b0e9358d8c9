#!/usr/bin/env python3
"""
Canonical telemetry table

Every parser produces one of these: an ordered list of rows, each a mapping
from canonical column name to a typed value or None. None means "absent",
never zero. Capability checks (has_lat_long_info, has_date_time, ...) look
only at which columns survive population, so a format that could report
altitude but did not will not claim to have it.
"""

from datetime import datetime
from typing import Any, Dict, Iterable, Iterator, List, Optional

from telem_model import KnownColumn, Position, SpeedKind, TimeKind, POSITION_COLUMNS
from telem_constants import KnownColumnNames


class CanonicalTable:
    """A typed, sparse table of telemetry samples"""

    def __init__(self):
        self._columns: Dict[str, KnownColumn] = {}
        self._keys: Dict[str, str] = {}
        self.rows: List[Dict[str, Any]] = []

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self) -> Iterator[Dict[str, Any]]:
        return iter(self.rows)

    @property
    def column_names(self) -> List[str]:
        return list(self._columns)

    def column(self, name: str) -> Optional[KnownColumn]:
        key = self._keys.get(name.lower())
        return self._columns[key] if key else None

    def has_column(self, name: str) -> bool:
        return name.lower() in self._keys

    def add_column(self, column: KnownColumn) -> str:
        """Add a column keyed by its header name; returns the key actually used"""
        existing = self._keys.get(column.header_name.lower())
        if existing:
            return existing
        self._columns[column.header_name] = column
        self._keys[column.header_name.lower()] = column.header_name
        return column.header_name

    def remove_column(self, name: str) -> None:
        key = self._keys.pop(name.lower(), None)
        if key is None:
            return
        del self._columns[key]
        for row in self.rows:
            row.pop(key, None)

    def add_row(self, values: Dict[str, Any]) -> Dict[str, Any]:
        row = {key: None for key in self._columns}
        for name, value in values.items():
            key = self._keys.get(name.lower())
            if key is not None:
                row[key] = value
        self.rows.append(row)
        return row

    def get(self, row: Dict[str, Any], name: str) -> Any:
        key = self._keys.get(name.lower())
        return row.get(key) if key else None

    def clear(self) -> None:
        self._columns.clear()
        self._keys.clear()
        self.rows.clear()

    def drop_empty_columns(self) -> List[str]:
        """Remove columns with no non-null value in any row; returns the removed names"""
        empty = [key for key in self._columns if all(row.get(key) is None for row in self.rows)]
        for key in empty:
            self.remove_column(key)
        return empty

    def sorted_rows(self, name: str) -> List[Dict[str, Any]]:
        """Rows in stable ascending order of a column; rows lacking a value come first"""
        key = self._keys.get(name.lower())
        if key is None:
            return list(self.rows)
        return sorted(self.rows, key=lambda row: (row.get(key) is not None, _sortable(row.get(key))))

    # What information is present?

    @property
    def date_column(self) -> str:
        """Name of the column holding the sample date/time, or '' if none"""
        if self.has_column(KnownColumnNames.DATE):
            return KnownColumnNames.DATE
        if self.has_column(KnownColumnNames.TIME):
            return KnownColumnNames.TIME
        return ''

    @property
    def has_lat_long_info(self) -> bool:
        return self.has_column(KnownColumnNames.POS) or \
            (self.has_column(KnownColumnNames.LAT) and self.has_column(KnownColumnNames.LON))

    @property
    def has_date_time(self) -> bool:
        return bool(self.date_column)

    @property
    def has_speed(self) -> bool:
        return self.has_column(KnownColumnNames.SPEED)

    @property
    def has_derived_speed(self) -> bool:
        return self.has_column(KnownColumnNames.DERIVEDSPEED)

    @property
    def has_timezone(self) -> bool:
        return bool(self.timezone_header)

    @property
    def timezone_header(self) -> str:
        """Which column carries a timezone offset; '' if none"""
        if self.has_column(KnownColumnNames.TZOFFSET):
            return KnownColumnNames.TZOFFSET
        if self.has_column(KnownColumnNames.UTC_OFFSET):
            return KnownColumnNames.UTC_OFFSET
        return ''

    @property
    def has_altitude(self) -> bool:
        return self.has_column(KnownColumnNames.ALT)

    @property
    def has_utc_date_time(self) -> bool:
        return self.has_column(KnownColumnNames.UTC_DATETIME)

    @property
    def has_time_kind(self) -> bool:
        return self.has_column(KnownColumnNames.TIMEKIND)

    @classmethod
    def from_positions(cls, positions: Iterable[Position]) -> 'CanonicalTable':
        """Build the standard sample columns from Position objects, dropping unused ones"""
        table = cls()
        for name, kind in POSITION_COLUMNS:
            table.add_column(KnownColumn(name, name, kind))

        for index, sample in enumerate(positions or ()):
            reported = sample.has_speed and sample.speed_kind == SpeedKind.REPORTED
            derived = sample.has_speed and sample.speed_kind == SpeedKind.DERIVED
            table.add_row({
                KnownColumnNames.SAMPLE: index,
                KnownColumnNames.LAT: sample.latitude,
                KnownColumnNames.LON: sample.longitude,
                KnownColumnNames.ALT: int(sample.altitude) if sample.has_altitude else None,
                KnownColumnNames.TIME: sample.timestamp,
                KnownColumnNames.TIMEKIND: timeKindOf(sample.timestamp).value if sample.has_timestamp else None,
                KnownColumnNames.SPEED: sample.speed if reported else None,
                KnownColumnNames.DERIVEDSPEED: sample.speed if derived else None,
                KnownColumnNames.COMMENT: sample.comment or None,
            })

        table.drop_empty_columns()
        return table


def timeKindOf(value: Optional[datetime]) -> TimeKind:
    if value is None or value.tzinfo is None:
        return TimeKind.UNSPECIFIED
    return TimeKind.UTC


def _sortable(value: Any) -> Any:
    """Aware and naive datetimes in one column must still compare"""
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.replace(tzinfo=None) - value.utcoffset()
    return value
