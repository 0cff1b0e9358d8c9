#!/usr/bin/env python3
"""
Known-column registry and value coercion

Maps raw column names found in third-party telemetry to a semantic type and
converts raw cell text into typed values. The coercion rules encode quirks of
real-world files (units appended to numbers, DMS coordinates, hh:mm UTC
offsets, ForeFlight-style millisecond timestamps), so change them carefully.
"""

import re
import math
import logging
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Iterable, Optional, Sequence

from telem_model import KnownColumn, KnownColumnType, LatLong, COLUMN_PYTHON_TYPES
from telem_errors import GeometryError, ParseError
from telem_utils import numericPrefix, parseDMS, parseDate, parseUTCDate
from telem_constants import (
    DEFAULT_KNOWN_COLUMNS,
    KnownColumnNames,
    MAX_ABS_COORDINATE,
    MIN_PLAUSIBLE_ALTITUDE,
)

# Configure logger
logger = logging.getLogger(__name__)

_nakedTime = re.compile(r'(\d{1,2}):(\d{1,2})(?::(\d{1,2}))?')
_utcOffset = re.compile(r'(-)?(\d{1,2}):(\d{1,2})')
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def defaultColumnRows() -> Sequence[tuple]:
    """Built-in column table, used when the host supplies no other source"""
    return DEFAULT_KNOWN_COLUMNS


def columnFromRow(row: Sequence[Any]) -> KnownColumn:
    """
    Build a KnownColumn from a (rawName, friendlyName, typeID, alias, description, notes) row.
    Trailing optional fields may be omitted.
    """
    raw_name, friendly_name, type_id = row[0], row[1], row[2]
    extras = list(row[3:]) + [None] * (6 - len(row))

    if isinstance(type_id, KnownColumnType):
        semantic_type = type_id
    elif isinstance(type_id, int):
        semantic_type = KnownColumnType(type_id)
    else:
        semantic_type = KnownColumnType.from_name(str(type_id))

    return KnownColumn(
        raw_name=str(raw_name).strip().upper(),
        friendly_name=friendly_name,
        semantic_type=semantic_type,
        alias=extras[0] or None,
        description=extras[1] or None,
        notes=extras[2] or None,
    )


class ColumnTypeRegistry:
    """
    Resolves raw column names to KnownColumns.

    The table is loaded lazily from the supplied row source and kept until
    invalidate() is called. An empty table is treated as cold and reloaded on
    the next lookup.
    """

    def __init__(self, loader: Optional[Callable[[], Iterable[Sequence[Any]]]] = None):
        self._loader = loader or defaultColumnRows
        self._columns: Optional[Dict[str, KnownColumn]] = None

    def invalidate(self) -> None:
        """Drop the cached table; the next lookup reloads it"""
        self._columns = None

    @property
    def columns(self) -> Dict[str, KnownColumn]:
        if not self._columns:
            columns = {}
            for row in self._loader() or ():
                column = columnFromRow(row)
                columns[column.raw_name] = column
            logger.debug(f"Loaded {len(columns)} known columns")
            self._columns = columns
        return self._columns

    def resolve(self, raw_name: Optional[str]) -> KnownColumn:
        """
        Return the KnownColumn for a raw name (case-insensitive).
        Unknown or empty names get a synthesized String column so ingestion never blocks.
        """
        name = (raw_name or '').strip()
        column = self.columns.get(name.upper()) if name else None
        if column is None:
            return KnownColumn(name, name, KnownColumnType.STRING)
        return column

    @staticmethod
    def python_type(semantic_type: KnownColumnType) -> type:
        """Python type of values produced by coercing to this semantic type"""
        return COLUMN_PYTHON_TYPES.get(semantic_type, str)

    def coerce(self, column: KnownColumn, raw_value: str) -> Any:
        """
        Convert a raw cell to the column's semantic type.
        Raises ParseError carrying column, friendly name, raw value and cause.
        """
        try:
            return self._coerce(column, raw_value)
        except (ValueError, ArithmeticError, OverflowError) as e:
            raise ParseError(column.raw_name, column.friendly_name, raw_value, e) from e

    def coerce_named(self, raw_name: str, raw_value: str) -> Any:
        return self.coerce(self.resolve(raw_name), raw_value)

    def _coerce(self, column: KnownColumn, value: str) -> Any:
        kind = column.semantic_type

        if kind == KnownColumnType.NAKED_TIME:
            return parseNakedTime(value)
        elif kind in (KnownColumnType.DATE_TIME, KnownColumnType.NAKED_DATE):
            return parseDate(value)
        elif kind == KnownColumnType.UNIX_TIMESTAMP_MILLIS:
            return parseUnixMillis(value)
        elif kind == KnownColumnType.DECIMAL:
            prefix = numericPrefix(value)
            try:
                return Decimal(prefix)
            except InvalidOperation:
                return Decimal(0)
        elif kind == KnownColumnType.FLOAT:
            try:
                return float(numericPrefix(value))
            except ValueError:
                return 0.0
        elif kind == KnownColumnType.LAT_LONG:
            return parseLatLong(value)
        elif kind == KnownColumnType.TIMEZONE_OFFSET_MINUTES and \
                column.header_name.lower() == KnownColumnNames.UTC_OFFSET.lower():
            return parseUTCOffset(value)
        elif kind in (KnownColumnType.INTEGER, KnownColumnType.TIMEZONE_OFFSET_MINUTES):
            result = parseToInt(numericPrefix(value))
            if column.header_name.upper() == KnownColumnNames.ALT and result < MIN_PLAUSIBLE_ALTITUDE:
                raise ValueError(f"Implausible altitude: {result}")
            return result
        elif kind == KnownColumnType.POSITION:
            return parsePosition(value)

        return value


def parseToInt(text: str) -> int:
    """Integer parse, falling back to a truncated float, falling back to 0"""
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return int(float(text))
    except (ValueError, OverflowError):
        return 0


def parseLatLong(value: str) -> float:
    """Decimal degrees or DMS. Zero and |v| > 180 are never valid coordinates."""
    text = (value or '').strip()
    if not text:
        raise GeometryError("Empty latitude/longitude")

    try:
        result = float(text)
    except ValueError:
        result = parseDMS(text)

    if not math.isfinite(result) or result > MAX_ABS_COORDINATE or result < -MAX_ABS_COORDINATE or result == 0.0:
        raise GeometryError(f"Invalid latitude/longitude: {result}")
    return result


def parsePosition(value: str) -> LatLong:
    """Combined "lat, lon" (or "lat lon") coordinate pair"""
    text = (value or '').strip()
    parts = [p for p in re.split(r'[,;]', text) if p.strip()]
    if len(parts) != 2:
        parts = text.split()
    if len(parts) != 2:
        raise GeometryError(f"Not a latitude/longitude pair: {value}")
    return LatLong(parseLatLong(parts[0]), parseLatLong(parts[1]))


def parseUTCOffset(value: str) -> int:
    """
    hh:mm offset from UTC, returned as minutes to add to local time to get UTC.
    No leading minus means the offset is east of UTC, so the result is negated.
    """
    match = _utcOffset.search(value or '')
    if match is None:
        raise ValueError(f"Not a UTC offset: {value}")
    sign = 1 if match.group(1) else -1
    return sign * (60 * int(match.group(2)) + int(match.group(3)))


def parseNakedTime(value: str) -> datetime:
    """Time of day with no date; today's date is assumed"""
    match = _nakedTime.search(value or '')
    if match is None:
        raise ValueError(f"Not a time: {value}")
    seconds = int(match.group(3)) if match.group(3) else 0
    return datetime.combine(date.today(), time(int(match.group(1)), int(match.group(2)), seconds))


def parseUnixMillis(value: str) -> datetime:
    """Milliseconds since the epoch (whole seconds kept), else any UTC date string"""
    text = (value or '').strip()
    try:
        millis = int(text)
    except ValueError:
        return parseUTCDate(text)
    return _EPOCH + timedelta(seconds=int(millis / 1000))
