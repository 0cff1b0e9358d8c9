#!/usr/bin/env python3
"""
Utility functions for the flight telemetry importer
"""

import re
import math
from datetime import datetime, date, timezone
from typing import Optional, Union

from telem_constants import (
    EARTH_RADIUS_METERS,
    METERS_PER_NAUTICAL_MILE,
    DATE_FORMATS,
    TIME_FORMATS,
    DATE_FORMAT_YMD,
    TIME_FORMAT_HM,
)

_numericPrefix = re.compile(r'^\s*([-+]?\d*(?:\.\d*)?)')
_dmsResidue = re.compile('[-+\\d.\\s°º\'"′″:,]')
_dmsNumber = re.compile(r'[-+]?\d+(?:\.\d+)?')


def numberOrString(value: str) -> Union[float, str]:
    """Convert a string to a number if possible, otherwise keep as string"""
    if re.sub('^[+-]', '', re.sub('\\.', '', value)).isnumeric():
        return float(value)
    else:
        return value


def numericPrefix(value: str) -> str:
    """
    Return the leading signed decimal number of a string, e.g. "1234 ft" -> "1234".
    Returns an empty string if the value does not start with a number.
    """
    match = _numericPrefix.match(value or '')
    return match.group(1) if match else ''


def parseDMS(value: str) -> float:
    """
    Parse a degree/minute/second angle such as 47°36'22.5"N, N47 36.375 or -122:20:30.
    Southern and western hemispheres are negative.
    """
    text = (value or '').strip().upper()
    residue = _dmsResidue.sub('', text)
    if residue not in ('', 'N', 'S', 'E', 'W'):
        raise ValueError(f"Not a degree/minute/second angle: {value}")

    parts = _dmsNumber.findall(text)
    if not parts or len(parts) > 3:
        raise ValueError(f"Not a degree/minute/second angle: {value}")

    degrees = float(parts[0])
    minutes = float(parts[1]) if len(parts) > 1 else 0.0
    seconds = float(parts[2]) if len(parts) > 2 else 0.0
    if minutes < 0 or minutes >= 60 or seconds < 0 or seconds >= 60:
        raise ValueError(f"Minutes/seconds out of range: {value}")

    angle = abs(degrees) + minutes / 60.0 + seconds / 3600.0
    if parts[0].startswith('-') or residue in ('S', 'W'):
        angle = -angle
    return angle


def parseDate(value: str) -> datetime:
    """
    Parse a date/time string in any of the common formats. A time of day on
    its own is taken to be today. Raises ValueError.
    """
    text = (value or '').strip()
    if not text:
        raise ValueError("Empty date")

    iso = text[:-1] + '+00:00' if text.endswith('Z') else text
    try:
        return datetime.fromisoformat(iso)
    except ValueError:
        pass

    for fmt in DATE_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            continue
        if fmt.endswith('Z'):
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

    for fmt in TIME_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            continue
        return datetime.combine(date.today(), parsed.time())

    raise ValueError(f"Unrecognized date: {value}")


def parseUTCDate(value: str) -> datetime:
    """Parse a date/time string and express it in UTC; naive values are taken to be UTC"""
    return asUTC(parseDate(value))


def asUTC(value: datetime) -> datetime:
    """Tag a naive datetime as UTC, or convert an aware one to UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def toNaiveUTC(value: datetime) -> datetime:
    """Drop timezone information after converting to UTC, so naive and aware values compare"""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def minutesBetween(first: datetime, second: datetime) -> float:
    return abs((toNaiveUTC(first) - toNaiveUTC(second)).total_seconds()) / 60.0


def calculateDistance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate the great circle distance between two points on earth.
    Returns distance in meters.
    """
    # Convert decimal degrees to radians
    lat1_rad = math.radians(lat1)
    lon1_rad = math.radians(lon1)
    lat2_rad = math.radians(lat2)
    lon2_rad = math.radians(lon2)

    # Haversine formula
    dlon = lon2_rad - lon1_rad
    dlat = lat2_rad - lat1_rad
    a = math.sin(dlat/2)**2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon/2)**2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1-a))

    return EARTH_RADIUS_METERS * c


def distanceNM(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great circle distance in nautical miles"""
    return calculateDistance(lat1, lon1, lat2, lon2) / METERS_PER_NAUTICAL_MILE


def toYMD(time_input: Optional[Union[datetime, date]]) -> str:
    """Convert a time to YYYY/MM/DD format"""
    if isinstance(time_input, (datetime, date)):
        return time_input.strftime(DATE_FORMAT_YMD)
    return str(time_input)


def toHM(time_input: Optional[datetime]) -> str:
    """Convert a time to HH:MM format"""
    if isinstance(time_input, datetime):
        return time_input.strftime(TIME_FORMAT_HM)
    return str(time_input)
