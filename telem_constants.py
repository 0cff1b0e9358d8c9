#!/usr/bin/env python3
"""
Constants for the flight telemetry importer
"""
import math


# Canonical column names
class KnownColumnNames:
    LAT = "LAT"
    LON = "LON"
    POS = "POSITION"
    ALT = "ALT"
    SPEED = "SPEED"
    TZOFFSET = "TZOFFSET"
    SAMPLE = "SAMPLE"
    DATE = "DATE"
    TIME = "TIME"
    TIMEKIND = "TIMEKIND"
    DERIVEDSPEED = "ComputedSpeed"
    COMMENT = "Comment"
    NAKED_DATE = "NakedDate"
    NAKED_TIME = "NakedTime"
    UTC_OFFSET = "UTC Offset"
    UTC_DATETIME = "UTC DateTime"
    PITCH = "Pitch"
    ROLL = "Roll"


# Default known-column rows: (raw name, friendly name, type name, alias, description, notes)
DEFAULT_KNOWN_COLUMNS = (
    ("LAT", "Latitude", "LatLong", None, "Latitude, decimal degrees or DMS", None),
    ("LATITUDE", "Latitude", "LatLong", "LAT", None, None),
    ("LON", "Longitude", "LatLong", None, "Longitude, decimal degrees or DMS", None),
    ("LONG", "Longitude", "LatLong", "LON", None, None),
    ("LONGITUDE", "Longitude", "LatLong", "LON", None, None),
    ("POSITION", "Position", "Position", None, "Combined latitude/longitude", None),
    ("ALT", "Altitude", "Integer", None, "Altitude", "Values below -1600 are rejected"),
    ("ALTITUDE", "Altitude", "Integer", "ALT", None, None),
    ("ALT (FT)", "Altitude", "Integer", "ALT", None, None),
    ("ALTITUDE (FT)", "Altitude", "Integer", "ALT", None, None),
    ("SPEED", "Speed", "Float", None, "Reported ground speed", None),
    ("GROUNDSPEED", "Speed", "Float", "SPEED", None, None),
    ("GROUND SPEED", "Speed", "Float", "SPEED", None, None),
    ("SPEED (KT)", "Speed", "Float", "SPEED", None, None),
    ("GS", "Speed", "Float", "SPEED", None, None),
    ("TZOFFSET", "Timezone Offset", "TimezoneOffsetMinutes", None, "Minutes to add to local time to get UTC", None),
    ("UTC OFFSET", "UTC Offset", "TimezoneOffsetMinutes", "UTC Offset", "Offset from UTC, hh:mm", "Sign is opposite to TZOFFSET"),
    ("SAMPLE", "Sample", "Integer", None, "Sample number", None),
    ("DATE", "Date", "DateTime", None, "Date and time of the sample", None),
    ("TIME", "Time", "DateTime", None, "Date and time of the sample", None),
    ("TIMESTAMP", "Timestamp", "UnixTimestampMillis", "DATE", "Milliseconds since the Unix epoch", None),
    ("TIMEKIND", "Time Kind", "Integer", None, "0 = unspecified, 1 = UTC, 2 = local", None),
    ("COMPUTEDSPEED", "Computed Speed", "Float", "ComputedSpeed", "Speed derived from consecutive positions", None),
    ("COMMENT", "Comment", "String", "Comment", None, None),
    ("NAKEDDATE", "Date (no time)", "NakedDate", "NakedDate", None, None),
    ("NAKEDTIME", "Time (no date)", "NakedTime", "NakedTime", None, None),
    ("UTC DATETIME", "UTC Date/Time", "DateTime", "UTC DateTime", None, None),
    ("UTC TIME", "UTC Date/Time", "DateTime", "UTC DateTime", None, None),
    ("PITCH", "Pitch", "Float", "Pitch", None, None),
    ("ROLL", "Roll", "Float", "Roll", None, None),
)

# Unit conversion factors
FEET_PER_METER = 3.28084
METERS_PER_FOOT = 0.3048
METERS_PER_SECOND_PER_KNOT = 0.514444444
METERS_PER_SECOND_PER_MPH = 0.44704
METERS_PER_SECOND_PER_KMH = 0.277778
KNOTS_PER_MPS = 1.94384
METERS_PER_NAUTICAL_MILE = 1852.0

# Earth radius in meters (for distance calculations)
EARTH_RADIUS_METERS = 6371000

# Coercion limits
MAX_ABS_COORDINATE = 180.0
MIN_PLAUSIBLE_ALTITUDE = -1600

# AutoFill defaults (speeds in knots, offsets in minutes)
FULL_STOP_SPEED = 5.0
DEFAULT_TAKEOFF_SPEEDS = (20, 40, 55, 70, 85, 100)
DEFAULT_TAKEOFF_SPEED_INDEX = 3
DEFAULT_LANDING_SPEED = 55
DEFAULT_CROSS_COUNTRY_THRESHOLD = 50.0
SPEED_BREAK_POINT = 50
LANDING_SPEED_DIFFERENTIAL_LOW = 10
LANDING_SPEED_DIFFERENTIAL_HIGH = 15
MAX_NIGHT_SAMPLE_GAP_HOURS = 0.5
PROP_NIGHT_TAKEOFF = "NightTakeoff"

# Telemetry matching
MATCH_MAX_DEPARTURE_DISTANCE_NM = 5
MATCH_MAX_TIME_DISCREPANCY_MINUTES = 20

# Raw telemetry files always use the same extension so a changed format overwrites in place
TELEMETRY_EXTENSION = ".telemetry"

# Detection signatures
UTF16_BOM = "\ufeff"
XML_DECLARATION = "<?xml"

# IGC records
IGC_RECORD_MANUFACTURER = "A"
IGC_RECORD_HEADER = "H"
IGC_RECORD_POSITION = "B"
IGC_HEADER_DATE = "FDTE"
IGC_ALTITUDE_MARKER = "A"
IGC_MIN_B_RECORD_LENGTH = 35

# XML namespaces
GPX_NAMESPACE = "http://www.topografix.com/GPX/1/1"
KML_NAMESPACES = {
    "kml": "http://www.opengis.net/kml/2.2",
    "gx": "http://www.google.com/kml/ext/2.2",
}

# Output
GPX_CREATOR = "telem2gpx"
GPX_VERSION = "1.1"
GPX_NUMBER_FORMAT = "{:.8f}"
KML_PATH_NAME = "Path for flight"
DEFAULT_OUT_PATH = "."
DEFAULT_OUTPUT_FORMAT = "gpx"
DEFAULT_NA_TEXT = "N/A"

# Date and time formats tried, in order, for untyped date strings
DATE_FORMATS = (
    "%Y-%m-%dT%H:%M:%S.%fZ",
    "%Y-%m-%dT%H:%M:%SZ",
    "%Y-%m-%d %H:%M:%S.%f",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d %H:%M",
    "%Y/%m/%d",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %I:%M:%S %p",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y",
    "%d.%m.%Y %H:%M:%S",
    "%d.%m.%Y",
)
# Time-of-day formats; a bare time is taken to be on today's date
TIME_FORMATS = (
    "%H:%M:%S.%f",
    "%H:%M:%S",
    "%H:%M",
)
DATE_FORMAT_YMD = "%Y/%m/%d"
TIME_FORMAT_HM = "%H:%M"

# Configuration sections
CONFIG_SECTION_DEFAULTS = "Defaults"
CONFIG_SECTION_AUTOFILL = "AutoFill"
CONFIG_SECTION_COLUMNS = "Columns"

# Math constants
RADIANS_PER_DEGREE = math.pi / 180
MINUTES_PER_HOUR = 60
SECONDS_PER_HOUR = 3600
