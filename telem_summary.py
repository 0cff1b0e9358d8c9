#!/usr/bin/env python3
"""
Telemetry summary functions for the flight telemetry importer
"""

from telem_utils import toYMD, toHM
from telem_constants import DEFAULT_NA_TEXT, METERS_PER_NAUTICAL_MILE


def telemetrySummary(flightData, fileName: str = '') -> str:
    """Generate a summary string for parsed telemetry"""
    trajectory = flightData.get_trajectory()
    first = trajectory[0] if trajectory else None
    last = trajectory[-1] if trajectory else None

    fileType = flightData.data_type.name if flightData.data_type else "Unknown"
    distanceNM = flightData.compute_path_distance() / METERS_PER_NAUTICAL_MILE
    distance = f" {distanceNM:.2f} nm" if distanceNM else ""
    source = f" from {fileName}" if fileName else ""

    # Format duration as hours:minutes
    duration_str = DEFAULT_NA_TEXT
    if first and last and first.timestamp and last.timestamp:
        total_seconds = (last.timestamp - first.timestamp).total_seconds()
        hours = int(total_seconds // 3600)
        minutes = int((total_seconds % 3600) // 60)
        duration_str = f"{hours} hours and {minutes} minutes"

    # Format coordinates with proper precision
    start_pos = f"({first.latitude:.6f}, {first.longitude:.6f})" if first else DEFAULT_NA_TEXT
    end_pos = f"({last.latitude:.6f}, {last.longitude:.6f})" if last else DEFAULT_NA_TEXT

    # Format timestamps in Zulu time
    start_time = toHM(first.timestamp) + "Z" if first and first.timestamp else DEFAULT_NA_TEXT
    end_time = toHM(last.timestamp) + "Z" if last and last.timestamp else DEFAULT_NA_TEXT

    capabilities = [name for name, present in (
        ('position', flightData.has_lat_long_info),
        ('time', flightData.has_date_time),
        ('altitude', flightData.has_altitude),
        ('speed', flightData.has_speed),
        ('timezone', flightData.has_timezone),
    ) if present]

    metaLines = ''.join(f"\n{key:>8}: {value}" for key, value in sorted(flightData.metadata.items()))

    errorLine = ''
    if flightData.error_string:
        errorLine = f"\n  Errors: {len(flightData.error_string.splitlines())}"

    date_str = toYMD(first.timestamp) if first and first.timestamp else "Unknown Date"
    heading = f"{fileType}{source} - {date_str}{distance} ({duration_str})"
    underline = '\n' + ('-' * len(heading))

    return f'''{heading}{underline}
    From: {start_time} {start_pos}
      To: {end_time} {end_pos}
 Samples: {len(flightData.data)}
Contains: {', '.join(capabilities) or 'nothing usable'}
   Units: {flightData.altitude_units.name.lower()}, {flightData.speed_units.name.lower()}''' + metaLines + errorLine
