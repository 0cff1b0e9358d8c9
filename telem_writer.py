#!/usr/bin/env python3
"""
GPX and KML writer module for the flight telemetry importer

GPX is written by hand so that the same trajectory always produces the same
bytes. KML goes through simplekml as a single named path.
"""

import re
from typing import BinaryIO, Dict, List, Sequence, Tuple

import simplekml

from telem_model import Position
from telem_utils import asUTC
from telem_constants import (
    GPX_NAMESPACE,
    GPX_CREATOR,
    GPX_VERSION,
    GPX_NUMBER_FORMAT,
    KML_PATH_NAME,
)


_INDENT = '  '
_kmlIdAttribute = re.compile(r'(id="|<styleUrl>#)([A-Za-z_]*?)(\d+)(?=["<])')


class GpxWriter:
    """
    Writes a trajectory as a GPX 1.1 track with a single segment.
    Elevation is written in meters and speed in meters/second; elements for
    information the source lacked are left out.
    """

    @staticmethod
    def format_number(value: float) -> str:
        return GPX_NUMBER_FORMAT.format(value)

    @staticmethod
    def format_time(value) -> str:
        return asUTC(value).isoformat().replace('+00:00', 'Z')

    def format_track_point(self, point: Position, altitude_factor: float, speed_factor: float,
                           has_altitude: bool, has_time: bool, has_speed: bool) -> List[str]:
        """Lines for one trkpt element, indented for its place in the track"""
        pad = _INDENT * 3
        lines = [f'{pad}<trkpt lat="{point.latitude!r}" lon="{point.longitude!r}">']
        if has_altitude and point.altitude is not None:
            lines.append(f'{pad}{_INDENT}<ele>{self.format_number(point.altitude * altitude_factor)}</ele>')
        if has_time and point.timestamp is not None:
            lines.append(f'{pad}{_INDENT}<time>{self.format_time(point.timestamp)}</time>')
        if has_speed and point.speed is not None:
            lines.append(f'{pad}{_INDENT}<speed>{self.format_number(point.speed * speed_factor)}</speed>')
        lines.append(f'{pad}</trkpt>')
        return lines

    def write_positions(self, stream: BinaryIO, positions: Sequence[Position],
                        altitude_factor: float = 1.0, speed_factor: float = 1.0,
                        has_altitude: bool = True, has_time: bool = True, has_speed: bool = True) -> None:
        if not positions:
            return

        lines = [
            '<?xml version="1.0" encoding="utf-8"?>',
            f'<gpx creator="{GPX_CREATOR}" version="{GPX_VERSION}" xmlns="{GPX_NAMESPACE}">',
            f'{_INDENT}<trk>',
            f'{_INDENT * 2}<name />',
            f'{_INDENT * 2}<trkseg>',
        ]
        for point in positions:
            lines.extend(self.format_track_point(point, altitude_factor, speed_factor,
                                                 has_altitude, has_time, has_speed))
        lines.extend([
            f'{_INDENT * 2}</trkseg>',
            f'{_INDENT}</trk>',
            '</gpx>',
        ])
        stream.write(('\n'.join(lines) + '\n').encode('utf-8'))

    def write_file(self, stream: BinaryIO, flight_data) -> None:
        """Write the trajectory of a FlightData, converting from its source units"""
        self.write_positions(
            stream,
            flight_data.get_trajectory(),
            flight_data.altitude_factor,
            flight_data.speed_factor,
            flight_data.has_altitude,
            flight_data.has_date_time,
            flight_data.has_speed,
        )


class KmlWriter:
    """Writes a trajectory as one named KML path"""

    def __init__(self, path_name: str = KML_PATH_NAME):
        self.path_name = path_name

    @staticmethod
    def renumber_ids(text: str) -> str:
        """
        simplekml numbers ids from process-wide counters; renumber them in
        order of appearance so equal input gives equal output.
        """
        seen: Dict[Tuple[str, str], int] = {}
        counters: Dict[str, int] = {}

        def replace(match):
            key = (match.group(2), match.group(3))
            if key not in seen:
                seen[key] = counters.get(key[0], 0)
                counters[key[0]] = seen[key] + 1
            return f'{match.group(1)}{key[0]}{seen[key]}'

        return _kmlIdAttribute.sub(replace, text)

    def build(self, positions: Sequence[Position], altitude_factor: float = 1.0) -> simplekml.Kml:
        kml = simplekml.Kml()
        path = kml.newlinestring(name=self.path_name)
        path.coords = [
            (p.longitude, p.latitude, (p.altitude or 0.0) * altitude_factor)
            for p in positions
        ]
        path.altitudemode = simplekml.AltitudeMode.absolute
        return kml

    def write_positions(self, stream: BinaryIO, positions: Sequence[Position],
                        altitude_factor: float = 1.0) -> None:
        if not positions:
            return
        document = self.build(positions, altitude_factor).kml()
        stream.write(self.renumber_ids(document).encode('utf-8'))

    def write_file(self, stream: BinaryIO, flight_data) -> None:
        self.write_positions(stream, flight_data.get_trajectory(), flight_data.altitude_factor)


# Public functions - maintain backward compatibility
def writeGpxFile(stream: BinaryIO, flight_data) -> None:
    """Write a GPX file from the flight data"""
    GpxWriter().write_file(stream, flight_data)


def writeKmlFile(stream: BinaryIO, flight_data) -> None:
    """Write a KML file from the flight data"""
    KmlWriter().write_file(stream, flight_data)
