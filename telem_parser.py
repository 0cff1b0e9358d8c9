#!/usr/bin/env python3
"""
Telemetry parser module for the flight telemetry importer

This module sniffs raw telemetry text, picks the parser for its format and
converts CSV, GPX, KML, NMEA, IGC and JSON telemetry into a CanonicalTable.
Row-level problems are collected into an error string and the row skipped;
an invalid coordinate stops parsing of the whole document.
"""

import csv
import io
import re
import json
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from telem_model import (
    AltitudeUnits, FileType, KnownColumn, KnownColumnType, Position, SpeedKind, SpeedUnits
)
from telem_table import CanonicalTable
from telem_columns import ColumnTypeRegistry, parseLatLong
from telem_errors import FormatError, GeometryError, ParseError
from telem_utils import calculateDistance, parseUTCDate
from telem_constants import (
    KnownColumnNames,
    FEET_PER_METER,
    KNOTS_PER_MPS,
    UTF16_BOM,
    XML_DECLARATION,
    IGC_RECORD_MANUFACTURER,
    IGC_RECORD_HEADER,
    IGC_RECORD_POSITION,
    IGC_HEADER_DATE,
    IGC_ALTITUDE_MARKER,
    IGC_MIN_B_RECORD_LENGTH,
)

# Configure logger
logger = logging.getLogger(__name__)


@dataclass
class ParseResult:
    """Outcome of parsing one telemetry document"""
    file_type: FileType
    table: CanonicalTable
    success: bool
    error_string: str = ''
    speed_units: SpeedUnits = SpeedUnits.KNOTS
    altitude_units: AltitudeUnits = AltitudeUnits.FEET
    metadata: Dict[str, str] = field(default_factory=dict)


def derivedSpeeds(positions: Sequence[Position]) -> List[Position]:
    """
    Attach a derived ground speed (knots) to samples that lack one, computed
    from the distance and time to the previous sample.
    """
    result = []
    prev = None
    for point in positions:
        speed = None
        if prev is not None and point.has_timestamp and prev.has_timestamp:
            time_diff = (point.timestamp - prev.timestamp).total_seconds()
            if time_diff > 0:
                dist = calculateDistance(prev.latitude, prev.longitude, point.latitude, point.longitude)
                speed = round((dist / time_diff) * KNOTS_PER_MPS, 2)
        if point.has_speed or speed is None:
            result.append(point)
        else:
            result.append(replace(point, speed=speed, speed_kind=SpeedKind.DERIVED))
        prev = point
    return result


def _localName(tag: str) -> str:
    return tag.rsplit('}', 1)[-1] if isinstance(tag, str) else ''


def _checkCoordinate(value: float) -> float:
    """Reuse the coordinate rule applied to typed columns"""
    return parseLatLong(repr(value))


class TelemetryParser:
    """
    Base class for telemetry parsing.
    Subclasses implement can_parse() and _parse(); parse() resets state and
    returns the populated table plus any accumulated error text.
    """
    file_type = FileType.NONE
    speed_units = SpeedUnits.KNOTS
    altitude_units = AltitudeUnits.FEET

    def __init__(self, registry: Optional[ColumnTypeRegistry] = None):
        self.registry = registry or ColumnTypeRegistry()
        self.parsed_data = CanonicalTable()
        self.errors: List[str] = []
        self.metadata: Dict[str, str] = {}

    @property
    def error_string(self) -> str:
        return '\n'.join(self.errors)

    def add_error(self, message: str) -> None:
        logger.debug(f"{self.file_type.name}: {message}")
        self.errors.append(message)

    def can_parse(self, text: str) -> bool:
        raise NotImplementedError

    def parse(self, text: str) -> Tuple[CanonicalTable, Optional[str]]:
        self.parsed_data = CanonicalTable()
        self.errors = []
        self.metadata = {}
        try:
            self._parse(text or '')
        except (FormatError, GeometryError) as e:
            logger.warning(f"{self.file_type.name} parsing stopped: {e}")
            self.add_error(str(e))
        return self.parsed_data, (self.error_string or None)

    def _parse(self, text: str) -> None:
        raise NotImplementedError

    def _populate_from_positions(self, positions: Iterable[Position]) -> None:
        self.parsed_data = CanonicalTable.from_positions(positions)

    @staticmethod
    def is_xml(text: str) -> bool:
        """Quick check for xml"""
        return text is not None and text[:len(XML_DECLARATION)].lower() == XML_DECLARATION


class TabularTelemetryParser(TelemetryParser):
    """Shared population logic for formats whose keys are raw column names (CSV, JSON)"""

    def _populate(self, headers: Sequence[str], rows: Iterable[Sequence[Any]]) -> None:
        table = self.parsed_data
        columns = [self.registry.resolve(header) for header in headers]
        keys = [table.add_column(column) for column in columns]

        for row_number, cells in enumerate(rows, start=1):
            if all(cell is None or str(cell).strip() == '' for cell in cells):
                continue
            values = {}
            try:
                for column, key, cell in zip(columns, keys, cells):
                    if cell is None or str(cell).strip() == '':
                        continue
                    values[key] = self.registry.coerce(column, str(cell).strip())
            except ParseError as e:
                if e.is_geometry:
                    raise GeometryError(f"Row {row_number}: {e}") from e
                self.add_error(f"Row {row_number}: {e}")
                continue
            table.add_row(values)

    def _finish(self) -> None:
        self._merge_naked_date_time()
        self.parsed_data.drop_empty_columns()

    def _merge_naked_date_time(self) -> None:
        """Synthesize a DATE column when the data splits date and time into separate columns"""
        table = self.parsed_data
        if table.has_column(KnownColumnNames.DATE) or not (
                table.has_column(KnownColumnNames.NAKED_DATE) and table.has_column(KnownColumnNames.NAKED_TIME)):
            return
        key = table.add_column(KnownColumn(KnownColumnNames.DATE, "Date", KnownColumnType.DATE_TIME))
        for row in table.rows:
            naked_date = table.get(row, KnownColumnNames.NAKED_DATE)
            naked_time = table.get(row, KnownColumnNames.NAKED_TIME)
            if naked_date is not None and naked_time is not None:
                row[key] = datetime.combine(naked_date.date(), naked_time.time())
            else:
                row[key] = None


class CSVTelemetryParser(TabularTelemetryParser):
    """Delimited text with a header row of raw column names"""
    file_type = FileType.CSV
    delimiters = ',;\t|'

    def can_parse(self, text: str) -> bool:
        # No reliable way to tell CSV from plain text; CSV is the fallback
        return True

    def _dialect(self, text: str):
        try:
            return csv.Sniffer().sniff(text[:4096], delimiters=self.delimiters)
        except csv.Error:
            return csv.excel

    def _parse(self, text: str) -> None:
        reader = csv.reader(io.StringIO(text.lstrip(UTF16_BOM)), self._dialect(text))
        headers = None
        for row in reader:
            if any(cell.strip() for cell in row):
                headers = [cell.strip() for cell in row]
                break
        if not headers:
            raise FormatError("No header row found")

        try:
            self._populate(headers, reader)
        finally:
            self._finish()


class JSONTelemetryParser(TabularTelemetryParser):
    """
    JSON telemetry: an object with a "data" array of flat sample objects, or a
    bare array of them. Keys are raw column names, exactly like CSV headers.
    """
    file_type = FileType.JSON_TELEMETRY

    @staticmethod
    def _samples(document: Any) -> Optional[List[Dict[str, Any]]]:
        samples = document.get('data') if isinstance(document, dict) else document
        if isinstance(samples, list) and samples and all(isinstance(s, dict) for s in samples):
            return samples
        return None

    def _load(self, text: str) -> Optional[List[Dict[str, Any]]]:
        stripped = text.strip()
        if not stripped or stripped[0] not in '{[':
            return None
        try:
            return self._samples(json.loads(stripped))
        except ValueError:
            return None

    def can_parse(self, text: str) -> bool:
        return self._load(text or '') is not None

    def _parse(self, text: str) -> None:
        samples = self._load(text)
        if samples is None:
            raise FormatError("Not a JSON telemetry document")

        headers: List[str] = []
        for sample in samples:
            for key in sample:
                if key not in headers:
                    headers.append(key)

        try:
            self._populate(headers, ([_jsonCell(sample.get(h)) for h in headers] for sample in samples))
        finally:
            self._finish()


def _jsonCell(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    if isinstance(value, bool):
        return str(int(value))
    return str(value)


class XMLTelemetryParser(TelemetryParser):
    """Base for XML formats, identified by the local name of the root element"""
    root_name = ''

    def _root(self, text: str) -> Optional[ET.Element]:
        try:
            return ET.fromstring(text.lstrip())
        except ET.ParseError:
            return None

    def can_parse(self, text: str) -> bool:
        if not text or '<' not in text:
            return False
        root = self._root(text)
        return root is not None and _localName(root.tag).lower() == self.root_name

    def _document(self, text: str) -> ET.Element:
        root = self._root(text.lstrip(UTF16_BOM))
        if root is None or _localName(root.tag).lower() != self.root_name:
            raise FormatError(f"Not a valid {self.root_name.upper()} document")
        return root

    @staticmethod
    def _children(element: ET.Element, name: str) -> List[ET.Element]:
        return [e for e in element.iter() if _localName(e.tag) == name]

    @staticmethod
    def _child_text(element: ET.Element, *names: str) -> Optional[str]:
        for child in element.iter():
            if child is not element and _localName(child.tag) in names and child.text and child.text.strip():
                return child.text.strip()
        return None


class GPXParser(XMLTelemetryParser):
    """GPX tracks (falling back to routes, then waypoints); metres and metres/second"""
    file_type = FileType.GPX
    root_name = 'gpx'
    speed_units = SpeedUnits.METERS_PER_SECOND
    altitude_units = AltitudeUnits.METERS

    def _parse(self, text: str) -> None:
        root = self._document(text)
        points = self._children(root, 'trkpt') or self._children(root, 'rtept') or self._children(root, 'wpt')

        positions = []
        for index, point in enumerate(points, start=1):
            try:
                latitude = _checkCoordinate(float(point.get('lat', '')))
                longitude = _checkCoordinate(float(point.get('lon', '')))
            except ValueError as e:
                raise GeometryError(f"Point {index}: bad coordinate ({e})") from e

            try:
                elevation = self._child_text(point, 'ele')
                when = self._child_text(point, 'time')
                speed = self._child_text(point, 'speed')
                positions.append(Position(
                    latitude,
                    longitude,
                    altitude=float(elevation) if elevation is not None else None,
                    timestamp=parseUTCDate(when) if when is not None else None,
                    speed=float(speed) if speed is not None else None,
                    comment=self._child_text(point, 'cmt', 'desc'),
                ))
            except ValueError as e:
                self.add_error(f"Point {index}: {e}")

        if not any(p.has_speed for p in positions):
            positions = derivedSpeeds(positions)
        self._populate_from_positions(positions)


class KMLParser(XMLTelemetryParser):
    """KML gx:Track (timestamped) or LineString paths; altitudes in metres"""
    file_type = FileType.KML
    root_name = 'kml'
    altitude_units = AltitudeUnits.METERS

    @staticmethod
    def _coordinate(text: str, separator: Optional[str]) -> Position:
        values = [float(v) for v in text.strip().split(separator)]
        if len(values) < 2:
            raise ValueError(f"Incomplete coordinate: {text}")
        try:
            latitude = _checkCoordinate(values[1])
            longitude = _checkCoordinate(values[0])
        except ValueError as e:
            raise GeometryError(f"Bad coordinate {text.strip()} ({e})") from e
        altitude = values[2] if len(values) > 2 else None
        return Position(latitude, longitude, altitude=altitude)

    def _track_positions(self, track: ET.Element) -> List[Position]:
        whens = self._children(track, 'when')
        coords = self._children(track, 'coord')
        if len(whens) != len(coords):
            self.add_error(f"Track has {len(whens)} times but {len(coords)} coordinates")

        positions = []
        for when, coord in zip(whens, coords):
            try:
                position = self._coordinate(coord.text or '', None)
                positions.append(replace(position, timestamp=parseUTCDate(when.text or '')))
            except GeometryError:
                raise
            except ValueError as e:
                self.add_error(str(e))
        return derivedSpeeds(positions)

    def _line_positions(self, line: ET.Element) -> List[Position]:
        positions = []
        text = self._child_text(line, 'coordinates') or ''
        for tuple_text in text.split():
            try:
                positions.append(self._coordinate(tuple_text, ','))
            except GeometryError:
                raise
            except ValueError as e:
                self.add_error(str(e))
        return positions

    def _parse(self, text: str) -> None:
        root = self._document(text)
        positions = []
        tracks = self._children(root, 'Track')
        if tracks:
            for track in tracks:
                positions.extend(self._track_positions(track))
        else:
            for line in self._children(root, 'LineString'):
                positions.extend(self._line_positions(line))
        self._populate_from_positions(positions)


class NMEAParser(TelemetryParser):
    """
    NMEA 0183 sentences. A sample is emitted per valid RMC fix, with altitude
    taken from the GGA sentence for the same time (metres, stored as feet).
    """
    file_type = FileType.NMEA
    sentence = re.compile(r'^\$(?:GP|GN|GL|GA|BD)[A-Z]{3},[^*]*(?:\*[0-9A-Fa-f]{2})?$')

    def can_parse(self, text: str) -> bool:
        for line in (text or '').splitlines():
            line = line.strip()
            if line:
                return self.sentence.match(line) is not None
        return False

    @staticmethod
    def checksum_ok(line: str) -> bool:
        if '*' not in line:
            return True
        body, expected = line[1:].split('*', 1)
        computed = 0
        for char in body:
            computed ^= ord(char)
        return f"{computed:02X}" == expected.strip().upper()

    @staticmethod
    def coordinate(value: str, hemisphere: str) -> float:
        """ddmm.mmmm / dddmm.mmmm with hemisphere letter"""
        dot = value.index('.') if '.' in value else len(value)
        degrees = int(value[:dot - 2])
        minutes = float(value[dot - 2:])
        result = degrees + minutes / 60.0
        return -result if hemisphere in ('S', 'W') else result

    @staticmethod
    def fix_time(value: str) -> time:
        seconds = float(value[4:])
        whole = int(seconds)
        return time(int(value[0:2]), int(value[2:4]), whole, int(round((seconds - whole) * 1000000)) % 1000000)

    def _parse(self, text: str) -> None:
        sentences = []
        altitudes: Dict[str, float] = {}
        for number, line in enumerate(text.splitlines(), start=1):
            line = line.strip()
            if not line.startswith('$'):
                continue
            if not self.checksum_ok(line):
                self.add_error(f"Line {number}: checksum mismatch")
                continue
            fields = line.split('*', 1)[0].split(',')
            kind = fields[0][3:]
            if kind == 'GGA' and len(fields) > 9 and fields[9]:
                try:
                    altitudes[fields[1]] = float(fields[9])
                except ValueError:
                    self.add_error(f"Line {number}: bad altitude {fields[9]}")
            elif kind == 'RMC':
                sentences.append((number, fields))

        positions = []
        for number, fields in sentences:
            if len(fields) < 10 or fields[2] != 'A':
                continue
            try:
                latitude = self.coordinate(fields[3], fields[4])
                longitude = self.coordinate(fields[5], fields[6])
                day = datetime.strptime(fields[9], '%d%m%y').date()
                timestamp = datetime.combine(day, self.fix_time(fields[1]), tzinfo=timezone.utc)
                speed = float(fields[7]) if fields[7] else None
            except (ValueError, IndexError) as e:
                self.add_error(f"Line {number}: {e}")
                continue

            try:
                latitude, longitude = _checkCoordinate(latitude), _checkCoordinate(longitude)
            except ValueError as e:
                raise GeometryError(f"Line {number}: bad coordinate ({e})") from e

            altitude = altitudes.get(fields[1])
            positions.append(Position(
                latitude,
                longitude,
                altitude=altitude * FEET_PER_METER if altitude is not None else None,
                timestamp=timestamp,
                speed=speed,
            ))

        self._populate_from_positions(positions)


class IgcHeaderParser:
    """
    Parses header records from IGC files and extracts metadata.
    """
    header_fields = {
        'FPLT': 'Pilot',
        'FGTY': 'DeviceModel',
        'FGID': 'TailNumber',
        'FSIT': 'Site',
    }
    date_pattern = re.compile(r'^HFDTE(?:DATE:)?(\d{2})(\d{2})(\d{2})')

    @staticmethod
    def strip_prefix(text: str) -> str:
        """Remove a leading 'NAME:' label (PILOT:, GLIDERID:, ...) from a header value"""
        label, sep, rest = text.partition(':')
        return rest.strip() if sep and label.replace(' ', '').isalpha() else text.strip()

    def parse_header_line(self, line: str, metadata: Dict[str, str],
                          flight_date: Optional[date] = None) -> Optional[date]:
        """Parse a single header line, updating metadata; returns the flight date"""
        if len(line) < 5 or line[0] != IGC_RECORD_HEADER:
            return flight_date

        header_type = line[1:5]
        if header_type == IGC_HEADER_DATE:
            match = self.date_pattern.match(line)
            if match:
                try:
                    day, month, year = (int(g) for g in match.groups())
                    flight_date = date(2000 + year, month, day)
                except ValueError:
                    logger.warning(f"Invalid date in IGC header: {line}")
        elif header_type in self.header_fields and len(line) > 5:
            metadata[self.header_fields[header_type]] = self.strip_prefix(line[5:])

        return flight_date


class IgcPositionParser:
    """
    Parses position records (B records) from IGC files.
    Extracts time, coordinates, and altitude data.
    """

    @staticmethod
    def parse_time(line: str) -> time:
        """Extract UTC time of day from a B record"""
        return time(int(line[1:3]), int(line[3:5]), int(line[5:7]))

    @staticmethod
    def parse_latitude(line: str) -> float:
        """Extract latitude from a B record"""
        lat_deg = int(line[7:9])
        lat_min = int(line[9:11])
        lat_frac = int(line[11:14]) / 1000
        latitude = lat_deg + (lat_min + lat_frac) / 60.0
        return -latitude if line[14] == 'S' else latitude

    @staticmethod
    def parse_longitude(line: str) -> float:
        """Extract longitude from a B record"""
        lon_deg = int(line[15:18])
        lon_min = int(line[18:20])
        lon_frac = int(line[20:23]) / 1000
        longitude = lon_deg + (lon_min + lon_frac) / 60.0
        return -longitude if line[23] == 'W' else longitude

    @staticmethod
    def parse_altitude(line: str) -> Tuple[int, int]:
        """
        Extract pressure and GPS altitude from a B record
        Returns tuple of (pressure_altitude, gps_altitude) in meters
        """
        a_pos = line.find(IGC_ALTITUDE_MARKER, 24)
        if a_pos < 0:
            a_pos = 24
        alt_pressure = int(line[a_pos + 1:a_pos + 6])
        try:
            alt_gps = int(line[a_pos + 6:a_pos + 11])
        except ValueError:
            alt_gps = alt_pressure
        return alt_pressure, alt_gps


class IGCParser(TelemetryParser):
    """IGC flight recorder files; UTC times, altitudes in metres, speed derived"""
    file_type = FileType.IGC
    altitude_units = AltitudeUnits.METERS

    def __init__(self, registry: Optional[ColumnTypeRegistry] = None):
        super().__init__(registry)
        self.header_parser = IgcHeaderParser()
        self.position_parser = IgcPositionParser()

    def can_parse(self, text: str) -> bool:
        lines = [line.strip() for line in (text or '').splitlines() if line.strip()]
        if len(lines) < 2 or not lines[0].startswith(IGC_RECORD_MANUFACTURER):
            return False
        # The manufacturer record is followed by header records
        return lines[1].startswith(IGC_RECORD_HEADER)

    def _parse(self, text: str) -> None:
        lines = [line.strip() for line in text.splitlines()]
        flight_date = None
        for line in lines:
            if line.startswith(IGC_RECORD_POSITION):
                break
            if line.startswith(IGC_RECORD_HEADER):
                flight_date = self.header_parser.parse_header_line(line, self.metadata, flight_date)

        if flight_date is None:
            self.add_error("No HFDTE date record; using today's date")
            flight_date = datetime.now(timezone.utc).date()

        positions = []
        previous = None
        for number, line in enumerate(lines, start=1):
            if not line.startswith(IGC_RECORD_POSITION) or len(line) < IGC_MIN_B_RECORD_LENGTH:
                continue
            try:
                timestamp = datetime.combine(flight_date, self.position_parser.parse_time(line), tzinfo=timezone.utc)
                latitude = self.position_parser.parse_latitude(line)
                longitude = self.position_parser.parse_longitude(line)
                alt_pressure, alt_gps = self.position_parser.parse_altitude(line)
            except (ValueError, IndexError) as e:
                self.add_error(f"Line {number}: {e}")
                continue

            # Flights crossing midnight UTC carry no new date record
            if previous is not None and timestamp < previous:
                flight_date += timedelta(days=1)
                timestamp += timedelta(days=1)
            previous = timestamp

            try:
                latitude, longitude = _checkCoordinate(latitude), _checkCoordinate(longitude)
            except ValueError as e:
                raise GeometryError(f"Line {number}: bad coordinate ({e})") from e

            positions.append(Position(
                round(latitude, 9),
                round(longitude, 9),
                altitude=alt_gps or alt_pressure,
                timestamp=timestamp,
            ))

        self._populate_from_positions(derivedSpeeds(positions))


PARSERS_BY_TYPE = {
    FileType.CSV: CSVTelemetryParser,
    FileType.GPX: GPXParser,
    FileType.KML: KMLParser,
    FileType.NMEA: NMEAParser,
    FileType.IGC: IGCParser,
    FileType.JSON_TELEMETRY: JSONTelemetryParser,
}


class FormatDetector:
    """
    Detects the format of telemetry text and supplies a parser for it.
    CSV cannot be told apart from plain text, so anything unrecognized is CSV.
    """

    def __init__(self, registry: Optional[ColumnTypeRegistry] = None):
        self.registry = registry or ColumnTypeRegistry()

    def detect(self, text: str) -> FileType:
        """Determine the file type based on content"""
        if not text:
            return FileType.CSV

        kml = KMLParser(self.registry)
        gpx = GPXParser(self.registry)

        if kml.can_parse(text):
            return FileType.KML
        if gpx.can_parse(text):
            return FileType.GPX

        if text[0] == UTF16_BOM:
            text = text[1:]

        if TelemetryParser.is_xml(text):
            if kml.can_parse(text):
                return FileType.KML
            if gpx.can_parse(text):
                return FileType.GPX
            return FileType.XML

        if NMEAParser(self.registry).can_parse(text):
            return FileType.NMEA
        if IGCParser(self.registry).can_parse(text):
            return FileType.IGC
        if JSONTelemetryParser(self.registry).can_parse(text):
            return FileType.JSON_TELEMETRY

        return FileType.CSV

    def parser_for(self, file_type: FileType) -> Optional[TelemetryParser]:
        """A new parser for the file type, or None if the type has no parser"""
        parser_class = PARSERS_BY_TYPE.get(file_type)
        return parser_class(self.registry) if parser_class else None

    def parse(self, text: str) -> ParseResult:
        """Detect the format and parse; the detected type is reported even when parsing fails"""
        file_type = self.detect(text)
        parser = self.parser_for(file_type)
        if parser is None:
            error = FormatError(f"No parser available for {file_type.name} data")
            return ParseResult(file_type, CanonicalTable(), False, error.describe())

        table, error = parser.parse(text)
        return ParseResult(
            file_type=file_type,
            table=table,
            success=error is None,
            error_string=error or '',
            speed_units=parser.speed_units,
            altitude_units=parser.altitude_units,
            metadata=dict(parser.metadata),
        )


# Public function - maintain backward compatibility
def getFiletype(text: str, registry: Optional[ColumnTypeRegistry] = None) -> FileType:
    """Determine the telemetry format of a string"""
    return FormatDetector(registry).detect(text)
