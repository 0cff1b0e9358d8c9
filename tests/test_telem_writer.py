"""
Tests for telem_writer.py GPX and KML output
"""
import io
import pytest
import xml.etree.ElementTree as ET
from datetime import datetime, timedelta, timezone

from telem_writer import GpxWriter, KmlWriter, writeGpxFile, writeKmlFile
from telem_flight_data import parseFlightData
from telem_model import Position

GPX_NS = {'gpx': 'http://www.topografix.com/GPX/1/1'}
KML_NS = {'kml': 'http://www.opengis.net/kml/2.2'}


def gpx_bytes(flight_data):
    stream = io.BytesIO()
    writeGpxFile(stream, flight_data)
    return stream.getvalue()


def kml_bytes(flight_data):
    stream = io.BytesIO()
    writeKmlFile(stream, flight_data)
    return stream.getvalue()


class TestGpxWriter:
    def test_one_track_point_per_sample(self, sample_csv_content):
        flight_data = parseFlightData(sample_csv_content)
        root = ET.fromstring(gpx_bytes(flight_data))
        points = root.findall('.//gpx:trkpt', GPX_NS)
        assert len(points) == len(flight_data.get_trajectory()) == 4

    def test_converts_to_meters(self, sample_csv_content):
        text = gpx_bytes(parseFlightData(sample_csv_content)).decode('utf-8')
        assert '<trkpt lat="47.4502" lon="-122.3088">' in text
        # 400 ft and 95 kt
        assert '<ele>121.92000000</ele>' in text
        assert '<speed>48.87222218</speed>' in text
        assert '<time>2024-05-09T12:00:00Z</time>' in text

    def test_header(self, sample_csv_content):
        text = gpx_bytes(parseFlightData(sample_csv_content)).decode('utf-8')
        assert text.startswith('<?xml version="1.0" encoding="utf-8"?>\n'
                               '<gpx creator="telem2gpx" version="1.1" xmlns="http://www.topografix.com/GPX/1/1">')
        assert '    <name />' in text

    def test_absent_information_is_left_out(self):
        text = gpx_bytes(parseFlightData("LAT,LON\n47.45,-122.30\n47.46,-122.30\n")).decode('utf-8')
        assert '<trkpt' in text
        assert '<ele>' not in text
        assert '<time>' not in text
        assert '<speed>' not in text

    def test_derived_speed_not_written(self, sample_gpx_content):
        text = gpx_bytes(parseFlightData(sample_gpx_content)).decode('utf-8')
        assert '<ele>130.00000000</ele>' in text
        assert '<speed>' not in text

    def test_empty_trajectory_writes_nothing(self):
        assert gpx_bytes(parseFlightData("DATE\n2024-05-09 12:00:00\n")) == b''

    def test_output_is_reproducible(self, sample_igc_content):
        assert gpx_bytes(parseFlightData(sample_igc_content)) == gpx_bytes(parseFlightData(sample_igc_content))

    def test_time_is_converted_to_utc(self):
        local = timezone(timedelta(hours=-7))
        point = Position(47.45, -122.30, timestamp=datetime(2024, 5, 9, 5, 0, tzinfo=local))
        lines = GpxWriter().format_track_point(point, 1.0, 1.0, True, True, True)
        assert [line.strip() for line in lines] == [
            '<trkpt lat="47.45" lon="-122.3">',
            '<time>2024-05-09T12:00:00Z</time>',
            '</trkpt>',
        ]


class TestKmlWriter:
    def test_single_named_path(self, sample_csv_content):
        root = ET.fromstring(kml_bytes(parseFlightData(sample_csv_content)))
        lines = root.findall('.//kml:LineString', KML_NS)
        assert len(lines) == 1
        assert root.find('.//kml:Placemark/kml:name', KML_NS).text == 'Path for flight'
        assert lines[0].find('kml:altitudeMode', KML_NS).text == 'absolute'

    def test_coordinates_in_meters(self, sample_csv_content):
        root = ET.fromstring(kml_bytes(parseFlightData(sample_csv_content)))
        coordinates = root.find('.//kml:coordinates', KML_NS).text.split()
        assert len(coordinates) == 4
        lon, lat, alt = (float(v) for v in coordinates[0].split(','))
        assert (lon, lat) == (-122.3088, 47.4502)
        assert alt == pytest.approx(121.92)

    def test_output_is_reproducible(self, sample_igc_content):
        assert kml_bytes(parseFlightData(sample_igc_content)) == kml_bytes(parseFlightData(sample_igc_content))

    def test_empty_trajectory_writes_nothing(self):
        assert kml_bytes(parseFlightData("DATE\n2024-05-09 12:00:00\n")) == b''

    def test_renumber_ids(self):
        text = '<Document id="feat_7"><Placemark id="feat_8"><styleUrl>#stylesel_3</styleUrl>' \
               '<LineString id="geom_2"/></Placemark></Document><Style id="stylesel_3"/>'
        assert KmlWriter.renumber_ids(text) == \
            '<Document id="feat_0"><Placemark id="feat_1"><styleUrl>#stylesel_0</styleUrl>' \
            '<LineString id="geom_0"/></Placemark></Document><Style id="stylesel_0"/>'

    def test_custom_path_name(self):
        writer = KmlWriter('Morning flight')
        stream = io.BytesIO()
        writer.write_positions(stream, [Position(47.45, -122.30, altitude=100.0)])
        assert b'<name>Morning flight</name>' in stream.getvalue()
