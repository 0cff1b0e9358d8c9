"""
Pytest configuration and shared fixtures for telem2gpx tests
"""
import pytest
from datetime import datetime, date, timedelta

from telem_model import Airport, EncodedPath, LatLong, SunTimes
from telem_flight_data import compute_distance
from telem_utils import distanceNM


KSEA = Airport('KSEA', 47.4502, -122.3088)
KPAE = Airport('KPAE', 47.9063, -122.2816)
KBFI = Airport('KBFI', 47.5300, -122.3019)


def flight_csv(speeds, start=datetime(2024, 5, 9, 12, 0, 0), origin=KSEA, destination=KPAE):
    """CSV telemetry one minute per sample; the first three samples are at the origin"""
    lines = ['DATE,LAT,LON,SPEED']
    for index, speed in enumerate(speeds):
        where = origin if index < 3 else destination
        when = start + timedelta(minutes=index)
        lines.append(f"{when:%Y-%m-%d %H:%M:%S},{where.latitude},{where.longitude},{speed}")
    return '\n'.join(lines) + '\n'


@pytest.fixture
def sample_csv_content():
    """CSV telemetry with position, altitude (feet), speed (knots) and local time"""
    return """DATE,LAT,LON,ALT,SPEED
2024-05-09 12:00:00,47.4502,-122.3088,400,0
2024-05-09 12:00:10,47.4510,-122.3088,420,45
2024-05-09 12:00:20,47.4530,-122.3088,600,80
2024-05-09 12:00:30,47.4560,-122.3088,900,95
"""


@pytest.fixture
def sample_gpx_content():
    """GPX track without speeds"""
    return """<?xml version="1.0"?>
<gpx version="1.1" creator="test" xmlns="http://www.topografix.com/GPX/1/1">
  <trk>
    <name>Test</name>
    <trkseg>
      <trkpt lat="47.4502" lon="-122.3088"><ele>130.5</ele><time>2024-05-09T19:00:00Z</time></trkpt>
      <trkpt lat="47.4602" lon="-122.3088"><ele>250.0</ele><time>2024-05-09T19:01:00Z</time></trkpt>
      <trkpt lat="47.4702" lon="-122.3088"><ele>400.0</ele><time>2024-05-09T19:02:00Z</time></trkpt>
    </trkseg>
  </trk>
</gpx>
"""


@pytest.fixture
def sample_kml_track_content():
    """KML gx:Track with timestamps"""
    return """<?xml version="1.0"?>
<kml xmlns="http://www.opengis.net/kml/2.2" xmlns:gx="http://www.google.com/kml/ext/2.2">
  <Document>
    <Placemark>
      <gx:Track>
        <when>2024-05-09T19:00:00Z</when>
        <when>2024-05-09T19:00:30Z</when>
        <when>2024-05-09T19:01:00Z</when>
        <gx:coord>-122.3088 47.4502 130</gx:coord>
        <gx:coord>-122.3088 47.4552 200</gx:coord>
        <gx:coord>-122.3088 47.4602 300</gx:coord>
      </gx:Track>
    </Placemark>
  </Document>
</kml>
"""


@pytest.fixture
def sample_kml_line_content():
    """KML LineString with no timestamps"""
    return """<kml xmlns="http://www.opengis.net/kml/2.2">
  <Placemark>
    <LineString>
      <coordinates>
        -122.3088,47.4502,130 -122.3088,47.4602,250 -122.2816,47.9063,300
      </coordinates>
    </LineString>
  </Placemark>
</kml>
"""


@pytest.fixture
def sample_nmea_content():
    """RMC and GGA sentences without checksums"""
    return """$GPGGA,190000.00,4727.012,N,12218.528,W,1,08,0.9,100.0,M,-17.0,M,,
$GPRMC,190000.00,A,4727.012,N,12218.528,W,85.5,360.0,090524,,,A
$GPGGA,190010.00,4727.512,N,12218.528,W,1,08,0.9,150.0,M,-17.0,M,,
$GPRMC,190010.00,A,4727.512,N,12218.528,W,90.0,360.0,090524,,,A
$GPRMC,190020.00,V,4728.012,N,12218.528,W,0.0,360.0,090524,,,N
"""


@pytest.fixture
def sample_igc_content():
    """Sample IGC file content for testing"""
    return """AXCS001
HFDTE090524
HFPLTPILOT:Juan Gabriel
HFGTYGLIDERTYPE:JS3-15
HFGIDGLIDERID:CC-JUGA
HFSITEFREEFLY:Test Site
B1214284727012N12218520WA0012000135
B1214384727100N12218500WA0013000145
B1214484727200N12218480WA0015000165
B1214584727300N12218460WA0018000195
B1215084727400N12218440WA0021000225
"""


@pytest.fixture
def sample_json_content():
    """JSON telemetry with a data array"""
    return """{"data": [
  {"TIMESTAMP": 1715256000000, "LATITUDE": 47.4502, "LONGITUDE": -122.3088, "ALT": 400, "GS": 0},
  {"TIMESTAMP": 1715256060000, "LATITUDE": 47.4602, "LONGITUDE": -122.3088, "ALT": 900, "GS": 90}
]}"""


@pytest.fixture
def sample_csv_file(tmp_path, sample_csv_content):
    """Create a temporary CSV telemetry file for testing"""
    csv_file = tmp_path / "test_flight.csv"
    csv_file.write_text(sample_csv_content)
    return csv_file


@pytest.fixture
def sample_igc_file(tmp_path, sample_igc_content):
    """Create a temporary IGC file for testing"""
    igc_file = tmp_path / "test_flight.igc"
    igc_file.write_text(sample_igc_content)
    return igc_file


@pytest.fixture
def sample_config_content():
    """Sample configuration file content"""
    return """[Defaults]
OutPath = .
Format = gpx

[AutoFill]
TakeoffSpeed = 85
CrossCountryThreshold = 50
IncludeHeliports = yes

[Columns]
GROUND SPD (KTS) = Ground Speed, Float, SPEED
BAD COLUMN = Missing type
"""


@pytest.fixture
def sample_config_file(tmp_path, sample_config_content):
    """Create a temporary config file for testing"""
    config_file = tmp_path / "test_config.conf"
    config_file.write_text(sample_config_content)
    return config_file


@pytest.fixture
def temp_output_dir(tmp_path):
    """Create a temporary output directory"""
    output_dir = tmp_path / "output"
    output_dir.mkdir()
    return output_dir


@pytest.fixture
def mock_cli_args(sample_config_file, temp_output_dir):
    """Mock command-line arguments for testing"""
    class MockArgs:
        def __init__(self):
            self.config = str(sample_config_file)
            self.output = str(temp_output_dir)
            self.format = None
            self.ignore_errors = False
            self.verbose = False
            self.trackfile = []

    return MockArgs()


class FakeAirports:
    """Airport lookup over a fixed list"""

    def __init__(self, airports=(KSEA, KPAE, KBFI)):
        self.airports = {a.code: a for a in airports}
        self.nearest_calls = 0

    def nearest_airports(self, latitude, longitude, count, include_heliports):
        self.nearest_calls += 1
        ranked = sorted(self.airports.values(),
                        key=lambda a: distanceNM(latitude, longitude, a.latitude, a.longitude))
        return ranked[:count]

    def airports_for_route(self, route):
        return [self.airports[code] for code in route.upper().split() if code in self.airports]


class FakeSolar:
    """Reports the same night flags for every sample"""

    def __init__(self, is_night=False, is_civil_night=False):
        self.is_night = is_night
        self.is_civil_night = is_civil_night

    def sun_times(self, timestamp, latitude, longitude):
        return SunTimes(is_faa_night=self.is_night, is_faa_civil_night=self.is_civil_night)


class FakeCodec:
    """Encodes a path as 'lat,lon;lat,lon'"""

    def __init__(self):
        self.encoded = 0

    def encode(self, positions):
        self.encoded += 1
        text = ';'.join(f"{p.latitude!r},{p.longitude!r}" for p in positions)
        return EncodedPath(text, compute_distance(positions))

    def decode(self, encoded_path):
        path = []
        for pair in (encoded_path or '').split(';'):
            if pair:
                latitude, longitude = pair.split(',')
                path.append(LatLong(float(latitude), float(longitude)))
        return path


class FakeReferenceStore:
    def __init__(self):
        self.entries = {}

    def save(self, entry):
        self.entries[entry.flight_id] = entry

    def delete(self, flight_id):
        self.entries.pop(flight_id, None)

    def flight_ids(self):
        return sorted(self.entries)


class FakeFlightRepository:
    def __init__(self, flights=()):
        self.flights = list(flights)
        self.committed = []

    def flights_for_date(self, owner, day):
        return [f for f in self.flights if f.user == owner and f.flight_date == day]

    def commit(self, flight):
        self.committed.append(flight)


class FakeTimeCalculator:
    """Records the order it is called in and sets a total"""

    def __init__(self, total=1.23456):
        self.calls = []
        self.total = total

    def auto_totals(self, flight, options):
        self.calls.append('auto_totals')
        flight.total_flight_time = self.total

    def auto_hobbs(self, flight, options):
        self.calls.append('auto_hobbs')

    def auto_fill_finish(self, flight, options):
        self.calls.append('auto_fill_finish')


@pytest.fixture
def airports():
    return FakeAirports()


@pytest.fixture
def day_solar():
    return FakeSolar()


@pytest.fixture
def night_solar():
    return FakeSolar(is_night=True, is_civil_night=True)


@pytest.fixture
def codec():
    return FakeCodec()


@pytest.fixture
def reference_store():
    return FakeReferenceStore()


@pytest.fixture
def flight_day():
    return date(2024, 5, 9)
