"""
Tests for telem_summary.py telemetry summary generation
"""
from telem_summary import telemetrySummary
from telem_flight_data import parseFlightData


class TestTelemetrySummary:
    """Tests for telemetrySummary function"""

    def test_igc_summary(self, sample_igc_content):
        summary = telemetrySummary(parseFlightData(sample_igc_content), 'test_flight.igc')
        heading = summary.splitlines()[0]

        assert heading.startswith('IGC from test_flight.igc - 2024/05/09')
        assert ' nm (0 hours and 0 minutes)' in heading
        assert summary.splitlines()[1] == '-' * len(heading)
        assert 'From: 12:14Z (47.450200, -122.308667)' in summary
        assert 'To: 12:15Z' in summary
        assert 'Samples: 5' in summary
        assert 'Contains: position, time, altitude' in summary
        assert 'Units: meters, knots' in summary
        assert 'Pilot: Juan Gabriel' in summary
        assert 'Errors' not in summary

    def test_duration(self, sample_csv_content):
        text = sample_csv_content + "2024-05-09 13:30:30,47.9063,-122.2816,1500,100\n"
        summary = telemetrySummary(parseFlightData(text))
        assert '(1 hours and 30 minutes)' in summary
        assert 'Contains: position, time, altitude, speed' in summary
        assert 'Units: feet, knots' in summary

    def test_nothing_usable(self):
        summary = telemetrySummary(parseFlightData("NOTES\nhello\n"))
        assert summary.startswith('CSV - Unknown Date (N/A)')
        assert 'From: N/A N/A' in summary
        assert 'Contains: nothing usable' in summary

    def test_errors_counted(self):
        flight_data = parseFlightData("LAT,LON,ALT\n47.45,-122.30,-5000\n47.46,-122.30,-6000\n47.47,-122.30,100\n")
        assert 'Errors: 2' in telemetrySummary(flight_data)
