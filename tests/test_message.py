"""
Test Message Module
===================

Unit tests for location message formatting.
"""

import re
import pytest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

from services.location import LocationSample
from services.message import (
    build_map_url,
    format_coordinate,
    format_location_error,
    format_location_message,
)
from core.exceptions import LocationError

MESSAGE_PATTERN = re.compile(
    r"^Location Update\n"
    r"Lat: (?P<lat>-?\d+\.\d{6})\n"
    r"Lon: (?P<lon>-?\d+\.\d{6})\n"
    r"Map: https://maps\.google\.com/\?q=(?P<url_lat>[^,]+),(?P<url_lon>.+)$"
)


class TestFormatLocationMessage:
    """Tests for format_location_message."""

    def test_reference_message(self):
        """Test the exact body for a known position."""
        sample = LocationSample(latitude=37.422, longitude=-122.084)
        assert format_location_message(sample) == (
            "Location Update\n"
            "Lat: 37.422000\n"
            "Lon: -122.084000\n"
            "Map: https://maps.google.com/?q=37.422000,-122.084000"
        )

    @pytest.mark.parametrize("latitude,longitude", [
        (0.0, 0.0),
        (-33.8688197, 151.2092955),
        (89.9999999, -179.9999999),
        (51.5, -0.1275),
        (1e-7, -1e-7),
    ])
    def test_six_decimals_and_matching_url(self, latitude, longitude):
        """Test coordinates use six decimals and the URL repeats them."""
        message = format_location_message(LocationSample(latitude=latitude, longitude=longitude))

        match = MESSAGE_PATTERN.match(message)
        assert match is not None
        assert match.group("lat") == f"{latitude:.6f}"
        assert match.group("lon") == f"{longitude:.6f}"
        assert match.group("url_lat") == match.group("lat")
        assert match.group("url_lon") == match.group("lon")

    def test_accepts_any_object_with_coordinates(self):
        """Test only latitude and longitude are read from the sample."""
        class Fix:
            latitude = 1.0
            longitude = 2.0

        assert "Lat: 1.000000" in format_location_message(Fix())


class TestHelpers:
    """Tests for coordinate and URL helpers."""

    def test_format_coordinate_rounds(self):
        """Test rounding to six places."""
        assert format_coordinate(1.23456789) == "1.234568"
        assert format_coordinate(-0.0000004) == "-0.000000"

    def test_build_map_url(self):
        """Test the map link."""
        assert build_map_url(37.422, -122.084) == "https://maps.google.com/?q=37.422000,-122.084000"

    def test_format_location_error(self):
        """Test error message text uses the exception message."""
        error = LocationError("No location fix available", details={"provider": "gps"})
        assert format_location_error(error) == "Location Tracking Error: No location fix available"

    def test_format_location_error_plain_exception(self):
        """Test errors without a message fall back to the type name."""
        assert format_location_error(TimeoutError()) == "Location Tracking Error: TimeoutError"
