"""
Location message formatting.

Both coordinates are rendered once, to six decimals, and reused for
the Lat/Lon lines and the map link so the values always match.
"""

MAP_URL_TEMPLATE = "https://maps.google.com/?q={lat},{lon}"

MESSAGE_TEMPLATE = (
    "Location Update\n"
    "Lat: {lat}\n"
    "Lon: {lon}\n"
    "Map: {map_url}"
)

LOCATION_ERROR_TEMPLATE = "Location Tracking Error: {error}"


def format_coordinate(value: float) -> str:
    """Render a coordinate with exactly six decimal places."""
    return f"{value:.6f}"


def build_map_url(latitude: float, longitude: float) -> str:
    """Map link for a position."""
    return MAP_URL_TEMPLATE.format(
        lat=format_coordinate(latitude),
        lon=format_coordinate(longitude),
    )


def format_location_message(sample) -> str:
    """
    Build the SMS body for a location sample.

    Args:
        sample: Object with ``latitude`` and ``longitude`` attributes

    Returns:
        Message text, e.g.::

            Location Update
            Lat: 37.422000
            Lon: -122.084000
            Map: https://maps.google.com/?q=37.422000,-122.084000
    """
    lat = format_coordinate(sample.latitude)
    lon = format_coordinate(sample.longitude)
    return MESSAGE_TEMPLATE.format(
        lat=lat,
        lon=lon,
        map_url=MAP_URL_TEMPLATE.format(lat=lat, lon=lon),
    )


def format_location_error(error: Exception) -> str:
    """SMS body reporting a location provider failure."""
    message = getattr(error, "message", None) or str(error) or type(error).__name__
    return LOCATION_ERROR_TEMPLATE.format(error=message)
