"""Route overlay parsing.

Turns a GPX document into the ordered point sequence drawn as a polyline
and included in the viewport's bounds. Parsing never raises: a route that
cannot be read is simply not drawn.
"""

from __future__ import annotations

import logging

import gpxpy
import gpxpy.gpx
from pydantic import ValidationError

from pyride.models.geo import RoutePoint

_logger = logging.getLogger(__name__)


def parse_gpx(gpx_text: str | None) -> tuple[RoutePoint, ...]:
    """Extract track points in document order.

    Falls back to ``<rtept>`` route points when the file has no track
    points. Malformed or empty input yields ``()``.
    """
    if not gpx_text or not gpx_text.strip():
        return ()
    try:
        gpx = gpxpy.parse(gpx_text)
    except (gpxpy.gpx.GPXException, ValueError, TypeError):
        _logger.debug("Route GPX could not be parsed", exc_info=True)
        return ()

    raw_points: list[tuple[float, float]] = [
        (point.latitude, point.longitude)
        for track in gpx.tracks
        for segment in track.segments
        for point in segment.points
    ]
    if not raw_points:
        raw_points = [(point.latitude, point.longitude) for route in gpx.routes for point in route.points]

    points: list[RoutePoint] = []
    for lat, lon in raw_points:
        try:
            points.append(RoutePoint(lat=lat, lon=lon))
        except ValidationError:
            _logger.debug("Skipping out-of-range route point lat=%s lon=%s", lat, lon)
    _logger.debug("Parsed route with %d points", len(points))
    return tuple(points)
