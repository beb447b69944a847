"""Data models for ride participants, positions and map geometry."""

from pyride.models.geo import Bounds, LatLng, RoutePoint
from pyride.models.participant import (
    LocationDelta,
    Participant,
    ParticipantRole,
    Participation,
    Position,
    Ride,
)

__all__ = [
    "Bounds",
    "LatLng",
    "LocationDelta",
    "Participant",
    "ParticipantRole",
    "Participation",
    "Position",
    "Ride",
    "RoutePoint",
]
