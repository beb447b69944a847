"""pyride - Async live participant roster and map viewport for group rides."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pyride")
except PackageNotFoundError:
    __version__ = "0+local"
from pyride.config import EarlyUpdatePolicy, RideConfig, UnknownParticipantPolicy
from pyride.exceptions import (
    ChannelError,
    FetchError,
    GeolocationError,
    RideConfigError,
    RideError,
    RideTransportError,
    WriteError,
)
from pyride.geolocation import PositionSource, StaticPositionSource
from pyride.models import (
    Bounds,
    LatLng,
    LocationDelta,
    Participant,
    ParticipantRole,
    Participation,
    Position,
    Ride,
    RoutePoint,
)
from pyride.realtime import ChannelEvent, ChannelEventKind, RealtimeChannel
from pyride.roster import RideRoster
from pyride.route import parse_gpx
from pyride.state import RosterState, RosterStore
from pyride.viewport import (
    IntentKind,
    MapRenderer,
    ViewportController,
    ViewportDriver,
    ViewportIntent,
    ViewportState,
    marker_labels,
)

__all__ = [
    "__version__",
    "Bounds",
    "ChannelError",
    "ChannelEvent",
    "ChannelEventKind",
    "EarlyUpdatePolicy",
    "FetchError",
    "GeolocationError",
    "IntentKind",
    "LatLng",
    "LocationDelta",
    "MapRenderer",
    "Participant",
    "ParticipantRole",
    "Participation",
    "Position",
    "PositionSource",
    "RealtimeChannel",
    "Ride",
    "RideConfig",
    "RideConfigError",
    "RideError",
    "RideRoster",
    "RideTransportError",
    "RosterState",
    "RosterStore",
    "RoutePoint",
    "StaticPositionSource",
    "UnknownParticipantPolicy",
    "ViewportController",
    "ViewportDriver",
    "ViewportIntent",
    "ViewportState",
    "WriteError",
    "marker_labels",
    "parse_gpx",
]
