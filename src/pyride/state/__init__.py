"""State/store layer.

This package is the single source of truth for how the REST snapshot,
realtime deltas and local optimistic writes are merged into one ordered
roster per ride.
"""

from pyride.state.events import DeltaEvent, RosterEvent, RosterSource, SnapshotEvent
from pyride.state.store import RosterState, RosterStore

__all__ = [
    "DeltaEvent",
    "RosterEvent",
    "RosterSource",
    "RosterState",
    "RosterStore",
    "SnapshotEvent",
]
