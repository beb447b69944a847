"""Normalized roster events.

Every input path (REST snapshot, realtime stream, local optimistic write)
is converted into one of these events. Only the roster store is allowed
to apply them.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from pyride.models.participant import LocationDelta, Participant


class RosterSource(StrEnum):
    SNAPSHOT = "snapshot"
    STREAM = "stream"
    OPTIMISTIC = "optimistic"


class SnapshotEvent(BaseModel):
    """A full, point-in-time participant list for one ride."""

    model_config = ConfigDict(frozen=True)

    source: RosterSource = RosterSource.SNAPSHOT
    participants: tuple[Participant, ...]
    organizer_user_id: int | None = None
    ride_id: int | None = None
    received_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class DeltaEvent(BaseModel):
    """A single position change for one participant.

    ``source`` is ``stream`` for realtime deliveries and ``optimistic`` for
    the local user's own write.
    """

    model_config = ConfigDict(frozen=True)

    source: RosterSource
    delta: LocationDelta
    received_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


RosterEvent = SnapshotEvent | DeltaEvent
