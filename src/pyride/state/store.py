"""Deterministic in-memory roster store.

This is the only component allowed to mutate roster state. Events are
applied strictly in the order they are handed in; there is no timestamp
comparison, so the last applied delta for a participant always wins.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, ConfigDict

from pyride.config import UnknownParticipantPolicy
from pyride.models.participant import LocationDelta, Participant
from pyride.state.events import DeltaEvent, RosterEvent, RosterSource, SnapshotEvent
from pyride.state.policy import dedupe_by_user, order_organizer_first, placeholder_for, should_synthesize

_logger = logging.getLogger(__name__)


class RosterState(BaseModel):
    """Immutable view of the roster handed to consumers."""

    model_config = ConfigDict(frozen=True)

    ride_id: int | None = None
    participants: tuple[Participant, ...] = ()
    organizer_user_id: int | None = None
    is_ready: bool = False
    version: int = 0

    def get(self, user_id: int) -> Participant | None:
        for participant in self.participants:
            if participant.user_id == user_id:
                return participant
        return None

    @property
    def positioned(self) -> tuple[Participant, ...]:
        return tuple(p for p in self.participants if p.position is not None)


class RosterStore:
    """Single-writer store for one ride's participants.

    Streamed and optimistic deltas are ignored until the first snapshot has
    been applied; the caller decides whether to buffer them.
    """

    def __init__(
        self,
        *,
        unknown_participant_policy: UnknownParticipantPolicy = UnknownParticipantPolicy.DROP,
    ) -> None:
        self._unknown_policy = unknown_participant_policy
        self._participants: list[Participant] = []
        self._index: dict[int, int] = {}
        self._ride_id: int | None = None
        self._organizer_user_id: int | None = None
        self._ready = False
        self._version = 0

    @property
    def is_ready(self) -> bool:
        return self._ready

    @property
    def version(self) -> int:
        return self._version

    @property
    def participants(self) -> tuple[Participant, ...]:
        return tuple(self._participants)

    def get(self, user_id: int) -> Participant | None:
        idx = self._index.get(user_id)
        return self._participants[idx] if idx is not None else None

    def snapshot(self) -> RosterState:
        return RosterState(
            ride_id=self._ride_id,
            participants=tuple(self._participants),
            organizer_user_id=self._organizer_user_id,
            is_ready=self._ready,
            version=self._version,
        )

    def apply(self, event: RosterEvent) -> bool:
        """Apply a roster event. Returns ``True`` when the roster changed."""
        if isinstance(event, SnapshotEvent):
            self._replace(event)
            return True
        if not self._ready:
            _logger.debug("Ignoring %s delta for user_id=%s before snapshot", event.source, event.delta.user_id)
            return False
        return self._merge(event)

    def replace_snapshot(
        self,
        participants: list[Participant] | tuple[Participant, ...],
        organizer_user_id: int | None,
        *,
        ride_id: int | None = None,
    ) -> bool:
        return self.apply(
            SnapshotEvent(participants=tuple(participants), organizer_user_id=organizer_user_id, ride_id=ride_id)
        )

    def apply_delta(self, delta: LocationDelta) -> bool:
        return self.apply(DeltaEvent(source=RosterSource.STREAM, delta=delta))

    def apply_own_location(self, delta: LocationDelta) -> bool:
        return self.apply(DeltaEvent(source=RosterSource.OPTIMISTIC, delta=delta))

    def clear(self) -> None:
        self._participants = []
        self._index = {}
        self._ride_id = None
        self._organizer_user_id = None
        self._ready = False
        self._version += 1

    def _replace(self, event: SnapshotEvent) -> None:
        ordered = order_organizer_first(dedupe_by_user(event.participants), event.organizer_user_id)
        self._participants = list(ordered)
        self._reindex()
        self._organizer_user_id = event.organizer_user_id
        self._ride_id = event.ride_id
        self._ready = True
        self._version += 1
        _logger.debug("Roster snapshot applied participants=%d", len(self._participants))

    def _merge(self, event: DeltaEvent) -> bool:
        delta = event.delta
        idx = self._index.get(delta.user_id)
        if idx is not None:
            self._participants[idx] = self._participants[idx].with_position(delta.to_position())
            self._version += 1
            return True

        if event.source == RosterSource.STREAM and should_synthesize(self._unknown_policy):
            self._participants.append(placeholder_for(delta))
            self._index[delta.user_id] = len(self._participants) - 1
            self._version += 1
            _logger.debug("Added placeholder participant for user_id=%s", delta.user_id)
            return True

        _logger.debug("Dropping %s delta for unknown user_id=%s", event.source, delta.user_id)
        return False

    def _reindex(self) -> None:
        self._index = {p.user_id: i for i, p in enumerate(self._participants)}
