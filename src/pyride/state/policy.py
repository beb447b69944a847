"""Deterministic roster ordering and merge policy.

This module contains no payload parsing. The ingestion/Pydantic boundary
is responsible for producing typed participants and deltas.
"""

from __future__ import annotations

from collections.abc import Iterable

from pyride.config import UnknownParticipantPolicy
from pyride.models.participant import LocationDelta, Participant, ParticipantRole


def order_organizer_first(
    participants: Iterable[Participant],
    organizer_user_id: int | None,
) -> tuple[Participant, ...]:
    """Move the organizer to the front and assign roles.

    The sort is stable: every other participant keeps the order in which
    the backend returned it.
    """
    organizer: list[Participant] = []
    members: list[Participant] = []
    for participant in participants:
        if organizer_user_id is not None and participant.user_id == organizer_user_id:
            organizer.append(participant.with_role(ParticipantRole.ORGANIZER))
        else:
            members.append(participant.with_role(ParticipantRole.MEMBER))
    return (*organizer, *members)


def dedupe_by_user(participants: Iterable[Participant]) -> list[Participant]:
    """Keep the first record per ``user_id``."""
    seen: set[int] = set()
    unique: list[Participant] = []
    for participant in participants:
        if participant.user_id in seen:
            continue
        seen.add(participant.user_id)
        unique.append(participant)
    return unique


def placeholder_for(delta: LocationDelta) -> Participant:
    """Synthesize a participant for a streamed user missing from the snapshot.

    The negative id cannot collide with backend participation ids.
    """
    return Participant(
        participant_id=-delta.user_id,
        user_id=delta.user_id,
        display_name=f"Rider #{delta.user_id}",
        position=delta.to_position(),
        role=ParticipantRole.MEMBER,
    )


def should_synthesize(policy: UnknownParticipantPolicy) -> bool:
    return policy == UnknownParticipantPolicy.PLACEHOLDER
