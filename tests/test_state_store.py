from __future__ import annotations

from datetime import UTC, datetime, timedelta

from pyride.config import UnknownParticipantPolicy
from pyride.models.participant import LocationDelta, Participant, ParticipantRole, Position
from pyride.state.events import DeltaEvent, RosterSource, SnapshotEvent
from pyride.state.store import RosterStore


def _dt(offset: int = 0) -> datetime:
    return datetime(2026, 1, 1, tzinfo=UTC) + timedelta(seconds=offset)


def _participant(pid: int, user_id: int, name: str, lat: float | None = None, lon: float | None = None) -> Participant:
    position = Position(lat=lat, lon=lon, observed_at=_dt()) if lat is not None and lon is not None else None
    return Participant(participant_id=pid, user_id=user_id, display_name=name, position=position)


def _delta(user_id: int, lat: float, lon: float, offset: int = 0) -> LocationDelta:
    return LocationDelta(user_id=user_id, lat=lat, lon=lon, observed_at=_dt(offset))


def _ready_store(policy: UnknownParticipantPolicy = UnknownParticipantPolicy.DROP) -> RosterStore:
    store = RosterStore(unknown_participant_policy=policy)
    store.replace_snapshot(
        [
            _participant(10, 1, "alice", 48.0, 11.0),
            _participant(20, 2, "bob"),
            _participant(30, 3, "carol", 48.2, 11.2),
        ],
        organizer_user_id=3,
    )
    return store


def test_snapshot_orders_organizer_first_and_keeps_backend_order() -> None:
    store = _ready_store()

    assert [p.user_id for p in store.participants] == [3, 1, 2]
    assert store.participants[0].role == ParticipantRole.ORGANIZER
    assert all(p.role == ParticipantRole.MEMBER for p in store.participants[1:])


def test_snapshot_without_organizer_in_list_keeps_order() -> None:
    store = RosterStore()
    store.replace_snapshot([_participant(10, 1, "alice"), _participant(20, 2, "bob")], organizer_user_id=99)

    assert [p.user_id for p in store.participants] == [1, 2]
    assert all(p.role == ParticipantRole.MEMBER for p in store.participants)


def test_last_applied_delta_wins_regardless_of_timestamp() -> None:
    store = _ready_store()

    store.apply_delta(_delta(1, 50.0, 12.0, offset=100))
    # Older timestamp, applied later: still wins.
    store.apply_delta(_delta(1, 51.0, 13.0, offset=10))

    alice = store.get(1)
    assert alice is not None and alice.position is not None
    assert (alice.position.lat, alice.position.lon) == (51.0, 13.0)
    assert alice.position.observed_at == _dt(10)


def test_delta_only_touches_position() -> None:
    store = _ready_store()
    before = store.get(1)

    store.apply_delta(_delta(1, 50.0, 12.0))

    after = store.get(1)
    assert before is not None and after is not None
    assert after.participant_id == before.participant_id
    assert after.display_name == before.display_name
    assert after.role == before.role


def test_unknown_user_delta_dropped_by_default() -> None:
    store = _ready_store()
    version = store.version

    assert store.apply_delta(_delta(42, 48.0, 11.0)) is False
    assert len(store.participants) == 3
    assert store.get(42) is None
    assert store.version == version


def test_unknown_user_delta_synthesizes_placeholder_when_enabled() -> None:
    store = _ready_store(UnknownParticipantPolicy.PLACEHOLDER)

    assert store.apply_delta(_delta(42, 48.0, 11.0)) is True

    placeholder = store.get(42)
    assert placeholder is not None
    assert placeholder.participant_id == -42
    assert placeholder.display_name == "Rider #42"
    assert store.participants[-1].user_id == 42
    # Second update for the same user updates in place.
    store.apply_delta(_delta(42, 49.0, 11.0))
    assert len(store.participants) == 4


def test_optimistic_write_for_unknown_user_never_synthesizes() -> None:
    store = _ready_store(UnknownParticipantPolicy.PLACEHOLDER)

    changed = store.apply(DeltaEvent(source=RosterSource.OPTIMISTIC, delta=_delta(42, 48.0, 11.0)))

    assert changed is False
    assert store.get(42) is None


def test_optimistic_write_updates_own_entry() -> None:
    store = _ready_store()

    assert store.apply_own_location(_delta(2, 47.5, 10.5)) is True

    bob = store.get(2)
    assert bob is not None and bob.position is not None
    assert bob.position.lat == 47.5


def test_snapshot_fully_replaces_previous_roster() -> None:
    store = _ready_store()
    store.apply_delta(_delta(1, 50.0, 12.0))

    store.replace_snapshot([_participant(40, 4, "dave")], organizer_user_id=None)

    assert [p.user_id for p in store.participants] == [4]
    assert store.get(1) is None


def test_deltas_ignored_before_first_snapshot() -> None:
    store = RosterStore()

    assert store.apply_delta(_delta(1, 48.0, 11.0)) is False
    assert store.participants == ()
    assert store.is_ready is False


def test_duplicate_user_ids_in_snapshot_keep_first() -> None:
    store = RosterStore()
    store.replace_snapshot([_participant(10, 1, "first"), _participant(11, 1, "second")], organizer_user_id=None)

    assert len(store.participants) == 1
    assert store.participants[0].display_name == "first"


def test_clear_resets_readiness_and_bumps_version() -> None:
    store = _ready_store()
    version = store.version

    store.clear()

    assert store.is_ready is False
    assert store.participants == ()
    assert store.version > version


def test_snapshot_state_is_immutable_view() -> None:
    store = _ready_store()
    state = store.snapshot()

    store.apply_delta(_delta(1, 50.0, 12.0))

    alice = state.get(1)
    assert alice is not None and alice.position is not None
    assert alice.position.lat == 48.0
    assert [p.user_id for p in state.positioned] == [3, 1]


def test_apply_accepts_snapshot_events_directly() -> None:
    store = RosterStore()
    changed = store.apply(SnapshotEvent(participants=(_participant(10, 1, "alice"),), organizer_user_id=1))

    assert changed is True
    assert store.is_ready is True
    assert store.snapshot().organizer_user_id == 1


def test_snapshot_carries_ride_identity_until_cleared() -> None:
    store = RosterStore()
    store.replace_snapshot([_participant(10, 1, "alice")], organizer_user_id=1, ride_id=42)

    assert store.snapshot().ride_id == 42

    store.clear()
    assert store.snapshot().ride_id is None
