"""High-level async roster for one ride view.

Merges the REST snapshot with realtime deltas and the user's own optimistic
writes into one ordered participant list, and owns the realtime channel for
as long as the view is open.
"""

from __future__ import annotations

import asyncio
import contextlib
import functools
import logging
import random
from collections import deque
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import aiohttp

from pyride._api import participations as _participations_api
from pyride._api import rides as _rides_api
from pyride._constants import DEFAULT_SIMULATION_CENTER
from pyride._mqtt import MqttRealtimeChannel
from pyride._transport import HttpTransport, Transport
from pyride.config import EarlyUpdatePolicy, RideConfig
from pyride.exceptions import ChannelError, FetchError, GeolocationError, RideError, RideTransportError, WriteError
from pyride.geolocation import PositionSource, jitter
from pyride.models.participant import LocationDelta, Participant, Participation, Ride
from pyride.realtime import ChannelEvent, ChannelEventKind, RealtimeChannel, parse_location_update
from pyride.state.store import RosterState, RosterStore

_logger = logging.getLogger(__name__)

ChannelFactory = Callable[[RideConfig], RealtimeChannel]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class RideRoster:
    """Reconciled participant roster for the currently viewed ride.

    Usage::

        async with RideRoster(config, current_user_id=7, on_change=render) as roster:
            await roster.open(ride_id=42)
            roster.record_own_location(48.13, 11.58)

    All mutations run on the event loop that called :meth:`open`. Loads and
    channel callbacks are tagged with the view generation; anything that
    completes after :meth:`close` or after the ride changed is discarded.
    """

    def __init__(
        self,
        config: RideConfig,
        *,
        current_user_id: int | None,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
        channel_factory: ChannelFactory | None = None,
        position_source: PositionSource | None = None,
        on_change: Callable[[RosterState], None] | None = None,
        on_error: Callable[[RideError], None] | None = None,
    ) -> None:
        self._config = config
        self._current_user_id = current_user_id
        self._external_session = session is not None
        self._http_session = session
        self._transport = transport
        self._channel_factory: ChannelFactory = channel_factory or MqttRealtimeChannel
        self._position_source = position_source
        self._on_change = on_change
        self._on_error = on_error

        self._store = RosterStore(unknown_participant_policy=config.unknown_participant_policy)
        self._early: deque[LocationDelta] = deque(maxlen=config.early_update_buffer_size)
        self._channel: RealtimeChannel | None = None
        self._ride_id: int | None = None
        self._ride: Ride | None = None
        self._participation: Participation | None = None
        self._generation = 0
        self._load_seq = 0
        self._load_task: asyncio.Task[tuple[Ride, list[Participant], Participation | None]] | None = None
        self._pending_writes: set[asyncio.Task[None]] = set()
        self._open = False
        self.last_error: RideError | None = None

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> RideRoster:
        if self._transport is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._transport = HttpTransport(self._config, self._http_session)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def state(self) -> RosterState:
        return self._store.snapshot()

    @property
    def participants(self) -> tuple[Participant, ...]:
        return self._store.participants

    @property
    def ride(self) -> Ride | None:
        return self._ride

    @property
    def participation(self) -> Participation | None:
        return self._participation

    @property
    def current_user_id(self) -> int | None:
        return self._current_user_id

    @property
    def is_open(self) -> bool:
        return self._open

    @property
    def channel(self) -> RealtimeChannel | None:
        return self._channel

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_transport(self) -> Transport:
        if self._transport is None:
            raise RideError("Roster not initialized. Use 'async with RideRoster(...) as roster:'")
        return self._transport

    def _notify(self) -> None:
        if self._on_change is None:
            return
        try:
            self._on_change(self._store.snapshot())
        except Exception:
            _logger.debug("on_change callback failed", exc_info=True)

    def _surface(self, error: RideError) -> None:
        self.last_error = error
        _logger.debug("Surfacing %s: %s", type(error).__name__, error)
        if self._on_error is None:
            return
        try:
            self._on_error(error)
        except Exception:
            _logger.debug("on_error callback failed", exc_info=True)

    def _is_current(self, generation: int) -> bool:
        return self._open and generation == self._generation

    # ------------------------------------------------------------------
    # View lifecycle
    # ------------------------------------------------------------------

    async def open(self, ride_id: int) -> RosterState:
        """Open the view for *ride_id*: start the channel and load the snapshot.

        Opening another ride first tears down the current view. Raises
        :class:`FetchError` when the snapshot cannot be loaded; the view
        stays open with an empty roster so a later :meth:`load` can retry.
        """
        if self._open:
            await self.close()
        self._require_transport()
        self._generation += 1
        self._ride_id = ride_id
        self._open = True
        self._start_channel()
        return await self.load()

    async def close(self) -> None:
        """Tear down the view: cancel the load and writes, stop the channel, clear state.

        When a view was open, ``on_change`` receives the cleared roster.
        """
        was_open = self._open
        self._open = False
        self._generation += 1

        load_task = self._load_task
        self._load_task = None
        if load_task is not None and not load_task.done():
            load_task.cancel()

        writes = list(self._pending_writes)
        self._pending_writes.clear()
        for task in writes:
            task.cancel()
        for task in writes:
            with contextlib.suppress(asyncio.CancelledError):
                await task

        self._stop_channel()
        self._store.clear()
        self._early.clear()
        self._ride_id = None
        self._ride = None
        self._participation = None
        if was_open:
            _logger.debug("Ride view closed")
            # Consumers see the empty, not-ready roster so view-scoped state can reset.
            self._notify()

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    async def _fetch_snapshot(self, ride_id: int) -> tuple[Ride, list[Participant], Participation | None]:
        transport = self._require_transport()

        async def _mine() -> Participation | None:
            if not self._config.access_token or self._current_user_id is None:
                return None
            return await _participations_api.fetch_my_participation(transport, ride_id, self._current_user_id)

        ride, participants, participation = await asyncio.gather(
            _rides_api.fetch_ride(transport, ride_id),
            _participations_api.fetch_participants(transport, ride_id),
            _mine(),
        )
        return ride, participants, participation

    async def load(self) -> RosterState:
        """Fetch the snapshot and fully replace the roster with it.

        A load superseded by a newer load, or by :meth:`close`, is discarded
        and returns the current state unchanged.
        """
        if not self._open or self._ride_id is None:
            raise RideError("No ride view is open")
        generation = self._generation
        self._load_seq += 1
        seq = self._load_seq

        previous = self._load_task
        if previous is not None and not previous.done():
            previous.cancel()

        task = asyncio.ensure_future(self._fetch_snapshot(self._ride_id))
        self._load_task = task
        try:
            ride, participants, participation = await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            _logger.debug("Snapshot load seq=%d cancelled", seq)
            return self._store.snapshot()
        except RideTransportError as exc:
            if not self._is_current(generation) or seq != self._load_seq:
                _logger.debug("Ignoring failure of stale snapshot load seq=%d", seq)
                return self._store.snapshot()
            error = FetchError(f"Failed to load ride {self._ride_id}: {exc}")
            self._surface(error)
            raise error from exc
        finally:
            if self._load_task is task:
                self._load_task = None

        if not self._is_current(generation) or seq != self._load_seq:
            _logger.debug("Discarding stale snapshot load seq=%d", seq)
            return self._store.snapshot()

        self._ride = ride
        self._participation = participation
        self._store.replace_snapshot(participants, ride.created_by_user_id, ride_id=ride.id)
        self._replay_early_updates()
        self._join_room()
        self._notify()
        return self._store.snapshot()

    def _replay_early_updates(self) -> None:
        if not self._early:
            return
        buffered = list(self._early)
        self._early.clear()
        applied = sum(1 for delta in buffered if self._store.apply_delta(delta))
        _logger.debug("Replayed %d/%d early updates", applied, len(buffered))

    # ------------------------------------------------------------------
    # Streaming merge
    # ------------------------------------------------------------------

    def apply_update(self, delta: LocationDelta) -> bool:
        """Merge one streamed delta. Returns ``True`` when the roster changed.

        Before the snapshot has completed the delta is dropped or buffered
        according to ``config.early_update_policy``. After teardown it is a
        no-op.
        """
        if not self._open:
            return False
        if not self._store.is_ready:
            if self._config.early_update_policy == EarlyUpdatePolicy.BUFFER:
                self._early.append(delta)
            else:
                _logger.debug("Dropping early update for user_id=%s", delta.user_id)
            return False
        changed = self._store.apply_delta(delta)
        if changed:
            self._notify()
        return changed

    # ------------------------------------------------------------------
    # Realtime channel
    # ------------------------------------------------------------------

    def _start_channel(self) -> None:
        if not self._config.realtime_enabled:
            return
        channel = self._channel_factory(self._config)
        try:
            channel.start(functools.partial(self._on_channel_event, self._generation))
        except (OSError, ChannelError) as exc:
            # Realtime is best-effort; the snapshot still loads.
            error = exc if isinstance(exc, ChannelError) else ChannelError(f"Realtime channel failed to start: {exc}")
            self._surface(error)
            return
        self._channel = channel

    def _stop_channel(self) -> None:
        channel = self._channel
        self._channel = None
        if channel is None:
            return
        try:
            channel.stop()
        except Exception:
            _logger.debug("Realtime channel stop failed", exc_info=True)

    def _join_room(self) -> None:
        channel = self._channel
        ride = self._ride
        if channel is None or ride is None or not channel.is_connected:
            return
        try:
            channel.join_ride(ride.code)
        except ChannelError:
            _logger.debug("join_ride failed for code=%s", ride.code, exc_info=True)

    def _on_channel_event(self, generation: int, event: ChannelEvent) -> None:
        if not self._is_current(generation):
            return
        if event.kind == ChannelEventKind.CONNECTED:
            # Room membership is not assumed to survive a reconnect.
            self._join_room()
        elif event.kind == ChannelEventKind.DISCONNECTED:
            _logger.debug("Realtime channel disconnected; roster kept as is")
        elif event.kind == ChannelEventKind.LOCATION_UPDATE:
            delta = parse_location_update(event.payload)
            if delta is not None:
                self.apply_update(delta)
        elif event.kind == ChannelEventKind.ERROR and event.error is not None:
            self._surface(event.error)

    # ------------------------------------------------------------------
    # Own location
    # ------------------------------------------------------------------

    def record_own_location(
        self,
        lat: float,
        lon: float,
        observed_at: datetime | None = None,
    ) -> asyncio.Task[None] | None:
        """Apply the user's own position locally, then write it through.

        The roster reflects the new position before this returns. Persisting
        (``PUT``) and broadcasting run in a background task that is not
        awaited; a failed persist surfaces :class:`WriteError` and the local
        position is kept. Returns that task, or ``None`` when there is
        nothing to write through (not a member of the ride).
        """
        if self._current_user_id is None:
            raise RideError("record_own_location requires current_user_id")
        delta = LocationDelta(
            user_id=self._current_user_id,
            lat=lat,
            lon=lon,
            observed_at=observed_at or _utcnow(),
        )
        if self._open and self._store.apply_own_location(delta):
            self._notify()

        participation = self._participation
        ride = self._ride
        if not self._open or participation is None or ride is None:
            _logger.debug("No participation for current user; skipping write-through")
            return None

        task = asyncio.ensure_future(self._write_through(self._generation, participation.id, ride.code, delta))
        self._pending_writes.add(task)
        task.add_done_callback(self._pending_writes.discard)
        return task

    async def _write_through(self, generation: int, participation_id: int, ride_code: str, delta: LocationDelta) -> None:
        transport = self._require_transport()
        try:
            await _participations_api.put_location(
                transport,
                participation_id,
                lat=delta.lat,
                lon=delta.lon,
                observed_at=delta.observed_at,
            )
        except RideTransportError as exc:
            error = WriteError(f"Failed to save location: {exc}")
            error.__cause__ = exc
            self._surface(error)
            # No retry and no rollback; the next own-location update overwrites.
            return

        channel = self._channel
        if not self._is_current(generation) or channel is None:
            return
        try:
            channel.update_location(
                ride_code=ride_code,
                user_id=delta.user_id,
                lat=delta.lat,
                lon=delta.lon,
                observed_at=delta.observed_at,
            )
        except ChannelError:
            _logger.debug("update_location broadcast failed", exc_info=True)

    async def update_own_location(self) -> asyncio.Task[None] | None:
        """Read the device position and record it.

        :class:`GeolocationError` is surfaced and re-raised; the rest of the
        roster is unaffected.
        """
        try:
            if self._position_source is None:
                raise GeolocationError("No position source configured")
            position = await self._position_source.current_position()
        except GeolocationError as exc:
            self._surface(exc)
            raise
        return self.record_own_location(position.lat, position.lon, position.observed_at)

    def simulate_move(
        self,
        *,
        base: tuple[float, float] | None = None,
        spread: float = 0.01,
        rng: random.Random | None = None,
    ) -> asyncio.Task[None] | None:
        """Record a jittered own position for demos and manual testing.

        Centres on *base*, else the user's current position, else a fixed
        default location.
        """
        center = base
        if center is None and self._current_user_id is not None:
            me = self._store.get(self._current_user_id)
            if me is not None and me.position is not None:
                center = (me.position.lat, me.position.lon)
        if center is None:
            center = DEFAULT_SIMULATION_CENTER
        lat, lon = jitter(center[0], center[1], spread, rng=rng)
        return self.record_own_location(lat, lon)

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    async def join(self, ride_code: str | None = None) -> RosterState:
        """Join the open ride (by its code) and reload the snapshot."""
        if not self._open:
            raise RideError("No ride view is open")
        code = ride_code or (self._ride.code if self._ride is not None else None)
        if not code:
            raise RideError("Ride code unknown; load the ride first or pass ride_code")
        try:
            self._participation = await _participations_api.join_ride(self._require_transport(), code)
        except RideTransportError as exc:
            self._surface(exc)
            raise
        return await self.load()

    async def leave(self) -> None:
        """Leave the open ride and tear down the view."""
        participation = self._participation
        if participation is None:
            raise RideError("Not a participant of this ride")
        try:
            await _participations_api.leave_ride(self._require_transport(), participation.id)
        except RideTransportError as exc:
            self._surface(exc)
            raise
        await self.close()
