"""Map renderer contract and the glue that feeds it camera intents."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Protocol

from pyride.models.geo import Bounds, LatLng, RoutePoint
from pyride.models.participant import Participant, ParticipantRole
from pyride.state.store import RosterState
from pyride.viewport.controller import ViewportController
from pyride.viewport.intent import IntentKind, ViewportIntent, ViewportState

_logger = logging.getLogger(__name__)

ORGANIZER_LABEL = "★"


class MapRenderer(Protocol):
    """The thin drawing surface that executes camera intents."""

    @property
    def is_ready(self) -> bool: ...

    def visible_bounds(self) -> Bounds | None: ...

    def pan_to(self, point: LatLng) -> None: ...

    def fit_bounds(self, bounds: Bounds, margin: int) -> None: ...

    def set_center(self, point: LatLng, zoom: int) -> None: ...


def execute_intent(renderer: MapRenderer, intent: ViewportIntent) -> None:
    if intent.kind == IntentKind.PAN and isinstance(intent.target, LatLng):
        renderer.pan_to(intent.target)
    elif intent.kind == IntentKind.FIT and isinstance(intent.target, Bounds):
        if intent.zoom is not None:
            renderer.set_center(intent.target.center, intent.zoom)
        else:
            renderer.fit_bounds(intent.target, intent.margin)


def marker_labels(participants: Iterable[Participant]) -> dict[int, str]:
    """Ordinal marker labels keyed by ``participant_id``.

    The organizer gets a star; everyone else is labelled with their roster
    index, so with the organizer first members are numbered from 1.
    """
    labels: dict[int, str] = {}
    for index, participant in enumerate(participants):
        if participant.role == ParticipantRole.ORGANIZER:
            labels[participant.participant_id] = ORGANIZER_LABEL
        else:
            labels[participant.participant_id] = str(index)
    return labels


class ViewportDriver:
    """Evaluates and executes camera intents on every roster change.

    While the renderer is not initialized every change is a no-op for the
    camera; the next change after initialization evaluates from scratch.
    The hysteresis state lives as long as one ride view: it is reset when
    the roster is torn down (not ready) or reports a different ``ride_id``.
    """

    def __init__(
        self,
        renderer: MapRenderer,
        *,
        current_user_id: int | None,
        controller: ViewportController | None = None,
        state: ViewportState | None = None,
        route_points: Sequence[RoutePoint] = (),
    ) -> None:
        self._renderer = renderer
        self._current_user_id = current_user_id
        self._controller = controller or ViewportController()
        self._state = state if state is not None else ViewportState()
        self._route_points: tuple[RoutePoint, ...] = tuple(route_points)
        self._ride_id: int | None = None

    @property
    def state(self) -> ViewportState:
        return self._state

    def set_route(self, route_points: Sequence[RoutePoint]) -> None:
        """Replace the route overlay; a newly present route is fitted on the next change."""
        self._route_points = tuple(route_points)

    def reset(self) -> None:
        """Forget hysteresis, e.g. when the viewed ride changes."""
        self._state.reset()

    def on_roster_change(self, roster: RosterState) -> list[ViewportIntent]:
        # Hysteresis is scoped to one ride view: a torn-down roster or a
        # different ride starts over with a first centering.
        if not roster.is_ready:
            _logger.debug("Roster not ready; resetting viewport state")
            self._ride_id = None
            self._state.reset()
            return []
        if roster.ride_id != self._ride_id:
            _logger.debug("Ride changed %s -> %s; resetting viewport state", self._ride_id, roster.ride_id)
            self._ride_id = roster.ride_id
            self._state.reset()
        if not self._renderer.is_ready:
            _logger.debug("Renderer not ready; skipping viewport cycle")
            return []
        intents = self._controller.evaluate(
            roster.participants,
            self._current_user_id,
            self._state,
            route_points=self._route_points,
            visible_bounds=self._renderer.visible_bounds(),
        )
        for intent in intents:
            execute_intent(self._renderer, intent)
        return intents
