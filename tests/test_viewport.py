from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import pytest

from pyride.config import RideConfig
from pyride.models.geo import Bounds, LatLng, RoutePoint
from pyride.models.participant import Participant, ParticipantRole, Position
from pyride.state.store import RosterState
from pyride.viewport.controller import ViewportController
from pyride.viewport.intent import IntentKind, ViewportIntent, ViewportState
from pyride.viewport.renderer import ViewportDriver, execute_intent, marker_labels


def _p(user_id: int, lat: float | None = None, lon: float | None = None, *, organizer: bool = False) -> Participant:
    position = Position(lat=lat, lon=lon) if lat is not None and lon is not None else None
    return Participant(
        participant_id=user_id * 10,
        user_id=user_id,
        display_name=f"user{user_id}",
        position=position,
        role=ParticipantRole.ORGANIZER if organizer else ParticipantRole.MEMBER,
    )


def _kinds(intents: list[ViewportIntent]) -> list[IntentKind]:
    return [intent.kind for intent in intents]


WIDE = Bounds(south=40.0, west=0.0, north=60.0, east=20.0)


@dataclass
class FakeRenderer:
    ready: bool = True
    bounds: Bounds | None = None
    calls: list[tuple[str, Any]] = field(default_factory=list)

    @property
    def is_ready(self) -> bool:
        return self.ready

    def visible_bounds(self) -> Bounds | None:
        return self.bounds

    def pan_to(self, point: LatLng) -> None:
        self.calls.append(("pan_to", point))

    def fit_bounds(self, bounds: Bounds, margin: int) -> None:
        self.calls.append(("fit_bounds", (bounds, margin)))

    def set_center(self, point: LatLng, zoom: int) -> None:
        self.calls.append(("set_center", (point, zoom)))


# ------------------------------------------------------------------
# Controller
# ------------------------------------------------------------------


class TestViewportController:
    def test_no_positioned_participants_yields_none(self) -> None:
        state = ViewportState(last_known_participant_count=3)
        intents = ViewportController().evaluate([_p(1), _p(2)], 1, state)

        assert _kinds(intents) == [IntentKind.NONE]
        assert state.last_known_participant_count == 0

    def test_no_positioned_participants_ignores_route(self) -> None:
        state = ViewportState()
        intents = ViewportController().evaluate(
            [_p(1)], 1, state, route_points=(RoutePoint(lat=48.0, lon=11.0),)
        )

        assert _kinds(intents) == [IntentKind.NONE]

    def test_first_cycle_with_self_pans_and_fits(self) -> None:
        state = ViewportState()
        intents = ViewportController().evaluate(
            [_p(1, 48.0, 11.0), _p(2, 48.1, 11.1)], 1, state, visible_bounds=WIDE
        )

        assert _kinds(intents) == [IntentKind.PAN, IntentKind.FIT]
        assert intents[0].target == LatLng(lat=48.0, lon=11.0)
        assert intents[1].target == Bounds(south=48.0, west=11.0, north=48.1, east=11.1)
        assert intents[1].margin == 50
        assert state.has_centered_once is True

    def test_self_with_everyone_visible_only_pans(self) -> None:
        state = ViewportState(has_centered_once=True, last_known_participant_count=2)
        intents = ViewportController().evaluate(
            [_p(1, 48.0, 11.0), _p(2, 48.1, 11.1)], 1, state, visible_bounds=WIDE
        )

        assert _kinds(intents) == [IntentKind.PAN]

    def test_self_with_participant_outside_view_fits(self) -> None:
        state = ViewportState(has_centered_once=True, last_known_participant_count=2)
        intents = ViewportController().evaluate(
            [_p(1, 48.0, 11.0), _p(2, 35.0, 11.1)], 1, state, visible_bounds=WIDE
        )

        assert _kinds(intents) == [IntentKind.PAN, IntentKind.FIT]

    def test_unknown_visible_bounds_counts_as_outside(self) -> None:
        state = ViewportState(has_centered_once=True, last_known_participant_count=1)
        intents = ViewportController().evaluate([_p(1, 48.0, 11.0)], 1, state, visible_bounds=None)

        assert _kinds(intents) == [IntentKind.PAN, IntentKind.FIT]

    def test_without_self_fits_once_then_holds(self) -> None:
        controller = ViewportController()
        state = ViewportState()
        roster = [_p(2, 48.0, 11.0), _p(3, 48.2, 11.2)]

        first = controller.evaluate(roster, 1, state)
        second = controller.evaluate(roster, 1, state)

        assert _kinds(first) == [IntentKind.FIT]
        assert _kinds(second) == [IntentKind.NONE]
        assert state.has_centered_once is True
        assert state.last_known_participant_count == 2

    def test_without_self_fits_when_count_grows(self) -> None:
        controller = ViewportController()
        state = ViewportState(has_centered_once=True, last_known_participant_count=1)

        intents = controller.evaluate([_p(2, 48.0, 11.0), _p(3, 48.2, 11.2)], None, state)

        assert _kinds(intents) == [IntentKind.FIT]
        assert state.last_known_participant_count == 2

    def test_without_self_no_fit_when_count_shrinks(self) -> None:
        controller = ViewportController()
        state = ViewportState(has_centered_once=True, last_known_participant_count=3)

        intents = controller.evaluate([_p(2, 48.0, 11.0)], None, state)

        assert _kinds(intents) == [IntentKind.NONE]
        assert state.last_known_participant_count == 1

    def test_new_route_triggers_fit_including_route(self) -> None:
        controller = ViewportController()
        state = ViewportState(has_centered_once=True, last_known_participant_count=1)
        route = (RoutePoint(lat=47.0, lon=10.0), RoutePoint(lat=49.0, lon=12.0))

        first = controller.evaluate([_p(2, 48.0, 11.0)], None, state, route_points=route)
        second = controller.evaluate([_p(2, 48.0, 11.0)], None, state, route_points=route)

        assert _kinds(first) == [IntentKind.FIT]
        assert first[0].target == Bounds(south=47.0, west=10.0, north=49.0, east=12.0)
        assert _kinds(second) == [IntentKind.NONE]
        assert state.route_included is True

    def test_single_point_fit_carries_zoom(self) -> None:
        state = ViewportState()
        intents = ViewportController(single_point_zoom=15).evaluate([_p(2, 48.0, 11.0)], None, state)

        assert intents[0].kind == IntentKind.FIT
        assert intents[0].zoom == 15

    def test_multi_point_fit_has_no_zoom(self) -> None:
        state = ViewportState()
        intents = ViewportController().evaluate([_p(2, 48.0, 11.0), _p(3, 48.5, 11.5)], None, state)

        assert intents[0].zoom is None

    @pytest.mark.parametrize(
        ("me", "visible", "centered", "count"),
        [
            (1, None, False, 0),
            (1, WIDE, True, 2),
            (None, None, False, 0),
            (None, WIDE, True, 5),
            (7, WIDE, True, 1),
        ],
    )
    def test_at_most_one_pan_and_one_fit(
        self, me: int | None, visible: Bounds | None, centered: bool, count: int
    ) -> None:
        state = ViewportState(has_centered_once=centered, last_known_participant_count=count)
        intents = ViewportController().evaluate(
            [_p(1, 48.0, 11.0), _p(2, 30.0, 5.0), _p(3)],
            me,
            state,
            visible_bounds=visible,
        )

        kinds = _kinds(intents)
        assert kinds.count(IntentKind.PAN) <= 1
        assert kinds.count(IntentKind.FIT) <= 1
        assert intents


# ------------------------------------------------------------------
# Renderer glue
# ------------------------------------------------------------------


def test_execute_single_point_fit_sets_center_and_zoom() -> None:
    renderer = FakeRenderer()
    intent = ViewportIntent.fit(Bounds.from_point(LatLng(lat=48.0, lon=11.0)), margin=50, single_point_zoom=15)

    execute_intent(renderer, intent)

    assert renderer.calls == [("set_center", (LatLng(lat=48.0, lon=11.0), 15))]


def test_execute_none_intent_is_noop() -> None:
    renderer = FakeRenderer()
    execute_intent(renderer, ViewportIntent.none())
    assert renderer.calls == []


def test_driver_skips_cycles_until_renderer_ready() -> None:
    renderer = FakeRenderer(ready=False)
    driver = ViewportDriver(renderer, current_user_id=1)
    roster = RosterState(participants=(_p(1, 48.0, 11.0), _p(2, 48.1, 11.1)), is_ready=True)

    assert driver.on_roster_change(roster) == []
    assert renderer.calls == []
    assert driver.state == ViewportState()

    renderer.ready = True
    renderer.bounds = WIDE
    intents = driver.on_roster_change(roster)

    assert _kinds(intents) == [IntentKind.PAN, IntentKind.FIT]
    assert [name for name, _ in renderer.calls] == ["pan_to", "fit_bounds"]


def test_driver_reset_forgets_hysteresis() -> None:
    renderer = FakeRenderer(bounds=WIDE)
    driver = ViewportDriver(renderer, current_user_id=None)
    roster = RosterState(participants=(_p(2, 48.0, 11.0),), is_ready=True)

    driver.on_roster_change(roster)
    driver.reset()
    intents = driver.on_roster_change(roster)

    assert _kinds(intents) == [IntentKind.FIT]


def test_marker_labels_star_for_organizer_and_ordinals_for_members() -> None:
    labels = marker_labels([_p(3, organizer=True), _p(1), _p(2)])

    assert labels == {30: "★", 10: "1", 20: "2"}


def test_controller_from_config_uses_margin_and_zoom() -> None:
    controller = ViewportController.from_config(RideConfig(fit_margin_px=20, single_point_zoom=12))
    intents = controller.evaluate([_p(2, 48.0, 11.0)], None, ViewportState())

    assert intents[0].margin == 20
    assert intents[0].zoom == 12


def test_driver_resets_hysteresis_when_ride_changes() -> None:
    renderer = FakeRenderer(bounds=WIDE)
    driver = ViewportDriver(renderer, current_user_id=None)

    first = driver.on_roster_change(RosterState(participants=(_p(2, 48.0, 11.0),), ride_id=1, is_ready=True))
    same = driver.on_roster_change(RosterState(participants=(_p(2, 48.0, 11.0),), ride_id=1, is_ready=True))
    other = driver.on_roster_change(RosterState(participants=(_p(5, -33.0, 151.0),), ride_id=2, is_ready=True))

    assert _kinds(first) == [IntentKind.FIT]
    assert _kinds(same) == [IntentKind.NONE]
    assert _kinds(other) == [IntentKind.FIT]
    assert other[0].target == Bounds.from_point(LatLng(lat=-33.0, lon=151.0))


def test_driver_resets_hysteresis_on_torn_down_roster() -> None:
    renderer = FakeRenderer(bounds=WIDE)
    driver = ViewportDriver(renderer, current_user_id=None)
    roster = RosterState(participants=(_p(2, 48.0, 11.0),), ride_id=1, is_ready=True)

    driver.on_roster_change(roster)
    assert driver.on_roster_change(RosterState()) == []
    assert driver.state == ViewportState()

    assert _kinds(driver.on_roster_change(roster)) == [IntentKind.FIT]


def test_driver_set_route_fits_route_on_next_change() -> None:
    renderer = FakeRenderer(bounds=WIDE)
    driver = ViewportDriver(renderer, current_user_id=None)
    roster = RosterState(participants=(_p(2, 48.0, 11.0),), ride_id=1, is_ready=True)
    driver.on_roster_change(roster)

    driver.set_route((RoutePoint(lat=47.0, lon=10.0), RoutePoint(lat=49.0, lon=12.0)))
    intents = driver.on_roster_change(roster)

    assert _kinds(intents) == [IntentKind.FIT]
    assert intents[0].target == Bounds(south=47.0, west=10.0, north=49.0, east=12.0)
    assert driver.state.route_included is True
