"""Camera decision logic.

Three goals compete on every roster change: keep the current user centred,
keep every known participant visible, and do not re-fit on every minor
position update. Panning on self is cheap and happens every cycle; a bounds
fit only happens when something would otherwise be off screen (user has a
position) or when the picture materially changed (user has none).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from pyride.config import RideConfig
from pyride.models.geo import Bounds, LatLng, RoutePoint
from pyride.models.participant import Participant
from pyride.viewport.intent import ViewportIntent, ViewportState

_logger = logging.getLogger(__name__)

DEFAULT_FIT_MARGIN_PX = 50
DEFAULT_SINGLE_POINT_ZOOM = 15


class ViewportController:
    """Stateless evaluator; hysteresis lives in the caller's :class:`ViewportState`."""

    def __init__(
        self,
        *,
        fit_margin_px: int = DEFAULT_FIT_MARGIN_PX,
        single_point_zoom: int = DEFAULT_SINGLE_POINT_ZOOM,
    ) -> None:
        self._margin = fit_margin_px
        self._single_point_zoom = single_point_zoom

    @classmethod
    def from_config(cls, config: RideConfig) -> ViewportController:
        return cls(fit_margin_px=config.fit_margin_px, single_point_zoom=config.single_point_zoom)

    def _fit(self, bounds: Bounds) -> ViewportIntent:
        return ViewportIntent.fit(bounds, margin=self._margin, single_point_zoom=self._single_point_zoom)

    def evaluate(
        self,
        participants: Iterable[Participant],
        current_user_id: int | None,
        state: ViewportState,
        *,
        route_points: Sequence[RoutePoint] = (),
        visible_bounds: Bounds | None = None,
    ) -> list[ViewportIntent]:
        """Compute the camera intents for one roster change.

        Returns at most one ``pan`` and at most one ``fit``; a cycle that
        should not move the camera returns ``[ViewportIntent.none()]``.
        ``visible_bounds`` of ``None`` means the renderer could not report
        its viewport, which is treated as "nothing is known to be visible".
        """
        positioned = [p for p in participants if p.position is not None]
        count = len(positioned)

        if count == 0:
            state.last_known_participant_count = 0
            return [ViewportIntent.none()]

        positions: list[LatLng] = [p.position for p in positioned if p.position is not None]
        ideal = Bounds.from_points([*positions, *route_points])
        me = None
        if current_user_id is not None:
            me = next((p for p in positioned if p.user_id == current_user_id), None)

        intents: list[ViewportIntent] = []
        fitted = False
        if me is not None and me.position is not None:
            intents.append(ViewportIntent.pan(me.position))
            someone_outside = visible_bounds is None or any(not visible_bounds.contains(pos) for pos in positions)
            if someone_outside or not state.has_centered_once:
                intents.append(self._fit(ideal))
                fitted = True
            state.has_centered_once = True
        else:
            grown = count > state.last_known_participant_count
            route_new = bool(route_points) and not state.route_included
            if not state.has_centered_once or grown or route_new:
                intents.append(self._fit(ideal))
                fitted = True
                state.has_centered_once = True

        if not route_points:
            state.route_included = False
        elif fitted:
            state.route_included = True
        state.last_known_participant_count = count

        _logger.debug(
            "Viewport cycle positioned=%d me=%s intents=%s",
            count,
            me is not None,
            [intent.kind.value for intent in intents],
        )
        return intents or [ViewportIntent.none()]
