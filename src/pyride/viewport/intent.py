"""Camera intents and the hysteresis state they are derived with."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from pyride.models.geo import Bounds, LatLng


class IntentKind(StrEnum):
    PAN = "pan"
    FIT = "fit"
    NONE = "none"


@dataclass(frozen=True, slots=True)
class ViewportIntent:
    """One camera instruction for the map renderer.

    For ``fit`` intents, ``zoom`` is set when the region is a single point:
    the renderer centres on ``target.center`` at that zoom instead of
    fitting a zero-area box.
    """

    kind: IntentKind
    target: LatLng | Bounds | None = None
    margin: int = 0
    zoom: int | None = None

    @classmethod
    def pan(cls, point: LatLng) -> ViewportIntent:
        return cls(kind=IntentKind.PAN, target=point.as_latlng())

    @classmethod
    def fit(cls, bounds: Bounds, *, margin: int, single_point_zoom: int) -> ViewportIntent:
        zoom = single_point_zoom if bounds.is_point else None
        return cls(kind=IntentKind.FIT, target=bounds, margin=margin, zoom=zoom)

    @classmethod
    def none(cls) -> ViewportIntent:
        return cls(kind=IntentKind.NONE)


@dataclass(slots=True)
class ViewportState:
    """Sticky hysteresis state, one instance per ride view.

    Owned by the caller so concurrent views and repeated tests never share it.
    """

    has_centered_once: bool = False
    last_known_participant_count: int = 0
    route_included: bool = False

    def reset(self) -> None:
        self.has_centered_once = False
        self.last_known_participant_count = 0
        self.route_included = False
