"""Viewport layer: decides where the map camera should look."""

from pyride.viewport.controller import ViewportController
from pyride.viewport.intent import IntentKind, ViewportIntent, ViewportState
from pyride.viewport.renderer import MapRenderer, ViewportDriver, execute_intent, marker_labels

__all__ = [
    "IntentKind",
    "MapRenderer",
    "ViewportController",
    "ViewportDriver",
    "ViewportIntent",
    "ViewportState",
    "execute_intent",
    "marker_labels",
]
