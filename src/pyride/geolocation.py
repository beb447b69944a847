"""Device position sources."""

from __future__ import annotations

import random
from typing import Protocol

from pyride.exceptions import GeolocationError
from pyride.models.participant import Position


class PositionSource(Protocol):
    """Produces a single position reading on demand.

    Implementations raise :class:`GeolocationError` when the device denies
    access or has no fix.
    """

    async def current_position(self) -> Position: ...


class StaticPositionSource:
    """Returns a fixed reading, or raises a fixed error."""

    def __init__(self, position: Position | None = None, *, error: str | None = None) -> None:
        self._position = position
        self._error = error

    async def current_position(self) -> Position:
        if self._error is not None or self._position is None:
            raise GeolocationError(self._error or "No position available")
        return self._position


def jitter(lat: float, lon: float, spread: float, *, rng: random.Random | None = None) -> tuple[float, float]:
    """Offset a coordinate uniformly within ``±spread / 2`` degrees on each axis."""
    source = rng or random
    new_lat = lat + (source.random() - 0.5) * spread
    new_lon = lon + (source.random() - 0.5) * spread
    return max(-90.0, min(90.0, new_lat)), max(-180.0, min(180.0, new_lon))
