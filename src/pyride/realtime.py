"""Realtime channel contract and payload parsing.

A channel is scoped to the roster that owns it: it is created when a ride
view opens and stopped when the view closes. Implementations deliver
:class:`ChannelEvent` objects on the asyncio loop thread.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any, Protocol

from pydantic import ValidationError

from pyride._constants import EVENT_CONNECTED, EVENT_DISCONNECTED, EVENT_LOCATION_UPDATE
from pyride.exceptions import ChannelError
from pyride.models.participant import LocationDelta

_logger = logging.getLogger(__name__)


class ChannelEventKind(StrEnum):
    CONNECTED = EVENT_CONNECTED
    DISCONNECTED = EVENT_DISCONNECTED
    LOCATION_UPDATE = EVENT_LOCATION_UPDATE
    ERROR = "error"


@dataclass(frozen=True)
class ChannelEvent:
    """Normalized event emitted by a realtime channel."""

    kind: ChannelEventKind
    payload: dict[str, Any] = field(default_factory=dict)
    error: ChannelError | None = None


class RealtimeChannel(Protocol):
    """Bidirectional event connection for one ride view."""

    @property
    def is_connected(self) -> bool: ...

    def start(self, on_event: Callable[[ChannelEvent], None]) -> None: ...

    def stop(self) -> None: ...

    def join_ride(self, ride_code: str) -> None:
        """Join the ride's room. Idempotent; safe to repeat after reconnects."""
        ...

    def update_location(
        self,
        *,
        ride_code: str,
        user_id: int,
        lat: float,
        lon: float,
        observed_at: datetime,
    ) -> None: ...


def parse_location_update(payload: dict[str, Any]) -> LocationDelta | None:
    """Validate a ``location_update`` payload.

    Returns ``None`` (and logs at DEBUG) for payloads that do not describe a
    complete position for a known user id shape.
    """
    try:
        return LocationDelta.model_validate(payload)
    except ValidationError:
        _logger.debug("Dropping malformed location_update payload=%s", payload, exc_info=True)
        return None


def build_update_location_payload(
    *,
    ride_code: str,
    user_id: int,
    lat: float,
    lon: float,
    observed_at: datetime,
) -> dict[str, Any]:
    return {
        "ride_code": ride_code,
        "user_id": user_id,
        "latitude": lat,
        "longitude": lon,
        "location_timestamp": observed_at.isoformat(),
    }
