"""Participant and participation endpoints.

Endpoints:
  - GET /rides/{id}/participants (snapshot, 404 means "no participants")
  - GET /participations/ (the caller's own memberships)
  - PUT /participations/{id} (persist own location)
  - POST /participations/ (join by ride code)
  - DELETE /participations/{id} (leave)
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from pyride._transport import Transport
from pyride.exceptions import RideTransportError
from pyride.models.participant import Participant, Participation

_logger = logging.getLogger(__name__)


def _expect_list(data: Any, endpoint: str) -> list[Any]:
    if data is None:
        return []
    if not isinstance(data, list):
        raise RideTransportError(f"Expected a JSON array from {endpoint}", endpoint=endpoint)
    return data


async def fetch_participants(transport: Transport, ride_id: int) -> list[Participant]:
    """Fetch the participant snapshot in backend order.

    Records that fail validation are skipped so one bad row does not
    invalidate the rest of the roster.
    """
    endpoint = f"/rides/{ride_id}/participants"
    try:
        data = await transport.request("GET", endpoint)
    except RideTransportError as exc:
        if exc.status_code == 404:
            _logger.debug("No participants for ride_id=%s (404)", ride_id)
            return []
        raise

    participants: list[Participant] = []
    for item in _expect_list(data, endpoint):
        try:
            participants.append(Participant.model_validate(item))
        except ValidationError:
            _logger.debug("Skipping malformed participant record from %s", endpoint, exc_info=True)
    return participants


async def fetch_my_participation(transport: Transport, ride_id: int, user_id: int) -> Participation | None:
    """Find the caller's participation in *ride_id*, if any."""
    endpoint = "/participations/"
    data = await transport.request("GET", endpoint)
    for item in _expect_list(data, endpoint):
        try:
            participation = Participation.model_validate(item)
        except ValidationError:
            _logger.debug("Skipping malformed participation record", exc_info=True)
            continue
        if participation.ride_id == ride_id and participation.user_id == user_id:
            return participation
    return None


def build_location_payload(lat: float, lon: float, observed_at: datetime) -> dict[str, Any]:
    return {
        "latitude": lat,
        "longitude": lon,
        "location_timestamp": observed_at.isoformat(),
    }


async def put_location(
    transport: Transport,
    participation_id: int,
    *,
    lat: float,
    lon: float,
    observed_at: datetime,
) -> Participation | None:
    """Persist the caller's location. Returns the updated record when the backend echoes one."""
    endpoint = f"/participations/{participation_id}"
    data = await transport.request("PUT", endpoint, build_location_payload(lat, lon, observed_at))
    if not isinstance(data, dict):
        return None
    try:
        return Participation.model_validate(data)
    except ValidationError:
        _logger.debug("Unparseable participation echo from %s", endpoint, exc_info=True)
        return None


async def join_ride(transport: Transport, ride_code: str) -> Participation:
    endpoint = "/participations/"
    data = await transport.request("POST", endpoint, {"ride_code": ride_code})
    try:
        return Participation.model_validate(data)
    except ValidationError as exc:
        raise RideTransportError(f"Unexpected participation payload from {endpoint}", endpoint=endpoint) from exc


async def leave_ride(transport: Transport, participation_id: int) -> None:
    await transport.request("DELETE", f"/participations/{participation_id}")
