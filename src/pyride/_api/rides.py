"""Ride header endpoint.

Endpoint:
  - GET /rides/{id}
"""

from __future__ import annotations

from pydantic import ValidationError

from pyride._transport import Transport
from pyride.exceptions import RideTransportError
from pyride.models.participant import Ride


async def fetch_ride(transport: Transport, ride_id: int) -> Ride:
    """Fetch the ride header (code and organizer)."""
    endpoint = f"/rides/{ride_id}"
    data = await transport.request("GET", endpoint)
    try:
        return Ride.model_validate(data)
    except ValidationError as exc:
        raise RideTransportError(f"Unexpected ride payload from {endpoint}", endpoint=endpoint) from exc
