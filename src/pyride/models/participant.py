"""Participant, participation and location models.

The REST API and the realtime channel describe positions as flat
``latitude`` / ``longitude`` / ``location_timestamp`` fields; the models
fold those into an optional :class:`Position` so that "never reported" is
represented as ``position is None`` rather than ``(0, 0)``.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from pyride.ingestion.normalize import first_present, parse_timestamp, safe_float
from pyride.models.geo import LatLng


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _position_from_flat(values: dict[str, Any]) -> dict[str, Any] | None:
    lat = safe_float(first_present(values, "latitude", "lat"))
    lon = safe_float(first_present(values, "longitude", "lon", "lng"))
    if lat is None or lon is None:
        return None
    observed_at = parse_timestamp(first_present(values, "location_timestamp", "observed_at"))
    position: dict[str, Any] = {"lat": lat, "lon": lon}
    if observed_at is not None:
        position["observed_at"] = observed_at
    return position


class ParticipantRole(StrEnum):
    ORGANIZER = "organizer"
    MEMBER = "member"


class Position(LatLng):
    """A reported location together with the time it was observed."""

    observed_at: datetime = Field(default_factory=_utcnow)

    @field_validator("observed_at", mode="before")
    @classmethod
    def _coerce_observed_at(cls, value: Any) -> Any:
        if value is None or value == "":
            return _utcnow()
        parsed = parse_timestamp(value)
        return parsed if parsed is not None else value


class Participant(BaseModel):
    """A member of a ride as shown on the map.

    Parsed from the ``/rides/{id}/participants`` response shape
    ``{id, user_id, username, latitude, longitude, location_timestamp}``.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    participant_id: int = Field(validation_alias=AliasChoices("participant_id", "id"))
    """Stable identity used as the map marker key."""
    user_id: int
    """Join key between snapshot records and streamed deltas."""
    display_name: str = Field(default="", validation_alias=AliasChoices("display_name", "username"))
    position: Position | None = None
    """Last known position, ``None`` when the participant never reported."""
    role: ParticipantRole = ParticipantRole.MEMBER

    @model_validator(mode="before")
    @classmethod
    def _fold_flat_position(cls, values: Any) -> Any:
        if not isinstance(values, dict) or "position" in values:
            return values
        merged = dict(values)
        merged["position"] = _position_from_flat(values)
        return merged

    @property
    def has_position(self) -> bool:
        return self.position is not None

    def with_position(self, position: Position) -> Participant:
        """Return a copy with only the position replaced."""
        return self.model_copy(update={"position": position})

    def with_role(self, role: ParticipantRole) -> Participant:
        return self.model_copy(update={"role": role})


class Participation(BaseModel):
    """The requesting user's own membership record for a ride."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    id: int
    user_id: int
    ride_id: int
    position: Position | None = None

    @model_validator(mode="before")
    @classmethod
    def _fold_flat_position(cls, values: Any) -> Any:
        if not isinstance(values, dict) or "position" in values:
            return values
        merged = dict(values)
        merged["position"] = _position_from_flat(values)
        return merged


class Ride(BaseModel):
    """Read-only ride header: enough to order the roster and join the room."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    id: int
    code: str
    title: str = ""
    created_by_user_id: int
    """The organizer's ``user_id``."""
    is_active: bool = True
    route_id: int | None = None


class LocationDelta(BaseModel):
    """One streamed position update for one participant."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    user_id: int
    lat: float = Field(ge=-90.0, le=90.0, validation_alias=AliasChoices("lat", "latitude"))
    lon: float = Field(ge=-180.0, le=180.0, validation_alias=AliasChoices("lon", "lng", "longitude"))
    observed_at: datetime = Field(
        default_factory=_utcnow,
        validation_alias=AliasChoices("observed_at", "location_timestamp"),
    )

    @field_validator("observed_at", mode="before")
    @classmethod
    def _coerce_observed_at(cls, value: Any) -> Any:
        if value is None or value == "":
            return _utcnow()
        parsed = parse_timestamp(value)
        return parsed if parsed is not None else value

    def to_position(self) -> Position:
        return Position(lat=self.lat, lon=self.lon, observed_at=self.observed_at)
