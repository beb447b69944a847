"""Geographic primitives shared by the roster and the viewport."""

from __future__ import annotations

from collections.abc import Iterable

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator


class LatLng(BaseModel):
    """A WGS84 coordinate pair in degrees."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    lat: float = Field(ge=-90.0, le=90.0, validation_alias=AliasChoices("lat", "latitude"))
    lon: float = Field(ge=-180.0, le=180.0, validation_alias=AliasChoices("lon", "lng", "longitude"))

    def as_latlng(self) -> LatLng:
        """Strip any subclass payload (timestamps etc.) and return a plain coordinate."""
        return LatLng(lat=self.lat, lon=self.lon)


class RoutePoint(LatLng):
    """One vertex of a static route overlay."""


class Bounds(BaseModel):
    """Axis-aligned lat/lon bounding box.

    Longitudes are not wrapped across the antimeridian.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    south: float
    west: float
    north: float
    east: float

    @model_validator(mode="after")
    def _check_order(self) -> Bounds:
        if self.south > self.north or self.west > self.east:
            raise ValueError("bounds must satisfy south <= north and west <= east")
        return self

    @classmethod
    def from_point(cls, point: LatLng) -> Bounds:
        return cls(south=point.lat, west=point.lon, north=point.lat, east=point.lon)

    @classmethod
    def from_points(cls, points: Iterable[LatLng]) -> Bounds:
        """Minimal box containing every point.

        Raises ``ValueError`` when *points* is empty.
        """
        bounds: Bounds | None = None
        for point in points:
            bounds = cls.from_point(point) if bounds is None else bounds.extend(point)
        if bounds is None:
            raise ValueError("cannot compute bounds of an empty point set")
        return bounds

    def extend(self, point: LatLng) -> Bounds:
        return Bounds(
            south=min(self.south, point.lat),
            west=min(self.west, point.lon),
            north=max(self.north, point.lat),
            east=max(self.east, point.lon),
        )

    def contains(self, point: LatLng) -> bool:
        return self.south <= point.lat <= self.north and self.west <= point.lon <= self.east

    @property
    def center(self) -> LatLng:
        return LatLng(lat=(self.south + self.north) / 2.0, lon=(self.west + self.east) / 2.0)

    @property
    def is_point(self) -> bool:
        """Whether the box has zero area in both dimensions."""
        return self.south == self.north and self.west == self.east
