"""Geospatial helpers shared by the access gate, repositories and tests."""

from __future__ import annotations

import math
from dataclasses import dataclass
from numbers import Real

EARTH_RADIUS_KM = 6371.0


@dataclass(frozen=True)
class GeoPoint:
    """A latitude/longitude pair in decimal degrees."""

    latitude: float
    longitude: float


@dataclass(frozen=True)
class BoundingBox:
    """Lat/lng rectangle; ``min_lng > max_lng`` means it crosses ±180°."""

    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    @property
    def wraps(self) -> bool:
        return self.min_lng > self.max_lng

    def lng_ranges(self) -> list[tuple[float, float]]:
        """Longitude intervals to OR together in a storage query."""
        if self.wraps:
            return [(self.min_lng, 180.0), (-180.0, self.max_lng)]
        return [(self.min_lng, self.max_lng)]

    def contains(self, point: GeoPoint) -> bool:
        if not self.min_lat <= point.latitude <= self.max_lat:
            return False
        return any(lo <= point.longitude <= hi for lo, hi in self.lng_ranges())


def distance_km(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance in kilometres, rounded to two decimals.

    Inputs are expected to be validated already; out-of-domain values still
    produce a number.
    """

    d_lat = math.radians(b.latitude - a.latitude)
    d_lon = math.radians(b.longitude - a.longitude)

    h = (
        math.sin(d_lat / 2.0) ** 2
        + math.cos(math.radians(a.latitude))
        * math.cos(math.radians(b.latitude))
        * math.sin(d_lon / 2.0) ** 2
    )
    h = min(1.0, max(0.0, h))
    c = 2.0 * math.atan2(math.sqrt(h), math.sqrt(1.0 - h))
    return round(EARTH_RADIUS_KM * c, 2)


def is_valid_coordinate(lat: object, lon: object) -> bool:
    """True iff both values are finite numbers inside the lat/lng domain."""

    for value in (lat, lon):
        if isinstance(value, bool) or not isinstance(value, Real):
            return False
        if not math.isfinite(value):
            return False
    return -90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0  # type: ignore[operator]


def bounding_box(center: GeoPoint, radius_km: float) -> BoundingBox:
    """Rectangle enclosing the circle; used as a coarse pre-filter only.

    Longitude half-width is ``asin(sin(r) / cos(lat))`` on the sphere. When the
    circle reaches a pole every longitude is inside; a box crossing ±180° is
    returned with ``min_lng > max_lng``.
    """

    angular = radius_km / EARTH_RADIUS_KM
    d_lat = math.degrees(angular)
    min_lat = center.latitude - d_lat
    max_lat = center.latitude + d_lat

    cos_lat = math.cos(math.radians(center.latitude))
    if min_lat <= -90.0 or max_lat >= 90.0 or math.sin(angular) >= cos_lat:
        d_lng = 180.0
    else:
        d_lng = math.degrees(math.asin(math.sin(angular) / cos_lat))

    if d_lng >= 180.0:
        min_lng, max_lng = -180.0, 180.0
    else:
        min_lng = center.longitude - d_lng
        max_lng = center.longitude + d_lng
        if min_lng < -180.0:
            min_lng += 360.0
        if max_lng > 180.0:
            max_lng -= 360.0
    return BoundingBox(
        min_lat=max(-90.0, min_lat),
        max_lat=min(90.0, max_lat),
        min_lng=min_lng,
        max_lng=max_lng,
    )


def format_distance(km: float) -> str:
    """Human readable distance: metres below 1 km, one decimal below 10 km."""

    if km < 1:
        return f"{round(km * 1000)}m"
    if km < 10:
        return f"{km:.1f}km"
    return f"{round(km)}km"


def parse_location_string(value: str) -> GeoPoint | None:
    """Parse ``"lat,lng"``; returns None when malformed or out of domain."""

    parts = [p.strip() for p in value.split(",")]
    if len(parts) != 2:
        return None
    try:
        lat, lng = float(parts[0]), float(parts[1])
    except ValueError:
        return None
    if not is_valid_coordinate(lat, lng):
        return None
    return GeoPoint(lat, lng)


__all__ = [
    "EARTH_RADIUS_KM",
    "BoundingBox",
    "GeoPoint",
    "bounding_box",
    "distance_km",
    "format_distance",
    "is_valid_coordinate",
    "parse_location_string",
]
