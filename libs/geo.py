"""
Great-circle distance helpers shared by the crime and news risk services.

The crime service reports distances in metres; the news risk service works in
kilometres. Both go through the same Haversine implementation.
"""

import math
from dataclasses import dataclass
from typing import Tuple

EARTH_RADIUS_M = 6371000.0
EARTH_RADIUS_KM = 6371.0


def haversine(lat1: float, lng1: float, lat2: float, lng2: float, radius: float) -> float:
    """Great-circle distance between two points on a sphere of the given radius."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    return radius * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def distance_meters(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    return haversine(lat1, lng1, lat2, lng2, EARTH_RADIUS_M)


def distance_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    return haversine(lat1, lng1, lat2, lng2, EARTH_RADIUS_KM)


def midpoint(a: Tuple[float, float], b: Tuple[float, float]) -> Tuple[float, float]:
    """
    Arithmetic mean of two (lat, lng) pairs.

    Not the geodesic midpoint; good enough for the short segments between route
    waypoints.
    """
    return (a[0] + b[0]) / 2, (a[1] + b[1]) / 2


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (``round`` would round to even)."""
    return math.floor(value + 0.5)


@dataclass
class BoundingBox:
    """Rectangular coordinate range used as a cheap stand-in for "near a point"."""

    lat_min: float
    lat_max: float
    lng_min: float
    lng_max: float

    @classmethod
    def around(cls, lat: float, lng: float, radius_deg: float) -> "BoundingBox":
        return cls(lat - radius_deg, lat + radius_deg, lng - radius_deg, lng + radius_deg)

    def contains(self, lat: float, lng: float) -> bool:
        return self.lat_min <= lat <= self.lat_max and self.lng_min <= lng <= self.lng_max
