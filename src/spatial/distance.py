"""Great-circle distance on a spherical Earth."""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np


EARTH_RADIUS_KM = 6371.0
"""Mean Earth radius used by every distance in this package."""


@dataclass(frozen=True)
class Point:
    """A geographic coordinate in decimal degrees, stored as (lng, lat)."""

    lng: float
    lat: float


def _clamp_unit(h: float) -> float:
    return min(1.0, max(0.0, h))


def haversine_km(a: Point, b: Point) -> float:
    """
    Haversine distance between two points in kilometres.

    Works on the sines and cosines of the coordinate differences, so pairs
    straddling the antimeridian and antipodal pairs are handled without any
    special casing. Out-of-range degrees are not rejected.
    """
    lat1 = math.radians(a.lat)
    lat2 = math.radians(b.lat)
    dlat = lat2 - lat1
    dlng = math.radians(b.lng - a.lng)

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(_clamp_unit(h)))


def haversine_km_to_many(point: Point, lngs: np.ndarray, lats: np.ndarray) -> np.ndarray:
    """
    Vectorised haversine from ``point`` to every (lngs[k], lats[k]).

    All neighbour backends make their final ``<= eps`` decision with this
    function, so they agree exactly on boundary cases.
    """
    lat1 = math.radians(point.lat)
    lat2 = np.radians(lats)
    dlat = lat2 - lat1
    dlng = np.radians(lngs - point.lng)

    h = np.sin(dlat / 2) ** 2 + math.cos(lat1) * np.cos(lat2) * np.sin(dlng / 2) ** 2
    return 2 * EARTH_RADIUS_KM * np.arcsin(np.sqrt(np.clip(h, 0.0, 1.0)))


def km_to_degrees(distance_km: float) -> float:
    """Arc length in kilometres expressed as degrees of a great circle."""
    return math.degrees(distance_km / EARTH_RADIUS_KM)


__all__ = [
    "EARTH_RADIUS_KM",
    "Point",
    "haversine_km",
    "haversine_km_to_many",
    "km_to_degrees",
]
