"""
Pytest configuration and shared fixtures for geo-dbscan-filter tests.

This file provides:
- Sample point sets (NYC tracks, Saint Petersburg points, equator layouts)
- CSV fixtures written to a temporary directory
- Common test utilities
"""

import math
from pathlib import Path
from typing import List

import pytest
import numpy as np

from src.spatial.distance import EARTH_RADIUS_KM, Point


KM_PER_DEGREE = EARTH_RADIUS_KM * math.pi / 180.0


def equator_point(meters: float) -> Point:
    """Point on the equator ``meters`` east of (0, 0)."""
    return Point(lng=meters / 1000.0 / KM_PER_DEGREE, lat=0.0)


# ==============================================================================
# Sample Points
# ==============================================================================

NYC_CSV = """latitude,longitude
40.7128,-74.0060
40.7130,-74.0062
40.7132,-74.0064
40.7500,-73.9900
40.7502,-73.9902
40.7504,-73.9904
40.8000,-73.9500
41.0000,-74.0000
"""


@pytest.fixture
def nyc_points() -> List[Point]:
    """Two tight groups of three, followed by two isolated points."""
    rows = [line.split(",") for line in NYC_CSV.strip().splitlines()[1:]]
    return [Point(lng=float(lng), lat=float(lat)) for lat, lng in rows]


@pytest.fixture
def spb_points() -> List[Point]:
    """Five points around Saint Petersburg, (lng, lat)."""
    return [
        Point(30.244759, 59.955982),
        Point(30.24472, 59.955975),
        Point(30.244358, 59.96698),
        Point(30.258387, 59.951557),
        Point(30.434124, 60.029499),
    ]


@pytest.fixture
def bridge_points() -> List[Point]:
    """
    Two dense groups joined by a single border point.

    With eps=0.1 km and min_points=4 the point at 180 m is a border point of
    both groups: it has only three neighbours (itself, 90 m and 270 m).
    """
    return [equator_point(m) for m in (0, 30, 60, 90, 180, 270, 300, 330, 360)]


@pytest.fixture
def blob_points() -> List[Point]:
    """Well separated Gaussian blobs (~20 m spread) plus isolated outliers."""
    rng = np.random.default_rng(42)
    centers = [(35.6812, 139.7671), (35.6895, 139.6917), (35.7148, 139.7967)]
    points = []
    for lat, lng in centers:
        offsets = rng.normal(scale=0.0002, size=(15, 2))
        points.extend(Point(lng=lng + d_lng, lat=lat + d_lat) for d_lat, d_lng in offsets)
    points.extend([Point(139.60, 35.60), Point(139.90, 35.80), Point(139.50, 35.50)])
    order = rng.permutation(len(points))
    return [points[i] for i in order]


@pytest.fixture
def scattered_points() -> List[Point]:
    """
    Random points around awkward places: the antimeridian, the north pole,
    a city and a handful with out-of-range or non-finite coordinates.
    """
    rng = np.random.default_rng(7)
    hubs = [(0.0, 179.9995), (0.0, -179.9995), (89.9995, 0.0), (-89.9995, 120.0), (52.52, 13.405)]
    points = []
    for lat, lng in hubs:
        offsets = rng.normal(scale=0.0006, size=(25, 2))
        points.extend(Point(lng=lng + d_lng, lat=min(90.0, max(-90.0, lat + d_lat))) for d_lat, d_lng in offsets)
    points.extend([Point(13.405, 95.0), Point(13.405, float("nan")), Point(540.0, 10.0), Point(180.0, 10.0)])
    order = rng.permutation(len(points))
    return [points[i] for i in order]


# ==============================================================================
# CSV Files
# ==============================================================================

@pytest.fixture
def nyc_csv(tmp_path) -> Path:
    """NYC sample written as a CSV file with a header row."""
    path = tmp_path / "points.csv"
    path.write_text(NYC_CSV)
    return path


@pytest.fixture
def write_csv(tmp_path):
    """Write ``text`` to a CSV file in the temporary directory."""

    def _write(text: str, name: str = "input.csv") -> Path:
        path = tmp_path / name
        path.write_text(text)
        return path

    return _write


# ==============================================================================
# Environment Setup
# ==============================================================================

@pytest.fixture(autouse=True)
def clear_profile_env(monkeypatch):
    """Tests never pick up a profile from the developer's environment."""
    monkeypatch.delenv("DBSCAN_PROFILE", raising=False)
    yield


# ==============================================================================
# Utilities
# ==============================================================================

def assert_approx_equal(a: float, b: float, tolerance: float = 0.01):
    """Assert two floats are approximately equal."""
    assert abs(a - b) < tolerance, f"{a} != {b} (tolerance={tolerance})"
