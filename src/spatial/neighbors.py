"""
Epsilon-neighbourhood queries over an ordered point set.

Every backend answers the same question: which indices lie within ``eps_km``
of point ``i`` (``i`` itself included), in ascending index order. The
backends differ only in how they collect candidates:

- ``brute``: scan every point (O(n) per query, the reference behaviour)
- ``grid``: uniform lat/lng grid whose cells are eps wide
- ``balltree``: scikit-learn ``BallTree`` with the haversine metric

Candidates are always confirmed with :func:`haversine_km_to_many`, so the
three backends return identical index lists.
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Set, Tuple

import numpy as np
from sklearn.neighbors import BallTree

from .distance import EARTH_RADIUS_KM, Point, haversine_km_to_many, km_to_degrees


logger = logging.getLogger(__name__)

# Relative widening applied to every candidate bound so rounding can only
# ever add candidates, never drop one.
_SLACK = 1e-9


class NeighborIndex:
    """Base class: holds the coordinate arrays and the exact distance filter."""

    kind = "base"

    def __init__(self, points: Sequence[Point], eps_km: float):
        self.points = points
        self.eps_km = float(eps_km)
        self._lngs = np.fromiter((p.lng for p in points), dtype=float, count=len(points))
        self._lats = np.fromiter((p.lat for p in points), dtype=float, count=len(points))

    def __len__(self) -> int:
        return len(self.points)

    def _irregular_mask(self) -> np.ndarray:
        # Latitudes outside [-90, 90] break the geometric bounds the spatial
        # backends rely on; such points are handled by exhaustive comparison.
        return ~(np.isfinite(self._lngs) & np.isfinite(self._lats) & (np.abs(self._lats) <= 90.0))

    def _confirm(self, i: int, candidates: np.ndarray) -> List[int]:
        """Keep the candidates within eps of ``i``; ``candidates`` must be sorted."""
        distances = haversine_km_to_many(self.points[i], self._lngs[candidates], self._lats[candidates])
        keep = (distances <= self.eps_km) | (candidates == i)
        return candidates[keep].tolist()

    def neighbors(self, i: int) -> List[int]:
        raise NotImplementedError


class BruteForceIndex(NeighborIndex):
    """Compare the query point with every point."""

    kind = "brute"

    def __init__(self, points: Sequence[Point], eps_km: float):
        super().__init__(points, eps_km)
        self._all = np.arange(len(points))

    def neighbors(self, i: int) -> List[int]:
        return self._confirm(i, self._all)


class GridIndex(NeighborIndex):
    """
    Uniform grid of square cells, ``eps`` (in great-circle degrees) on a side.

    A neighbour of a point at latitude ``phi`` differs from it by at most one
    cell in latitude. In longitude, with ``phi_max`` the largest absolute
    latitude of that three-row band, the wrapped difference is bounded by
    ``2 * asin(sin(eps / 2R) / cos(phi_max))``; near the poles the whole row
    is scanned.
    """

    kind = "grid"

    def __init__(self, points: Sequence[Point], eps_km: float):
        super().__init__(points, eps_km)
        self.cell_deg = km_to_degrees(self.eps_km) * (1.0 + _SLACK)
        self.num_cols = max(1, int(math.ceil(360.0 / self.cell_deg)))
        self._rows: Dict[int, Dict[int, List[int]]] = defaultdict(lambda: defaultdict(list))

        irregular = self._irregular_mask()
        self._is_irregular = irregular
        self._irregular = np.flatnonzero(irregular)
        self._all = np.arange(len(points))

        for idx in np.flatnonzero(~irregular):
            row, col = self._cell_of(self._lngs[idx], self._lats[idx])
            self._rows[row][col].append(int(idx))

        logger.debug(
            "Grid index: %d points in %d rows, cell=%.6f deg, %d irregular",
            len(points), len(self._rows), self.cell_deg, len(self._irregular),
        )

    def _col_of(self, shifted_lng: float) -> int:
        return min(int(shifted_lng // self.cell_deg), self.num_cols - 1)

    def _cell_of(self, lng: float, lat: float) -> Tuple[int, int]:
        shifted = (lng + 180.0) % 360.0
        return int((lat + 90.0) // self.cell_deg), self._col_of(shifted)

    def _lng_half_width(self, lat: float) -> Optional[float]:
        """Longitude half-width in degrees, or None when every column is needed."""
        phi_max = abs(lat) + self.cell_deg
        if phi_max >= 90.0:
            return None
        ratio = math.sin(self.eps_km / (2.0 * EARTH_RADIUS_KM)) / math.cos(math.radians(phi_max))
        if ratio >= 1.0:
            return None
        width = math.degrees(2.0 * math.asin(ratio)) * (1.0 + _SLACK)
        if width >= 180.0:
            return None
        return width

    def _columns(self, lng: float, half_width: float) -> Set[int]:
        shifted = (lng + 180.0) % 360.0
        lo, hi = shifted - half_width, shifted + half_width

        spans = [(lo, hi)]
        if lo < 0.0:
            spans = [(lo + 360.0, 360.0), (0.0, hi)]
        elif hi >= 360.0:
            spans = [(lo, 360.0), (0.0, hi - 360.0)]

        cols: Set[int] = set()
        for start, stop in spans:
            cols.update(range(self._col_of(start), self._col_of(stop) + 1))
        return cols

    def neighbors(self, i: int) -> List[int]:
        lng, lat = self._lngs[i], self._lats[i]
        if self._is_irregular[i]:
            return self._confirm(i, self._all)

        row, _ = self._cell_of(lng, lat)
        half_width = self._lng_half_width(lat)
        cols = None if half_width is None else self._columns(lng, half_width)

        buckets: List[List[int]] = []
        for r in (row - 1, row, row + 1):
            cells = self._rows.get(r)
            if not cells:
                continue
            if cols is None:
                buckets.extend(cells.values())
            else:
                buckets.extend(cells[c] for c in cols if c in cells)

        candidates = np.fromiter(
            (idx for bucket in buckets for idx in bucket), dtype=int
        )
        if len(self._irregular):
            candidates = np.concatenate([candidates, self._irregular])
        return self._confirm(i, np.sort(candidates))


class BallTreeIndex(NeighborIndex):
    """scikit-learn ``BallTree`` over (lat, lng) radians with the haversine metric."""

    kind = "balltree"

    def __init__(self, points: Sequence[Point], eps_km: float, leaf_size: int = 40):
        super().__init__(points, eps_km)
        irregular = self._irregular_mask()
        self._is_irregular = irregular
        self._irregular = np.flatnonzero(irregular)
        self._regular = np.flatnonzero(~irregular)
        self._all = np.arange(len(points))
        self._radius = self.eps_km / EARTH_RADIUS_KM * (1.0 + _SLACK) + 1e-12

        self._tree: Optional[BallTree] = None
        if len(self._regular):
            coords = np.radians(np.column_stack([self._lats[self._regular], self._lngs[self._regular]]))
            self._tree = BallTree(coords, leaf_size=leaf_size, metric="haversine")

    def neighbors(self, i: int) -> List[int]:
        if self._tree is None or self._is_irregular[i]:
            return self._confirm(i, self._all)

        query = np.radians([[self._lats[i], self._lngs[i]]])
        found = self._tree.query_radius(query, r=self._radius)[0]
        candidates = self._regular[found]
        if len(self._irregular):
            candidates = np.concatenate([candidates, self._irregular])
        return self._confirm(i, np.sort(candidates))


NEIGHBOR_INDEXES = {
    BruteForceIndex.kind: BruteForceIndex,
    GridIndex.kind: GridIndex,
    BallTreeIndex.kind: BallTreeIndex,
}


def build_neighbor_index(points: Sequence[Point], eps_km: float, kind: str = "grid") -> NeighborIndex:
    """
    Build the neighbour backend named ``kind`` over ``points``.

    Raises:
        ValueError: If ``kind`` is not a known backend
    """
    try:
        index_cls = NEIGHBOR_INDEXES[kind]
    except KeyError:
        raise ValueError(
            f"Unknown neighbor index '{kind}'. Available: {', '.join(sorted(NEIGHBOR_INDEXES))}"
        ) from None
    return index_cls(points, eps_km)


def region_query(points: Sequence[Point], i: int, eps_km: float) -> List[int]:
    """One-off neighbourhood of ``points[i]`` using a full scan."""
    return BruteForceIndex(points, eps_km).neighbors(i)


__all__ = [
    "NeighborIndex",
    "BruteForceIndex",
    "GridIndex",
    "BallTreeIndex",
    "NEIGHBOR_INDEXES",
    "build_neighbor_index",
    "region_query",
]
