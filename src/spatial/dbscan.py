"""
Density-based clustering (DBSCAN) of geographic points.

Labels are assigned in a single pass over the points in input order:

1. An unvisited point whose eps-neighbourhood (itself included) holds fewer
   than ``min_points`` points is tentatively labelled noise.
2. Otherwise it seeds a new cluster, and the cluster grows breadth-first:
   every queued point joins the cluster if it has no cluster yet (a tentative
   noise label is overridden), and core points append their own neighbourhood
   to the queue.
3. The first cluster to claim a point keeps it.

Both the outer scan and every neighbourhood are in ascending index order, so
the result is fully determined by the input order, ``eps_km`` and
``min_points``.
"""

from __future__ import annotations

import logging
import math
import numbers
from collections import deque
from dataclasses import dataclass, field
from typing import Iterable, List, Sequence, Tuple, Union

from .distance import Point
from .neighbors import build_neighbor_index


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Noise:
    """Label of a point that belongs to no cluster."""

    def __repr__(self) -> str:
        return "NOISE"


NOISE = Noise()


@dataclass(frozen=True)
class ClusterId:
    """Label of a point that belongs to cluster ``id``."""

    id: int

    def __post_init__(self):
        if self.id < 0:
            raise ValueError(f"Cluster id must be non-negative, got {self.id}")


Label = Union[Noise, ClusterId]

NOISE_INT = -1
"""Integer stand-in for :data:`NOISE` in dataframe columns and CSV dumps."""


def label_to_int(label: Label) -> int:
    """Convert a label to the ``-1`` / cluster-id integer convention."""
    if isinstance(label, ClusterId):
        return label.id
    return NOISE_INT


def labels_from_ints(values: Iterable[int]) -> List[Label]:
    """Convert ``-1`` / cluster-id integers to labels."""
    return [NOISE if int(v) == NOISE_INT else ClusterId(int(v)) for v in values]


@dataclass
class Cluster:
    """A cluster and its members in the order they joined it."""

    id: int
    members: List[int] = field(default_factory=list)

    @property
    def seed(self) -> int:
        """Index of the core point that created the cluster."""
        return self.members[0]

    def __len__(self) -> int:
        return len(self.members)

    def centroid_and_bounds(self, points: Sequence[Point]) -> Tuple[Point, Point, Point]:
        """
        Return ``(centroid, min_corner, max_corner)`` of the cluster members.

        The centroid is the arithmetic mean of the member coordinates; the
        corners are the per-axis minimum and maximum.

        Raises:
            ValueError: If the cluster has no members
        """
        if not self.members:
            raise ValueError(f"Cluster {self.id} is empty")

        lngs = [points[i].lng for i in self.members]
        lats = [points[i].lat for i in self.members]
        centroid = Point(lng=sum(lngs) / len(lngs), lat=sum(lats) / len(lats))
        return centroid, Point(min(lngs), min(lats)), Point(max(lngs), max(lats))


@dataclass
class DBSCANResult:
    """Labels (in input order) and clusters (in creation order)."""

    labels: List[Label]
    clusters: List[Cluster]

    @property
    def num_clusters(self) -> int:
        return len(self.clusters)

    @property
    def noise(self) -> List[int]:
        """Indices whose final label is noise, ascending."""
        return [i for i, label in enumerate(self.labels) if label == NOISE]

    def int_labels(self) -> List[int]:
        return [label_to_int(label) for label in self.labels]


def validate_parameters(eps_km: float, min_points: int) -> None:
    """
    Reject configurations DBSCAN cannot run with.

    Raises:
        ValueError: If ``eps_km`` is not a positive finite number or
            ``min_points`` is below 1
    """
    if (
        isinstance(eps_km, bool)
        or not isinstance(eps_km, numbers.Real)
        or not math.isfinite(eps_km)
        or eps_km <= 0
    ):
        raise ValueError(f"eps_km must be a positive finite number of kilometres, got {eps_km!r}")
    if isinstance(min_points, bool) or not isinstance(min_points, numbers.Integral) or min_points < 1:
        raise ValueError(f"min_points must be an integer >= 1, got {min_points!r}")


def dbscan(
    points: Sequence[Point],
    eps_km: float,
    min_points: int,
    *,
    index: str = "grid",
) -> DBSCANResult:
    """
    Cluster ``points`` with DBSCAN on the sphere.

    Args:
        points: Points in input order; never reordered
        eps_km: Neighbourhood radius in kilometres (> 0)
        min_points: Neighbourhood size, the point itself included, that makes
            a point a core point (>= 1)
        index: Neighbour backend (``"brute"``, ``"grid"`` or ``"balltree"``)

    Returns:
        DBSCANResult with one label per point and the clusters in creation order

    Raises:
        ValueError: On invalid ``eps_km``, ``min_points`` or ``index``
    """
    validate_parameters(eps_km, min_points)

    n = len(points)
    neighbor_index = build_neighbor_index(points, eps_km, index)

    visited = [False] * n
    labels: List[Label] = [NOISE] * n
    assigned = [False] * n
    clusters: List[Cluster] = []

    for p in range(n):
        if visited[p]:
            continue
        visited[p] = True

        neighborhood = neighbor_index.neighbors(p)
        if len(neighborhood) < min_points:
            # Tentative: a later cluster may still claim p as a border point.
            continue

        cluster = Cluster(id=len(clusters))
        cluster_label = ClusterId(cluster.id)
        cluster.members.append(p)
        labels[p] = cluster_label
        assigned[p] = True

        queued = set(neighborhood)
        pending = deque(q for q in neighborhood if q != p)
        while pending:
            q = pending.popleft()
            if not visited[q]:
                visited[q] = True
                q_neighborhood = neighbor_index.neighbors(q)
                if len(q_neighborhood) >= min_points:
                    for r in q_neighborhood:
                        if r not in queued:
                            queued.add(r)
                            pending.append(r)

            if not assigned[q]:
                labels[q] = cluster_label
                assigned[q] = True
                cluster.members.append(q)

        clusters.append(cluster)

    result = DBSCANResult(labels=labels, clusters=clusters)
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(
            "DBSCAN (%s index): %d points, eps=%.4f km, min_points=%d -> %d clusters, %d noise",
            neighbor_index.kind, n, eps_km, min_points, result.num_clusters, len(result.noise),
        )
    return result


__all__ = [
    "NOISE",
    "NOISE_INT",
    "Noise",
    "ClusterId",
    "Label",
    "Cluster",
    "DBSCANResult",
    "dbscan",
    "label_to_int",
    "labels_from_ints",
    "validate_parameters",
]
