"""
src/spatial: Geographic distance, DBSCAN clustering and cluster reduction.

This module clusters points by density on the sphere and reduces every run
of a cluster to its first point while keeping all outliers.
"""

from .distance import EARTH_RADIUS_KM, Point, haversine_km, haversine_km_to_many
from .neighbors import (
    BallTreeIndex,
    BruteForceIndex,
    GridIndex,
    NeighborIndex,
    build_neighbor_index,
    region_query,
)
from .dbscan import (
    NOISE,
    Cluster,
    ClusterId,
    DBSCANResult,
    Label,
    Noise,
    dbscan,
    label_to_int,
    labels_from_ints,
)
from .reduction import dedupe_by_coordinates, reduce_labels
from .clustering import (
    ClusteringConfig,
    ClusteringDiagnostics,
    ClusterInfo,
    FilterResult,
    cluster_and_reduce,
    cluster_dataframe,
)

__all__ = [
    "EARTH_RADIUS_KM",
    "Point",
    "haversine_km",
    "haversine_km_to_many",
    "NeighborIndex",
    "BruteForceIndex",
    "GridIndex",
    "BallTreeIndex",
    "build_neighbor_index",
    "region_query",
    "NOISE",
    "Noise",
    "ClusterId",
    "Label",
    "Cluster",
    "DBSCANResult",
    "dbscan",
    "label_to_int",
    "labels_from_ints",
    "reduce_labels",
    "dedupe_by_coordinates",
    "ClusteringConfig",
    "ClusteringDiagnostics",
    "ClusterInfo",
    "FilterResult",
    "cluster_and_reduce",
    "cluster_dataframe",
]
