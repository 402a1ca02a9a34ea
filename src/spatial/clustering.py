"""
Cluster-and-reduce pipeline with per-cluster summaries and diagnostics.

This module provides:
1. A validated configuration object (loadable from YAML profiles)
2. DBSCAN clustering followed by run-compression of the labels
3. Per-cluster summaries (centroid, bounding box, H3 cells)
4. Diagnostics with actionable suggestions for tuning eps / min_points
5. A DataFrame entry point that adds ``cluster`` and ``retained`` columns
"""

from __future__ import annotations

import logging
import numbers
import warnings
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import h3
import numpy as np
import pandas as pd
from sklearn.metrics import silhouette_score

from .dbscan import NOISE, Cluster, DBSCANResult, Label, dbscan, label_to_int, validate_parameters
from .distance import Point
from .neighbors import NEIGHBOR_INDEXES
from .reduction import dedupe_by_coordinates, reduce_labels


logger = logging.getLogger(__name__)


@dataclass
class ClusteringConfig:
    """Configuration for clustering and reduction."""

    eps_km: float = 0.1
    """Neighbourhood radius in kilometres."""

    min_points: int = 3
    """Neighbourhood size (the point itself included) that makes a core point."""

    index: str = "grid"
    """Neighbour backend: brute, grid or balltree."""

    h3_resolution: int = 9
    """H3 resolution used to describe the footprint of each cluster."""

    compute_quality: bool = False
    """Whether to compute a silhouette score (quadratic in cluster members)."""

    dedupe_coordinates: bool = False
    """Drop retained points whose exact coordinates were already retained."""

    def validate(self) -> None:
        """
        Raises:
            ValueError: If any field is out of range
        """
        validate_parameters(self.eps_km, self.min_points)
        if self.index not in NEIGHBOR_INDEXES:
            raise ValueError(
                f"Unknown neighbor index '{self.index}'. Available: {', '.join(sorted(NEIGHBOR_INDEXES))}"
            )
        if (
            isinstance(self.h3_resolution, bool)
            or not isinstance(self.h3_resolution, numbers.Integral)
            or not 0 <= self.h3_resolution <= 15
        ):
            raise ValueError(f"h3_resolution must be an integer between 0 and 15, got {self.h3_resolution!r}")

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "ClusteringConfig":
        """
        Build a config from a profile mapping (e.g. the ``clustering`` section of a YAML profile).

        Raises:
            ValueError: On unknown keys
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(str(key) for key in set(values) - known)
        if unknown:
            raise ValueError(
                f"Unknown clustering option(s): {', '.join(unknown)}. Known options: {', '.join(sorted(known))}"
            )
        return cls(**dict(values))


@dataclass
class ClusterInfo:
    """Summary of a single cluster."""

    cluster_id: int

    seed_index: int
    """Index of the core point that created the cluster."""

    member_indices: List[int]
    """Members in discovery order."""

    centroid_lat: float

    centroid_lng: float

    min_lat: float
    min_lng: float
    max_lat: float
    max_lng: float

    hex_ids: List[str] = field(default_factory=list)
    """H3 cells touched by the members, sorted."""

    size: int = 0


@dataclass
class ClusteringDiagnostics:
    """Diagnostics for judging a clustering run."""

    num_points: int
    """Total number of points provided."""

    num_clusters: int
    """Number of clusters found."""

    num_noise: int
    """Number of points labelled noise."""

    num_retained: int = 0
    """Number of indices kept by the reduction filter."""

    cluster_sizes: List[int] = field(default_factory=list)
    """Size of each cluster, by cluster id."""

    num_fragmented_clusters: int = 0
    """Clusters whose members form more than one run in input order."""

    silhouette_score: Optional[float] = None
    """Silhouette score over clustered points (haversine), if computed."""

    suggestions: List[str] = field(default_factory=list)
    """Actionable suggestions for tuning the run."""

    config_used: Optional[ClusteringConfig] = None

    @property
    def reduction_ratio(self) -> float:
        """Fraction of input points dropped by the reduction filter."""
        if self.num_points == 0:
            return 0.0
        return 1.0 - self.num_retained / self.num_points


@dataclass
class FilterResult:
    """Everything produced by :func:`cluster_and_reduce`."""

    result: DBSCANResult
    retained: List[int]
    clusters: List[ClusterInfo]
    diagnostics: ClusteringDiagnostics

    @property
    def labels(self) -> List[Label]:
        return self.result.labels


def summarize_cluster(cluster: Cluster, points: Sequence[Point], h3_resolution: int) -> ClusterInfo:
    """Build a :class:`ClusterInfo` for ``cluster``."""
    centroid, low, high = cluster.centroid_and_bounds(points)

    hex_ids = set()
    for i in cluster.members:
        pt = points[i]
        if np.isfinite(pt.lat) and np.isfinite(pt.lng) and -90.0 <= pt.lat <= 90.0:
            hex_ids.add(h3.latlng_to_cell(pt.lat, pt.lng, h3_resolution))

    return ClusterInfo(
        cluster_id=cluster.id,
        seed_index=cluster.seed,
        member_indices=list(cluster.members),
        centroid_lat=centroid.lat,
        centroid_lng=centroid.lng,
        min_lat=low.lat,
        min_lng=low.lng,
        max_lat=high.lat,
        max_lng=high.lng,
        hex_ids=sorted(hex_ids),
        size=len(cluster),
    )


def _compute_cluster_quality(points: Sequence[Point], labels: Sequence[Label], num_clusters: int) -> Optional[float]:
    """
    Silhouette score of the clustered (non-noise) points with the haversine metric.

    Returns None if quality cannot be computed (e.g. < 2 clusters).
    """
    if num_clusters < 2:
        return None

    mask = [label != NOISE for label in labels]
    if sum(mask) < 3:
        return None

    X = np.radians([[pt.lat, pt.lng] for pt, keep in zip(points, mask) if keep])
    y = [label_to_int(label) for label, keep in zip(labels, mask) if keep]

    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            return float(silhouette_score(X, y, metric="haversine"))
    except ValueError as exc:
        logger.debug("Silhouette score unavailable: %s", exc)
        return None


def _count_fragmented(labels: Sequence[Label], retained: Sequence[int]) -> int:
    runs: Dict[Label, int] = {}
    for idx in retained:
        label = labels[idx]
        if label != NOISE:
            runs[label] = runs.get(label, 0) + 1
    return sum(1 for count in runs.values() if count > 1)


def _build_suggestions(diagnostics: ClusteringDiagnostics, config: ClusteringConfig) -> List[str]:
    suggestions = []
    n = diagnostics.num_points

    if n == 0:
        suggestions.append("No points provided.")
        return suggestions

    if diagnostics.num_clusters == 0:
        suggestions.append(
            f"No clusters found with eps_km={config.eps_km} and min_points={config.min_points}; "
            "every point is kept as an outlier. Consider increasing eps_km or reducing min_points."
        )
    elif diagnostics.num_noise > n * 0.5:
        suggestions.append(
            f"High noise ratio ({diagnostics.num_noise}/{n} = {diagnostics.num_noise / n:.1%}). "
            "Consider increasing eps_km or reducing min_points."
        )

    if diagnostics.num_clusters == 1 and diagnostics.num_noise == 0 and n > 1:
        suggestions.append("All points fell into a single cluster. Consider reducing eps_km.")

    if diagnostics.num_fragmented_clusters:
        suggestions.append(
            f"{diagnostics.num_fragmented_clusters} cluster(s) are interleaved with other points in the "
            "input order and keep one point per run. Ordering the input along the track reduces output size."
        )

    score = diagnostics.silhouette_score
    if score is not None:
        if score < 0.2:
            suggestions.append(
                f"Low silhouette score ({score:.3f}). Clusters may be poorly separated. "
                "Consider reducing eps_km."
            )
        elif score > 0.5:
            suggestions.append(f"Good cluster separation (silhouette={score:.3f}).")

    return suggestions


def cluster_and_reduce(points: Sequence[Point], config: Optional[ClusteringConfig] = None) -> FilterResult:
    """
    Cluster ``points`` and reduce every cluster run to its first point.

    Args:
        points: Points in input order
        config: Clustering configuration (uses defaults if None)

    Returns:
        FilterResult with labels, retained indices, cluster summaries and diagnostics

    Raises:
        ValueError: If ``config`` is invalid
    """
    if config is None:
        config = ClusteringConfig()
    config.validate()

    result = dbscan(points, config.eps_km, config.min_points, index=config.index)
    run_starts = reduce_labels(result.labels)
    retained = run_starts
    if config.dedupe_coordinates:
        retained = dedupe_by_coordinates(points, run_starts)

    infos = [summarize_cluster(c, points, config.h3_resolution) for c in result.clusters]

    silhouette = None
    if config.compute_quality:
        silhouette = _compute_cluster_quality(points, result.labels, result.num_clusters)

    diagnostics = ClusteringDiagnostics(
        num_points=len(points),
        num_clusters=result.num_clusters,
        num_noise=len(result.noise),
        num_retained=len(retained),
        cluster_sizes=[len(c) for c in result.clusters],
        num_fragmented_clusters=_count_fragmented(result.labels, run_starts),
        silhouette_score=silhouette,
        config_used=config,
    )
    diagnostics.suggestions = _build_suggestions(diagnostics, config)

    logger.debug(
        "Reduced %d points to %d (%d clusters, %d noise)",
        diagnostics.num_points, diagnostics.num_retained, diagnostics.num_clusters, diagnostics.num_noise,
    )
    return FilterResult(result=result, retained=retained, clusters=infos, diagnostics=diagnostics)


def points_from_dataframe(df: pd.DataFrame, lat_col: str = "lat", lng_col: str = "lng") -> List[Point]:
    """
    Extract points (in row order) from ``df``.

    Raises:
        ValueError: If a coordinate column is missing
    """
    missing = [col for col in (lat_col, lng_col) if col not in df.columns]
    if missing:
        raise ValueError(f"Missing coordinate column(s): {', '.join(missing)}")

    coords = df[[lat_col, lng_col]].to_numpy(dtype=float)
    return [Point(lng=float(lng), lat=float(lat)) for lat, lng in coords]


def cluster_dataframe(
    df: pd.DataFrame,
    config: Optional[ClusteringConfig] = None,
    lat_col: str = "lat",
    lng_col: str = "lng",
) -> Tuple[pd.DataFrame, List[ClusterInfo], ClusteringDiagnostics]:
    """
    Cluster the rows of ``df`` and flag the rows the reduction filter keeps.

    Args:
        df: DataFrame with latitude / longitude columns, rows in input order
        config: Clustering configuration (uses defaults if None)
        lat_col: Name of the latitude column
        lng_col: Name of the longitude column

    Returns:
        (df_with_clusters, cluster_infos, diagnostics)

    The returned copy of ``df`` has a ``cluster`` column (-1 for noise) and a
    boolean ``retained`` column.
    """
    points = points_from_dataframe(df, lat_col=lat_col, lng_col=lng_col)
    filtered = cluster_and_reduce(points, config)

    out = df.copy()
    out["cluster"] = np.array([label_to_int(label) for label in filtered.labels], dtype=int)
    retained = np.zeros(len(out), dtype=bool)
    retained[filtered.retained] = True
    out["retained"] = retained

    return out, filtered.clusters, filtered.diagnostics


__all__ = [
    "ClusteringConfig",
    "ClusterInfo",
    "ClusteringDiagnostics",
    "FilterResult",
    "cluster_and_reduce",
    "cluster_dataframe",
    "points_from_dataframe",
    "summarize_cluster",
]
