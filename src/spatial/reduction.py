"""
Post-clustering reduction: keep outliers and the first point of each run.

A *run* is a maximal stretch of consecutive points (in input order) sharing a
label. The filter keeps index 0, every noise point and every index whose label
differs from its predecessor's. A cluster whose members are interleaved with
other labels in the input therefore keeps one point per run, not one point
overall.
"""

from __future__ import annotations

from typing import Iterable, List, Sequence, Set, Tuple

from .dbscan import NOISE, Label
from .distance import Point


def reduce_labels(labels: Sequence[Label]) -> List[int]:
    """
    Return the indices to retain, ascending.

    Args:
        labels: One label per point, in input order

    Returns:
        Index 0 (when present), every noise index and every run start
    """
    retained: List[int] = []
    previous = None
    for idx, label in enumerate(labels):
        if idx == 0 or label == NOISE or label != previous:
            retained.append(idx)
        previous = label
    return retained


def dedupe_by_coordinates(points: Sequence[Point], indices: Iterable[int]) -> List[int]:
    """
    Drop indices whose exact coordinates were already retained earlier.

    Order of ``indices`` is preserved; the first occurrence of each
    coordinate wins.
    """
    seen: Set[Tuple[float, float]] = set()
    kept: List[int] = []
    for idx in indices:
        key = (points[idx].lng, points[idx].lat)
        if key in seen:
            continue
        seen.add(key)
        kept.append(idx)
    return kept


__all__ = ["reduce_labels", "dedupe_by_coordinates"]
