#!/usr/bin/env python3
"""
DBSCAN geo point filter.

Reads ``latitude,longitude`` points from a CSV file, clusters them with
DBSCAN and keeps only the outliers and the first point of every cluster run.

Usage:
    python dbscan_filter.py --input points.csv                     # print kept points
    python dbscan_filter.py --input points.csv --output kept.csv   # write kept rows
    python dbscan_filter.py --eps 0.05 --min-points 5 --debug
    python dbscan_filter.py --profile sparse-rural
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from typing import List, Optional

from dotenv import load_dotenv

from src.spatial import ClusteringConfig, cluster_and_reduce
from src.spatial.neighbors import NEIGHBOR_INDEXES
from src.tools.config_loader import ConfigLoader, load_clustering_config
from src.tools.csv_io import CSVReadError, format_filtered_lines, read_points_csv, write_filtered_csv


logger = logging.getLogger("dbscan_filter")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dbscan-filter",
        description="DBSCAN geo point clustering tool: keep outliers and the first point of each cluster run.",
    )
    parser.add_argument("--input", "-i", default="points.csv",
                        help="Input CSV file with latitude,longitude columns (default: points.csv)")
    parser.add_argument("--output", "-o", default=None,
                        help="Output CSV file with filtered rows (default: stdout)")
    parser.add_argument("--eps", "-e", type=float, default=None,
                        help="DBSCAN epsilon, the clustering radius in km (default: 0.1)")
    parser.add_argument("--min-points", "-m", type=int, default=None,
                        help="DBSCAN minPoints, neighbourhood size including the point (default: 3)")
    parser.add_argument("--index", choices=sorted(NEIGHBOR_INDEXES), default=None,
                        help="Neighbour search backend (default: grid)")
    parser.add_argument("--profile", "-p", default=None,
                        help="YAML profile from configs/ (default: $DBSCAN_PROFILE if set)")
    parser.add_argument("--dedupe", action="store_true",
                        help="Drop kept points whose coordinates were already kept")
    parser.add_argument("--debug", "-d", action="store_true", help="Enable debug output on stderr")
    return parser


def resolve_config(args: argparse.Namespace) -> ClusteringConfig:
    """Profile values (if any profile applies) overridden by explicit flags."""
    if args.profile or ConfigLoader.get_profile_from_env():
        config = load_clustering_config(args.profile)
    else:
        config = ClusteringConfig()

    overrides = {}
    if args.eps is not None:
        overrides["eps_km"] = args.eps
    if args.min_points is not None:
        overrides["min_points"] = args.min_points
    if args.index is not None:
        overrides["index"] = args.index
    if args.dedupe:
        overrides["dedupe_coordinates"] = True
    return replace(config, **overrides)


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        config = resolve_config(args)
        config.validate()
    except (ValueError, FileNotFoundError) as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 1

    try:
        table = read_points_csv(args.input)
    except CSVReadError as exc:
        print(f"Error reading CSV: {exc}", file=sys.stderr)
        return 1

    if not table.points:
        print("No points found in CSV file", file=sys.stderr)
        return 1

    logger.debug("Read %d points from %s", len(table.points), args.input)
    logger.debug("Running DBSCAN with eps=%.4f km, minPoints=%d", config.eps_km, config.min_points)

    filtered = cluster_and_reduce(table.points, config)
    diagnostics = filtered.diagnostics

    logger.debug("Found %d clusters", diagnostics.num_clusters)
    logger.debug("Found %d noise points", diagnostics.num_noise)
    logger.debug("Filtered to %d points", diagnostics.num_retained)
    for suggestion in diagnostics.suggestions:
        logger.debug("Suggestion: %s", suggestion)

    if args.output is None:
        for line in format_filtered_lines(table, filtered.retained):
            print(line)
        return 0

    try:
        write_filtered_csv(args.output, table, filtered.retained)
    except OSError as exc:
        print(f"Error writing CSV: {exc}", file=sys.stderr)
        return 1
    logger.debug("Filtered points written to %s", args.output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
