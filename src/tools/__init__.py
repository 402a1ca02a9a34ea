"""Configuration profiles and CSV input/output."""

from .config_loader import ConfigLoader, get_config, load_clustering_config
from .csv_io import (
    CSVReadError,
    PointTable,
    format_filtered_lines,
    read_points_csv,
    write_filtered_csv,
)

__all__ = [
    "ConfigLoader",
    "get_config",
    "load_clustering_config",
    "CSVReadError",
    "PointTable",
    "format_filtered_lines",
    "read_points_csv",
    "write_filtered_csv",
]
