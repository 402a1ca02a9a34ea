"""Test package for geo-dbscan-filter.

This package contains:
- Unit tests (test_distance.py, test_neighbors.py, test_dbscan.py, test_reduction.py)
- Pipeline tests (test_spatial.py)
- Configuration and CSV adapter tests (test_config_loader.py, test_csv_io.py)
- Command-line tests (test_cli.py)
- Test configuration (conftest.py)
"""
