"""
Unit Tests for Spatial Module (src/spatial)

Tests the cluster-and-reduce pipeline, cluster summaries, diagnostics and the
DataFrame entry point.
"""

import pytest
import pandas as pd
import h3

from src.spatial import (
    ClusteringConfig,
    ClusteringDiagnostics,
    ClusterInfo,
    cluster_and_reduce,
    cluster_dataframe,
)
from src.spatial.clustering import (
    _compute_cluster_quality,
    points_from_dataframe,
    summarize_cluster,
)
from src.spatial.dbscan import Cluster, dbscan
from src.spatial.distance import Point


# ==============================================================================
# Clustering Configuration Tests
# ==============================================================================

class TestClusteringConfig:
    """Test clustering configuration."""

    def test_default_config(self):
        config = ClusteringConfig()

        assert config.eps_km == 0.1
        assert config.min_points == 3
        assert config.index == "grid"
        assert config.h3_resolution == 9
        assert config.compute_quality is False
        assert config.dedupe_coordinates is False
        config.validate()

    def test_custom_config(self):
        config = ClusteringConfig(eps_km=0.5, min_points=5, index="balltree", dedupe_coordinates=True)

        assert config.eps_km == 0.5
        assert config.min_points == 5
        assert config.index == "balltree"
        assert config.dedupe_coordinates is True
        config.validate()

    @pytest.mark.parametrize(
        "kwargs, message",
        [
            ({"eps_km": 0.0}, "eps_km"),
            ({"eps_km": -1.0}, "eps_km"),
            ({"min_points": 0}, "min_points"),
            ({"index": "kdtree"}, "Unknown neighbor index"),
            ({"h3_resolution": 16}, "h3_resolution"),
            ({"h3_resolution": None}, "h3_resolution"),
            ({"h3_resolution": 9.5}, "h3_resolution"),
            ({"h3_resolution": True}, "h3_resolution"),
        ],
    )
    def test_invalid_config(self, kwargs, message):
        with pytest.raises(ValueError, match=message):
            ClusteringConfig(**kwargs).validate()

    def test_from_mapping(self):
        config = ClusteringConfig.from_mapping({"eps_km": 0.25, "min_points": 2})
        assert config.eps_km == 0.25
        assert config.min_points == 2
        assert config.index == "grid"

    def test_from_mapping_rejects_unknown_keys(self):
        with pytest.raises(ValueError, match="Unknown clustering option"):
            ClusteringConfig.from_mapping({"eps": 0.25})

    def test_from_mapping_reports_non_string_keys(self):
        with pytest.raises(ValueError, match=r"Unknown clustering option\(s\): 1"):
            ClusteringConfig.from_mapping({1: 0.25})


# ==============================================================================
# Pipeline Tests
# ==============================================================================

class TestClusterAndReduce:
    """Test the full pipeline."""

    def test_nyc_tracks(self, nyc_points):
        filtered = cluster_and_reduce(nyc_points)

        assert filtered.retained == [0, 3, 6, 7]
        assert filtered.result.int_labels() == [0, 0, 0, 1, 1, 1, -1, -1]
        assert filtered.labels == filtered.result.labels
        assert len(filtered.clusters) == 2
        assert all(isinstance(info, ClusterInfo) for info in filtered.clusters)

    def test_defaults_used_when_config_missing(self, nyc_points):
        assert cluster_and_reduce(nyc_points, None).diagnostics.config_used == ClusteringConfig()

    def test_invalid_config_raises(self, nyc_points):
        with pytest.raises(ValueError):
            cluster_and_reduce(nyc_points, ClusteringConfig(min_points=0))

    def test_empty_input(self):
        filtered = cluster_and_reduce([])

        assert filtered.retained == []
        assert filtered.labels == []
        assert filtered.clusters == []
        assert filtered.diagnostics.num_points == 0
        assert filtered.diagnostics.reduction_ratio == 0.0

    @pytest.mark.parametrize("index", ["brute", "grid", "balltree"])
    def test_backends_give_same_output(self, blob_points, index):
        reference = cluster_and_reduce(blob_points, ClusteringConfig(index="brute"))
        filtered = cluster_and_reduce(blob_points, ClusteringConfig(index=index))

        assert filtered.retained == reference.retained

    def test_dedupe_coordinates(self):
        points = [Point(5.0, 5.0), Point(6.0, 6.0), Point(5.0, 5.0)]

        plain = cluster_and_reduce(points, ClusteringConfig())
        deduped = cluster_and_reduce(points, ClusteringConfig(dedupe_coordinates=True))

        assert plain.retained == [0, 1, 2]
        assert deduped.retained == [0, 1]
        assert deduped.diagnostics.num_retained == 2


class TestClusterSummaries:
    """Test per-cluster summaries."""

    def test_summary_fields(self, nyc_points):
        first = cluster_and_reduce(nyc_points).clusters[0]

        assert first.cluster_id == 0
        assert first.seed_index == 0
        assert first.member_indices == [0, 1, 2]
        assert first.size == 3
        assert first.centroid_lat == pytest.approx(40.7130)
        assert first.centroid_lng == pytest.approx(-74.0062)
        assert first.min_lat == pytest.approx(40.7128)
        assert first.max_lat == pytest.approx(40.7132)
        assert first.min_lng == pytest.approx(-74.0064)
        assert first.max_lng == pytest.approx(-74.0060)

    def test_hex_ids_are_valid_cells(self, nyc_points):
        for info in cluster_and_reduce(nyc_points).clusters:
            assert info.hex_ids
            assert info.hex_ids == sorted(info.hex_ids)
            for hex_id in info.hex_ids:
                assert h3.is_valid_cell(hex_id)
                assert h3.get_resolution(hex_id) == 9

    def test_hex_ids_match_members(self, nyc_points):
        cluster = Cluster(id=0, members=[0, 1, 2])
        info = summarize_cluster(cluster, nyc_points, h3_resolution=7)

        expected = {h3.latlng_to_cell(nyc_points[i].lat, nyc_points[i].lng, 7) for i in cluster.members}
        assert set(info.hex_ids) == expected

    def test_invalid_coordinates_skipped_for_hexes(self):
        points = [Point(0.0, 95.0), Point(0.0, 95.0)]
        info = summarize_cluster(Cluster(id=0, members=[0, 1]), points, h3_resolution=9)

        assert info.hex_ids == []
        assert info.size == 2


# ==============================================================================
# Diagnostics Tests
# ==============================================================================

class TestDiagnostics:
    """Test diagnostics and suggestions."""

    def test_counts(self, nyc_points):
        diagnostics = cluster_and_reduce(nyc_points).diagnostics

        assert isinstance(diagnostics, ClusteringDiagnostics)
        assert diagnostics.num_points == 8
        assert diagnostics.num_clusters == 2
        assert diagnostics.num_noise == 2
        assert diagnostics.num_retained == 4
        assert diagnostics.cluster_sizes == [3, 3]
        assert diagnostics.num_fragmented_clusters == 0
        assert diagnostics.reduction_ratio == pytest.approx(0.5)
        assert diagnostics.silhouette_score is None

    def test_no_clusters_suggestion(self):
        points = [Point(0.0, 0.0), Point(0.0, 10.0), Point(0.0, 20.0)]
        diagnostics = cluster_and_reduce(points).diagnostics

        assert diagnostics.num_clusters == 0
        assert any("No clusters found" in s for s in diagnostics.suggestions)

    def test_single_cluster_suggestion(self):
        points = [Point(0.0, 0.0), Point(0.0, 0.0001), Point(0.0, 0.0002)]
        diagnostics = cluster_and_reduce(points).diagnostics

        assert any("single cluster" in s for s in diagnostics.suggestions)

    def test_high_noise_suggestion(self):
        points = [Point(0.0, 0.0)] * 3 + [Point(float(i), 10.0) for i in range(5)]
        diagnostics = cluster_and_reduce(points).diagnostics

        assert diagnostics.num_noise == 5
        assert any("High noise ratio" in s for s in diagnostics.suggestions)

    def test_fragmented_clusters_reported(self):
        a = [Point(0.0, 0.0), Point(0.0, 0.0001), Point(0.0, 0.0002)]
        b = [Point(1.0, 1.0), Point(1.0, 1.0001), Point(1.0, 1.0002)]
        points = [a[0], b[0], a[1], b[1], a[2], b[2]]

        diagnostics = cluster_and_reduce(points).diagnostics

        assert diagnostics.num_fragmented_clusters == 2
        assert any("interleaved" in s for s in diagnostics.suggestions)

    def test_quality_score_computed_on_request(self, blob_points):
        diagnostics = cluster_and_reduce(blob_points, ClusteringConfig(compute_quality=True)).diagnostics

        assert diagnostics.num_clusters >= 2
        assert diagnostics.silhouette_score is not None
        assert -1.0 <= diagnostics.silhouette_score <= 1.0
        # Blobs are kilometres apart and ~20 m wide.
        assert diagnostics.silhouette_score > 0.5

    def test_quality_needs_two_clusters(self, nyc_points):
        result = dbscan(nyc_points[:3], 0.1, 3)
        assert _compute_cluster_quality(nyc_points[:3], result.labels, result.num_clusters) is None

    def test_quality_unavailable_when_every_point_is_a_cluster(self):
        points = [Point(0.0, 0.0), Point(0.0, 10.0), Point(0.0, 20.0)]
        result = dbscan(points, 0.1, 1)
        assert _compute_cluster_quality(points, result.labels, result.num_clusters) is None


# ==============================================================================
# DataFrame Tests
# ==============================================================================

class TestClusterDataFrame:
    """Test the DataFrame entry point."""

    @pytest.fixture
    def nyc_df(self, nyc_points):
        return pd.DataFrame({
            "id": [f"p{i}" for i in range(len(nyc_points))],
            "lat": [p.lat for p in nyc_points],
            "lng": [p.lng for p in nyc_points],
        })

    def test_adds_cluster_and_retained_columns(self, nyc_df):
        out, clusters, diagnostics = cluster_dataframe(nyc_df)

        assert out["cluster"].tolist() == [0, 0, 0, 1, 1, 1, -1, -1]
        assert out["retained"].tolist() == [True, False, False, True, False, False, True, True]
        assert out["id"].tolist() == nyc_df["id"].tolist()
        assert len(clusters) == 2
        assert diagnostics.num_retained == 4

    def test_input_not_modified(self, nyc_df):
        cluster_dataframe(nyc_df)
        assert "cluster" not in nyc_df.columns
        assert "retained" not in nyc_df.columns

    def test_custom_column_names(self, nyc_df):
        renamed = nyc_df.rename(columns={"lat": "latitude", "lng": "longitude"})
        out, _, _ = cluster_dataframe(renamed, lat_col="latitude", lng_col="longitude")
        assert out["cluster"].tolist() == [0, 0, 0, 1, 1, 1, -1, -1]

    def test_missing_columns(self, nyc_df):
        with pytest.raises(ValueError, match="Missing coordinate column"):
            cluster_dataframe(nyc_df.drop(columns=["lng"]))

    def test_empty_dataframe(self):
        out, clusters, diagnostics = cluster_dataframe(pd.DataFrame({"lat": [], "lng": []}))

        assert len(out) == 0
        assert clusters == []
        assert diagnostics.num_points == 0

    def test_points_from_dataframe(self, nyc_df, nyc_points):
        assert points_from_dataframe(nyc_df) == nyc_points

    def test_string_coordinates_are_coerced(self):
        df = pd.DataFrame({"lat": ["1.5"], "lng": ["2.5"]})
        assert points_from_dataframe(df) == [Point(lng=2.5, lat=1.5)]
