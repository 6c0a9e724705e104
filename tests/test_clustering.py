import numpy as np
import pandas as pd
import pytest

from battery_eda.config import CLUSTER_COLUMNS, NOISE_LABEL
from battery_eda.clustering import (
    assign_clusters,
    clustering_metrics,
    k_distance_curve,
    project_clusters_2d,
    scale_cluster_features,
    suggest_eps,
    summarize_clusters,
)


def test_scaled_columns_have_zero_mean_unit_variance(battery_df):
    X_scaled = scale_cluster_features(battery_df)
    assert list(X_scaled.columns) == CLUSTER_COLUMNS
    assert np.allclose(X_scaled.mean(), 0.0)
    assert np.allclose(X_scaled.std(ddof=0), 1.0)


def test_scaling_skips_incomplete_rows(battery_df):
    df = battery_df.copy()
    df.loc[5, "Volumetric Energy"] = np.nan
    X_scaled = scale_cluster_features(df)
    assert 5 not in X_scaled.index
    assert len(X_scaled) == len(df) - 1


def test_separated_groups_form_two_clusters_and_noise(blob_df):
    labels = assign_clusters(blob_df)
    assert labels.index.equals(blob_df.index)
    assert set(labels) == {NOISE_LABEL, 1, 2}

    far = blob_df["Group"] == "far"
    assert (labels[far] == NOISE_LABEL).all()
    group_a = labels[blob_df["Group"] == "A"].unique()
    group_b = labels[blob_df["Group"] == "B"].unique()
    assert len(group_a) == 1 and len(group_b) == 1
    assert group_a[0] != group_b[0]


def test_clustering_is_deterministic(battery_df):
    first = assign_clusters(battery_df)
    second = assign_clusters(battery_df)
    pd.testing.assert_series_equal(first, second)
    assert (first >= NOISE_LABEL).all()


def test_huge_radius_puts_everything_in_one_cluster(battery_df):
    labels = assign_clusters(battery_df, eps=100.0, min_samples=2)
    assert set(labels) == {1}


def test_summarize_clusters_excludes_noise(blob_df):
    labels = assign_clusters(blob_df)
    summary = summarize_clusters(blob_df, labels)

    assert summary["Cluster"].tolist() == [1, 2]
    assert summary["Count"].tolist() == [30, 30]
    assert summary["Count"].sum() == int((labels != NOISE_LABEL).sum())
    assert summary.loc[0, "Working Ions"] == "Li, Na"
    assert summary.loc[1, "Working Ions"] == "Mg, Zn"
    for col in CLUSTER_COLUMNS:
        assert summary.loc[0, col] == pytest.approx(100.0, abs=1.0)
        assert summary.loc[1, col] == pytest.approx(300.0, abs=1.0)


def test_summarize_clusters_all_noise_is_empty(battery_df):
    labels = pd.Series(NOISE_LABEL, index=battery_df.index, name="Cluster")
    summary = summarize_clusters(battery_df, labels)
    assert summary.empty
    assert list(summary.columns) == ["Cluster", "Count", "Working Ions"] + CLUSTER_COLUMNS


def test_project_clusters_2d(blob_df):
    labels = assign_clusters(blob_df)
    projection = project_clusters_2d(blob_df, labels)
    assert len(projection) == len(blob_df)
    assert {"PC1", "PC2", "Cluster", "Working Ion", "Battery ID"} <= set(projection.columns)
    assert projection["Cluster"].equals(labels)


def test_clustering_metrics(blob_df):
    labels = assign_clusters(blob_df)
    metrics = clustering_metrics(scale_cluster_features(blob_df), labels)
    assert metrics["n_clusters"] == 2
    assert metrics["n_noise"] == 1
    assert metrics["noise_fraction"] == pytest.approx(1 / len(blob_df))
    assert metrics["silhouette"] > 0.9


def test_clustering_metrics_without_enough_clusters(battery_df):
    labels = assign_clusters(battery_df, eps=100.0, min_samples=2)
    metrics = clustering_metrics(scale_cluster_features(battery_df), labels)
    assert metrics["n_clusters"] == 1
    assert metrics["silhouette"] is None


def test_k_distance_curve_is_sorted(battery_df):
    distances = k_distance_curve(scale_cluster_features(battery_df).to_numpy(), min_samples=5)
    assert len(distances) == len(battery_df)
    assert np.all(np.diff(distances) >= 0)


def test_suggest_eps_finds_knee():
    distances = np.concatenate([np.linspace(0.1, 0.3, 90), np.linspace(0.5, 5.0, 10)])
    eps = suggest_eps(distances)
    assert eps is not None
    assert 0.1 <= eps <= 1.0


def test_tiny_table_gives_empty_curve_and_projection(battery_df):
    tiny = battery_df.head(1)
    labels = assign_clusters(tiny)
    assert labels.tolist() == [NOISE_LABEL]

    X_scaled = scale_cluster_features(tiny)
    distances = k_distance_curve(X_scaled.to_numpy(), min_samples=5)
    assert len(distances) == 0
    assert suggest_eps(distances) is None

    projection = project_clusters_2d(tiny, labels)
    assert projection.empty
    assert {"PC1", "PC2", "Cluster"} <= set(projection.columns)


def test_no_complete_rows_scales_to_empty_frame(battery_df):
    df = battery_df.head(3).copy()
    df[CLUSTER_COLUMNS[0]] = np.nan
    X_scaled = scale_cluster_features(df)
    assert X_scaled.empty
    assert list(X_scaled.columns) == CLUSTER_COLUMNS
    assert assign_clusters(df).empty
