import numpy as np
import pandas as pd
from kneed import KneeLocator
from sklearn.cluster import DBSCAN
from sklearn.decomposition import PCA
from sklearn.metrics import silhouette_score
from sklearn.neighbors import NearestNeighbors
from sklearn.preprocessing import StandardScaler

from .config import (
    CLUSTER_COLUMNS,
    DBSCAN_EPS,
    DBSCAN_MIN_SAMPLES,
    ID_COLUMN,
    ION_COLUMN,
    NOISE_LABEL,
)
from .data import records_with_complete_values


def scale_cluster_features(df: pd.DataFrame, columns=None) -> pd.DataFrame:
    """
    Standardize the clustering columns to zero mean and unit variance.

    Rows with a missing value in any clustering column are left out. The result
    keeps the index of the retained rows.
    """
    if columns is None:
        columns = CLUSTER_COLUMNS
    complete = records_with_complete_values(df, columns)
    if complete.empty:
        return pd.DataFrame(columns=list(columns), index=complete.index, dtype=np.float64)
    scaler = StandardScaler()
    scaled = scaler.fit_transform(complete[list(columns)].astype(np.float64))
    return pd.DataFrame(scaled, columns=list(columns), index=complete.index)


def assign_clusters(df: pd.DataFrame, eps: float = DBSCAN_EPS, min_samples: int = DBSCAN_MIN_SAMPLES,
                    columns=None) -> pd.Series:
    """
    DBSCAN cluster id for every record with complete clustering columns.

    Labels are shifted so that 0 means noise and clusters are numbered from 1.

    Returns:
        pd.Series: Integer labels named 'Cluster', indexed like `df`.
    """
    X_scaled = scale_cluster_features(df, columns=columns)
    if X_scaled.empty:
        return pd.Series([], index=X_scaled.index, name="Cluster", dtype=int)
    labels = DBSCAN(eps=eps, min_samples=min_samples).fit_predict(X_scaled.to_numpy())
    labels = pd.Series(labels + 1, index=X_scaled.index, name="Cluster")
    n_clusters = labels[labels != NOISE_LABEL].nunique()
    n_noise = int((labels == NOISE_LABEL).sum())
    print(f"DBSCAN (eps={eps}, min_samples={min_samples}) found {n_clusters} clusters and {n_noise} noise points.")
    return labels


def summarize_clusters(df: pd.DataFrame, labels: pd.Series, columns=None) -> pd.DataFrame:
    """
    Per-cluster record count, ranked working ions and means of the clustering columns.

    Noise points are excluded.

    Args:
        df (pd.DataFrame): Battery table.
        labels (pd.Series): Output of `assign_clusters`.
        columns (list, optional): Columns to average. Defaults to CLUSTER_COLUMNS.

    Returns:
        pd.DataFrame: One row per cluster, ordered by cluster id.
    """
    if columns is None:
        columns = CLUSTER_COLUMNS
    summary_cols = ["Cluster", "Count", "Working Ions"] + list(columns)

    clustered = df.loc[labels.index].assign(Cluster=labels)
    clustered = clustered[clustered["Cluster"] != NOISE_LABEL]

    rows = []
    for cluster_id, group in clustered.groupby("Cluster"):
        ions = group[ION_COLUMN].value_counts()
        row = {
            "Cluster": int(cluster_id),
            "Count": int(len(group)),
            "Working Ions": ", ".join(ions.index.astype(str)),
        }
        for col in columns:
            row[col] = group[col].mean()
        rows.append(row)
    return pd.DataFrame(rows, columns=summary_cols)


def project_clusters_2d(df: pd.DataFrame, labels: pd.Series, columns=None) -> pd.DataFrame:
    """PCA projection of the scaled clustering columns onto two components."""
    X_scaled = scale_cluster_features(df, columns=columns).loc[labels.index]
    if len(X_scaled) < 2:
        # PCA needs at least two samples
        return pd.DataFrame(columns=["PC1", "PC2", "Cluster", ION_COLUMN, ID_COLUMN], index=X_scaled.index[:0])
    pca = PCA(n_components=2)
    X_pca = pca.fit_transform(X_scaled.to_numpy())
    projection = pd.DataFrame(X_pca, columns=["PC1", "PC2"], index=X_scaled.index)
    projection["Cluster"] = labels
    projection[ION_COLUMN] = df.loc[X_scaled.index, ION_COLUMN]
    if ID_COLUMN in df.columns:
        projection[ID_COLUMN] = df.loc[X_scaled.index, ID_COLUMN]
    return projection


def clustering_metrics(X_scaled: pd.DataFrame, labels: pd.Series) -> dict:
    """Cluster count, noise fraction and silhouette score of the non-noise points."""
    labels = labels.loc[X_scaled.index]
    clustered = labels != NOISE_LABEL
    n_clusters = int(labels[clustered].nunique())
    silhouette = None
    if n_clusters >= 2:
        silhouette = float(silhouette_score(X_scaled[clustered], labels[clustered]))
    return {
        "n_clusters": n_clusters,
        "n_noise": int((~clustered).sum()),
        "noise_fraction": float((~clustered).mean()) if len(labels) else np.nan,
        "silhouette": silhouette,
    }


def k_distance_curve(X_scaled, min_samples: int = DBSCAN_MIN_SAMPLES) -> np.ndarray:
    """
    Sorted distance of every point to its `min_samples`-th nearest neighbor (itself included).

    Tables with fewer than `min_samples` rows give an empty curve.
    """
    if len(X_scaled) < min_samples:
        return np.array([], dtype=np.float64)
    nn = NearestNeighbors(n_neighbors=min_samples)
    nn.fit(X_scaled)
    distances, _ = nn.kneighbors(X_scaled)
    return np.sort(distances[:, -1])


def suggest_eps(distances):
    """
    Knee of the sorted k-distance curve.

    Returns:
        float | None: The distance at the knee, or None if no knee is found.
    """
    if len(distances) < 3:
        return None
    kneedle = KneeLocator(range(len(distances)), distances, curve="convex", direction="increasing")
    if kneedle.knee is None:
        return None
    return float(distances[kneedle.knee])
