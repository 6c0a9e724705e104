"""
features.py

Transformations applied to the battery table before plotting and modeling:
IQR outlier filtering, working-ion naming, and predictor/target selection.
"""

import numpy as np
import pandas as pd
from pymatgen.core import Element

from .config import ION_COLUMN, PREDICTORS, TARGET
from .data import numeric_columns


def iqr_bounds(series: pd.Series, k: float = 1.5):
    """
    Returns the (lower, upper) outlier fences of a numeric column.

    The fences are Q1 - k*IQR and Q3 + k*IQR, with quartiles computed by linear
    interpolation over the non-missing values. An all-missing column yields NaN
    fences; a constant column yields lower == upper.
    """
    q1 = series.quantile(0.25)
    q3 = series.quantile(0.75)
    iqr = q3 - q1
    return q1 - k * iqr, q3 + k * iqr


def within_iqr(series: pd.Series, k: float = 1.5) -> pd.Series:
    """Boolean mask of values inside the closed IQR fences. Missing values are False."""
    lower, upper = iqr_bounds(series, k=k)
    return (series >= lower) & (series <= upper)


def filter_outlier_values(series: pd.Series, k: float = 1.5) -> pd.Series:
    """Values of a single column that fall inside that column's own fences."""
    return series[within_iqr(series, k=k)]


def filter_outlier_rows(df: pd.DataFrame, columns=None, k: float = 1.5) -> pd.DataFrame:
    """
    Keeps only rows where every numeric column passes its own IQR filter.

    Fences are computed independently on each full column, then combined with a
    logical AND across columns.

    Args:
        df (pd.DataFrame): Battery table.
        columns (list, optional): Columns to test. Defaults to the numeric schema columns.
        k (float): Fence multiplier.

    Returns:
        pd.DataFrame: The retained rows (a new frame; `df` is unchanged).
    """
    if columns is None:
        columns = numeric_columns(df)
    mask = pd.Series(True, index=df.index)
    for col in columns:
        mask &= within_iqr(df[col], k=k)
    print(f"Outlier filter kept {int(mask.sum())} of {len(df)} rows.")
    return df.loc[mask].copy()


def ion_full_name(symbol) -> str:
    """Full element name for a working-ion symbol, e.g. 'Li' -> 'Lithium'."""
    if pd.isnull(symbol):
        return "Unknown"
    s = str(symbol).strip()
    try:
        return Element(s).long_name
    except (ValueError, KeyError):
        # Not an element symbol; show it as-is
        return s


def add_ion_names(df: pd.DataFrame, ion_col: str = ION_COLUMN) -> pd.DataFrame:
    """Returns a copy of `df` with an 'Ion Name' column."""
    out = df.copy()
    names = {ion: ion_full_name(ion) for ion in out[ion_col].dropna().unique()}
    out["Ion Name"] = out[ion_col].map(names).fillna("Unknown")
    return out


def prepare_data_for_modeling(df, predictors=None, target=TARGET):
    """
    Select the predictor matrix and target vector, dropping incomplete rows.

    Args:
        df (pd.DataFrame): Battery table (usually outlier-filtered).
        predictors (list, optional): Predictor columns. Defaults to PREDICTORS.
        target (str): Target column.

    Returns:
        pd.DataFrame: The feature matrix (X).
        pd.Series: The target vector (y).
    """
    if predictors is None:
        predictors = PREDICTORS
    df_model = df[list(predictors) + [target]].dropna()
    n_dropped = len(df) - len(df_model)
    if n_dropped:
        print(f"Dropped {n_dropped} rows with missing predictor or target values.")
    X = df_model[list(predictors)].astype(np.float64)
    y = df_model[target].astype(np.float64)
    return X, y
