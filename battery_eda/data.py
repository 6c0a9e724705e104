import os
import pandas as pd

from .config import DATA_PATH, NUMERIC_COLUMNS, TEXT_COLUMNS


def validate_schema(df: pd.DataFrame) -> pd.DataFrame:
    """
    Checks that a battery table carries the expected text and numeric columns.

    Raises:
        ValueError: If schema columns are missing or a numeric column holds non-numeric data.
    """
    missing = [col for col in TEXT_COLUMNS + NUMERIC_COLUMNS if col not in df.columns]
    if missing:
        raise ValueError(f"Battery data is missing required columns: {missing}")

    non_numeric = [col for col in NUMERIC_COLUMNS if not pd.api.types.is_numeric_dtype(df[col])]
    if non_numeric:
        raise ValueError(f"Expected numeric data in columns: {non_numeric}")
    return df


def numeric_columns(df: pd.DataFrame) -> list:
    """Numeric schema columns present in `df`, in schema order."""
    return [col for col in NUMERIC_COLUMNS if col in df.columns]


def load_battery_data(path: str = DATA_PATH) -> pd.DataFrame:
    """
    Loads the battery materials CSV into a DataFrame.

    There is no retry and no partial load: a missing or malformed file aborts
    the run.

    Args:
        path (str): Path to the CSV file.

    Returns:
        pd.DataFrame: One row per battery record.
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Battery data file not found at: {path}")

    print(f"Loading battery data from {path}...")
    try:
        df = pd.read_csv(path)
    except (pd.errors.EmptyDataError, pd.errors.ParserError) as e:
        raise ValueError(f"Could not parse battery data file {path}: {e}") from e

    if df.empty:
        raise ValueError(f"Battery data file {path} contains no records.")

    validate_schema(df)
    print(f"Battery dataset shape: {df.shape}")
    n_missing = int(df.isnull().sum().sum())
    if n_missing:
        print(f"Warning: battery dataset contains {n_missing} missing values.")
    return df


def records_with_complete_values(df: pd.DataFrame, columns) -> pd.DataFrame:
    """Rows of `df` with no missing values in `columns`."""
    columns = list(columns)
    mask = ~df[columns].isnull().any(axis=1)
    return df.loc[mask]


def ion_groups(df: pd.DataFrame, ion_col: str = "Working Ion") -> list:
    """Working ions ordered by record count, most common first."""
    return df[ion_col].dropna().value_counts().index.tolist()
