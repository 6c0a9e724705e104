import os
import numpy as np
import pandas as pd
from typing import List
from scipy.stats import shapiro

from .config import NUMERIC_COLUMNS, TEXT_COLUMNS


def categorical_summary(df: pd.DataFrame, columns: List[str] = None) -> pd.DataFrame:
    """
    Frequency summary of the text columns of a battery table.

    Args:
        df (pd.DataFrame): Battery table.
        columns (List[str], optional): Text columns to summarize. Defaults to the schema text columns.

    Returns:
        pd.DataFrame: One row per column with ['Column', 'Unique', 'Top', 'Top Count', 'Missing'].
    """
    if columns is None:
        columns = [col for col in TEXT_COLUMNS if col in df.columns]

    rows = []
    for col in columns:
        counts = df[col].value_counts()
        rows.append({
            'Column': col,
            'Unique': int(df[col].nunique()),
            'Top': counts.index[0] if not counts.empty else None,
            'Top Count': int(counts.iloc[0]) if not counts.empty else 0,
            'Missing': int(df[col].isnull().sum()),
        })
    return pd.DataFrame(rows, columns=['Column', 'Unique', 'Top', 'Top Count', 'Missing'])


def frequency_table(df: pd.DataFrame, column: str) -> pd.DataFrame:
    """Value counts of one categorical column with their share of all records."""
    counts = df[column].value_counts()
    table = pd.DataFrame({'Count': counts})
    table['Percent'] = 100.0 * table['Count'] / len(df) if len(df) else np.nan
    table.index.name = column
    return table.reset_index()


def numeric_summary(df: pd.DataFrame, columns: List[str] = None) -> pd.DataFrame:
    """
    Five-number-style summary of the numeric columns.

    Returns:
        pd.DataFrame: Indexed by column with Min, Q1, Median, Mean, Q3, Max, Std, Skew, Kurtosis.
    """
    if columns is None:
        columns = [col for col in NUMERIC_COLUMNS if col in df.columns]
    data = df[columns]
    summary = pd.DataFrame({
        'Min': data.min(),
        'Q1': data.quantile(0.25),
        'Median': data.median(),
        'Mean': data.mean(),
        'Q3': data.quantile(0.75),
        'Max': data.max(),
        'Std': data.std(),
        'Skew': data.skew(),
        'Kurtosis': data.kurtosis(),
    })
    summary.index.name = 'Column'
    return summary


def summarize_dataset(df: pd.DataFrame) -> dict:
    """
    Descriptive summary of the loaded battery table.

    Returns:
        dict: Keys 'n_rows', 'n_columns', 'n_missing', 'missing_by_column',
        'categorical' and 'numeric'.
    """
    missing_by_column = df.isnull().sum()
    return {
        'n_rows': int(len(df)),
        'n_columns': int(df.shape[1]),
        'n_missing': int(missing_by_column.sum()),
        'missing_by_column': missing_by_column,
        'categorical': categorical_summary(df),
        'numeric': numeric_summary(df),
    }


def perform_normality_tests(df: pd.DataFrame, columns: List[str] = None, sample_size: int = 5000) -> pd.DataFrame:
    """
    Perform Shapiro-Wilk normality tests on specified columns of a DataFrame.

    Args:
        df (pd.DataFrame): The DataFrame containing the data.
        columns (List[str], optional): List of column names to test. If None, all numeric columns are tested.
        sample_size (int): Maximum sample size for the Shapiro-Wilk test (default: 5000).

    Returns:
        pd.DataFrame: A DataFrame with columns ['Feature', 'P-Value', 'Is Normal'] summarizing the test results.
    """
    if columns is None:
        columns = df.select_dtypes(include=np.number).columns.tolist()

    results = []
    for col in columns:
        data = df[col].dropna()
        if len(data) < 3 or data.nunique() < 2:
            # Shapiro-Wilk is undefined here
            results.append({'Feature': col, 'P-Value': np.nan, 'Is Normal': False})
            continue
        if len(data) > sample_size:
            data = data.sample(sample_size, random_state=42)
        stat, p_value = shapiro(data)
        results.append({
            'Feature': col,
            'P-Value': p_value,
            'Is Normal': p_value >= 0.05
        })

    return pd.DataFrame(results, columns=['Feature', 'P-Value', 'Is Normal'])


def style_df(df: pd.DataFrame):
    """
    Apply simple styling to a pandas DataFrame for the HTML report.

    Args:
        df (pd.DataFrame): The DataFrame to style.

    Returns:
        Styler: A styled DataFrame object for display.
    """
    float_cols = df.select_dtypes(include=['float', 'float64', 'float32']).columns
    format_dict = {col: "{:.3f}" for col in float_cols}
    return df.style.format(format_dict, na_rep="-") \
        .set_table_styles([
            {'selector': 'th', 'props': [('background-color', '#f5f5f5'), ('color', '#222'), ('font-weight', 'bold'), ('border', '1px solid #ccc')]},
            {'selector': 'td', 'props': [('border', '1px solid #ddd'), ('padding', '6px')]}
        ])


def save_plot(fig, path):
    """Save a Plotly (as HTML) or Matplotlib figure to disk and print a confirmation."""
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    if hasattr(fig, 'write_html'):
        fig.write_html(path, include_plotlyjs='cdn')
    else:
        fig.savefig(path, bbox_inches='tight')
    print(f"Plot saved to {path}")


def setup_environment():
    """Set plotting and display defaults."""
    import plotly.io as pio
    pio.templates.default = "plotly_white"
    pd.set_option('display.max_rows', 100)
    pd.set_option('display.width', 160)


def log_and_print(msg):
    """Print a progress message."""
    print(msg)
