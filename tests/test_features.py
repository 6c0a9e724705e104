import numpy as np
import pandas as pd
import pytest

from battery_eda.config import NUMERIC_COLUMNS, PREDICTORS, TARGET
from battery_eda.features import (
    add_ion_names,
    filter_outlier_rows,
    filter_outlier_values,
    ion_full_name,
    iqr_bounds,
    prepare_data_for_modeling,
    within_iqr,
)


def test_iqr_bounds_hand_computed():
    lower, upper = iqr_bounds(pd.Series([1.0, 2.0, 3.0, 4.0, 100.0]))
    assert lower == pytest.approx(-1.0)
    assert upper == pytest.approx(7.0)


def test_filter_outlier_values_drops_values_outside_fences():
    kept = filter_outlier_values(pd.Series([1.0, 2.0, 3.0, 4.0, 100.0]))
    assert kept.tolist() == [1.0, 2.0, 3.0, 4.0]


def test_within_iqr_matches_fences_for_every_numeric_column(battery_df):
    for col in NUMERIC_COLUMNS:
        values = battery_df[col]
        q1, q3 = np.percentile(values, [25, 75])
        iqr = q3 - q1
        expected = (values >= q1 - 1.5 * iqr) & (values <= q3 + 1.5 * iqr)
        assert within_iqr(values).equals(expected), col


def test_constant_column_becomes_equality_test():
    mask = within_iqr(pd.Series([5.0, 5.0, 5.0, 5.0, 6.0]))
    assert mask.tolist() == [True, True, True, True, False]


def test_all_missing_column_yields_empty_result():
    series = pd.Series([np.nan, np.nan, np.nan])
    assert not within_iqr(series).any()
    assert filter_outlier_values(series).empty


def test_filter_outlier_rows_hand_computed():
    df = pd.DataFrame({
        "a": [1.0, 2.0, 3.0, 4.0, 100.0],
        "b": [10.0, -50.0, 10.0, 11.0, 12.0],
    })
    kept = filter_outlier_rows(df, columns=["a", "b"])
    assert kept.index.tolist() == [0, 2, 3]


def test_filter_outlier_rows_keeps_row_iff_every_column_passes(battery_df):
    df = battery_df.copy()
    df.loc[3, "Average Voltage"] = 50.0
    df.loc[7, "Gravimetric Capacity"] = 5000.0

    kept = filter_outlier_rows(df)

    expected = pd.Series(True, index=df.index)
    for col in NUMERIC_COLUMNS:
        expected &= within_iqr(df[col])
    assert kept.index.tolist() == df.index[expected].tolist()
    assert 3 not in kept.index
    assert 7 not in kept.index


def test_filter_outlier_rows_does_not_modify_input(battery_df):
    before = battery_df.copy()
    filter_outlier_rows(battery_df)
    pd.testing.assert_frame_equal(battery_df, before)


def test_ion_full_name():
    assert ion_full_name("Li") == "Lithium"
    assert ion_full_name("Na") == "Sodium"
    assert ion_full_name("NotAnIon") == "NotAnIon"
    assert ion_full_name(None) == "Unknown"


def test_add_ion_names_adds_column(battery_df):
    named = add_ion_names(battery_df)
    assert "Ion Name" not in battery_df.columns
    li_names = named.loc[named["Working Ion"] == "Li", "Ion Name"].unique()
    assert li_names.tolist() == ["Lithium"]


def test_prepare_data_for_modeling_drops_incomplete_rows(battery_df):
    df = battery_df.copy()
    df.loc[0, "Average Voltage"] = np.nan
    df.loc[1, TARGET] = np.nan
    X, y = prepare_data_for_modeling(df)
    assert list(X.columns) == PREDICTORS
    assert len(X) == len(df) - 2
    assert X.index.equals(y.index)
