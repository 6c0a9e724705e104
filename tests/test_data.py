import pandas as pd
import pytest

from battery_eda.data import (
    ion_groups,
    load_battery_data,
    numeric_columns,
    records_with_complete_values,
    validate_schema,
)


def test_load_battery_data_reads_all_records(battery_csv, battery_df, schema_columns):
    df = load_battery_data(battery_csv)
    assert len(df) == len(battery_df)
    assert list(df.columns) == schema_columns


def test_missing_file_is_fatal(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_battery_data(str(tmp_path / "nope.csv"))


def test_empty_file_is_fatal(tmp_path):
    path = tmp_path / "empty.csv"
    path.write_text("")
    with pytest.raises(ValueError):
        load_battery_data(str(path))


def test_header_only_file_is_fatal(tmp_path, schema_columns):
    path = tmp_path / "header.csv"
    path.write_text(",".join(schema_columns) + "\n")
    with pytest.raises(ValueError):
        load_battery_data(str(path))


def test_missing_columns_are_reported(tmp_path, battery_df):
    path = tmp_path / "partial.csv"
    battery_df.drop(columns=["Average Voltage"]).to_csv(path, index=False)
    with pytest.raises(ValueError, match="Average Voltage"):
        load_battery_data(str(path))


def test_non_numeric_column_is_rejected(battery_df):
    broken = battery_df.copy()
    broken["Steps"] = "many"
    with pytest.raises(ValueError, match="Steps"):
        validate_schema(broken)


def test_numeric_columns_follow_schema_order(battery_df):
    cols = numeric_columns(battery_df[["Steps", "Average Voltage", "Working Ion"]])
    assert cols == ["Average Voltage", "Steps"]


def test_records_with_complete_values_drops_rows_with_gaps():
    df = pd.DataFrame({"a": [1.0, None, 3.0], "b": [1.0, 2.0, None], "c": [None, None, None]})
    kept = records_with_complete_values(df, ["a", "b"])
    assert kept.index.tolist() == [0]


def test_ion_groups_ordered_by_count():
    df = pd.DataFrame({"Working Ion": ["Na", "Li", "Li", "Mg", "Li", "Na"]})
    assert ion_groups(df) == ["Li", "Na", "Mg"]
