import matplotlib
matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

from battery_eda.config import CLUSTER_COLUMNS, NUMERIC_COLUMNS, TEXT_COLUMNS


def make_battery_frame(n=200, seed=0):
    """Synthetic battery table with the full column schema and no missing values."""
    rng = np.random.default_rng(seed)
    ions = rng.choice(["Li", "Na", "Mg", "Ca", "Zn", "K"], size=n, p=[0.45, 0.2, 0.1, 0.1, 0.1, 0.05])
    voltage = rng.uniform(1.0, 4.5, n)
    grav_capacity = rng.uniform(50.0, 300.0, n)
    vol_capacity = grav_capacity * rng.uniform(2.5, 4.0, n)
    steps = rng.integers(1, 4, n)
    return pd.DataFrame({
        "Battery ID": [f"mp-{1000 + i}_{ion}" for i, ion in enumerate(ions)],
        "Battery Formula": [f"{ion}0-1CoO2" for ion in ions],
        "Working Ion": ions,
        "Formula Charge": ["CoO2"] * n,
        "Formula Discharge": [f"{ion}CoO2" for ion in ions],
        "Max Delta Volume": rng.uniform(0.01, 0.3, n),
        "Average Voltage": voltage,
        "Gravimetric Capacity": grav_capacity,
        "Volumetric Capacity": vol_capacity,
        "Gravimetric Energy": voltage * grav_capacity + rng.normal(0.0, 10.0, n),
        "Volumetric Energy": voltage * vol_capacity,
        "Atomic Fraction Charge": rng.uniform(0.0, 0.1, n),
        "Atomic Fraction Discharge": rng.uniform(0.1, 0.5, n),
        "Stability Charge": rng.uniform(0.0, 0.3, n),
        "Stability Discharge": rng.uniform(0.0, 0.2, n),
        "Steps": steps,
        "Max Voltage Step": np.where(steps > 1, rng.uniform(0.1, 1.0, n), 0.0),
    })


def make_blob_frame():
    """Two tight, well-separated groups in the clustering columns plus one far point."""
    rng = np.random.default_rng(1)
    rows = []
    for i in range(30):
        rows.append(("A", "Li" if i < 20 else "Na", 100.0))
    for i in range(30):
        rows.append(("B", "Mg" if i < 25 else "Zn", 300.0))
    rows.append(("far", "K", 1000.0))

    data = {
        "Battery ID": [f"mp-{i}" for i in range(len(rows))],
        "Working Ion": [ion for _, ion, _ in rows],
        "Group": [group for group, _, _ in rows],
    }
    for col in CLUSTER_COLUMNS:
        centers = np.array([center for _, _, center in rows])
        data[col] = centers + rng.normal(0.0, 1.0, len(rows)) * (centers < 1000)
    return pd.DataFrame(data)


@pytest.fixture
def battery_df():
    return make_battery_frame()


@pytest.fixture
def battery_csv(tmp_path, battery_df):
    path = tmp_path / "batteries.csv"
    battery_df.to_csv(path, index=False)
    return str(path)


@pytest.fixture
def blob_df():
    return make_blob_frame()


@pytest.fixture
def schema_columns():
    return TEXT_COLUMNS + NUMERIC_COLUMNS
