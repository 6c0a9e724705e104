import numpy as np
import pandas as pd
import pytest

from battery_eda.config import PREDICTORS
from battery_eda.modeling import load_or_train_model
from battery_eda.predictor import PredictionPipeline


@pytest.fixture
def model_path(tmp_path, battery_df):
    path = str(tmp_path / "rf.joblib")
    load_or_train_model(battery_df, model_path=path, param_grid={"max_features": [2]}, n_estimators=10)
    return path


def test_pipeline_requires_model_and_predictors():
    with pytest.raises(ValueError):
        PredictionPipeline(None, PREDICTORS)
    with pytest.raises(ValueError):
        PredictionPipeline(object(), [])


def test_pipeline_from_path(model_path):
    pipeline = PredictionPipeline.from_path(model_path)
    assert pipeline.predictors == PREDICTORS
    assert pipeline.output_column == "predicted_gravimetric_energy"


def test_pipeline_scores_every_row(model_path, battery_df):
    pipeline = PredictionPipeline.from_path(model_path)
    scored = pipeline.score(battery_df.head(7))
    assert len(scored) == 7
    assert scored[pipeline.output_column].notnull().all()
    assert "Battery ID" in scored.columns


def test_pipeline_reports_missing_predictors(model_path):
    pipeline = PredictionPipeline.from_path(model_path)
    with pytest.raises(ValueError, match="Stability Charge"):
        pipeline.predict(pd.DataFrame({"Average Voltage": [3.0]}))


def test_pipeline_accepts_implausible_values(model_path):
    pipeline = PredictionPipeline.from_path(model_path)
    rows = pd.DataFrame({
        "Max Delta Volume": [-1.0],
        "Average Voltage": [-5.0],
        "Gravimetric Capacity": [1e6],
        "Stability Charge": [10.0],
    })
    assert np.isfinite(pipeline.predict(rows)).all()
