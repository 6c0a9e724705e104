import numpy as np
import pandas as pd

from .modeling import load_model, predict


class PredictionPipeline:
    """Scores battery rows with a trained regressor bound to its predictor columns."""

    def __init__(self, model, predictors, target=None):
        if model is None or not predictors:
            raise ValueError("Model and predictors must be provided.")
        self.model = model
        self.predictors = list(predictors)
        self.target = target

    @classmethod
    def from_path(cls, model_path):
        """Builds a pipeline from a cached model file."""
        bundle = load_model(model_path)
        return cls(bundle["model"], bundle["predictors"], bundle.get("target"))

    @property
    def output_column(self):
        name = self.target or "target"
        return f"predicted_{name.lower().replace(' ', '_')}"

    def _check_columns(self, input_df: pd.DataFrame):
        missing = [col for col in self.predictors if col not in input_df.columns]
        if missing:
            raise ValueError(f"Input is missing predictor columns: {missing}")

    def predict(self, input_df: pd.DataFrame) -> np.ndarray:
        """One prediction per input row. Predictor values are not range-checked."""
        self._check_columns(input_df)
        return predict(self.model, input_df, predictors=self.predictors)

    def score(self, input_df: pd.DataFrame) -> pd.DataFrame:
        """Copy of `input_df` with the prediction column appended."""
        output_df = input_df.copy()
        output_df[self.output_column] = self.predict(input_df)
        return output_df
