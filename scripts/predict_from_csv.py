"""
Batch scoring script for the cached battery energy model.

Reads a CSV with the model's predictor columns, predicts the gravimetric
energy of every row and writes the rows back out with a prediction column.
Rows are scored as given; values outside the training range are not rejected.

Example usage:  python scripts/predict_from_csv.py --model models/battery_rf_model.joblib --input data/what_if.csv --output data/what_if_predictions.csv
"""
import os
import sys
import argparse
import numpy as np
import pandas as pd

# Add project root to Python path to allow importing from 'battery_eda'
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
sys.path.append(str(PROJECT_ROOT))

from battery_eda.config import MODEL_PATH
from battery_eda.predictor import PredictionPipeline


def main(argv=None):
    parser = argparse.ArgumentParser(description="Predict gravimetric energy for battery rows in a CSV file.")
    parser.add_argument("--model", type=str, default=MODEL_PATH, help="Path to the cached model file.")
    parser.add_argument("--input", type=str, required=True, help="Path to the input CSV file.")
    parser.add_argument("--output", type=str, required=True, help="Path to save the output CSV with predictions.")
    args = parser.parse_args(argv)

    try:
        print(f"Loading model from {args.model}...")
        pipeline = PredictionPipeline.from_path(args.model)

        if not os.path.exists(args.input):
            raise FileNotFoundError(f"Input file not found at: {args.input}")
        input_df = pd.read_csv(args.input)

        output_df = pipeline.score(input_df)
        output_df[pipeline.output_column] = np.round(output_df[pipeline.output_column], 3)
        output_df.to_csv(args.output, index=False)
        print(f"\nSuccess! Predictions saved to {args.output}")
        print(output_df.head())
    except (FileNotFoundError, ValueError) as e:
        print(f"\nError: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
