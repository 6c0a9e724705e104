# python main.py --data data/raw/batteries.csv --output reports

import argparse
import sys

from battery_eda.config import DATA_PATH, MODEL_PATH, REPORT_DIR
from battery_eda.report import build_report


def run_pipeline(data_path, output_dir=REPORT_DIR, model_path=MODEL_PATH, retrain_if_stale=False):
    print("Building battery materials report...")
    outputs = build_report(
        data_path=data_path,
        output_dir=output_dir,
        model_path=model_path,
        retrain_if_stale=retrain_if_stale,
    )
    print("Done. Report files:")
    for name, path in outputs.items():
        print(f"  {name}: {path}")
    return outputs


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Exploratory analysis report for the battery materials dataset.")
    parser.add_argument("--data", type=str, default=DATA_PATH, help="Path to the battery CSV file.")
    parser.add_argument("--output", type=str, default=REPORT_DIR, help="Directory for the report files.")
    parser.add_argument("--model", type=str, default=MODEL_PATH, help="Path of the cached model file.")
    parser.add_argument("--retrain-if-stale", action="store_true",
                        help="Retrain when the cached model does not match the current data.")
    args = parser.parse_args()

    try:
        run_pipeline(args.data, args.output, args.model, args.retrain_if_stale)
    except (FileNotFoundError, ValueError) as e:
        print(f"\nError: {e}", file=sys.stderr)
        sys.exit(1)
