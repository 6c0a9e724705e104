import os

# --- Project paths ---
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
DATA_PATH = os.path.join(PROJECT_ROOT, 'data', 'raw', 'batteries.csv')
MODEL_PATH = os.path.join(PROJECT_ROOT, 'models', 'battery_rf_model.joblib')
REPORT_DIR = os.path.join(PROJECT_ROOT, 'reports')

# --- Dataset schema ---
ID_COLUMN = "Battery ID"
ION_COLUMN = "Working Ion"
TEXT_COLUMNS = [
    "Battery ID",
    "Battery Formula",
    "Working Ion",
    "Formula Charge",
    "Formula Discharge",
]
NUMERIC_COLUMNS = [
    "Max Delta Volume",
    "Average Voltage",
    "Gravimetric Capacity",
    "Volumetric Capacity",
    "Gravimetric Energy",
    "Volumetric Energy",
    "Atomic Fraction Charge",
    "Atomic Fraction Discharge",
    "Stability Charge",
    "Stability Discharge",
    "Steps",
    "Max Voltage Step",
]

# --- Regression model ---
PREDICTORS = ["Max Delta Volume", "Average Voltage", "Gravimetric Capacity", "Stability Charge"]
TARGET = "Gravimetric Energy"
RANDOM_SEED = 42
TEST_SIZE = 0.2
CV_FOLDS = 10
N_ESTIMATORS = 500
SAMPLE_SIZE = 10

# --- Clustering ---
CLUSTER_COLUMNS = [
    "Gravimetric Capacity",
    "Volumetric Capacity",
    "Gravimetric Energy",
    "Volumetric Energy",
    "Atomic Fraction Discharge",
]
DBSCAN_EPS = 0.5
DBSCAN_MIN_SAMPLES = 5
NOISE_LABEL = 0
