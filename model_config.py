"""Configuration settings for the motion jump classifier"""

# Window / Buffer Sizes
WINDOW_SIZE = 100          # samples per feature window (~1 second of linear acceleration)
BUFFER_MULTIPLIER = 2
BUFFER_CAPACITY = WINDOW_SIZE * BUFFER_MULTIPLIER  # runtime buffer, decimated by half after each decision

# Sample File Layout
# time, seconds_elapsed, z, y, x
SAMPLE_HEADER = ["time", "seconds_elapsed", "z", "y", "x"]
AXIS_COLUMNS = (2, 3, 4)

# Feature Columns
AXIS_NAMES = ("z", "y", "x")
STATISTIC_NAMES = ("mean", "stdDev", "median", "max", "min", "range")
CORRELATION_COLUMNS = ["zy_correlation", "zx_correlation", "yx_correlation"]
FEATURE_COLUMNS = [f"{axis}_{stat}" for axis in AXIS_NAMES for stat in STATISTIC_NAMES] + CORRELATION_COLUMNS
LABEL_COLUMN = "label"
DATASET_HEADER = FEATURE_COLUMNS + [LABEL_COLUMN]
NUM_FEATURES = len(FEATURE_COLUMNS)  # 21

FEATURE_DECIMALS = 6

# Labels
POSITIVE_LABEL = "1"
NEGATIVE_LABEL = "0"
ACT_LABEL = POSITIVE_LABEL

# Training Parameters
SPLIT_RATIO = 0.8
CV_FOLDS = 10
RANDOM_SEED = 42

# File Names
DATASET_FILE_NAME = "dataset.csv"
NORMALIZATION_PARAMS_FILE_NAME = "normalization_params.txt"
MODEL_FILE_NAME = "model.joblib"
REPORT_FILE_NAME = "model_comparison.txt"
CONFUSION_MATRIX_FILE_NAME = "confusion_matrix.png"
TRAINING_LOCK_FILE_NAME = ".training.lock"

# Sample Corpus
POSITIVE_DIR = "sampledata/positive"
NEGATIVE_DIR = "sampledata/negative"
OUTPUT_DIR = "artifacts"

# Recorder
RECORDER_QUEUE_SIZE = 10000
