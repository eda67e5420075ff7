"""
Windowed feature extraction.
The same code path is used when building the training dataset and when
classifying the live buffer, so training and inference always see identical features.
"""
from decimal import Decimal, ROUND_HALF_UP

import numpy as np

from axis_statistics import compute_axis_statistics, compute_correlation
from errors import ConfigurationError
from model_config import FEATURE_DECIMALS, NUM_FEATURES


def window_features(window):
    """
    Extract the feature vector of a single window
    window shape: (window_size, 3) - columns z, y, x
    Returns: 1D feature vector (21 features)
    """
    window = np.asarray(window, dtype=np.float64)
    z_values = window[:, 0]
    y_values = window[:, 1]
    x_values = window[:, 2]

    features = []
    for axis_values in (z_values, y_values, x_values):
        features.extend(compute_axis_statistics(axis_values))

    features.extend([
        compute_correlation(z_values, y_values),
        compute_correlation(z_values, x_values),
        compute_correlation(y_values, x_values),
    ])
    return np.array(features, dtype=np.float64)


def extract_features(samples, window_size):
    """
    Split samples into consecutive non-overlapping windows and extract features from each.
    samples: sequence of (z, y, x) samples
    The trailing partial window is dropped, never padded.
    Returns: array of shape (len(samples) // window_size, 21)
    """
    if window_size is None or int(window_size) <= 0:
        raise ConfigurationError(f"window size must be a positive integer, got {window_size!r}")
    window_size = int(window_size)

    data = np.asarray(samples, dtype=np.float64)
    num_windows = len(data) // window_size
    if num_windows == 0:
        return np.empty((0, NUM_FEATURES), dtype=np.float64)
    data = data.reshape(len(data), -1)

    features = []
    for i in range(num_windows):
        start = i * window_size
        end = start + window_size
        features.append(window_features(data[start:end, :3]))
    return np.vstack(features)


def round_half_up(value, places=FEATURE_DECIMALS):
    """Round using the decimal representation of the float, ties away from zero."""
    quantum = Decimal(1).scaleb(-places)
    rounded = Decimal(repr(float(value))).quantize(quantum, rounding=ROUND_HALF_UP)
    if rounded == 0:
        rounded = abs(rounded)  # no "-0.000000"
    return rounded


def format_feature(value):
    """Fixed 6-decimal string used in the dataset file."""
    return format(round_half_up(value), "f")
