"""
Per-axis descriptive statistics and pairwise correlation.
Every feature column of the dataset is built from these two functions.
"""
import numpy as np


def compute_axis_statistics(values):
    """
    Compute the mean, standard deviation, median, maximum, minimum and range of one axis.
    values: non-empty 1D sequence of floats (one axis of a window)
    Returns: (mean, std_dev, median, max, min, range)
    """
    values = np.asarray(values, dtype=np.float64)

    mean = float(np.mean(values))
    # population standard deviation (divide by N)
    std_dev = float(np.sqrt(np.mean((values - mean) ** 2)))
    median = float(np.median(values))
    max_val = float(np.max(values))
    min_val = float(np.min(values))
    range_val = max_val - min_val
    # summation error can push the mean of a constant window past its bounds
    mean = min(max(mean, min_val), max_val)

    return mean, std_dev, median, max_val, min_val, range_val


def compute_correlation(values1, values2):
    """
    Pearson correlation coefficient between two equal-length series.
    Returns 0.0 when either series is constant, so features stay finite.
    """
    values1 = np.asarray(values1, dtype=np.float64)
    values2 = np.asarray(values2, dtype=np.float64)

    dev1 = values1 - np.mean(values1)
    dev2 = values2 - np.mean(values2)
    numerator = np.sum(dev1 * dev2)
    denominator = np.sqrt(np.sum(dev1 * dev1) * np.sum(dev2 * dev2))

    if denominator == 0.0:
        return 0.0
    return float(np.clip(numerator / denominator, -1.0, 1.0))
