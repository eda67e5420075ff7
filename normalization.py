"""
Min/max feature scaling.
Parameters are fit on the training split only, written next to the model and
reused verbatim by the runtime so both sides scale features identically.
"""
import os

import numpy as np

from errors import ArtifactMismatchError
from model_config import NUM_FEATURES


class NormalizationParams:
    """Ordered (min, max) pair per feature column."""

    def __init__(self, pairs):
        self.pairs = tuple((float(lo), float(hi)) for lo, hi in pairs)

    @property
    def mins(self):
        return np.array([lo for lo, _ in self.pairs], dtype=np.float64)

    @property
    def maxs(self):
        return np.array([hi for _, hi in self.pairs], dtype=np.float64)

    def __len__(self):
        return len(self.pairs)

    def __eq__(self, other):
        return isinstance(other, NormalizationParams) and self.pairs == other.pairs

    def __hash__(self):
        return hash(self.pairs)

    def __repr__(self):
        return f"NormalizationParams({len(self.pairs)} columns)"


def fit(training_rows):
    """
    Per-column min and max over the training rows.
    training_rows: 2D array-like (n_rows, n_features), never the test split
    """
    X = np.asarray(training_rows, dtype=np.float64)
    if X.ndim != 2 or len(X) == 0:
        raise ValueError("cannot fit normalization parameters on an empty training set")
    return NormalizationParams(zip(X.min(axis=0), X.max(axis=0)))


def apply(params, features):
    """
    Scale features into [0, 1] with (value - min) / (max - min).
    Columns whose min equals max scale to 0.0.
    features: 1D feature vector or 2D matrix of rows
    """
    X = np.asarray(features, dtype=np.float64)
    if X.shape[-1] != len(params):
        raise ArtifactMismatchError(
            f"feature vector has {X.shape[-1]} columns, normalization parameters have {len(params)}")

    mins = params.mins
    spans = params.maxs - mins
    constant = spans == 0.0
    safe_spans = np.where(constant, 1.0, spans)
    scaled = (X - mins) / safe_spans
    return np.where(constant, 0.0, scaled)


def persist(params, path):
    """One "min,max" line per feature column, in column order."""
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        for lo, hi in params.pairs:
            f.write(f"{lo!r},{hi!r}\n")


def read_params(path):
    pairs = []
    with open(path, encoding='utf-8') as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            lo, hi = line.split(',')
            pairs.append((float(lo), float(hi)))
    return NormalizationParams(pairs)


class NormalizationStore:
    """
    Session-owned handle on the normalization parameters.
    The first load() reads the file, later calls return the cached params until
    invalidate() is called (e.g. after retraining).
    """

    def __init__(self, path, expected_columns=NUM_FEATURES):
        self.path = path
        self.expected_columns = expected_columns
        self._params = None

    def load(self):
        if self._params is None:
            params = read_params(self.path)
            if len(params) != self.expected_columns:
                raise ArtifactMismatchError(
                    f"{self.path} has {len(params)} columns, expected {self.expected_columns}")
            self._params = params
            print(f"Normalization parameters loaded from {self.path} ({len(params)} columns)")
        return self._params

    def invalidate(self):
        self._params = None

    @property
    def loaded(self):
        return self._params is not None

    def apply(self, features):
        return apply(self.load(), features)
