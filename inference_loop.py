"""
Real-time jump decision from a live (z, y, x) sample stream.
Samples accumulate in a bounded buffer; once it is full the whole buffer is
turned into one feature vector, normalized with the training parameters and
classified. The oldest half is then dropped so the next decision still sees
recent history.
"""
import math
import threading
from collections import deque

import joblib
import numpy as np

from errors import ArtifactMismatchError, ConfigurationError
from feature_extraction import extract_features, round_half_up
from model_config import (ACT_LABEL, BUFFER_CAPACITY, BUFFER_MULTIPLIER, FEATURE_COLUMNS,
                          NUM_FEATURES, WINDOW_SIZE)
from normalization import NormalizationParams, NormalizationStore

IDLE = "idle"
READY = "ready"


class RuntimeInferenceLoop:
    def __init__(self, model, store, capacity=BUFFER_CAPACITY, act_label=ACT_LABEL, on_decision=None):
        if capacity < 2:
            raise ConfigurationError(f"buffer capacity must be at least 2, got {capacity}")
        self.model = model
        self.store = store
        self.capacity = capacity
        self.act_label = str(act_label)
        self.on_decision = on_decision
        self.decisions = 0

        self._buffer = deque()
        self._lock = threading.Lock()

    @property
    def buffer_size(self):
        with self._lock:
            return len(self._buffer)

    @property
    def state(self):
        return READY if self.buffer_size >= self.capacity else IDLE

    def add_sample(self, sample):
        """
        Append one (z, y, x) sample.
        Returns None while the buffer is filling, otherwise the jump decision (bool).
        """
        z, y, x = (float(v) for v in sample[:3])
        if not (math.isfinite(z) and math.isfinite(y) and math.isfinite(x)):
            raise ValueError(f"non-finite sample {(z, y, x)}")

        with self._lock:
            self._buffer.append((z, y, x))
            if len(self._buffer) < self.capacity:
                return None

            try:
                decision = self._decide(list(self._buffer))
            finally:
                # decimate: drop the oldest half, even when classification failed
                for _ in range(len(self._buffer) // 2):
                    self._buffer.popleft()
            self.decisions += 1

        if self.on_decision is not None:
            self.on_decision(decision)
        return decision

    def _decide(self, samples):
        features = extract_features(samples, window_size=len(samples))[0]
        normalized = self.store.apply(features)
        normalized = np.array([float(round_half_up(v)) for v in normalized], dtype=np.float64)

        prediction = self.model.predict(normalized.reshape(1, -1))[0]
        return str(prediction) == self.act_label

    def reset(self):
        with self._lock:
            self._buffer.clear()


def load_inference_session(model_path, params_path, capacity=None, act_label=ACT_LABEL, on_decision=None):
    """
    Load a persisted model bundle and its normalization parameter file.
    Raises ArtifactMismatchError when the two do not come from the same training run.
    """
    model_data = joblib.load(model_path)

    feature_columns = model_data.get('feature_columns')
    if feature_columns != FEATURE_COLUMNS:
        raise ArtifactMismatchError(
            f"{model_path} was trained on columns {feature_columns}, expected {FEATURE_COLUMNS}")

    store = NormalizationStore(params_path, expected_columns=NUM_FEATURES)
    params = store.load()
    if params != NormalizationParams(model_data['normalization']):
        raise ArtifactMismatchError(
            f"{params_path} does not match the normalization parameters of {model_path}")

    window_size = model_data.get('window_size', WINDOW_SIZE)
    if isinstance(window_size, bool) or not isinstance(window_size, int) or window_size <= 0:
        raise ArtifactMismatchError(f"{model_path} has invalid window size {window_size!r}")

    if capacity is None:
        capacity = window_size * BUFFER_MULTIPLIER
    print(f"Inference session ready: {model_data['model_name']} "
          f"(test accuracy %{model_data['test_accuracy'] * 100:.2f}), buffer {capacity} samples")
    return RuntimeInferenceLoop(model_data['model'], store, capacity=capacity,
                                act_label=act_label, on_decision=on_decision)
