import csv
import os

import numpy as np
import pytest


def write_sample_file(path, n_samples, amplitude=1.0, frequency=2.0, noise=0.0, seed=0, rate=100.0):
    """Sensor-logger style file: header + time, seconds_elapsed, z, y, x rows"""
    rng = np.random.default_rng(seed)
    t = np.arange(n_samples) / rate
    z = amplitude * np.sin(2 * np.pi * frequency * t) + noise * rng.standard_normal(n_samples)
    y = amplitude * np.cos(2 * np.pi * frequency * t) + noise * rng.standard_normal(n_samples)
    x = 0.5 * amplitude * np.sin(2 * np.pi * frequency * t + 1.0) + noise * rng.standard_normal(n_samples)

    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, 'w', newline='') as f:
        writer = csv.writer(f)
        writer.writerow(["time", "seconds_elapsed", "z", "y", "x"])
        for i in range(n_samples):
            writer.writerow([int(1e9 + i * 1e7), f"{t[i]:.6f}", z[i], y[i], x[i]])
    return path


@pytest.fixture
def corpus(tmp_path):
    """Positive folder with large fast movements, negative folder with small slow ones"""
    positive = tmp_path / "sampledata" / "positive"
    negative = tmp_path / "sampledata" / "negative"
    write_sample_file(str(positive / "jump_1.csv"), 1500, amplitude=8.0, frequency=3.0, noise=0.5, seed=1)
    write_sample_file(str(positive / "jump_2.csv"), 1500, amplitude=7.0, frequency=2.5, noise=0.5, seed=2)
    write_sample_file(str(negative / "idle_1.csv"), 1500, amplitude=0.3, frequency=0.5, noise=0.1, seed=3)
    write_sample_file(str(negative / "idle_2.csv"), 1500, amplitude=0.2, frequency=0.7, noise=0.1, seed=4)
    return str(positive), str(negative)
