"""
Builds the training dataset from the labeled sample corpus.
Folder structure: one folder per class -> sample CSV files (time, seconds_elapsed, z, y, x)
Every file is cut into fixed-size windows and each window becomes one labeled row.
"""
import csv
import math
import os

import numpy as np
import pandas as pd

from errors import ArtifactMismatchError, CorpusReadError, RowParseError
from feature_extraction import extract_features, format_feature
from model_config import (AXIS_COLUMNS, DATASET_HEADER, FEATURE_COLUMNS, LABEL_COLUMN,
                          NEGATIVE_LABEL, POSITIVE_LABEL, WINDOW_SIZE)


def list_sample_files(directory):
    """Sample files of one class folder, sorted by name so reruns see the same order."""
    if not os.path.isdir(directory):
        raise CorpusReadError(f"{directory} not found")
    try:
        names = os.listdir(directory)
    except OSError as e:
        raise CorpusReadError(f"{directory} could not be listed: {e}") from e

    files = [f for f in names
             if f.lower().endswith('.csv') and os.path.isfile(os.path.join(directory, f))]
    return [os.path.join(directory, f) for f in sorted(files)]


def read_sample_file(file_path):
    """
    Read the z, y, x columns of a sample file, skipping its header row.
    Returns: array of shape (n_rows, 3)
    Raises RowParseError on the first row with a missing, non-numeric or non-finite
    axis field, and on files that are not readable UTF-8 CSV.
    """
    samples = []
    with open(file_path, newline='', encoding='utf-8') as f:
        reader = csv.reader(f)
        try:
            next(reader, None)  # header

            for row in reader:
                if not row:
                    continue
                samples.append(_parse_axes(file_path, reader.line_num, row))
        except (UnicodeDecodeError, csv.Error) as e:
            raise RowParseError(file_path, reader.line_num + 1, f"unreadable row ({e})") from e

    return np.array(samples, dtype=np.float64).reshape(-1, 3)


def _parse_axes(file_path, line_number, row):
    if len(row) <= max(AXIS_COLUMNS):
        raise RowParseError(file_path, line_number,
                            f"expected at least {max(AXIS_COLUMNS) + 1} fields, got {len(row)}")
    try:
        values = [float(row[i]) for i in AXIS_COLUMNS]
    except ValueError as e:
        raise RowParseError(file_path, line_number, f"non-numeric axis value ({e})") from e
    if not all(math.isfinite(v) for v in values):
        raise RowParseError(file_path, line_number, f"non-finite axis value {values}")
    return values


def _aggregate_directory(writer, directory, label, window_size):
    """Append one row per window of every file in directory. Returns the rows written."""
    try:
        files = list_sample_files(directory)
    except CorpusReadError as e:
        print(f"WARNING: {e}, no rows for label '{label}'")
        return []

    print(f"  - Found: '{directory}' -> {len(files)} files (label '{label}')")
    rows = []
    for file_path in files:
        samples = read_sample_file(file_path)
        file_rows = []
        for features in extract_features(samples, window_size):
            file_rows.append([format_feature(value) for value in features] + [label])

        writer.writerows(file_rows)
        rows.extend(file_rows)
        print(f"    {os.path.basename(file_path)}: {len(samples)} samples -> {len(file_rows)} windows")
    return rows


def aggregate(labeled_directories, output_path, window_size=WINDOW_SIZE):
    """
    Aggregate labeled sample folders into a single dataset CSV.
    labeled_directories: ordered list of (directory, label); labels are taken as given,
    never inferred from folder names.
    The output is truncated and its header written once, so reruns give identical files.
    Returns: DataFrame with the rows that were written
    """
    output_dir = os.path.dirname(output_path)
    if output_dir:
        os.makedirs(output_dir, exist_ok=True)

    print(f"Aggregating dataset into {output_path}...")
    all_rows = []
    with open(output_path, 'w', newline='', encoding='utf-8') as f:
        writer = csv.writer(f, lineterminator='\n')
        writer.writerow(DATASET_HEADER)
        for directory, label in labeled_directories:
            all_rows.extend(_aggregate_directory(writer, directory, str(label), window_size))

    print(f"Dataset complete: {len(all_rows)} rows")
    return _rows_to_frame(all_rows)


def aggregate_positive_negative(positive_dir, negative_dir, output_path, window_size=WINDOW_SIZE):
    """Two-folder corpus layout: positive (act) samples first, then negative."""
    return aggregate([(positive_dir, POSITIVE_LABEL), (negative_dir, NEGATIVE_LABEL)],
                     output_path, window_size)


def load_dataset(path):
    """Read a dataset file, checking that its columns match the expected feature layout."""
    df = pd.read_csv(path, dtype={LABEL_COLUMN: str})
    if list(df.columns) != DATASET_HEADER:
        raise ArtifactMismatchError(
            f"{path} has columns {list(df.columns)}, expected {len(DATASET_HEADER)} columns {DATASET_HEADER}")
    return df


def _rows_to_frame(rows):
    df = pd.DataFrame(rows, columns=DATASET_HEADER)
    df[FEATURE_COLUMNS] = df[FEATURE_COLUMNS].astype(np.float64)
    df[LABEL_COLUMN] = df[LABEL_COLUMN].astype(str)
    return df
