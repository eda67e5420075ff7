"""
Trains several candidate classifiers on the aggregated dataset, compares them with
k-fold cross validation and keeps the best one.

Steps:
1- shuffle the dataset with a fixed seed
2- first split_ratio of the rows -> train, the rest -> test
3- fit min/max normalization on train only, apply to both splits
4- fit every candidate on train, cross validate it on train
5- highest mean CV accuracy wins (first declared wins ties)
6- evaluate the winner once on the test split
7- persist model + normalization parameters together
"""
import math
import os
from datetime import datetime

import joblib
import numpy as np
from sklearn.base import clone
from sklearn.ensemble import RandomForestClassifier
from sklearn.linear_model import LogisticRegression
from sklearn.metrics import accuracy_score
from sklearn.model_selection import KFold, cross_val_score
from sklearn.naive_bayes import GaussianNB
from sklearn.neighbors import KNeighborsClassifier
from sklearn.svm import SVC
from sklearn.tree import DecisionTreeClassifier

import normalization
from errors import ConfigurationError, TrainingFailure
from model_config import (CV_FOLDS, FEATURE_COLUMNS, LABEL_COLUMN, RANDOM_SEED,
                          SPLIT_RATIO, WINDOW_SIZE)


def default_candidates(seed=RANDOM_SEED):
    """Candidate classifiers in declaration order (ties go to the earlier one)."""
    return {
        "DecisionTree": DecisionTreeClassifier(random_state=seed),
        "RandomForest": RandomForestClassifier(n_estimators=100, random_state=seed),
        "KNN": KNeighborsClassifier(n_neighbors=3, weights='distance'),
        "NaiveBayes": GaussianNB(),
        "SVM": SVC(kernel='rbf', C=1.0, gamma='scale'),
        "LogisticRegression": LogisticRegression(max_iter=1000),
    }


class SelectionResult:
    def __init__(self, best_name, best_model, test_accuracy, cv_scores, params,
                 n_train, n_test, failures=None):
        self.best_name = best_name
        self.best_model = best_model
        self.test_accuracy = test_accuracy
        self.cv_scores = cv_scores        # name -> mean CV accuracy, successful candidates only
        self.params = params              # NormalizationParams fit on the training split
        self.n_train = n_train
        self.n_test = n_test
        self.failures = failures or {}    # name -> error message

    def __repr__(self):
        return (f"SelectionResult(best={self.best_name!r}, cv={self.cv_scores.get(self.best_name):.4f}, "
                f"test={self.test_accuracy:.4f})")


def minimum_rows(split_ratio=SPLIT_RATIO, folds=CV_FOLDS):
    """
    Smallest dataset that can be selected on: the training split must hold at least
    `folds` rows (one per CV fold) and the test split at least one row.
    """
    n = max(folds, 2)
    while math.floor(n * split_ratio) < folds or n - math.floor(n * split_ratio) < 1:
        n += 1
    return n


def split_dataset(dataset, split_ratio=SPLIT_RATIO, seed=RANDOM_SEED):
    """
    Deterministic shuffle then contiguous split.
    Returns: X_train, X_test, y_train, y_test as numpy arrays
    """
    X = dataset[FEATURE_COLUMNS].to_numpy(dtype=np.float64)
    y = dataset[LABEL_COLUMN].astype(str).to_numpy()

    order = np.random.default_rng(seed).permutation(len(X))
    X = X[order]
    y = y[order]

    n_train = math.floor(len(X) * split_ratio)
    return X[:n_train], X[n_train:], y[:n_train], y[n_train:]


def select_and_evaluate(dataset, candidates, split_ratio=SPLIT_RATIO, folds=CV_FOLDS, seed=RANDOM_SEED):
    """
    dataset: DataFrame with FEATURE_COLUMNS + label
    candidates: ordered mapping name -> unfitted sklearn-compatible estimator
    Returns: SelectionResult
    """
    if not candidates:
        raise ConfigurationError("no candidate classifiers given")
    if folds < 2:
        raise ConfigurationError(f"cross validation needs at least 2 folds, got {folds}")
    if not 0.0 < split_ratio < 1.0:
        raise ConfigurationError(f"split ratio must be between 0 and 1, got {split_ratio}")

    X_train, X_test, y_train, y_test = split_dataset(dataset, split_ratio, seed)
    if len(X_train) < folds or len(X_test) < 1:
        raise ConfigurationError(
            f"dataset has {len(dataset)} rows -> {len(X_train)} train / {len(X_test)} test; "
            f"need at least {minimum_rows(split_ratio, folds)} rows for {folds}-fold selection")

    print(f"Training on {len(X_train)} rows, testing on {len(X_test)} rows "
          f"({len(set(y_train))} classes in train)")

    params = normalization.fit(X_train)
    X_train = normalization.apply(params, X_train)
    X_test = normalization.apply(params, X_test)

    kfold = KFold(n_splits=folds, shuffle=True, random_state=seed)
    cv_scores = {}
    fitted = {}
    failures = {}

    print(f"\n=== Comparing {len(candidates)} candidate classifiers ({folds}-fold CV) ===")
    for name, estimator in candidates.items():
        try:
            model = clone(estimator).fit(X_train, y_train)
            scores = cross_val_score(clone(estimator), X_train, y_train,
                                     cv=kfold, scoring='accuracy', error_score='raise')
        except Exception as e:
            failures[name] = str(e)
            print(f"WARNING: {name} failed to train, excluded: {e}")
            continue

        cv_scores[name] = float(np.mean(scores))
        fitted[name] = model
        print(f"    {name:<20} CV accuracy: %{cv_scores[name] * 100:.2f}")

    if not fitted:
        raise TrainingFailure(f"all {len(candidates)} candidate classifiers failed: {failures}")

    best_name = None
    for name, score in cv_scores.items():
        if best_name is None or score > cv_scores[best_name]:
            best_name = name

    best_model = fitted[best_name]
    test_accuracy = float(accuracy_score(y_test, best_model.predict(X_test)))
    print(f"Winner: {best_name} (CV %{cv_scores[best_name] * 100:.2f}, test %{test_accuracy * 100:.2f})")

    return SelectionResult(best_name, best_model, test_accuracy, cv_scores, params,
                           n_train=len(X_train), n_test=len(X_test), failures=failures)


def persist_selection(result, model_path, params_path, window_size=WINDOW_SIZE):
    """Write the model bundle and its normalization parameters as a pair."""
    model_dir = os.path.dirname(model_path)
    if model_dir:
        os.makedirs(model_dir, exist_ok=True)

    model_data = {
        'model': result.best_model,
        'model_name': result.best_name,
        'feature_columns': list(FEATURE_COLUMNS),
        'window_size': window_size,
        'normalization': list(result.params.pairs),
        'cv_scores': dict(result.cv_scores),
        'test_accuracy': result.test_accuracy,
        'trained_at': datetime.now().isoformat(timespec='seconds'),
    }
    joblib.dump(model_data, model_path)
    normalization.persist(result.params, params_path)
    print(f"Model saved to {model_path}, normalization parameters to {params_path}")


def write_comparison_report(result, path):
    """Ranked CV accuracy of every candidate, winner and held-out accuracy at the bottom."""
    date_str = datetime.now().strftime("%d/%m/%Y %H:%M")
    ranked = sorted(result.cv_scores.items(), key=lambda item: item[1], reverse=True)

    with open(path, "w", encoding="utf-8") as f:
        f.write(f"MODEL COMPARISON REPORT - {date_str}\n")
        f.write("=" * 60 + "\n")
        f.write(f"{'Rank':<5} | {'Model':<20} | {'CV Accuracy'}\n")
        f.write("-" * 60 + "\n")
        for rank, (name, score) in enumerate(ranked, start=1):
            f.write(f"{rank:<5} | {name:<20} | %{score * 100:>8.2f}\n")
        for name, error in result.failures.items():
            f.write(f"{'-':<5} | {name:<20} | FAILED: {error}\n")

        f.write("\n" + "=" * 60 + "\n")
        f.write(f"WINNER: {result.best_name}\n")
        f.write(f"Train rows: {result.n_train}, test rows: {result.n_test}\n")
        f.write(f"Test Accuracy: %{result.test_accuracy * 100:.2f}\n")
        f.write("=" * 60 + "\n")
