"""
Evaluation script for a persisted jump classifier.
Calculates Accuracy, Confusion Matrix, and Classification Report
using a saved model bundle, its normalization parameters and a dataset file.
"""
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import seaborn as sns
from sklearn.metrics import accuracy_score, classification_report, confusion_matrix

from dataset_aggregator import load_dataset
from inference_loop import load_inference_session
from model_config import FEATURE_COLUMNS, LABEL_COLUMN


def evaluate_dataset(model_path, params_path, dataset_path):
    """
    Classify every row of a dataset file with the persisted model.
    Returns: dict with accuracy, report (text), confusion_matrix and labels
    """
    session = load_inference_session(model_path, params_path)
    df = load_dataset(dataset_path)
    if df.empty:
        raise ValueError(f"{dataset_path} has no rows to evaluate")

    X = session.store.apply(df[FEATURE_COLUMNS].to_numpy())
    y_true = df[LABEL_COLUMN].astype(str).to_numpy()
    y_pred = session.model.predict(X).astype(str)

    labels = sorted(set(y_true) | set(y_pred))
    return {
        'accuracy': float(accuracy_score(y_true, y_pred)),
        'report': classification_report(y_true, y_pred, labels=labels, zero_division=0),
        'confusion_matrix': confusion_matrix(y_true, y_pred, labels=labels),
        'labels': labels,
    }


def plot_confusion_matrix(cm, labels, out_file, title=None):
    plt.figure(figsize=(6, 5))
    sns.heatmap(cm, annot=True, fmt='d', cmap='Blues',
                xticklabels=labels, yticklabels=labels)
    plt.title(title or 'Confusion Matrix')
    plt.xlabel('Predicted Label')
    plt.ylabel('True Label')
    plt.tight_layout()
    plt.savefig(out_file)
    plt.close()
    return out_file


def print_evaluation(results):
    print("\n" + "=" * 50)
    print("PERFORMANCE METRICS")
    print("=" * 50)
    acc = results['accuracy']
    print(f"Overall Accuracy: {acc:.4f} ({acc * 100:.2f}%)")
    print("\nClassification Report:")
    print(results['report'])
    print("\nConfusion Matrix (Text):")
    print(results['confusion_matrix'])
