"""
Metrics Engine

Pure functions computing regression, classification and clustering metrics
from prediction vs. actual arrays. Every function returns 0.0 for empty
input or a zero denominator instead of NaN or an exception.
"""
from dataclasses import dataclass
from typing import Dict, Sequence

import numpy as np
from sklearn import metrics as sk_metrics
from sklearn.metrics.pairwise import euclidean_distances


@dataclass(frozen=True)
class ConfusionCounts:
    true_positives: int = 0
    false_positives: int = 0
    false_negatives: int = 0
    true_negatives: int = 0


def _as_arrays(actual: Sequence[float], predicted: Sequence[float]):
    y_true = np.asarray(actual, dtype=float).ravel()
    y_pred = np.asarray(predicted, dtype=float).ravel()
    if y_true.shape != y_pred.shape:
        raise ValueError(
            f"actual and predicted lengths differ: {y_true.size} != {y_pred.size}"
        )
    return y_true, y_pred


def _safe_div(numerator: float, denominator: float) -> float:
    if denominator == 0:
        return 0.0
    return float(numerator / denominator)


def mean_squared_error(actual: Sequence[float], predicted: Sequence[float]) -> float:
    """Mean of squared residuals."""
    y_true, y_pred = _as_arrays(actual, predicted)
    if y_true.size == 0:
        return 0.0
    return float(sk_metrics.mean_squared_error(y_true, y_pred))


def mean_absolute_error(actual: Sequence[float], predicted: Sequence[float]) -> float:
    """Mean of absolute residuals."""
    y_true, y_pred = _as_arrays(actual, predicted)
    if y_true.size == 0:
        return 0.0
    return float(sk_metrics.mean_absolute_error(y_true, y_pred))


def r2_score(actual: Sequence[float], predicted: Sequence[float]) -> float:
    """
    Coefficient of determination, ``1 - SSres / SStot``.

    A constant target has SStot = 0; the score is 1.0 when it is fitted
    exactly and 0.0 otherwise.
    """
    y_true, y_pred = _as_arrays(actual, predicted)
    if y_true.size == 0:
        return 0.0
    ss_res = float(np.sum((y_true - y_pred) ** 2))
    if ss_res == 0:
        return 1.0
    ss_tot = float(np.sum((y_true - y_true.mean()) ** 2))
    if ss_tot == 0:
        return 0.0
    return 1.0 - ss_res / ss_tot


def confusion_counts(
    actual: Sequence[float],
    predicted_probabilities: Sequence[float],
    threshold: float = 0.5
) -> ConfusionCounts:
    """
    Count binary outcomes after thresholding probabilities.

    A probability strictly above ``threshold`` counts as a positive
    prediction. Actual labels are compared against 1 and 0.

    Args:
        actual: True labels (0/1)
        predicted_probabilities: Model output probabilities
        threshold: Decision threshold (default: 0.5)

    Returns:
        ConfusionCounts with TP/FP/FN/TN
    """
    y_true, proba = _as_arrays(actual, predicted_probabilities)
    y_pred = (proba > threshold).astype(int)
    return ConfusionCounts(
        true_positives=int(np.sum((y_true == 1) & (y_pred == 1))),
        false_positives=int(np.sum((y_true == 0) & (y_pred == 1))),
        false_negatives=int(np.sum((y_true == 1) & (y_pred == 0))),
        true_negatives=int(np.sum((y_true == 0) & (y_pred == 0))),
    )


def precision_recall_f1(counts: ConfusionCounts) -> Dict[str, float]:
    """Derive precision, recall and F1 from confusion counts."""
    precision = _safe_div(counts.true_positives, counts.true_positives + counts.false_positives)
    recall = _safe_div(counts.true_positives, counts.true_positives + counts.false_negatives)
    f1 = _safe_div(2 * precision * recall, precision + recall)
    return {"precision": precision, "recall": recall, "f1_score": f1}


def classification_metrics(
    actual: Sequence[float],
    predicted_probabilities: Sequence[float],
    threshold: float = 0.5
) -> Dict[str, float]:
    """Precision, recall and F1 of thresholded probabilities."""
    return precision_recall_f1(confusion_counts(actual, predicted_probabilities, threshold))


def separation_score(
    points: Sequence[Sequence[float]],
    assignments: Sequence[int],
    centroids: Sequence[Sequence[float]]
) -> float:
    """
    Silhouette-style cluster separation normalized to [0, 1].

    Per point, ``a`` is the distance to its own centroid and ``b`` the
    distance to the nearest other centroid; the point scores
    ``(b - a) / max(a, b)``. The mean score ``m`` is mapped to ``(m + 1) / 2``.

    Args:
        points: Feature matrix (n_samples, n_features)
        assignments: Cluster index of every point
        centroids: Cluster centers (k, n_features)

    Returns:
        Normalized score in [0, 1]; 0.0 for an empty matrix
    """
    X = np.asarray(points, dtype=float)
    C = np.asarray(centroids, dtype=float)
    labels = np.asarray(assignments, dtype=int)
    if X.size == 0 or C.size == 0:
        return 0.0

    distances = euclidean_distances(X, C)
    rows = np.arange(len(X))
    a = distances[rows, labels]

    if len(C) < 2:
        per_point = np.zeros(len(X))
    else:
        others = distances.copy()
        others[rows, labels] = np.inf
        b = others.min(axis=1)
        denom = np.maximum(a, b)
        per_point = np.divide(b - a, denom, out=np.zeros(len(X)), where=denom > 0)

    score = (float(per_point.mean()) + 1.0) / 2.0
    return min(1.0, max(0.0, score))
