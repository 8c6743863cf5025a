"""Small datasets and preprocessing helpers."""

from __future__ import annotations

from typing import Tuple

import numpy as np

from .core.types import Array

# Two linearly separable clusters, labelled +1 and -1.
_CLUSTER_POINTS = np.array(
    [[1, 2], [2, 2], [4, 6], [102, 100], [104, 105], [99, 101]], dtype=np.float64
)
_CLUSTER_LABELS = np.array([1, 1, 1, -1, -1, -1], dtype=np.int64)


def two_clusters() -> Tuple[Array, Array]:
    """Return the six-point toy set with labels in ``{+1, -1}``."""

    return _CLUSTER_POINTS.copy(), _CLUSTER_LABELS.copy()


def iris() -> Tuple[Array, Array]:
    """Return the 150-sample iris set with integer labels 0..2."""

    from sklearn.datasets import load_iris  # local import to avoid hard dependency

    bunch = load_iris()
    return np.asarray(bunch.data, dtype=np.float64), np.asarray(bunch.target, dtype=np.int64)


def one_hot(labels: Array, num_classes: int | None = None) -> Tuple[Array, Array]:
    """Encode arbitrary integer labels as one-hot rows.

    Returns the ``(n, k)`` targets and the sorted label values, so that column
    ``j`` stands for ``classes[j]``.
    """

    labels = np.asarray(labels).reshape(-1)
    classes = np.unique(labels)
    if num_classes is not None and num_classes < len(classes):
        raise ValueError(f"{len(classes)} distinct labels do not fit {num_classes} classes")
    width = num_classes or len(classes)
    out = np.zeros((labels.shape[0], width), dtype=np.float64)
    out[np.arange(labels.shape[0]), np.searchsorted(classes, labels)] = 1.0
    return out, classes


def holdout_split(
    features: Array, labels: Array, per_class: int
) -> Tuple[Array, Array, Array, Array]:
    """Hold out the first ``per_class`` samples of every class for testing."""

    features = np.asarray(features)
    labels = np.asarray(labels).reshape(-1)
    test_mask = np.zeros(labels.shape[0], dtype=bool)
    for cls in np.unique(labels):
        idx = np.flatnonzero(labels == cls)[:per_class]
        test_mask[idx] = True
    return (
        features[~test_mask],
        labels[~test_mask],
        features[test_mask],
        labels[test_mask],
    )


def standardize(train: Array, test: Array) -> Tuple[Array, Array]:
    """Z-score both splits with the training statistics."""

    mean = train.mean(axis=0, keepdims=True)
    std = train.std(axis=0, keepdims=True)
    std = np.where(std > 0, std, 1.0)
    return (train - mean) / std, (test - mean) / std


__all__ = ["holdout_split", "iris", "one_hot", "standardize", "two_clusters"]
