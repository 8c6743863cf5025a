"""Evaluation of predicted labels against ground truth."""

from __future__ import annotations

from typing import Dict, List

import numpy as np

from ..core.types import Array


class Results:
    """Confusion matrix and accuracy figures for one set of predictions.

    Rows of the confusion matrix are ground-truth labels, columns are
    predicted labels, both indexed by the sorted union of observed labels.
    """

    def __init__(self, actual: Array, expected: Array) -> None:
        self.actual = np.asarray(actual).reshape(-1).astype(np.int64)
        self.expected = np.asarray(expected).reshape(-1).astype(np.int64)
        if self.actual.shape != self.expected.shape:
            raise ValueError(
                f"{self.actual.size} predictions but {self.expected.size} ground-truth labels"
            )
        self._label_map: Dict[int, int] = {}
        self._confusion: Array | None = None

    def _compute(self) -> Array:
        if self._confusion is None:
            labels = np.unique(np.concatenate([self.actual, self.expected]))
            self._label_map = {int(label): idx for idx, label in enumerate(labels)}
            confusion = np.zeros((len(labels), len(labels)), dtype=np.int64)
            for gt, pred in zip(self.expected, self.actual):
                confusion[self._label_map[int(gt)], self._label_map[int(pred)]] += 1
            self._confusion = confusion
        return self._confusion

    @property
    def confusion_matrix(self) -> Array:
        return self._compute().copy()

    @property
    def label_map(self) -> Dict[int, int]:
        """Map from label value to confusion-matrix index."""

        self._compute()
        return dict(self._label_map)

    @property
    def num_classes(self) -> int:
        return int(self._compute().shape[0])

    def accuracy(self) -> float:
        confusion = self._compute()
        total = confusion.sum()
        if total == 0:
            return 0.0
        return float(np.trace(confusion) / total)

    def mean_accuracy(self) -> float:
        """Average of the per-class recall."""

        confusion = self._compute()
        if confusion.size == 0:
            return 0.0
        per_class = []
        for row in range(confusion.shape[0]):
            count = confusion[row].sum()
            per_class.append(confusion[row, row] / count if count > 0 else 0.0)
        return float(np.mean(per_class))

    def labels_count(self) -> List[int]:
        return [int(v) for v in self._compute().sum(axis=1)]

    def as_metrics(self) -> Dict[str, float]:
        return {"accuracy": self.accuracy(), "mean_accuracy": self.mean_accuracy()}


__all__ = ["Results"]
