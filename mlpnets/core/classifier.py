"""Classifier capability consumed by evaluation harnesses."""

from __future__ import annotations

from typing import Protocol, Tuple

from .types import Array


class Classifier(Protocol):
    """Anything that learns from features and predicts labels."""

    def learn(self, features: Array, labels: Array) -> None:
        """Fit on ``(n, d)`` features and ``(n, k)`` targets."""

    def predict(self, features: Array) -> Tuple[Array, Array]:
        """Return ``(responses, labels)`` for ``(n, d)`` features."""

    def clone(self) -> "Classifier": ...

    def empty(self) -> bool: ...

    def is_trained(self) -> bool: ...
