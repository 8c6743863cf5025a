"""Core typing contracts for mlpnets."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List

import numpy as np

Array = np.ndarray

# Either a host ``np.ndarray`` or a backend-resident tensor.
Matrix = Any


class ActivationKind(str, Enum):
    """Closed set of per-layer activation functions."""

    IDENTITY = "identity"
    RELU = "relu"
    LOGISTIC = "logistic"
    SOFTMAX = "softmax"
    SOFTPLUS = "softplus"


class LossKind(str, Enum):
    """Closed set of output losses; ``PASSTHROUGH`` is the unknown-name arm."""

    QUADRATIC = "quadratic"
    LOG = "log"
    PASSTHROUGH = "passthrough"


class TrainerStatus(str, Enum):
    INITIALIZED = "initialized"
    ITERATING = "iterating"
    CONVERGED = "converged"
    MAX_ITERATIONS_REACHED = "max_iterations_reached"


@dataclass(frozen=True)
class LayerSpec:
    """One trainable layer: node count, activation and dropout rate."""

    num_nodes: int
    activation: ActivationKind = ActivationKind.RELU
    dropout: float = 0.0


@dataclass
class ForwardState:
    """Per-layer pre-activation outputs and post-activation values."""

    outputs: List[Matrix]
    activations: List[Matrix]


@dataclass
class TrainingState:
    """State of a single :meth:`MultilayerPerceptron.learn` call."""

    iteration: int = 0
    loss: float = float("inf")
    status: TrainerStatus = TrainerStatus.INITIALIZED
    nan_detected: bool = False
    history: List[float] = field(default_factory=list)

    @property
    def finished(self) -> bool:
        return self.status in {
            TrainerStatus.CONVERGED,
            TrainerStatus.MAX_ITERATIONS_REACHED,
        }


@dataclass(frozen=True)
class RunResult:
    """Summary returned by :func:`mlpnets.training.pipelines.run_pipeline`."""

    iterations: int
    loss: float
    status: str
    accuracy: float
    metrics_path: str
    manifest_path: str
