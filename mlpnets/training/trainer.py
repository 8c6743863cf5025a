"""Iterative trainer and the multilayer-perceptron classifier."""

from __future__ import annotations

import copy
import math
import warnings
from dataclasses import dataclass
from typing import List, Mapping, Optional, Sequence, Tuple

import numpy as np

from ..config import MLPConfig
from ..core.activations import parse_activation
from ..core.backend import Backend, get_backend
from ..core.propagation import (
    add_bias_row,
    argmax_labels,
    backward,
    forward,
    init_weights,
    sample_dropout_masks,
    update,
)
from ..core.types import (
    ActivationKind,
    Array,
    LayerSpec,
    LossKind,
    Matrix,
    TrainerStatus,
    TrainingState,
)
from ..persistence import deserialize, serialize
from .losses import parse_loss, resolve


@dataclass
class TrainResult:
    weights: List[Matrix]
    masks: List[Optional[Matrix]]
    state: TrainingState


class Trainer:
    """Run Forward -> Loss -> Backward -> Update until convergence or the cap."""

    def __init__(
        self,
        backend: Backend,
        loss: LossKind | str,
        learning_rate: float,
        max_iterations: int,
        epsilon: float,
        *,
        log_every: int = 100,
        callbacks: Sequence[object] | None = None,
        verbose: bool = False,
    ) -> None:
        self.backend = backend
        self.loss = resolve(loss)
        self.learning_rate = float(learning_rate)
        self.max_iterations = int(max_iterations)
        self.epsilon = float(epsilon)
        self.log_every = max(1, int(log_every))
        self.callbacks = list(callbacks or [])
        self.verbose = verbose

    def run(
        self,
        inputs: Matrix,
        target: Matrix,
        weights: Sequence[Matrix],
        activation_kinds: Sequence[ActivationKind],
        dropout_rates: Sequence[float],
        rng: np.random.Generator,
    ) -> TrainResult:
        xp = self.backend
        state = TrainingState(status=TrainerStatus.ITERATING)
        current = list(weights)
        masks: List[Optional[Matrix]] = [None] * len(current)
        num_samples = int(inputs.shape[1])

        while not state.finished:
            masks = [
                None if mask is None else xp.asarray(mask)
                for mask in sample_dropout_masks(rng, current, dropout_rates, num_samples)
            ]
            fwd = forward(xp, inputs, current, activation_kinds, dropout_rates, masks)
            errors = backward(xp, target, activation_kinds, current, fwd, self.loss.derivative)
            current = update(xp, self.learning_rate, fwd.activations, errors, current)

            out = forward(xp, inputs, current, activation_kinds, dropout_rates, masks)
            output = out.activations[-1]
            state.loss = float(self.loss.value(xp, output, target))
            state.history.append(state.loss)
            state.iteration += 1
            self._check_finite(state, output)

            if state.loss < self.epsilon:
                state.status = TrainerStatus.CONVERGED
            elif state.iteration >= self.max_iterations:
                state.status = TrainerStatus.MAX_ITERATIONS_REACHED

            if state.iteration % self.log_every == 0 or state.finished:
                self._emit_step(state)

        return TrainResult(weights=current, masks=masks, state=state)

    # ------------------------------------------------------------------
    # Internal helpers

    def _check_finite(self, state: TrainingState, output: Matrix) -> None:
        if state.nan_detected:
            return
        if not math.isfinite(state.loss) or not self.backend.all_finite(output):
            state.nan_detected = True
            warnings.warn(
                f"Non-finite values in the output layer at iteration {state.iteration}",
                RuntimeWarning,
                stacklevel=3,
            )

    def _emit_step(self, state: TrainingState) -> None:
        metrics = {"loss": state.loss, "iteration": float(state.iteration)}
        if self.verbose:
            print(
                f"iteration {state.iteration}: average loss in the output layer is {state.loss:g}"
            )
        for callback in self.callbacks:
            if hasattr(callback, "on_step"):
                callback.on_step(state.iteration, metrics)  # type: ignore[attr-defined]
            elif callable(callback):
                callback(state.iteration, metrics)


class MultilayerPerceptron:
    """Fully-connected network trained by batch gradient descent.

    Satisfies the :class:`~mlpnets.core.classifier.Classifier` capability.
    Only the weight matrices survive across :meth:`learn` calls.
    """

    def __init__(
        self,
        config: MLPConfig | None = None,
        *,
        callbacks: Sequence[object] | None = None,
    ) -> None:
        self.config = copy.deepcopy(config) if config is not None else MLPConfig()
        self.callbacks = list(callbacks or [])
        self._weights: List[Array] = []
        self._masks: List[Optional[Array]] = []
        self._trained = False
        self.state: TrainingState | None = None

    @classmethod
    def create(
        cls,
        activation_types: Sequence[str],
        layer_sizes: Sequence[int],
        dropout_rates: Sequence[float] | None = None,
        **options: object,
    ) -> "MultilayerPerceptron":
        config = MLPConfig(
            layer_sizes=list(layer_sizes),
            activation_types=list(activation_types),
            dropout_rates=list(dropout_rates or []),
            **options,  # type: ignore[arg-type]
        )
        return cls(config)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, object]) -> "MultilayerPerceptron":
        return cls(MLPConfig.from_mapping(raw))

    # ------------------------------------------------------------------
    # Topology and hyperparameters

    def add_layer(self, num_nodes: int, dropout: float = 0.0, activation: str = "relu") -> None:
        if int(num_nodes) <= 0:
            raise ValueError("A layer needs at least one node")
        if not 0.0 <= float(dropout) < 1.0:
            raise ValueError("Dropout rates must lie in [0, 1)")
        self.config.layer_sizes.append(int(num_nodes))
        self.config.dropout_rates.append(float(dropout))
        self.config.activation_types.append(str(activation))
        self.config.num_layers = len(self.config.layer_sizes)

    @property
    def layers(self) -> Tuple[LayerSpec, ...]:
        cfg = self.config
        return tuple(
            LayerSpec(num_nodes=size, activation=parse_activation(kind), dropout=rate)
            for size, kind, rate in zip(cfg.layer_sizes, cfg.activation_types, cfg.dropout_rates)
        )

    @property
    def num_layers(self) -> int:
        return len(self.config.layer_sizes)

    @property
    def learning_rate(self) -> float:
        return self.config.learning_rate

    @learning_rate.setter
    def learning_rate(self, value: float) -> None:
        if value <= 0:
            raise ValueError("learningRate must be positive")
        self.config.learning_rate = float(value)

    @property
    def loss_type(self) -> str:
        return self.config.loss_type

    @loss_type.setter
    def loss_type(self, value: str) -> None:
        self.config.loss_type = str(value)

    @property
    def weights(self) -> List[Array]:
        return [W.copy() for W in self._weights]

    @weights.setter
    def weights(self, weights: Sequence[Array]) -> None:
        weights = [np.array(W, dtype=np.float64) for W in weights]
        if weights and len(weights) != self.num_layers:
            raise ValueError(
                f"Got {len(weights)} weight matrices for a {self.num_layers}-layer topology"
            )
        self._weights = weights

    @property
    def dropout_masks(self) -> List[Optional[Array]]:
        return [None if m is None else m.copy() for m in self._masks]

    @dropout_masks.setter
    def dropout_masks(self, masks: Sequence[Optional[Array]]) -> None:
        self._masks = [None if m is None else np.array(m, dtype=np.float64) for m in masks]

    # ------------------------------------------------------------------
    # Classifier capability

    def learn(self, features: Array, labels: Array) -> TrainingState:
        """Train on ``(n, d)`` features against ``(n, k)`` targets."""

        cfg = self.config
        cfg.validate()
        features = np.asarray(features, dtype=np.float64)
        labels = np.asarray(labels, dtype=np.float64)
        if labels.ndim == 1:
            labels = labels.reshape(-1, 1)
        if not cfg.layer_sizes:
            raise ValueError("The topology is empty; add at least one layer before learning")
        if features.shape[0] != labels.shape[0]:
            raise ValueError(
                f"{features.shape[0]} samples but {labels.shape[0]} label rows"
            )
        if labels.shape[1] != cfg.layer_sizes[-1]:
            raise ValueError(
                f"Targets have {labels.shape[1]} columns but the output layer has "
                f"{cfg.layer_sizes[-1]} nodes"
            )

        xp = get_backend(cfg.use_accelerated_backend)
        self._trained = False
        rng = np.random.default_rng(cfg.seed)
        inputs = add_bias_row(features)
        weights = init_weights(rng, cfg.layer_sizes, inputs.shape[0])
        kinds = [spec.activation for spec in self.layers]

        trainer = Trainer(
            xp,
            parse_loss(cfg.loss_type),
            cfg.learning_rate,
            cfg.max_iterations,
            cfg.epsilon,
            log_every=cfg.log_every,
            callbacks=self.callbacks,
            verbose=cfg.verbose,
        )
        result = trainer.run(
            xp.asarray(inputs),
            xp.asarray(labels.T),
            [xp.asarray(W) for W in weights],
            kinds,
            cfg.dropout_rates,
            rng,
        )
        self._weights = [np.array(xp.to_numpy(W), dtype=np.float64) for W in result.weights]
        self._masks = [
            None if m is None else np.array(xp.to_numpy(m), dtype=np.float64)
            for m in result.masks
        ]
        self.state = result.state
        self._trained = True
        return result.state

    def predict(self, features: Array) -> Tuple[Array, Array]:
        """Return ``(responses, labels)`` with one row per sample."""

        fwd = self._forward_host(features)
        responses = fwd.activations[-1].T
        return responses, argmax_labels(responses)

    def predict_layer(self, features: Array, layer_index: int) -> Array:
        """Return the activations of layer ``layer_index`` (0 is the input)."""

        fwd = self._forward_host(features)
        if not 0 <= layer_index < len(fwd.activations):
            raise ValueError(f"Layer index {layer_index} out of range")
        return fwd.activations[layer_index].T

    def clone(self) -> "MultilayerPerceptron":
        twin = MultilayerPerceptron(self.config, callbacks=self.callbacks)
        twin._weights = self.weights
        twin._masks = self.dropout_masks
        twin._trained = self._trained
        return twin

    def empty(self) -> bool:
        return not self._weights

    def is_trained(self) -> bool:
        return self._trained

    # ------------------------------------------------------------------
    # Persistence

    def to_node(self) -> dict:
        return serialize(self.config, self._weights, self._masks)

    @classmethod
    def from_node(cls, node: Mapping[str, object]) -> "MultilayerPerceptron":
        config, weights, masks = deserialize(node)
        model = cls(config)
        model.weights = weights
        model.dropout_masks = masks
        return model

    # ------------------------------------------------------------------
    # Internal helpers

    def _forward_host(self, features: Array):
        if self.empty():
            raise ValueError("No weights available; call learn() or load a model first")
        inputs = add_bias_row(features)
        if inputs.shape[0] != self._weights[0].shape[1]:
            raise ValueError(
                f"Model expects {self._weights[0].shape[1] - 1} features, got {inputs.shape[0] - 1}"
            )
        kinds = [spec.activation for spec in self.layers]
        no_dropout = [0.0] * len(self._weights)
        return forward(get_backend(), inputs, self._weights, kinds, no_dropout)


__all__ = ["MultilayerPerceptron", "TrainResult", "Trainer"]
