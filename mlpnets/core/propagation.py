"""Forward pass, error back-propagation and gradient-descent updates.

Samples are laid out as columns: a batch of ``n`` samples with ``d`` features
is a ``(d + 1, n)`` matrix once the bias row of ones is appended. Every
trainable layer ``l`` owns ``weights[l]`` and maps ``activations[l]`` to
``activations[l + 1]``. Hidden layers carry one extra node, so the matrix
shapes chain as ``(nodes[l] + 1, rows(weights[l - 1]))`` with the last layer
dropping the extra row.
"""

from __future__ import annotations

from typing import Callable, List, Optional, Sequence

import numpy as np

from .activations import apply_activation, apply_derivative, dropout_active
from .backend import Backend
from .types import ActivationKind, Array, ForwardState, Matrix

Masks = Sequence[Optional[Matrix]]
LossGradient = Callable[[Backend, Matrix, Matrix], Matrix]


def add_bias_row(features: Array) -> Array:
    """Turn ``(n, d)`` samples into a ``(d + 1, n)`` column batch."""

    features = np.asarray(features, dtype=np.float64)
    if features.ndim == 1:
        features = features.reshape(1, -1)
    ones = np.ones((features.shape[0], 1), dtype=features.dtype)
    return np.hstack([features, ones]).T


def weight_shapes(layer_sizes: Sequence[int], input_rows: int) -> List[tuple[int, int]]:
    shapes: List[tuple[int, int]] = []
    prev = int(input_rows)
    last = len(layer_sizes) - 1
    for idx, size in enumerate(layer_sizes):
        rows = int(size) + (0 if idx == last else 1)
        shapes.append((rows, prev))
        prev = rows
    return shapes


def init_weights(
    rng: np.random.Generator, layer_sizes: Sequence[int], input_rows: int
) -> List[Array]:
    """Draw a fresh standard-normal weight matrix per layer."""

    if not layer_sizes:
        raise ValueError("At least one layer is required to allocate weights")
    return [rng.standard_normal(shape) for shape in weight_shapes(layer_sizes, input_rows)]


def sample_dropout_masks(
    rng: np.random.Generator,
    weights: Sequence[Array],
    dropout_rates: Sequence[float],
    num_samples: int,
) -> List[Optional[Array]]:
    """Bernoulli keep-masks for every layer whose dropout is active."""

    masks: List[Optional[Array]] = []
    for W, rate in zip(weights, dropout_rates):
        if dropout_active(rate):
            keep = rng.random((W.shape[0], num_samples)) >= rate
            masks.append(keep.astype(np.float64))
        else:
            masks.append(None)
    return masks


def _check_lengths(weights: Sequence[Matrix], **lists: Sequence[object]) -> None:
    for name, values in lists.items():
        if len(values) != len(weights):
            raise ValueError(
                f"{name} has {len(values)} entries but there are {len(weights)} weight matrices"
            )


def forward(
    xp: Backend,
    inputs: Matrix,
    weights: Sequence[Matrix],
    activation_kinds: Sequence[ActivationKind],
    dropout_rates: Sequence[float],
    masks: Masks | None = None,
) -> ForwardState:
    """Run the forward pass.

    ``outputs[0]`` and ``activations[0]`` are the bias-augmented input;
    ``outputs[l + 1]`` is the pre-activation that produced
    ``activations[l + 1]``.
    """

    _check_lengths(weights, activation_kinds=activation_kinds, dropout_rates=dropout_rates)
    outputs: List[Matrix] = [inputs]
    activations: List[Matrix] = [inputs]
    for idx, W in enumerate(weights):
        current = activations[idx]
        if W.shape[1] != current.shape[0]:
            raise ValueError(
                f"Layer {idx} expects {W.shape[1]} input rows but received {current.shape[0]}"
            )
        z = xp.matmul(W, current)
        a = apply_activation(xp, activation_kinds[idx], z)
        if dropout_active(dropout_rates[idx]):
            mask = masks[idx] if masks is not None else None
            if mask is None:
                raise ValueError(f"Layer {idx} has active dropout but no mask was sampled")
            a = a * mask
        outputs.append(z)
        activations.append(a)
    return ForwardState(outputs=outputs, activations=activations)


def backward(
    xp: Backend,
    target: Matrix,
    activation_kinds: Sequence[ActivationKind],
    weights: Sequence[Matrix],
    state: ForwardState,
    loss_gradient: LossGradient,
) -> List[Optional[Matrix]]:
    """Propagate ``loss_gradient`` from the output layer down to layer 1.

    ``errors[0]`` is ``None``: no error is computed for the raw input.
    """

    _check_lengths(weights, activation_kinds=activation_kinds)
    num_layers = len(weights)
    output = state.activations[-1]
    if tuple(target.shape) != tuple(output.shape):
        raise ValueError(
            f"Target shape {tuple(target.shape)} does not match output shape {tuple(output.shape)}"
        )
    errors: List[Optional[Matrix]] = [None] * (num_layers + 1)
    errors[num_layers] = loss_gradient(xp, output, target)
    for idx in range(num_layers - 1, 0, -1):
        aux = xp.matmul(xp.transpose(weights[idx]), errors[idx + 1])
        derivative = apply_derivative(xp, activation_kinds[idx - 1], state.outputs[idx])
        errors[idx] = aux * derivative
    return errors


def update(
    xp: Backend,
    learning_rate: float,
    activations: Sequence[Matrix],
    errors: Sequence[Optional[Matrix]],
    weights: Sequence[Matrix],
) -> List[Matrix]:
    """Return a new weight set; ``weights`` is left untouched."""

    new_weights: List[Matrix] = []
    for idx in range(1, len(weights) + 1):
        gradient = xp.matmul(errors[idx], xp.transpose(activations[idx - 1]))
        new_weights.append(weights[idx - 1] - learning_rate * gradient)
    return new_weights


def argmax_labels(responses: Array) -> Array:
    """Per-row arg-max; ties resolve to the lowest column index."""

    responses = np.asarray(responses)
    if responses.ndim == 1:
        responses = responses.reshape(1, -1)
    return np.argmax(responses, axis=1).astype(np.int64)


__all__ = [
    "add_bias_row",
    "argmax_labels",
    "backward",
    "forward",
    "init_weights",
    "sample_dropout_masks",
    "update",
    "weight_shapes",
]
