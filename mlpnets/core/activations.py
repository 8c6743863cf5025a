"""Activation functions and their analytic derivatives."""

from __future__ import annotations

import math
from typing import Callable, Dict

from .backend import Backend
from .types import ActivationKind, Matrix

ActivationFn = Callable[[Backend, Matrix], Matrix]

FLT_EPSILON = 1.1920929e-07

# Exponent bounds; exp(_SOFTMAX_MAX_LOG) == 1e10.
_LOGISTIC_CLAMP = 500.0
_SOFTMAX_MAX_LOG = math.log(1e10)

DROPOUT_LOW = 0.05
DROPOUT_HIGH = 0.8


def identity(xp: Backend, x: Matrix) -> Matrix:
    return xp.copy(x)


def relu(xp: Backend, x: Matrix) -> Matrix:
    """Return the ReLU activation."""

    return xp.clip(x, 0.0, None)


def logistic(xp: Backend, x: Matrix) -> Matrix:
    clamped = xp.clip(x, -_LOGISTIC_CLAMP, _LOGISTIC_CLAMP)
    return 1.0 / (1.0 + xp.exp(-clamped))


def softmax(xp: Backend, x: Matrix) -> Matrix:
    """Column-wise softmax: every column is one sample."""

    e = xp.exp(xp.clip(x, None, _SOFTMAX_MAX_LOG)) + FLT_EPSILON
    return e / xp.sum(e, axis=0)


def softplus(xp: Backend, x: Matrix) -> Matrix:
    """Natural-log softplus ``log(1 + e^x)``."""

    return xp.logaddexp(x, 0.0)


def d_relu(xp: Backend, x: Matrix) -> Matrix:
    # exactly-zero inputs count as not activated
    return xp.greater(x, 0.0)


def d_logistic(xp: Backend, x: Matrix) -> Matrix:
    s = logistic(xp, x)
    return s * (1.0 - s)


def d_softplus(xp: Backend, x: Matrix) -> Matrix:
    return logistic(xp, x)


def no_op(xp: Backend, x: Matrix) -> Matrix:
    """Derivative arm that leaves the error signal untouched."""

    return xp.ones_like(x)


ACTIVATIONS: Dict[ActivationKind, ActivationFn] = {
    ActivationKind.IDENTITY: identity,
    ActivationKind.RELU: relu,
    ActivationKind.LOGISTIC: logistic,
    ActivationKind.SOFTMAX: softmax,
    ActivationKind.SOFTPLUS: softplus,
}

DERIVATIVES: Dict[ActivationKind, ActivationFn] = {
    ActivationKind.IDENTITY: no_op,
    ActivationKind.RELU: d_relu,
    ActivationKind.LOGISTIC: d_logistic,
    ActivationKind.SOFTMAX: no_op,
    ActivationKind.SOFTPLUS: d_softplus,
}


def parse_activation(name: str | ActivationKind) -> ActivationKind:
    """Map ``name`` onto :class:`ActivationKind`; unknown names become identity."""

    if isinstance(name, ActivationKind):
        return name
    try:
        return ActivationKind(str(name).strip().lower())
    except ValueError:
        return ActivationKind.IDENTITY


def apply_activation(xp: Backend, kind: ActivationKind, x: Matrix) -> Matrix:
    return ACTIVATIONS[kind](xp, x)


def apply_derivative(xp: Backend, kind: ActivationKind, x: Matrix) -> Matrix:
    return DERIVATIVES[kind](xp, x)


def dropout_active(rate: float) -> bool:
    """Dropout only applies strictly inside ``(0.05, 0.8)``."""

    return DROPOUT_LOW < float(rate) < DROPOUT_HIGH


__all__ = [
    "ACTIVATIONS",
    "DERIVATIVES",
    "FLT_EPSILON",
    "apply_activation",
    "apply_derivative",
    "dropout_active",
    "parse_activation",
]
