"""Output losses: the scalar monitored for convergence and its derivative."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict

from ..core.activations import FLT_EPSILON
from ..core.backend import Backend
from ..core.types import LossKind, Matrix

ValueFn = Callable[[Backend, Matrix, Matrix], float]
DerivativeFn = Callable[[Backend, Matrix, Matrix], Matrix]


@dataclass(frozen=True)
class Loss:
    """Loss wrapper pairing the mean loss with dL/d(output activation)."""

    kind: LossKind
    value: ValueFn
    derivative: DerivativeFn

    @property
    def name(self) -> str:
        return self.kind.value

    def __call__(self, xp: Backend, output: Matrix, target: Matrix) -> tuple[float, Matrix]:
        return self.value(xp, output, target), self.derivative(xp, output, target)


def _quadratic(xp: Backend, output: Matrix, target: Matrix) -> float:
    diff = output - target
    return xp.mean(diff * diff)


def _quadratic_deriv(xp: Backend, output: Matrix, target: Matrix) -> Matrix:
    return output - target


def _safe_log(xp: Backend, x: Matrix) -> Matrix:
    return xp.log(xp.clip(x + FLT_EPSILON, FLT_EPSILON, None))


def _log(xp: Backend, output: Matrix, target: Matrix) -> float:
    positive = xp.mean(target * _safe_log(xp, output))
    negative = xp.mean((1.0 - target) * _safe_log(xp, 1.0 - output))
    return -(positive + negative)


def _log_deriv(xp: Backend, output: Matrix, target: Matrix) -> Matrix:
    return (output - target) / (output * (1.0 - output) + FLT_EPSILON)


def _passthrough(xp: Backend, output: Matrix, target: Matrix) -> float:
    return 0.0


def _passthrough_deriv(xp: Backend, output: Matrix, target: Matrix) -> Matrix:
    return xp.copy(output)


REGISTRY: Dict[LossKind, Loss] = {
    LossKind.QUADRATIC: Loss(LossKind.QUADRATIC, _quadratic, _quadratic_deriv),
    LossKind.LOG: Loss(LossKind.LOG, _log, _log_deriv),
    LossKind.PASSTHROUGH: Loss(LossKind.PASSTHROUGH, _passthrough, _passthrough_deriv),
}


def parse_loss(name: str | LossKind) -> LossKind:
    """Map ``name`` onto :class:`LossKind`; unknown names become passthrough."""

    if isinstance(name, LossKind):
        return name
    try:
        return LossKind(str(name).strip().lower())
    except ValueError:
        return LossKind.PASSTHROUGH


def resolve(name: str | LossKind) -> Loss:
    return REGISTRY[parse_loss(name)]


def loss(name: str | LossKind, xp: Backend, output: Matrix, target: Matrix) -> float:
    return resolve(name).value(xp, output, target)


def loss_derivative(
    name: str | LossKind, xp: Backend, output: Matrix, target: Matrix
) -> Matrix:
    return resolve(name).derivative(xp, output, target)


__all__ = ["Loss", "REGISTRY", "loss", "loss_derivative", "parse_loss", "resolve"]
