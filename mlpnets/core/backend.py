"""Matrix backends the propagation engine is written against."""

from __future__ import annotations

from typing import Protocol

import numpy as np

from .types import Array, Matrix


class Backend(Protocol):
    """Small operation set shared by the host and accelerated paths."""

    name: str

    def asarray(self, x: Array) -> Matrix:
        """Move a host array into the backend representation."""

    def to_numpy(self, x: Matrix) -> Array:
        """Return ``x`` as a host ``np.ndarray``."""

    def matmul(self, a: Matrix, b: Matrix) -> Matrix: ...

    def transpose(self, x: Matrix) -> Matrix: ...

    def exp(self, x: Matrix) -> Matrix: ...

    def log(self, x: Matrix) -> Matrix: ...

    def logaddexp(self, x: Matrix, y: float) -> Matrix: ...

    def clip(self, x: Matrix, low: float | None, high: float | None) -> Matrix: ...

    def greater(self, x: Matrix, value: float) -> Matrix:
        """Return a float mask of ``x > value``."""

    def ones_like(self, x: Matrix) -> Matrix: ...

    def copy(self, x: Matrix) -> Matrix: ...

    def sum(self, x: Matrix, axis: int | None = None) -> Matrix: ...

    def mean(self, x: Matrix) -> float: ...

    def all_finite(self, x: Matrix) -> bool: ...


class NumpyBackend:
    """Host-memory backend."""

    name = "numpy"

    def __init__(self, dtype: type = np.float64) -> None:
        self.dtype = dtype

    def asarray(self, x: Array) -> Array:
        return np.asarray(x, dtype=self.dtype)

    def to_numpy(self, x: Array) -> Array:
        return np.asarray(x)

    def matmul(self, a: Array, b: Array) -> Array:
        return a @ b

    def transpose(self, x: Array) -> Array:
        return x.T

    def exp(self, x: Array) -> Array:
        return np.exp(x)

    def log(self, x: Array) -> Array:
        return np.log(x)

    def logaddexp(self, x: Array, y: float) -> Array:
        return np.logaddexp(x, y)

    def clip(self, x: Array, low: float | None, high: float | None) -> Array:
        return np.clip(x, low, high)

    def greater(self, x: Array, value: float) -> Array:
        return (x > value).astype(self.dtype)

    def ones_like(self, x: Array) -> Array:
        return np.ones_like(x)

    def copy(self, x: Array) -> Array:
        return np.array(x, copy=True)

    def sum(self, x: Array, axis: int | None = None) -> Array:
        if axis is None:
            return np.sum(x)
        return np.sum(x, axis=axis, keepdims=True)

    def mean(self, x: Array) -> float:
        return float(np.mean(x))

    def all_finite(self, x: Array) -> bool:
        return bool(np.all(np.isfinite(x)))


class TorchBackend:
    """Accelerated backend keeping every buffer on a torch device."""

    name = "torch"

    def __init__(self, device: str | None = None) -> None:
        try:
            import torch  # type: ignore
        except Exception as exc:  # pragma: no cover - optional dependency
            raise RuntimeError(
                "PyTorch is required for the accelerated backend; install mlpnets[accel]"
            ) from exc
        self._torch = torch
        if device is None:
            device = "cuda" if torch.cuda.is_available() else "cpu"
        self.device = torch.device(device)
        self.dtype = torch.float64

    def asarray(self, x: Array):
        return self._torch.as_tensor(np.asarray(x), dtype=self.dtype, device=self.device)

    def to_numpy(self, x) -> Array:
        return x.detach().cpu().numpy()

    def matmul(self, a, b):
        return a @ b

    def transpose(self, x):
        return x.T

    def exp(self, x):
        return self._torch.exp(x)

    def log(self, x):
        return self._torch.log(x)

    def logaddexp(self, x, y: float):
        return self._torch.logaddexp(x, self._torch.full_like(x, y))

    def clip(self, x, low: float | None, high: float | None):
        return self._torch.clamp(x, min=low, max=high)

    def greater(self, x, value: float):
        return (x > value).to(self.dtype)

    def ones_like(self, x):
        return self._torch.ones_like(x)

    def copy(self, x):
        return x.clone()

    def sum(self, x, axis: int | None = None):
        if axis is None:
            return self._torch.sum(x)
        return self._torch.sum(x, dim=axis, keepdim=True)

    def mean(self, x) -> float:
        return float(self._torch.mean(x))

    def all_finite(self, x) -> bool:
        return bool(self._torch.isfinite(x).all())


_HOST = NumpyBackend()


def get_backend(accelerated: bool = False) -> Backend:
    """Return the backend selected once at the start of ``learn``."""

    if accelerated:
        return TorchBackend()
    return _HOST


__all__ = ["Backend", "NumpyBackend", "TorchBackend", "get_backend"]
