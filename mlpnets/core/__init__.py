"""Core numerical primitives for mlpnets."""

from . import activations, backend, classifier, propagation, types

__all__ = ["activations", "backend", "classifier", "propagation", "types"]
