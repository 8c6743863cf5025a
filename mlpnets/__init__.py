"""mlpnets public API."""

from .config import MLPConfig, load_config
from .core import activations, backend, propagation, types  # noqa: F401
from .core.classifier import Classifier
from .persistence import deserialize, serialize
from .training.metrics import Results
from .training.pipelines import load_preset, presets, run_pipeline
from .training.trainer import MultilayerPerceptron, Trainer

__all__ = [
    "Classifier",
    "MLPConfig",
    "MultilayerPerceptron",
    "Results",
    "Trainer",
    "activations",
    "backend",
    "deserialize",
    "load_config",
    "load_preset",
    "presets",
    "propagation",
    "run_pipeline",
    "serialize",
    "types",
]
