"""Trainer configuration and config-file loading."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping

# camelCase option names accepted in mapping/file form
_ALIASES: Dict[str, str] = {
    "numLayers": "num_layers",
    "activationTypes": "activation_types",
    "layerSizes": "layer_sizes",
    "dropoutRates": "dropout_rates",
    "lossType": "loss_type",
    "learningRate": "learning_rate",
    "maxIterations": "max_iterations",
    "epsilon": "epsilon",
    "useAcceleratedBackend": "use_accelerated_backend",
    "logEvery": "log_every",
}


@dataclass
class MLPConfig:
    """Recognised options for :class:`~mlpnets.training.trainer.MultilayerPerceptron`."""

    layer_sizes: List[int] = field(default_factory=list)
    activation_types: List[str] = field(default_factory=list)
    dropout_rates: List[float] = field(default_factory=list)
    num_layers: int | None = None
    loss_type: str = "quadratic"
    learning_rate: float = 1e-3
    max_iterations: int = 1000
    epsilon: float = 0.01
    use_accelerated_backend: bool = False
    seed: int = 0
    log_every: int = 100
    verbose: bool = False

    def __post_init__(self) -> None:
        self.layer_sizes = [int(size) for size in self.layer_sizes]
        if not self.activation_types:
            self.activation_types = ["relu"] * len(self.layer_sizes)
        if not self.dropout_rates:
            self.dropout_rates = [0.0] * len(self.layer_sizes)
        self.activation_types = [str(kind) for kind in self.activation_types]
        self.dropout_rates = [float(rate) for rate in self.dropout_rates]
        if self.num_layers is None:
            self.num_layers = len(self.layer_sizes)
        self.validate()

    @classmethod
    def from_mapping(cls, raw: Mapping[str, object]) -> "MLPConfig":
        known = set(cls.__dataclass_fields__)
        kwargs: Dict[str, object] = {}
        for key, value in raw.items():
            name = _ALIASES.get(key, key)
            if name not in known:
                available = ", ".join(sorted(set(_ALIASES) | known))
                raise KeyError(f"Unknown option {key!r}. Recognised options: {available}")
            kwargs[name] = value
        return cls(**kwargs)  # type: ignore[arg-type]

    def validate(self) -> None:
        if int(self.num_layers or 0) != len(self.layer_sizes):
            raise ValueError(
                f"numLayers={self.num_layers} but {len(self.layer_sizes)} layer sizes were given"
            )
        if len(self.activation_types) != len(self.layer_sizes):
            raise ValueError("activationTypes must have one entry per layer")
        if len(self.dropout_rates) != len(self.layer_sizes):
            raise ValueError("dropoutRates must have one entry per layer")
        if any(size <= 0 for size in self.layer_sizes):
            raise ValueError("Every layer needs at least one node")
        if any(not 0.0 <= rate < 1.0 for rate in self.dropout_rates):
            raise ValueError("Dropout rates must lie in [0, 1)")
        if self.learning_rate <= 0:
            raise ValueError("learningRate must be positive")
        if int(self.max_iterations) <= 0:
            raise ValueError("maxIterations must be positive")
        if self.epsilon <= 0:
            raise ValueError("epsilon must be positive")
        if int(self.log_every) <= 0:
            raise ValueError("logEvery must be positive")


def read_config_file(path: Path) -> Mapping[str, object]:
    text = path.read_text()
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        try:
            import yaml  # type: ignore
        except Exception as exc:  # pragma: no cover - optional dependency
            raise RuntimeError("PyYAML is required to load config files in YAML format") from exc
        data = yaml.safe_load(text) or {}
    elif suffix == ".json":
        data = json.loads(text or "{}")
    else:
        raise ValueError(f"Unsupported config file type: {path.suffix}")

    if not isinstance(data, Mapping):
        raise TypeError(f"Config {path.name} must decode to a mapping")
    return data


def load_config(path: str | Path) -> MLPConfig:
    """Load an :class:`MLPConfig` from a JSON or YAML file."""

    data = read_config_file(Path(path))
    section = data.get("model", data)
    if not isinstance(section, Mapping):
        raise TypeError("The 'model' section must be a mapping")
    return MLPConfig.from_mapping(section)


__all__ = ["MLPConfig", "load_config", "read_config_file"]
