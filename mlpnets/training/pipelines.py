"""End-to-end runs: dataset, training, held-out evaluation and artifacts."""

from __future__ import annotations

import json
import time
from copy import deepcopy
from pathlib import Path
from typing import Callable, Dict, Mapping, Sequence, Tuple

from .. import data as datasets
from ..config import MLPConfig, read_config_file
from ..core.types import Array, RunResult
from ..reporting.artifacts import write_manifest
from ..reporting.metrics import CsvSink, JsonlSink
from .metrics import Results
from .trainer import MultilayerPerceptron

_PRESETS: Dict[str, Mapping[str, object]] = {
    "two-clusters-quadratic": {
        "data": {"name": "two_clusters", "options": {}},
        "model": {
            "numLayers": 1,
            "layerSizes": [2],
            "activationTypes": ["logistic"],
            "dropoutRates": [0.0],
            "lossType": "quadratic",
            "learningRate": 1e-2,
            "maxIterations": 1000,
            "epsilon": 0.05,
            "seed": 7,
        },
        "train": {"run_dir": "runs/two-clusters-quadratic"},
    },
    "iris-softmax": {
        "data": {"name": "iris", "options": {"holdout_per_class": 10, "standardize": True}},
        "model": {
            "numLayers": 2,
            "layerSizes": [5, 3],
            "activationTypes": ["logistic", "softmax"],
            "dropoutRates": [0.0, 0.0],
            "lossType": "quadratic",
            "learningRate": 1e-3,
            "maxIterations": 1500,
            "epsilon": 0.01,
            "seed": 1234,
        },
        "train": {"run_dir": "runs/iris-softmax"},
    },
    "iris-log-loss": {
        "data": {"name": "iris", "options": {"holdout_per_class": 10, "standardize": True}},
        "model": {
            "numLayers": 2,
            "layerSizes": [5, 3],
            "activationTypes": ["logistic", "softmax"],
            "dropoutRates": [0.0, 0.0],
            "lossType": "log",
            "learningRate": 1e-5,
            "maxIterations": 5000,
            "epsilon": 0.3,
            "seed": 1234,
        },
        "train": {"run_dir": "runs/iris-log-loss"},
    },
}

_DATASETS: Dict[str, Callable[[], Tuple[Array, Array]]] = {
    "iris": datasets.iris,
    "two_clusters": datasets.two_clusters,
}


def presets() -> Mapping[str, Mapping[str, object]]:
    return {name: deepcopy(cfg) for name, cfg in _PRESETS.items()}


def load_preset(name: str) -> Mapping[str, object]:
    try:
        return deepcopy(_PRESETS[name])
    except KeyError as exc:
        available = ", ".join(sorted(_PRESETS))
        raise KeyError(f"Unknown preset {name!r}. Available presets: {available}") from exc


def load_pipeline_config(path: str | Path) -> Mapping[str, object]:
    """Read a JSON/YAML pipeline config with ``data``/``model``/``train`` sections."""

    data = read_config_file(Path(path))
    missing = {"data", "model"} - set(data)
    if missing:
        raise KeyError(f"Pipeline config is missing required sections: {', '.join(sorted(missing))}")
    return data


def run_pipeline(config: Mapping[str, object]) -> RunResult:
    data_cfg = dict(config["data"])  # type: ignore[arg-type]
    model_cfg = dict(config["model"])  # type: ignore[arg-type]
    train_cfg = dict(config.get("train", {}))  # type: ignore[arg-type]

    name = str(data_cfg["name"])
    options = dict(data_cfg.get("options", {}))
    if name not in _DATASETS:
        available = ", ".join(sorted(_DATASETS))
        raise KeyError(f"Unknown dataset {name!r}. Available datasets: {available}")
    features, labels = _DATASETS[name]()

    per_class = int(options.get("holdout_per_class", 0))
    if per_class > 0:
        train_x, train_y, test_x, test_y = datasets.holdout_split(features, labels, per_class)
    else:
        train_x, train_y, test_x, test_y = features, labels, features, labels
    if options.get("standardize", False):
        train_x, test_x = datasets.standardize(train_x, test_x)
    targets, classes = datasets.one_hot(train_y)

    mlp_config = MLPConfig.from_mapping(model_cfg)
    run_dir = _resolve_run_dir(train_cfg, name)
    run_dir.mkdir(parents=True, exist_ok=True)
    jsonl = JsonlSink(run_dir / "progress.jsonl", seed=mlp_config.seed)
    csv_sink = CsvSink(run_dir / "progress.csv")

    _print_startup_summary(
        dataset_name=name,
        layer_sizes=mlp_config.layer_sizes,
        activations=mlp_config.activation_types,
        loss=mlp_config.loss_type,
        backend="torch" if mlp_config.use_accelerated_backend else "numpy",
        train_samples=int(train_x.shape[0]),
        test_samples=int(test_x.shape[0]),
    )

    model = MultilayerPerceptron(mlp_config, callbacks=[jsonl, csv_sink])
    state = model.learn(train_x, targets)
    _, predicted = model.predict(test_x)
    results = Results(classes[predicted], test_y)

    summary = {
        "iterations": state.iteration,
        "loss": state.loss,
        "status": state.status.value,
        "nan_detected": state.nan_detected,
        **results.as_metrics(),
    }
    (run_dir / "results.json").write_text(json.dumps(summary, indent=2))
    manifest = write_manifest(
        run_dir / "manifest.json",
        config=json.loads(json.dumps(config)),
        dataset={"name": name, "options": options, "classes": [int(c) for c in classes]},
        results=summary,
    )
    return RunResult(
        iterations=state.iteration,
        loss=state.loss,
        status=state.status.value,
        accuracy=results.accuracy(),
        metrics_path=str(jsonl.path),
        manifest_path=manifest,
    )


def _resolve_run_dir(train_cfg: Mapping[str, object], dataset: str) -> Path:
    if "run_dir" in train_cfg:
        return Path(str(train_cfg["run_dir"]))
    timestamp = time.strftime("%Y%m%d-%H%M%S")
    return Path("runs") / timestamp / dataset


def _print_startup_summary(
    *,
    dataset_name: str,
    layer_sizes: Sequence[int],
    activations: Sequence[str],
    loss: str,
    backend: str,
    train_samples: int,
    test_samples: int,
) -> None:
    print("=== mlpnets run ===")
    print(f"Dataset       : {dataset_name}")
    print(f"Layers        : {list(layer_sizes)}")
    print(f"Activations   : {list(activations)}")
    print(f"Loss          : {loss}")
    print(f"Backend       : {backend}")
    print(f"Samples       : {train_samples} train / {test_samples} test")
    print("===================")


__all__ = ["load_pipeline_config", "load_preset", "presets", "run_pipeline"]
