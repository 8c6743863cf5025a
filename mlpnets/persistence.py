"""Node-tree (de)serialisation of a trained network.

The tree is a plain mapping with the keys ``numWeights``, ``weight_<i>``,
``numLayers``, ``activations``, ``learningRate``, ``numNodesConfig``,
``dropoutWeights``, ``dropouts`` and ``loss``. Matrices are stored as
``{"rows", "cols", "dt", "data"}`` nodes so the tree can be written with any
JSON or YAML emitter.
"""

from __future__ import annotations

from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from .config import MLPConfig
from .core.types import Array

_DTYPES = {"d": np.float64, "f": np.float32}


def matrix_to_node(matrix: Array) -> Dict[str, object]:
    matrix = np.asarray(matrix)
    if matrix.ndim != 2:
        raise ValueError(f"Only 2-D matrices can be serialised, got ndim={matrix.ndim}")
    dt = "f" if matrix.dtype == np.float32 else "d"
    return {
        "rows": int(matrix.shape[0]),
        "cols": int(matrix.shape[1]),
        "dt": dt,
        "data": [float(v) for v in matrix.ravel()],
    }


def node_to_matrix(node: Mapping[str, object]) -> Array:
    rows = int(node["rows"])  # type: ignore[arg-type]
    cols = int(node["cols"])  # type: ignore[arg-type]
    dtype = _DTYPES.get(str(node.get("dt", "d")), np.float64)
    data = np.asarray(node["data"], dtype=dtype)
    if data.size != rows * cols:
        raise ValueError(f"Matrix node holds {data.size} values, expected {rows * cols}")
    return data.reshape(rows, cols)


def serialize(
    config: MLPConfig,
    weights: Sequence[Array],
    dropouts: Sequence[Optional[Array]] | None = None,
) -> Dict[str, object]:
    """Build the node tree for ``config`` and its weight matrices."""

    node: Dict[str, object] = {"numWeights": len(weights)}
    for idx, W in enumerate(weights):
        node[f"weight_{idx}"] = matrix_to_node(W)
    node["numLayers"] = int(config.num_layers or len(config.layer_sizes))
    node["activations"] = list(config.activation_types)
    node["learningRate"] = float(config.learning_rate)
    node["numNodesConfig"] = [int(size) for size in config.layer_sizes]
    node["dropoutWeights"] = [float(rate) for rate in config.dropout_rates]
    node["dropouts"] = [None if m is None else matrix_to_node(m) for m in dropouts or []]
    node["loss"] = str(config.loss_type)
    return node


def deserialize(
    node: Mapping[str, object],
) -> Tuple[MLPConfig, List[Array], List[Optional[Array]]]:
    """Inverse of :func:`serialize`."""

    num_weights = int(node["numWeights"])  # type: ignore[arg-type]
    # older trees nest the matrices under a ``weights`` mapping
    source = node.get("weights", node)
    if not isinstance(source, Mapping):
        raise TypeError("'weights' must be a mapping of weight_<i> entries")
    weights: List[Array] = []
    for idx in range(num_weights):
        key = f"weight_{idx}"
        if key not in source:
            raise KeyError(f"Missing weight {key} in model node")
        weights.append(node_to_matrix(source[key]))  # type: ignore[arg-type]

    config = MLPConfig(
        layer_sizes=list(node["numNodesConfig"]),  # type: ignore[arg-type]
        activation_types=list(node["activations"]),  # type: ignore[arg-type]
        dropout_rates=list(node["dropoutWeights"]),  # type: ignore[arg-type]
        num_layers=int(node["numLayers"]),  # type: ignore[arg-type]
        learning_rate=float(node["learningRate"]),  # type: ignore[arg-type]
        loss_type=str(node["loss"]),
    )
    if len(weights) != config.num_layers:
        raise ValueError(
            f"numWeights={len(weights)} does not match numLayers={config.num_layers}"
        )
    dropouts = [
        None if entry is None else node_to_matrix(entry)  # type: ignore[arg-type]
        for entry in node.get("dropouts", []) or []  # type: ignore[union-attr]
    ]
    return config, weights, dropouts


__all__ = ["deserialize", "matrix_to_node", "node_to_matrix", "serialize"]
