import numpy as np
import pytest

from mlpnets.core.backend import NumpyBackend
from mlpnets.core.propagation import (
    add_bias_row,
    argmax_labels,
    backward,
    forward,
    init_weights,
    sample_dropout_masks,
    update,
    weight_shapes,
)
from mlpnets.core.types import ActivationKind
from mlpnets.training.losses import resolve

XP = NumpyBackend()
LOGISTIC = ActivationKind.LOGISTIC
IDENTITY = ActivationKind.IDENTITY
QUADRATIC = resolve("quadratic").derivative


def _network(sizes, kinds, n=7, d=3, seed=0):
    rng = np.random.default_rng(seed)
    inputs = add_bias_row(rng.standard_normal((n, d)))
    weights = init_weights(rng, sizes, inputs.shape[0])
    return inputs, weights, list(kinds)


def test_bias_row_and_column_layout():
    features = np.array([[1.0, 2.0], [3.0, 4.0], [5.0, 6.0]])
    inputs = add_bias_row(features)
    assert inputs.shape == (3, 3)
    assert np.array_equal(inputs[-1], np.ones(3))
    assert np.array_equal(inputs[:2], features.T)


def test_weight_shapes_chain_through_the_bias_node():
    assert weight_shapes([5, 4, 3], input_rows=5) == [(6, 5), (5, 6), (3, 5)]
    assert weight_shapes([2], input_rows=3) == [(2, 3)]


@pytest.mark.parametrize("sizes", [[2], [4, 2], [5, 4, 3]])
def test_forward_shapes_and_alignment(sizes):
    inputs, weights, kinds = _network(sizes, [LOGISTIC] * len(sizes))
    state = forward(XP, inputs, weights, kinds, [0.0] * len(sizes))
    assert len(state.outputs) == len(state.activations) == len(sizes) + 1
    assert state.outputs[0] is inputs
    assert state.activations[0] is inputs
    assert state.activations[0].shape[0] == inputs.shape[0]
    assert state.activations[-1].shape == (sizes[-1], inputs.shape[1])
    for idx, W in enumerate(weights):
        assert W.shape[1] == state.activations[idx].shape[0]


def test_forward_rejects_mismatched_lists():
    inputs, weights, _ = _network([4, 2], [LOGISTIC, LOGISTIC])
    with pytest.raises(ValueError):
        forward(XP, inputs, weights, [LOGISTIC], [0.0, 0.0])
    with pytest.raises(ValueError):
        forward(XP, inputs, weights, [LOGISTIC, LOGISTIC], [0.0])


def test_forward_rejects_wrong_input_width():
    inputs, weights, kinds = _network([4, 2], [LOGISTIC, LOGISTIC])
    with pytest.raises(ValueError):
        forward(XP, inputs[:-1], weights, kinds, [0.0, 0.0])


@pytest.mark.parametrize("rate, masked", [(0.05, False), (0.8, False), (0.5, True)])
def test_dropout_boundaries(rate: float, masked: bool):
    inputs, weights, kinds = _network([3], [IDENTITY])
    zeros = [np.zeros((3, inputs.shape[1]))]
    state = forward(XP, inputs, weights, kinds, [rate], zeros)
    expected = np.zeros((3, inputs.shape[1])) if masked else weights[0] @ inputs
    np.testing.assert_allclose(state.activations[-1], expected)


def test_active_dropout_requires_a_mask():
    inputs, weights, kinds = _network([3], [IDENTITY])
    with pytest.raises(ValueError):
        forward(XP, inputs, weights, kinds, [0.5])


def test_sample_dropout_masks_only_for_active_layers():
    rng = np.random.default_rng(3)
    _, weights, _ = _network([6, 4, 2], [LOGISTIC] * 3)
    masks = sample_dropout_masks(rng, weights, [0.5, 0.05, 0.8], num_samples=11)
    assert masks[0].shape == (weights[0].shape[0], 11)
    assert set(np.unique(masks[0])) <= {0.0, 1.0}
    assert masks[1] is None and masks[2] is None


def test_backward_errors_match_activation_shapes():
    inputs, weights, kinds = _network([5, 4, 3], [LOGISTIC] * 3)
    state = forward(XP, inputs, weights, kinds, [0.0] * 3)
    target = np.zeros_like(state.activations[-1])
    errors = backward(XP, target, kinds, weights, state, QUADRATIC)
    assert errors[0] is None
    for idx in range(1, len(errors)):
        assert errors[idx].shape == state.activations[idx].shape
    np.testing.assert_allclose(errors[-1], state.activations[-1] - target)


def test_backward_rejects_target_shape_mismatch():
    inputs, weights, kinds = _network([4, 2], [LOGISTIC, LOGISTIC])
    state = forward(XP, inputs, weights, kinds, [0.0, 0.0])
    with pytest.raises(ValueError):
        backward(XP, np.zeros((3, inputs.shape[1])), kinds, weights, state, QUADRATIC)


def test_backward_seeds_from_the_given_loss_gradient():
    inputs, weights, kinds = _network([4, 2], [LOGISTIC, IDENTITY])
    state = forward(XP, inputs, weights, kinds, [0.0, 0.0])
    target = np.zeros_like(state.activations[-1])
    seen = []

    def constant_gradient(xp, output, tgt):
        seen.append(output.shape)
        return xp.ones_like(output)

    errors = backward(XP, target, kinds, weights, state, constant_gradient)
    assert seen == [state.activations[-1].shape]
    np.testing.assert_array_equal(errors[2], np.ones_like(target))
    expected = (weights[1].T @ np.ones_like(target)) * (
        state.activations[1] * (1.0 - state.activations[1])
    )
    np.testing.assert_allclose(errors[1], expected)


def test_gradient_matches_numeric_gradient_for_linear_output():
    # with an identity output layer the quadratic seed is the exact gradient
    # of 0.5 * sum((output - target) ** 2)
    inputs, weights, _ = _network([3, 2], [LOGISTIC, IDENTITY], n=4, d=2, seed=5)
    kinds = [LOGISTIC, IDENTITY]
    target = np.random.default_rng(9).standard_normal((2, inputs.shape[1]))

    def objective(ws):
        out = forward(XP, inputs, ws, kinds, [0.0, 0.0]).activations[-1]
        return 0.5 * np.sum((out - target) ** 2)

    state = forward(XP, inputs, weights, kinds, [0.0, 0.0])
    errors = backward(XP, target, kinds, weights, state, QUADRATIC)
    lr = 1.0
    stepped = update(XP, lr, state.activations, errors, weights)

    h = 1e-6
    for layer, W in enumerate(weights):
        analytic = (W - stepped[layer]) / lr
        numeric = np.zeros_like(W)
        for idx in np.ndindex(*W.shape):
            plus = [w.copy() for w in weights]
            minus = [w.copy() for w in weights]
            plus[layer][idx] += h
            minus[layer][idx] -= h
            numeric[idx] = (objective(plus) - objective(minus)) / (2 * h)
        np.testing.assert_allclose(analytic, numeric, rtol=1e-4, atol=1e-6)


def test_update_is_pure():
    inputs, weights, kinds = _network([4, 2], [LOGISTIC, LOGISTIC])
    before = [W.copy() for W in weights]
    state = forward(XP, inputs, weights, kinds, [0.0, 0.0])
    errors = backward(XP, np.ones_like(state.activations[-1]), kinds, weights, state, QUADRATIC)
    new_weights = update(XP, 0.1, state.activations, errors, weights)
    for old, current, new in zip(before, weights, new_weights):
        assert np.array_equal(old, current)
        assert new.shape == old.shape
        assert new is not current


def test_argmax_ties_resolve_to_lowest_index():
    responses = np.array([[0.2, 0.7, 0.7], [0.5, 0.5, 0.1], [0.0, 0.0, 0.3]])
    assert argmax_labels(responses).tolist() == [1, 0, 2]
