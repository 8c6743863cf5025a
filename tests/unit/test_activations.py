import numpy as np
import pytest

from mlpnets.core.activations import (
    apply_activation,
    apply_derivative,
    dropout_active,
    parse_activation,
)
from mlpnets.core.backend import NumpyBackend
from mlpnets.core.types import ActivationKind

XP = NumpyBackend()


def _sample_inputs():
    x = np.linspace(-4.0, 4.0, 160)
    # keep clear of the relu kink
    return x[np.abs(x) > 1e-2].reshape(1, -1)


@pytest.mark.parametrize(
    "kind", [ActivationKind.RELU, ActivationKind.LOGISTIC, ActivationKind.SOFTPLUS]
)
def test_derivative_matches_central_difference(kind: ActivationKind):
    x = _sample_inputs()
    h = 1e-4
    numeric = (apply_activation(XP, kind, x + h) - apply_activation(XP, kind, x - h)) / (2 * h)
    analytic = apply_derivative(XP, kind, x)
    np.testing.assert_allclose(analytic, numeric, atol=1e-3)


def test_relu_treats_zero_as_inactive():
    x = np.array([[-1.0, 0.0, 2.5]])
    assert np.allclose(apply_activation(XP, ActivationKind.RELU, x), [[0.0, 0.0, 2.5]])
    assert np.allclose(apply_derivative(XP, ActivationKind.RELU, x), [[0.0, 0.0, 1.0]])


def test_softplus_is_natural_log_softplus():
    x = np.array([[-30.0, 0.0, 1.0, 40.0]])
    out = apply_activation(XP, ActivationKind.SOFTPLUS, x)
    np.testing.assert_allclose(out[0, 1:3], np.log1p(np.exp(x[0, 1:3])))
    np.testing.assert_allclose(out[0, 3], 40.0)
    assert out[0, 0] > 0.0


def test_softmax_normalises_columns_and_clamps():
    z = np.array([[1.0, 1000.0], [2.0, 0.0], [3.0, -1000.0]])
    out = apply_activation(XP, ActivationKind.SOFTMAX, z)
    assert np.all(np.isfinite(out))
    np.testing.assert_allclose(out.sum(axis=0), [1.0, 1.0])
    assert out[2, 0] > out[1, 0] > out[0, 0]
    assert out[0, 1] == pytest.approx(1.0)


def test_logistic_saturates_without_overflow():
    z = np.array([[-1e4, 0.0, 1e4]])
    with np.errstate(over="raise"):
        out = apply_activation(XP, ActivationKind.LOGISTIC, z)
    np.testing.assert_allclose(out, [[0.0, 0.5, 1.0]], atol=1e-12)


def test_unknown_activation_falls_back_to_identity():
    assert parse_activation("tanh") is ActivationKind.IDENTITY
    assert parse_activation("ReLU") is ActivationKind.RELU
    x = np.array([[-2.0, 3.0]])
    kind = parse_activation("not-a-function")
    assert np.array_equal(apply_activation(XP, kind, x), x)
    assert np.array_equal(apply_derivative(XP, kind, x), np.ones_like(x))


def test_softmax_derivative_is_no_op():
    x = np.array([[0.3, -0.2], [1.0, 4.0]])
    assert np.array_equal(apply_derivative(XP, ActivationKind.SOFTMAX, x), np.ones_like(x))


@pytest.mark.parametrize(
    "rate, active",
    [(0.0, False), (0.05, False), (0.0500001, True), (0.5, True), (0.7999, True), (0.8, False), (0.95, False)],
)
def test_dropout_interval_is_open(rate: float, active: bool):
    assert dropout_active(rate) is active
