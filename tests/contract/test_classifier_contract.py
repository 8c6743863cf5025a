"""Every classifier handed to an evaluation harness must honour this contract."""

import numpy as np
import pytest

from mlpnets.core.classifier import Classifier
from mlpnets.data import one_hot, two_clusters
from mlpnets.training.metrics import Results
from mlpnets.training.trainer import MultilayerPerceptron


def _evaluate(classifier: Classifier, train_x, train_y, test_x):
    classifier.learn(train_x, train_y)
    _, labels = classifier.predict(test_x)
    return labels


@pytest.fixture
def classifier():
    return MultilayerPerceptron.create(
        ["logistic"], [2], learning_rate=1e-2, max_iterations=1000, epsilon=0.05, seed=7
    )


def test_fresh_classifier_is_empty(classifier):
    assert classifier.empty()
    assert not classifier.is_trained()


def test_harness_round(classifier):
    features, labels = two_clusters()
    targets, classes = one_hot(labels)

    predicted = _evaluate(classifier, features, targets, features)

    assert not classifier.empty()
    assert classifier.is_trained()
    assert Results(classes[predicted], labels).accuracy() == 1.0


def test_clone_is_independent(classifier):
    features, labels = two_clusters()
    targets, _ = one_hot(labels)
    classifier.learn(features, targets)

    twin = classifier.clone()
    assert twin.is_trained()
    np.testing.assert_array_equal(twin.predict(features)[0], classifier.predict(features)[0])

    twin.learning_rate = 0.5
    twin.config.layer_sizes[0] = 99
    twin.weights = [np.zeros_like(W) for W in twin.weights]
    assert classifier.learning_rate == pytest.approx(1e-2)
    assert classifier.config.layer_sizes == [2]
    assert np.any(classifier.weights[0] != 0.0)


def test_weights_accessor_returns_copies(classifier):
    features, labels = two_clusters()
    classifier.learn(features, one_hot(labels)[0])
    weights = classifier.weights
    weights[0][:] = 0.0
    assert np.any(classifier.weights[0] != 0.0)


def test_relearning_replaces_previous_training(classifier):
    features, labels = two_clusters()
    targets, _ = one_hot(labels)
    first = classifier.learn(features, targets)
    before = classifier.weights
    second = classifier.learn(features, targets)
    assert second.iteration == first.iteration
    for W_before, W_after in zip(before, classifier.weights):
        np.testing.assert_array_equal(W_before, W_after)
