"""
Pytest configuration for cliquecrf tests.

Provides small models and a brute-force enumerator over the full joint
assignment space, used as ground truth for exact inference.
"""

import itertools

import numpy as np
import pytest

from cliquecrf import Feature, FeatureSet, ModelParams, logsumexp


def _joint_scores(features, theta, n_variables, num_hidden_states):
    assignments = list(itertools.product(range(num_hidden_states), repeat=n_variables))
    scores = np.array(
        [sum(theta[f.param_idx] for f in features if f.is_active(y)) for y in assignments],
        dtype=np.float64,
    )
    return assignments, scores


class BruteForce:
    """Exact quantities of a small CRF by enumerating every joint assignment."""

    def __init__(self, features, theta, n_variables, num_hidden_states):
        self.features = features
        self.theta = np.asarray(theta, dtype=np.float64)
        self.assignments, self.scores = _joint_scores(
            features, self.theta, n_variables, num_hidden_states
        )
        self.log_z = logsumexp(self.scores)
        self.probs = np.exp(self.scores - self.log_z)

    def nll(self, y, lam=0.0):
        score = sum(self.theta[f.param_idx] for f in self.features if f.is_active(y))
        return self.log_z - score + lam / 2.0 * np.sum(self.theta**2)

    def feature_probability(self, feature):
        return sum(p for y, p in zip(self.assignments, self.probs) if feature.is_active(y))

    def map_assignment(self):
        return np.array(self.assignments[int(np.argmax(self.scores))])


@pytest.fixture
def brute_force():
    """Factory for BruteForce(features, theta, n_variables, num_hidden_states)."""
    return BruteForce


@pytest.fixture
def small_params():
    return ModelParams(num_hidden_states=3, num_observed_states=2, lam=0.1)


@pytest.fixture
def chain_feature_set():
    """Three variables, 3 states, singleton and pairwise features with tying."""
    K = 3
    features = []
    for v in range(3):
        for h in range(K):
            features.append(Feature((v,), (h,), h))
    for v in range(2):
        for h2 in range(K):
            for h1 in range(K):
                features.append(Feature((v, v + 1), (h1, h2), K + h1 + K * h2))
    return FeatureSet(num_params=K + K * K, features=tuple(features))
