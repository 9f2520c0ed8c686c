"""Indicator features with tied parameters for a character-sequence CRF."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class Feature:
    """Binary indicator over the joint state of the variables in scope.

    The feature is on when y[scope] == assignment and then contributes
    theta[param_idx] to the unnormalized log-potential. Many features may
    share one param_idx.
    """

    scope: tuple[int, ...]
    assignment: tuple[int, ...]
    param_idx: int

    def is_active(self, y) -> bool:
        return all(y[v] == s for v, s in zip(self.scope, self.assignment))


@dataclass(frozen=True)
class FeatureSet:
    """All features of one instance and the size of the shared parameter vector."""

    num_params: int
    features: tuple[Feature, ...]

    @property
    def param_indices(self) -> np.ndarray:
        """Parameter index of every feature, in feature order."""
        return np.fromiter(
            (f.param_idx for f in self.features), dtype=np.int64, count=len(self.features)
        )

    def param_groups(self) -> dict[int, list[int]]:
        """Map each used parameter index to the positions of the features tied to it."""
        groups = defaultdict(list)
        for i, feature in enumerate(self.features):
            groups[feature.param_idx].append(i)
        return dict(groups)


def count_params(model_params, n_image_features: int) -> int:
    """Number of tied parameters of the character CRF."""
    K, n_obs = model_params.num_hidden_states, model_params.num_observed_states
    return K * n_obs * n_image_features + K + K * K


def conditioned_singleton_features(X: np.ndarray, model_params, offset: int = 0):
    """Features tying each (label, pixel value, pixel) triple across characters.

    Returns
    -------
    features : list of Feature
    num_params : int
        Number of parameters used by this family
    """
    K, n_obs = model_params.num_hidden_states, model_params.num_observed_states
    n_chars, n_image_features = X.shape
    features = []
    for v in range(n_chars):
        for f in range(n_image_features):
            o = int(X[v, f])
            for h in range(K):
                param_idx = offset + h + K * (o + n_obs * f)
                features.append(Feature((v,), (h,), param_idx))
    return features, K * n_obs * n_image_features


def unconditioned_singleton_features(n_chars: int, model_params, offset: int = 0):
    """Per-label bias features, shared across characters."""
    K = model_params.num_hidden_states
    features = [Feature((v,), (h,), offset + h) for v in range(n_chars) for h in range(K)]
    return features, K


def unconditioned_pair_features(n_chars: int, model_params, offset: int = 0):
    """Label transition features between neighboring characters."""
    K = model_params.num_hidden_states
    features = []
    for v in range(n_chars - 1):
        for h2 in range(K):
            for h1 in range(K):
                features.append(Feature((v, v + 1), (h1, h2), offset + h1 + K * h2))
    return features, K * K


def generate_all_features(X: np.ndarray, model_params) -> FeatureSet:
    """Build the feature set of one character sequence.

    Parameters
    ----------
    X : np.ndarray
        Observed image features, shape (n_chars, n_image_features). Column 0
        is expected to be a constant intercept.
    model_params : ModelParams

    Returns
    -------
    feature_set : FeatureSet
        Conditioned singleton, unconditioned singleton and pair features, in
        that order, with parameter indices offset per family.
    """
    n_chars = X.shape[0]
    features = []
    num_params = 0
    for family in (
        lambda offset: conditioned_singleton_features(X, model_params, offset),
        lambda offset: unconditioned_singleton_features(n_chars, model_params, offset),
        lambda offset: unconditioned_pair_features(n_chars, model_params, offset),
    ):
        family_features, family_params = family(num_params)
        features.extend(family_features)
        num_params += family_params
    assert num_params == count_params(model_params, X.shape[1])
    return FeatureSet(num_params=num_params, features=tuple(features))
