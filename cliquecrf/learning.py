"""Negative log-likelihood and gradient of a tied-parameter CRF for one instance."""

from __future__ import annotations

import logging

import numpy as np

from .factors import factor_marginalize, factor_reorder, factors_from_features
from .features import generate_all_features
from .inference import calibrate, create_clique_tree, variable_owners
from .utils import validate_feature_set, validate_instance, validate_labels, validate_theta

logger = logging.getLogger(__name__)


def regularization_cost(lam, theta):
    """L2 penalty lam / 2 * ||theta||^2."""
    return lam / 2.0 * np.sum(theta**2)


def regularization_gradient(lam, theta):
    """Gradient of regularization_cost with respect to theta."""
    return lam * theta


def feature_counts(y, features) -> np.ndarray:
    """1.0 for every feature active under the labels y, 0.0 otherwise."""
    return np.fromiter((f.is_active(y) for f in features), dtype=np.float64, count=len(features))


def sum_by_param(feature_set, per_feature: np.ndarray) -> np.ndarray:
    """Sum per-feature values over the features tied to each parameter."""
    totals = np.zeros(feature_set.num_params, dtype=np.float64)
    for param_idx, positions in feature_set.param_groups().items():
        totals[param_idx] = per_feature[positions].sum()
    return totals


def neg_log_likelihood(log_z, feature_set, theta, counts, lam):
    """NLL of the labels whose feature activations are counts.

    Parameters
    ----------
    log_z : float
        Log partition function of the calibrated clique tree
    feature_set : FeatureSet
    theta : np.ndarray
        Parameters, shape (num_params,)
    counts : np.ndarray
        Feature activations under the true labels, shape (n_features,)
    lam : float
        L2 regularization strength

    Returns
    -------
    nll : float
    """
    weighted = counts * theta[feature_set.param_indices]
    return float(log_z - weighted.sum() + regularization_cost(lam, theta))


def empirical_counts(feature_set, counts) -> np.ndarray:
    """Number of active features per parameter."""
    return sum_by_param(feature_set, counts)


def covering_cliques(tree, features) -> dict:
    """Map every distinct feature scope to the first clique containing it.

    Raises
    ------
    ValueError
        If some scope is not contained in any clique. The clique tree was
        built without that feature and the model is unusable.
    """
    containing = variable_owners(tree)
    owners = {}
    for feature in features:
        if feature.scope in owners:
            continue
        candidates = set.intersection(*(containing.get(v, set()) for v in feature.scope))
        if not candidates:
            raise ValueError(f"No clique covers feature scope {feature.scope}")
        owners[feature.scope] = min(candidates)
    return owners


def scope_marginals(tree, owners) -> dict:
    """Normalized marginal over each scope, from its owning clique's belief."""
    marginals = {}
    for scope, c in owners.items():
        clique = tree.cliques[c]
        marginal = factor_marginalize(clique, [v for v in clique.scope if v not in scope])
        marginals[scope] = factor_reorder(marginal, scope).normalized()
    return marginals


def expected_counts(tree, feature_set) -> np.ndarray:
    """Expected number of active features per parameter under the model.

    Parameters
    ----------
    tree : CliqueTree
        Sum-product calibrated tree
    feature_set : FeatureSet

    Returns
    -------
    etheta : np.ndarray
        Shape (num_params,)
    """
    features = feature_set.features
    marginals = scope_marginals(tree, covering_cliques(tree, features))
    probs = np.fromiter(
        (marginals[f.scope].get_value(f.assignment) for f in features),
        dtype=np.float64,
        count=len(features),
    )
    return sum_by_param(feature_set, probs)


def gradient(tree, feature_set, theta, counts, lam) -> np.ndarray:
    """Gradient of the NLL: expected minus empirical counts plus lam * theta."""
    etheta = expected_counts(tree, feature_set)
    ed = empirical_counts(feature_set, counts)
    return etheta - ed + regularization_gradient(lam, theta)


def evaluate_features(feature_set, y, theta, model_params):
    """NLL and gradient for labels y under an already built feature set.

    Parameters
    ----------
    feature_set : FeatureSet
    y : np.ndarray
        Label of every variable, shape (n_variables,)
    theta : np.ndarray
        Parameters, shape (feature_set.num_params,)
    model_params : ModelParams

    Returns
    -------
    nll : float
    grad : np.ndarray
        Shape (num_params,)
    """
    y = np.asarray(y, dtype=np.int64)
    theta = np.asarray(theta, dtype=np.float64)
    validate_labels(y, model_params.num_hidden_states)
    validate_theta(theta, feature_set.num_params)
    validate_feature_set(feature_set, model_params.num_hidden_states, y.shape[0])

    factors = factors_from_features(feature_set.features, theta, model_params.num_hidden_states)
    tree, log_z = calibrate(create_clique_tree(factors))

    counts = feature_counts(y, feature_set.features)
    nll = neg_log_likelihood(log_z, feature_set, theta, counts, model_params.lam)
    grad = gradient(tree, feature_set, theta, counts, model_params.lam)
    logger.debug("log_z=%.6f nll=%.6f |grad|=%.6f", log_z, nll, np.linalg.norm(grad))
    return nll, grad


def evaluate(X, y, theta, model_params):
    """NLL of the labels y of one character sequence X, and its gradient.

    Parameters
    ----------
    X : np.ndarray
        Observed image features, shape (n_chars, n_image_features)
    y : np.ndarray
        Labels, shape (n_chars,)
    theta : np.ndarray
        Tied CRF parameters, shape (num_params,)
    model_params : ModelParams

    Returns
    -------
    nll : float
    grad : np.ndarray
        Shape (num_params,)
    """
    X = np.asarray(X)
    y = np.asarray(y)
    validate_instance(X, y, model_params)
    feature_set = generate_all_features(X, model_params)
    return evaluate_features(feature_set, y, theta, model_params)


def numerical_gradient(fn, theta, eps=1e-6) -> np.ndarray:
    """Central finite-difference gradient of a scalar function of theta."""
    theta = np.asarray(theta, dtype=np.float64)
    grad = np.zeros_like(theta)
    for i in range(theta.shape[0]):
        step = np.zeros_like(theta)
        step[i] = eps
        grad[i] = (fn(theta + step) - fn(theta - step)) / (2 * eps)
    return grad
