"""Utility functions for the cliquecrf package."""

from __future__ import annotations

import numba as nb
import numpy as np


@nb.njit
def assignment_to_index(assignment, card):
    """Convert an assignment to its position in a flattened factor table.

    Tables are laid out mixed-radix with the first variable varying fastest.

    Parameters
    ----------
    assignment : np.ndarray
        State of each variable, shape (n_vars,), int64
    card : np.ndarray
        Cardinality of each variable, shape (n_vars,), int64

    Returns
    -------
    index : int
        Linear index into a table of size prod(card)
    """
    index = 0
    stride = 1
    for k in range(card.shape[0]):
        index += assignment[k] * stride
        stride *= card[k]
    return index


@nb.njit
def index_to_assignment(index, card):
    """Inverse of assignment_to_index."""
    assignment = np.zeros(card.shape[0], dtype=np.int64)
    for k in range(card.shape[0]):
        assignment[k] = index % card[k]
        index //= card[k]
    return assignment


def validate_observations(X: np.ndarray, model_params) -> None:
    """Validate an observed feature matrix X of shape (n_chars, n_image_features)."""
    if X.ndim != 2:
        raise ValueError(f"X must be 2D (n_chars, n_image_features), got {X.ndim}D")
    if X.shape[0] == 0 or X.shape[1] == 0:
        raise ValueError(f"X must be non-empty, got shape {X.shape}")
    if not np.issubdtype(X.dtype, np.integer):
        raise ValueError("X must hold integer states")
    if X.min() < 0 or X.max() >= model_params.num_observed_states:
        raise ValueError(
            f"X values must lie in [0, {model_params.num_observed_states}), "
            f"got [{X.min()}, {X.max()}]"
        )


def validate_labels(y: np.ndarray, num_hidden_states: int) -> None:
    """Validate a label sequence y against the number of hidden states."""
    if y.ndim != 1:
        raise ValueError(f"y must be 1D, got {y.ndim}D")
    if y.shape[0] == 0:
        raise ValueError("y must be non-empty")
    if not np.issubdtype(y.dtype, np.integer):
        raise ValueError("y must hold integer states")
    if y.min() < 0 or y.max() >= num_hidden_states:
        raise ValueError(
            f"y values must lie in [0, {num_hidden_states}), got [{y.min()}, {y.max()}]"
        )


def validate_instance(X: np.ndarray, y: np.ndarray, model_params) -> None:
    """Validate an observed feature matrix X and its label sequence y.

    Raises
    ------
    ValueError
        If shapes disagree or any state is outside its range.
    """
    validate_observations(X, model_params)
    validate_labels(y, model_params.num_hidden_states)
    if X.shape[0] != y.shape[0]:
        raise ValueError(f"X has {X.shape[0]} rows but y has {y.shape[0]} labels")


def validate_theta(theta: np.ndarray, num_params: int) -> None:
    """Validate a parameter vector against the number of tied parameters."""
    if theta.ndim != 1:
        raise ValueError(f"theta must be 1D, got {theta.ndim}D")
    if theta.shape[0] != num_params:
        raise ValueError(f"theta has {theta.shape[0]} entries, expected {num_params}")
    if not np.all(np.isfinite(theta)):
        raise ValueError("theta contains NaN or Inf values")


def validate_feature_set(feature_set, num_hidden_states: int, n_variables: int) -> None:
    """Validate features against the parameter count, state space and label length.

    Every variable in [0, n_variables) must be covered by at least one feature,
    otherwise its states would be missing from the partition function.
    """
    covered = np.zeros(n_variables, dtype=bool)
    for i, feature in enumerate(feature_set.features):
        if not 0 <= feature.param_idx < feature_set.num_params:
            raise ValueError(
                f"Feature {i} has param_idx {feature.param_idx}, "
                f"expected [0, {feature_set.num_params})"
            )
        if len(feature.scope) == 0 or len(feature.scope) != len(feature.assignment):
            raise ValueError(
                f"Feature {i} has scope {feature.scope} and assignment {feature.assignment}"
            )
        if len(set(feature.scope)) != len(feature.scope):
            raise ValueError(f"Feature {i} repeats a variable in scope {feature.scope}")
        for v, s in zip(feature.scope, feature.assignment):
            if not 0 <= v < n_variables:
                raise ValueError(f"Feature {i} refers to variable {v}, expected [0, {n_variables})")
            if not 0 <= s < num_hidden_states:
                raise ValueError(
                    f"Feature {i} assigns state {s}, expected [0, {num_hidden_states})"
                )
            covered[v] = True
    if not covered.all():
        missing = np.flatnonzero(~covered).tolist()
        raise ValueError(f"Variables {missing} are not in the scope of any feature")
